"""Derived-quantity calculators.

Pure functions over tank and water parameters. Values stay at full
precision; rounding happens only when the plan is formatted.

Ranges are computed element-wise with numpy and returned as plain Python
lists so the plan stays JSON-serializable.
"""

from typing import Optional, Sequence, Union

import numpy as np

from aquatrack.schemas.normalized import TankProfile
from aquatrack.schemas.package import AmmoniaCalibration

Number = Union[int, float]


def net_volume(tank_profile: TankProfile) -> float:
    """Net water volume in litres.

    The explicit ``net_water_volume_l`` is used when the method is
    ``explicit`` and a value is present; otherwise the gross volume is
    scaled by ``estimated_net_multiplier``.

    Examples
    --------
    >>> net_volume(TankProfile(tank_volume_l_gross=60, estimated_net_multiplier=0.85))
    51.0
    """
    if tank_profile.net_volume_method == "explicit" and tank_profile.net_water_volume_l is not None:
        return float(tank_profile.net_water_volume_l)
    return float(tank_profile.tank_volume_l_gross * tank_profile.estimated_net_multiplier)


def weekly_change_volume_range(volume: Number, percent_range) -> list[float]:
    """Water-change volumes for a ``[low, high]`` percent range.

    A scalar percent is treated as the degenerate range ``[p, p]``.

    Examples
    --------
    >>> weekly_change_volume_range(50, [20, 30])
    [10.0, 15.0]
    """
    percents = np.broadcast_to(np.asarray(percent_range, dtype=float), (2,))
    return (volume * percents / 100.0).tolist()


def gh_dose_range(
    tap_gh: Number,
    target_range: Sequence[Number],
    volume: Number,
    g_per_l_per_dgh: Number,
) -> list[float]:
    """Grams of GH remineralizer to raise tap water to each end of a range.

    Never negative: a target at or below tap GH needs no dose.
    """
    targets = np.asarray(target_range[:2], dtype=float)
    deltas = np.maximum(0.0, targets - tap_gh)
    return (deltas * volume * g_per_l_per_dgh).tolist()


def kh_dose(
    tap_kh: Number,
    target_kh: Number,
    volume: Number,
    g_per_10l_per_dkh: Number,
) -> float:
    """Grams of KH buffer to raise tap water to ``target_kh``. Never negative."""
    delta = np.maximum(0.0, float(target_kh) - float(tap_kh))
    return float(delta * (volume / 10.0) * g_per_10l_per_dkh)


def ammonia_dose_ml(
    volume: Number,
    target_ppm: Number,
    solution_percent: Number,
    calibration: AmmoniaCalibration,
) -> Optional[float]:
    """Millilitres of ammonia solution to reach ``target_ppm``.

    Scales the calibration dose linearly by volume and target. Returns
    None when ``solution_percent`` differs from the calibrated strength;
    converting between strengths is not supported.

    Examples
    --------
    >>> cal = AmmoniaCalibration(reference_solution_percent=10, reference_dose_ml=0.6,
    ...                          reference_volume_l=60, reference_result_ppm=2.0)
    >>> ammonia_dose_ml(120, 2.0, 10, cal)
    1.2
    >>> ammonia_dose_ml(120, 2.0, 5, cal) is None
    True
    """
    if solution_percent is None or float(solution_percent) != float(calibration.reference_solution_percent):
        return None
    ratio = (volume / calibration.reference_volume_l) * (target_ppm / calibration.reference_result_ppm)
    return float(calibration.reference_dose_ml * ratio)


def fertilizer_dose_ml_per_week(volume: Number, dose_factor: Number, ml_per_250l_per_week: Number) -> float:
    """Weekly micro-fertilizer dose scaled from a per-250 L label dose."""
    return float(ml_per_250l_per_week * (volume / 250.0) * dose_factor)


def per_volume_dose(amount: Number, per_volume_l: Number, volume) -> Union[float, list[float]]:
    """Linear-by-volume product dose; ``volume`` may be a scalar or a range."""
    volumes = np.asarray(volume, dtype=float)
    doses = volumes / per_volume_l * amount
    return doses.tolist() if doses.ndim else float(doses)


def bicarbonate_delta_kh(dose_amount: Optional[Number], per_volume_l: Optional[Number]) -> float:
    """dKH raise from ``dose_amount`` grams of sodium bicarbonate per ``per_volume_l``.

    84 mg of bicarbonate is one milli-equivalent; 0.357 meq/L is one dKH.
    """
    if not dose_amount or not per_volume_l:
        return 0.0
    meq_per_l = dose_amount * 1000 / 84 / per_volume_l
    return meq_per_l / 0.357


def pure_ammonia_delta_ppm(
    dose_amount: Optional[Number],
    per_volume_l: Optional[Number],
    solution_percent: Optional[Number],
) -> float:
    """Total-ammonia ppm raise from a pure ammonia dose.

    1 mL of 10% solution per litre raises TAN by about 200 ppm; other
    strengths scale linearly.
    """
    if not dose_amount or not per_volume_l:
        return 0.0
    percent = solution_percent or 10
    ppm_per_ml_per_l = 200 * (percent / 10)
    return ppm_per_ml_per_l * (dose_amount / per_volume_l)
