"""Targets and dosing reference.

Combines the effective water targets, the resolved setup and the calculator
framework into the ``dosing_reference`` block of the plan. Values are
rounded to two decimals here; the raw calculators stay full precision.
"""

import logging
from typing import Optional

from aquatrack.engine import calculators
from aquatrack.engine.render import format_number, round_to
from aquatrack.schemas.normalized import NormalizedSetup
from aquatrack.schemas.package import CalculatorFramework
from aquatrack.schemas.targets import UserTargets

logger = logging.getLogger(__name__)


def resolve_targets(limits: dict, user_targets: Optional[UserTargets] = None) -> dict:
    """Effective targets: the user's targets when given, else the package limits.

    Parameters
    ----------
    limits : dict
        ``parameter_limits.generic.json`` from the engine package
    user_targets : UserTargets, optional
        App-level targets; replace the limits wholesale when present

    Returns
    -------
    dict
        ``{"effective": ..., "gh_range": [lo, hi], "kh_target": x}``
    """
    effective = user_targets.to_engine_targets() if user_targets is not None else limits
    gh_limits = limits.get("gh_dgh") or {}
    kh_limits = limits.get("kh_dkh") or {}
    gh_effective = effective.get("gh_dgh") or {}
    kh_effective = effective.get("kh_dkh") or {}

    gh_range = gh_effective.get("target_range") or [
        _first_present(gh_limits.get("min"), 0),
        _first_present(gh_limits.get("max"), 0),
    ]
    kh_target = _first_present(
        kh_effective.get("target"), kh_effective.get("max"), kh_limits.get("max"), 0
    )
    return {"effective": effective, "gh_range": list(gh_range), "kh_target": kh_target}


def _first_present(*values):
    for value in values:
        if value is not None:
            return value
    return None


def resolve_ammonia_solution_percent(setup: NormalizedSetup) -> float:
    """Strength of the ammonia solution in use.

    An enabled user ammonia product with a declared strength wins over the
    setup's ammonia source.
    """
    for product in setup.product_stack.enabled_user_products:
        if product.role == "ammonia_source" and product.ammonia_solution_percent:
            return product.ammonia_solution_percent
    return setup.product_stack.ammonia_source.solution_percent


def _round_all(values):
    return [None if value is None else round_to(value, 2) for value in values]


def build_dosing_reference(
    setup: NormalizedSetup,
    framework: CalculatorFramework,
    net_volume: float,
    wc_volume_range: list[float],
    gh_range: list[float],
    kh_target: float,
    ammonia_solution_percent: float,
) -> dict:
    """Compute the plan's dosing reference numbers.

    Parameters
    ----------
    setup : NormalizedSetup
        Resolved setup (tap chemistry)
    framework : CalculatorFramework
        Calculator defaults and constants from the engine package
    net_volume : float
        Net water volume in litres
    wc_volume_range : list of float
        Weekly water-change volume ``[low, high]`` in litres
    gh_range : list of float
        GH target range in dGH
    kh_target : float
        KH target in dKH
    ammonia_solution_percent : float
        Strength of the ammonia solution in use

    Returns
    -------
    dict
        Dosing reference block; ammonia doses are None when the solution
        strength has no calibration
    """
    defaults = framework.defaults
    constants = framework.constants
    water = setup.water_source_profile
    tap_kh = water.tap_kh_dkh if water.tap_kh_dkh is not None else 0
    gh_constant = constants.gh_remineralizer.g_per_l_per_1_dgh
    kh_constant = constants.kh_buffer_rule_of_thumb.g_per_10l_per_1_dkh
    label = constants.fertilizer_micros_label.ml_per_250l_per_week

    ammonia_targets = list(defaults.cycle_ammonia_target_ppm_range)
    ammonia_ml = [
        calculators.ammonia_dose_ml(net_volume, ppm, ammonia_solution_percent, constants.ammonia_calibration)
        for ppm in ammonia_targets
    ]

    gh_full_fill = calculators.gh_dose_range(water.tap_gh_dgh, gh_range, net_volume, gh_constant)
    gh_wc_low = calculators.gh_dose_range(water.tap_gh_dgh, gh_range, wc_volume_range[0], gh_constant)
    gh_wc_high = calculators.gh_dose_range(water.tap_gh_dgh, gh_range, wc_volume_range[1], gh_constant)

    kh_full_fill = calculators.kh_dose(tap_kh, kh_target, net_volume, kh_constant)
    kh_wc = [calculators.kh_dose(tap_kh, kh_target, volume, kh_constant) for volume in wc_volume_range]

    fertilizer_start = calculators.fertilizer_dose_ml_per_week(
        net_volume, defaults.fertilizer_start_factor, label
    )
    fertilizer_maint = [
        calculators.fertilizer_dose_ml_per_week(net_volume, factor, label)
        for factor in defaults.fertilizer_maint_factor_range
    ]

    logger.debug(
        "Dosing reference for %.2f L net: ammonia %s mL, KH %.2f g",
        net_volume, ammonia_ml, kh_full_fill
    )
    return {
        "cycle_ammonia_target_range": ammonia_targets,
        "cycle_ammonia_max": defaults.cycle_ammonia_max_ppm,
        "ammonia_solution_percent": ammonia_solution_percent,
        "ammonia_ml_range": _round_all(ammonia_ml),
        "gh_full_fill_g_range": _round_all(gh_full_fill),
        "gh_wc_g_range": _round_all([gh_wc_low[0], gh_wc_high[1]]),
        "kh_full_fill_g": round_to(kh_full_fill, 2),
        "kh_wc_g_range": _round_all(kh_wc),
        "fertilizer_start_ml_week": round_to(fertilizer_start, 2),
        "fertilizer_maint_ml_week_range": _round_all(fertilizer_maint),
        "co2_schedule": (
            f"CO2 on {format_number(defaults.co2_on_lead_hours)}h before lights, "
            f"off {format_number(defaults.co2_off_lead_hours)}h before lights off."
        ),
    }
