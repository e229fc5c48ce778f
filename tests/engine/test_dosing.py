"""Tests for derived-quantity calculators and the dosing reference."""

import pytest

pytestmark = pytest.mark.unit

from aquatrack.engine import calculators
from aquatrack.engine.dosing import build_dosing_reference, resolve_ammonia_solution_percent, resolve_targets
from aquatrack.schemas import CalculatorFramework, UserTargets, resolve_setup
from aquatrack.schemas.normalized import TankProfile
from aquatrack.schemas.package import AmmoniaCalibration


CALIBRATION = AmmoniaCalibration(
    reference_solution_percent=10, reference_dose_ml=0.6, reference_volume_l=60, reference_result_ppm=2.0
)

LIMITS = {
    "gh_dgh": {"min": 5, "max": 6, "target_range": [5, 6]},
    "kh_dkh": {"min": 2, "max": 3, "target": 3},
}


class TestVolumes:
    """Test net and water-change volumes."""

    def test_estimated_net_volume(self):
        """Gross volume scaled by the multiplier."""
        assert calculators.net_volume(TankProfile(tank_volume_l_gross=60)) == pytest.approx(51.0)

    def test_explicit_net_volume(self):
        """The explicit volume wins when the method says so."""
        tank = TankProfile(tank_volume_l_gross=60, net_volume_method="explicit", net_water_volume_l=48)
        assert calculators.net_volume(tank) == 48.0

    def test_explicit_without_value_estimates(self):
        """The explicit method without a value falls back to the estimate."""
        tank = TankProfile(tank_volume_l_gross=100, net_volume_method="explicit")
        assert calculators.net_volume(tank) == pytest.approx(85.0)

    def test_weekly_change_range(self):
        """Percent range applies element-wise."""
        assert calculators.weekly_change_volume_range(50, [20, 30]) == [10.0, 15.0]

    def test_weekly_change_scalar(self):
        """A scalar percent is a degenerate range."""
        assert calculators.weekly_change_volume_range(40, 25) == [10.0, 10.0]


class TestMineralDoses:
    """Test GH and KH dose calculators."""

    def test_gh_dose_range(self):
        """Grams to raise tap GH to each end of the target range."""
        doses = calculators.gh_dose_range(2, [5, 6], 51, 0.0666666667)
        assert doses == pytest.approx([10.2, 13.6])

    def test_gh_dose_never_negative(self):
        """Targets below tap GH need no dose."""
        assert calculators.gh_dose_range(8, [5, 6], 51, 0.0666666667) == [0.0, 0.0]

    def test_kh_dose(self):
        """Grams of buffer per 10 L per dKH."""
        assert calculators.kh_dose(1, 3, 51, 0.3) == pytest.approx(3.06)
        assert calculators.kh_dose(4, 3, 51, 0.3) == 0.0


class TestAmmoniaDose:
    """Test the calibrated ammonia dose."""

    def test_linear_scaling(self):
        """Dose scales with volume and target."""
        assert calculators.ammonia_dose_ml(120, 2.0, 10, CALIBRATION) == pytest.approx(1.2)
        assert calculators.ammonia_dose_ml(51, 1.5, 10, CALIBRATION) == pytest.approx(0.3825)

    def test_uncalibrated_strength(self):
        """Other solution strengths are not converted."""
        assert calculators.ammonia_dose_ml(120, 2.0, 5, CALIBRATION) is None
        assert calculators.ammonia_dose_ml(120, 2.0, None, CALIBRATION) is None


class TestProductStrengths:
    """Test derived strengths for user products."""

    def test_fertilizer_dose(self):
        """Label dose scaled from 250 L."""
        assert calculators.fertilizer_dose_ml_per_week(51, 0.5, 5) == pytest.approx(0.51)

    def test_per_volume_dose(self):
        """Scalar and range volumes."""
        assert calculators.per_volume_dose(1, 10, 50) == 5.0
        assert calculators.per_volume_dose(1, 10, [20, 30]) == [2.0, 3.0]

    def test_bicarbonate_delta_kh(self):
        """1 g per 10 L of bicarbonate raises KH by about 3.3 dKH."""
        assert calculators.bicarbonate_delta_kh(1, 10) == pytest.approx(1000 / 84 / 10 / 0.357)
        assert calculators.bicarbonate_delta_kh(None, 10) == 0.0

    def test_pure_ammonia_delta_ppm(self):
        """1 mL of 10% solution per litre gives about 200 ppm."""
        assert calculators.pure_ammonia_delta_ppm(1, 1, 10) == pytest.approx(200)
        assert calculators.pure_ammonia_delta_ppm(1, 100, 5) == pytest.approx(1)
        assert calculators.pure_ammonia_delta_ppm(0, 100, 10) == 0.0


class TestTargets:
    """Test effective target resolution."""

    def test_limits_by_default(self):
        """Without user targets the package limits apply."""
        info = resolve_targets(LIMITS)
        assert info["effective"] is LIMITS
        assert info["gh_range"] == [5, 6]
        assert info["kh_target"] == 3

    def test_limits_without_range(self):
        """GH falls back to min/max; KH to max."""
        info = resolve_targets({"gh_dgh": {"min": 4, "max": 7}, "kh_dkh": {"max": 2}})
        assert info["gh_range"] == [4, 7]
        assert info["kh_target"] == 2

    def test_user_targets_replace_limits(self):
        """User targets replace the limits wholesale."""
        targets = UserTargets.model_validate({
            "temperature": {"min": 23, "max": 25},
            "ph": {"min": 6.5, "max": 7.0},
            "gh": {"min": 6, "max": 8},
            "kh": {"min": 2, "max": 4},
            "nitrate": {"min": 5, "max": 15},
        })
        info = resolve_targets(LIMITS, targets)
        assert info["gh_range"] == [6, 8]
        assert info["kh_target"] == 3
        assert info["effective"]["ammonia_ppm"] == {"target": 0}


class TestDosingReference:
    """Test the plan's dosing reference block."""

    def test_reference_setup(self, make_normalized):
        """Rounded doses for the 51 L reference tank."""
        setup = make_normalized()
        reference = build_dosing_reference(
            setup, CalculatorFramework(), 51.0, [12.75, 15.3], [5, 6], 3, 10
        )
        assert reference["ammonia_ml_range"] == [0.38, 0.51]
        assert reference["gh_full_fill_g_range"] == [10.2, 13.6]
        assert reference["gh_wc_g_range"] == [2.55, 4.08]
        assert reference["kh_full_fill_g"] == 3.06
        assert reference["fertilizer_start_ml_week"] == 0.51
        assert reference["fertilizer_maint_ml_week_range"][1] == 1.02
        assert reference["cycle_ammonia_target_range"] == [1.5, 2.0]
        assert reference["co2_schedule"] == "CO2 on 1h before lights, off 1h before lights off."

    def test_uncalibrated_ammonia(self, make_normalized):
        """Ammonia doses are None for an uncalibrated strength."""
        setup = make_normalized({"product_stack": {"ammonia_source": {"solution_percent": 5}}})
        reference = build_dosing_reference(setup, CalculatorFramework(), 51.0, [12.75, 15.3], [5, 6], 3, 5)
        assert reference["ammonia_ml_range"] == [None, None]

    def test_unknown_tap_kh_treated_as_zero(self, make_normalized):
        """Unknown tap KH doses from zero."""
        setup = make_normalized({"water_source_profile": {"tap_kh_dkh": None}})
        reference = build_dosing_reference(setup, CalculatorFramework(), 50.0, [10.0, 10.0], [5, 6], 3, 10)
        assert reference["kh_full_fill_g"] == 4.5

    def test_user_ammonia_strength_wins(self, base_setup):
        """An enabled user ammonia product sets the solution strength."""
        base_setup["product_stack"]["user_products"] = [
            {"role": "ammonia_source", "enabled": True, "ammonia_solution_percent": 5},
        ]
        setup, _ = resolve_setup(base_setup)
        assert resolve_ammonia_solution_percent(setup) == 5

    def test_setup_ammonia_strength(self, make_normalized):
        """Without user products the setup's ammonia source applies."""
        assert resolve_ammonia_solution_percent(make_normalized()) == 10
