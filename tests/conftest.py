"""Root-level pytest fixtures for the aquatrack test suite.

Provides the shipped engine package and catalog plus a reference setup.
Tests build variations of the reference setup through ``make_setup``
instead of writing whole setup documents by hand.
"""

import copy

import pytest

from aquatrack.config import load_engine_package, load_product_catalog, load_protocol_ruleset
from aquatrack.schemas.resolve import deep_merge, resolve_setup


# =============================================================================
# Data Bundle Fixtures
# =============================================================================

@pytest.fixture
def engine_package():
    """Shipped engine package (decision tables, limits, template packs)."""
    return load_engine_package()


@pytest.fixture
def product_catalog():
    """Shipped product catalog with all eight roles covered."""
    return load_product_catalog()


@pytest.fixture
def protocol_ruleset():
    """Shipped protocol ruleset."""
    return load_protocol_ruleset()


@pytest.fixture
def minimal_catalog():
    """Five-product catalog without display names or warnings.

    Role placeholders fall back to the role name ("ammonia source"), which
    keeps rendered texts predictable.
    """
    def per_volume(amount, unit, per_volume_l):
        return {
            "dose_basis": "per_volume",
            "amount": amount,
            "unit": unit,
            "per_volume_l": per_volume_l,
        }

    return {
        "products": [
            {"product_id": "gh_remineralizer", "category": "remineralizer_gh",
             "dose_model": per_volume(1.0, "g", 15)},
            {"product_id": "kh_buffer", "category": "buffer_kh",
             "dose_model": per_volume(0.3, "g", 10)},
            {"product_id": "ammonia_solution", "category": "ammonia_source",
             "dose_model": per_volume(0.6, "mL", 60)},
            {"product_id": "bacteria_starter", "category": "bacteria_starter",
             "dose_model": per_volume(5, "mL", 40)},
            {"product_id": "fertilizer_micros", "category": "fertilizer_micros",
             "dose_model": per_volume(5, "mL", 250)},
        ]
    }


# =============================================================================
# Setup Fixtures
# =============================================================================

BASE_SETUP = {
    "user_preferences": {
        "cycling_mode_preference": "auto",
        "dark_start": False,
        "risk_tolerance": "low",
        "goal_profile": "stability_first",
        "photoperiod_hours_initial": 6,
        "photoperiod_hours_post_cycle": 8,
        "units": "metric",
    },
    "tank_profile": {
        "tank_volume_l_gross": 60,
        "net_volume_method": "estimate_multiplier",
        "estimated_net_multiplier": 0.85,
        "substrate": {"type": "inert"},
        "co2": {"enabled": True},
    },
    "water_source_profile": {
        "tap_gh_dgh": 2,
        "tap_kh_dkh": 1,
        "disinfectant": "chlorine",
        "weekly_water_change_percent_target": [25, 30],
    },
    "biology_profile": {
        "plants": {"categories": ["epiphytes"]},
        "livestock_plan": {"fish": [], "shrimp": [], "cleanup_crew": []},
    },
    "product_stack": {
        "ammonia_source": {"type": "pure_ammonia", "solution_percent": 10},
        "selected_product_ids": [
            "gh_remineralizer",
            "kh_buffer",
            "ammonia_solution",
            "bacteria_starter",
            "fertilizer_micros",
        ],
    },
}


@pytest.fixture
def base_setup():
    """Raw 60 L inert-substrate setup, no shrimp, lights on.

    Net volume 51 L, weekly change 25-30 %, tap GH 2 / KH 1.
    """
    return copy.deepcopy(BASE_SETUP)


@pytest.fixture
def make_setup():
    """Factory fixture for raw setup variations.

    Returns a callable that deep-merges overrides over ``BASE_SETUP``.
    Lists are replaced, not merged.

    Examples
    --------
    >>> def test_shrimp(make_setup):
    ...     setup = make_setup({"biology_profile": {"livestock_plan": {"shrimp": ["neocaridina"]}}})
    """
    def _make(*overrides):
        """Create a raw setup dict with overrides applied."""
        return deep_merge(copy.deepcopy(BASE_SETUP), *copy.deepcopy(list(overrides)))
    return _make


@pytest.fixture
def make_normalized(make_setup):
    """Factory fixture returning the resolved NormalizedSetup only."""
    def _make(*overrides):
        setup, _ = resolve_setup(make_setup(*overrides))
        return setup
    return _make
