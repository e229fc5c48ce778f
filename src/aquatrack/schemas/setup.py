"""SetupInput: Forgiving, minimal user-facing tank setup.

This schema accepts a setup document as the app saves it. Every field is
optional; users (and older app versions) only provide what they know, and
normalization fills the rest from the documented defaults in
``NormalizedSetup``.

Validation is lenient:
- Unknown keys are ignored
- Numbers may arrive as ints, floats or numeric strings
- Values that cannot be read as numbers are treated as missing
- Enum-like strings are lower-cased and stripped
"""

import math
from typing import Any, Optional, Union

from pydantic import field_validator

from aquatrack.schemas.base import InputModel


def coerce_number(value):
    """Read a JSON value as a number, or None when it is not one.

    Booleans are not numbers here, and neither are NaN or infinity.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return value if math.isfinite(value) else None
    if isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError:
            return None
        if not math.isfinite(number):
            return None
        return int(number) if number.is_integer() and "." not in value else number
    return None


def _lower(value):
    if isinstance(value, str):
        return value.lower().strip()
    return value


class UserPreferencesInput(InputModel):
    """User-facing preferences."""
    cycling_mode_preference: Optional[str] = None
    dark_start: Optional[Union[bool, str]] = None
    risk_tolerance: Optional[str] = None
    goal_profile: Optional[str] = None
    photoperiod_hours_initial: Optional[float] = None
    photoperiod_hours_post_cycle: Optional[float] = None
    units: Optional[str] = None

    @field_validator("cycling_mode_preference", "risk_tolerance", "goal_profile", "units", mode="before")
    @classmethod
    def normalize_names(cls, v):
        """Normalize enum-like names to lowercase."""
        return _lower(v)

    @field_validator("dark_start", mode="before")
    @classmethod
    def normalize_dark_start(cls, v):
        """Accept booleans, 'true'/'false' strings and 'auto'."""
        if isinstance(v, str):
            text = v.lower().strip()
            if text in ("true", "false"):
                return text == "true"
            return text
        return v

    @field_validator("photoperiod_hours_initial", "photoperiod_hours_post_cycle", mode="before")
    @classmethod
    def coerce_numeric_fields(cls, v):
        return coerce_number(v)


class SubstrateInput(InputModel):
    type: Optional[str] = None
    sand_cap_cm: Optional[float] = None

    @field_validator("type", mode="before")
    @classmethod
    def normalize_type(cls, v):
        return _lower(v)

    @field_validator("sand_cap_cm", mode="before")
    @classmethod
    def coerce_numeric_fields(cls, v):
        return coerce_number(v)


class HardscapeInput(InputModel):
    type: Optional[str] = None

    @field_validator("type", mode="before")
    @classmethod
    def normalize_type(cls, v):
        return _lower(v)


class FiltrationInput(InputModel):
    filter_model: Optional[str] = None
    rated_flow_lph: Optional[float] = None
    flow_class: Optional[str] = None

    @field_validator("rated_flow_lph", mode="before")
    @classmethod
    def coerce_numeric_fields(cls, v):
        return coerce_number(v)


class Co2Input(InputModel):
    enabled: Optional[bool] = None
    injection_type: Optional[str] = None
    target_ph_drop: Optional[float] = None
    surface_agitation: Optional[str] = None
    start_intent: Optional[str] = None

    @field_validator("start_intent", "injection_type", mode="before")
    @classmethod
    def normalize_names(cls, v):
        return _lower(v)

    @field_validator("target_ph_drop", mode="before")
    @classmethod
    def coerce_numeric_fields(cls, v):
        return coerce_number(v)


class TankProfileInput(InputModel):
    """User-facing tank profile."""
    tank_volume_l_gross: Optional[float] = None
    net_volume_method: Optional[str] = None
    estimated_net_multiplier: Optional[float] = None
    net_water_volume_l: Optional[float] = None
    substrate: Optional[SubstrateInput] = None
    hardscape: Optional[HardscapeInput] = None
    filtration: Optional[FiltrationInput] = None
    heater_installed: Optional[bool] = None
    co2: Optional[Co2Input] = None
    temperature_target_c: Optional[list[float]] = None

    @field_validator("net_volume_method", mode="before")
    @classmethod
    def normalize_method(cls, v):
        return _lower(v)

    @field_validator(
        "tank_volume_l_gross", "estimated_net_multiplier", "net_water_volume_l", mode="before"
    )
    @classmethod
    def coerce_numeric_fields(cls, v):
        return coerce_number(v)

    @field_validator("temperature_target_c", mode="before")
    @classmethod
    def coerce_temperature_range(cls, v):
        """Accept a [min, max] pair; anything else is treated as missing."""
        if isinstance(v, (list, tuple)) and len(v) == 2:
            values = [coerce_number(item) for item in v]
            if all(item is not None for item in values):
                return values
        return None


class TestingInput(InputModel):
    can_test_ammonia: Optional[bool] = None
    can_test_nitrite: Optional[bool] = None
    can_test_nitrate: Optional[bool] = None
    can_test_ph: Optional[bool] = None
    can_test_gh: Optional[bool] = None
    can_test_kh: Optional[bool] = None


class WaterSourceInput(InputModel):
    """User-facing tap water profile."""
    tap_ph: Optional[float] = None
    tap_gh_dgh: Optional[float] = None
    tap_kh_dkh: Optional[float] = None
    tap_ammonia_ppm: Optional[float] = None
    disinfectant: Optional[str] = None
    weekly_water_change_percent_target: Optional[list[float]] = None

    @field_validator("disinfectant", mode="before")
    @classmethod
    def normalize_disinfectant(cls, v):
        return _lower(v)

    @field_validator("tap_ph", "tap_gh_dgh", "tap_kh_dkh", "tap_ammonia_ppm", mode="before")
    @classmethod
    def coerce_numeric_fields(cls, v):
        return coerce_number(v)

    @field_validator("weekly_water_change_percent_target", mode="before")
    @classmethod
    def coerce_percent_range(cls, v):
        """Accept a scalar percent or a [min, max] range; store as a range."""
        if isinstance(v, (list, tuple)):
            values = [coerce_number(item) for item in v]
            if len(values) == 2 and all(item is not None for item in values):
                return values
            if len(values) == 1 and values[0] is not None:
                return [values[0], values[0]]
            return None
        number = coerce_number(v)
        return None if number is None else [number, number]


class PlantsInput(InputModel):
    categories: Optional[list[str]] = None
    demand_class: Optional[str] = None
    species: Optional[list[Any]] = None


class LivestockPlanInput(InputModel):
    fish: Optional[list[Any]] = None
    shrimp: Optional[list[Any]] = None
    cleanup_crew: Optional[list[Any]] = None


class LivestockTraitsInput(InputModel):
    is_sensitive: Optional[bool] = None
    has_diggers: Optional[bool] = None


class BiologyProfileInput(InputModel):
    plants: Optional[PlantsInput] = None
    livestock_plan: Optional[LivestockPlanInput] = None
    livestock_traits: Optional[LivestockTraitsInput] = None


class AmmoniaSourceInput(InputModel):
    type: Optional[str] = None
    solution_percent: Optional[float] = None

    @field_validator("type", mode="before")
    @classmethod
    def normalize_type(cls, v):
        return _lower(v)

    @field_validator("solution_percent", mode="before")
    @classmethod
    def coerce_numeric_fields(cls, v):
        return coerce_number(v)


class UserProduct(InputModel):
    """A dosing product the user declared themselves.

    ``role`` is one of the eight product roles, or ``gh_kh_remineralizer``
    for a combined GH/KH remineralizer that covers both mineral roles.
    """
    role: Optional[str] = None
    name: Optional[str] = None
    enabled: bool = False
    dose_amount: Optional[float] = None
    dose_unit: Optional[str] = None
    per_volume_l: Optional[float] = None
    effect_value: Optional[float] = None
    per_volume_l_gh: Optional[float] = None
    per_volume_l_kh: Optional[float] = None
    effect_value_gh: Optional[float] = None
    effect_value_kh: Optional[float] = None
    bicarbonate: bool = False
    pure_ammonia: bool = False
    ammonia_solution_percent: Optional[float] = None

    @field_validator("role", mode="before")
    @classmethod
    def normalize_role(cls, v):
        return _lower(v)

    @field_validator(
        "dose_amount", "per_volume_l", "effect_value", "per_volume_l_gh", "per_volume_l_kh",
        "effect_value_gh", "effect_value_kh", "ammonia_solution_percent", mode="before"
    )
    @classmethod
    def coerce_numeric_fields(cls, v):
        return coerce_number(v)

    @field_validator("enabled", "bicarbonate", "pure_ammonia", mode="before")
    @classmethod
    def coerce_flags(cls, v):
        """Missing flags are off."""
        return bool(v) if v is not None else False


class ProductStackInput(InputModel):
    ammonia_source: Optional[AmmoniaSourceInput] = None
    # Kept loose so normalization can tell "missing" from "not a list".
    selected_product_ids: Optional[Any] = None
    user_products: Optional[list[UserProduct]] = None


class SetupInput(InputModel):
    """User-facing setup document.

    Usage
    -----
        setup = SetupInput.model_validate({
            "tank_profile": {"tank_volume_l_gross": "60"},
            "water_source_profile": {"weekly_water_change_percent_target": 25},
        })
        normalized, notes = resolve_setup(setup)
    """
    user_preferences: Optional[UserPreferencesInput] = None
    tank_profile: Optional[TankProfileInput] = None
    testing: Optional[TestingInput] = None
    water_source_profile: Optional[WaterSourceInput] = None
    biology_profile: Optional[BiologyProfileInput] = None
    product_stack: Optional[ProductStackInput] = None
