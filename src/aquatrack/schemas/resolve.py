"""Setup resolution and merging logic.

This module provides the single entrypoint for setup normalization:
resolve_setup(). It validates a raw setup document, merges the values the
user actually gave over the documented defaults of ``NormalizedSetup``,
and returns the frozen result together with the warning notes the engine
carries in the plan.

Precedence (highest to lowest):
1. Explicit setup values (when recognised)
2. NormalizedSetup defaults
"""

import logging
from typing import Optional, Union, get_args

from aquatrack.schemas.normalized import (
    Co2StartIntent,
    CyclingModePreference,
    Disinfectant,
    NetVolumeMethod,
    NormalizedSetup,
    RiskTolerance,
    Units,
)
from aquatrack.schemas.setup import SetupInput

logger = logging.getLogger(__name__)

__all__ = ['deep_merge', 'resolve_setup', 'warning_note']


# Dotted path -> accepted values. Anything else falls back to the default.
ENUM_CHOICES = {
    "user_preferences.cycling_mode_preference": get_args(CyclingModePreference),
    "user_preferences.dark_start": (True, False, "auto"),
    "user_preferences.risk_tolerance": get_args(RiskTolerance),
    "user_preferences.units": get_args(Units),
    "tank_profile.net_volume_method": get_args(NetVolumeMethod),
    "tank_profile.co2.start_intent": get_args(Co2StartIntent),
    "water_source_profile.disinfectant": get_args(Disinfectant),
}


def deep_merge(base: dict, *overrides: dict) -> dict:
    """Deep merge multiple dictionaries.

    Later dictionaries override earlier ones. Nested dictionaries are
    merged recursively; other values (lists included) are replaced.

    Parameters
    ----------
    base : dict
        Base dictionary (lowest priority)
    *overrides : dict
        Override dictionaries (higher priority, left to right)

    Returns
    -------
    dict
        Merged dictionary

    Examples
    --------
    >>> base = {"a": 1, "b": {"c": 2, "d": 3}}
    >>> override = {"b": {"d": 4, "e": 5}, "f": 6}
    >>> deep_merge(base, override)
    {'a': 1, 'b': {'c': 2, 'd': 4, 'e': 5}, 'f': 6}
    """
    result = base.copy()

    for override in overrides:
        for key, value in override.items():
            if key in result and isinstance(result[key], dict) and isinstance(value, dict):
                result[key] = deep_merge(result[key], value)
            else:
                result[key] = value

    return result


def warning_note(message: str, role: Optional[str] = None) -> dict:
    """Build a plan note of type 'warning'."""
    note = {"type": "warning", "message": message}
    if role is not None:
        note["role"] = role
    return note


def _lookup(tree: dict, path: str):
    node = tree
    for key in path.split("."):
        if not isinstance(node, dict) or key not in node:
            return None
        node = node[key]
    return node


def _assign(tree: dict, path: str, value) -> None:
    keys = path.split(".")
    node = tree
    for key in keys[:-1]:
        node = node[key]
    node[keys[-1]] = value


def _is_choice(value, choices) -> bool:
    # bool is an int subclass; keep True from matching 1 and the reverse
    return any(value == choice and type(value) is type(choice) for choice in choices)


def resolve_setup(raw: Union[dict, SetupInput, None]) -> tuple[NormalizedSetup, list[dict]]:
    """Resolve a raw setup document into a NormalizedSetup.

    This is the SINGLE ENTRYPOINT for setup normalization. Every stage of
    the engine receives the NormalizedSetup it returns.

    Parameters
    ----------
    raw : dict or SetupInput or None
        Setup document as saved by the app. Missing sections and fields are
        allowed; unreadable numbers count as missing.

    Returns
    -------
    setup : NormalizedSetup
        Fully-defaulted, immutable setup
    notes : list of dict
        ``{"type": "warning", "message": ...}`` notes for missing or invalid
        fields that change downstream math

    Raises
    ------
    ValidationError
        If the document has a shape pydantic cannot coerce (for example a
        list where a section object is expected)

    Examples
    --------
    >>> setup, notes = resolve_setup({"tank_profile": {"tank_volume_l_gross": 60}})
    >>> setup.tank_profile.estimated_net_multiplier
    0.85
    >>> [n["message"] for n in notes][0]
    'water_source_profile.tap_gh_dgh is missing.'
    """
    if raw is None:
        user = SetupInput()
    elif isinstance(raw, SetupInput):
        user = raw
    else:
        user = SetupInput.model_validate(raw)

    notes: list[dict] = []
    defaults = NormalizedSetup().model_dump()
    explicit = user.model_dump(exclude_none=True)

    selected_raw = user.product_stack.selected_product_ids if user.product_stack else None
    product_stack = explicit.get("product_stack", {})
    product_stack.pop("selected_product_ids", None)
    user_products = product_stack.get("user_products") or []
    has_enabled_products = any(product.get("enabled") for product in user_products)

    merged = deep_merge(defaults, explicit)

    for path, choices in ENUM_CHOICES.items():
        value = _lookup(merged, path)
        if not _is_choice(value, choices):
            default = _lookup(defaults, path)
            notes.append(warning_note(
                f"{path} value {value!r} is not recognised; using default {default!r}."
            ))
            _assign(merged, path, default)

    tank = merged["tank_profile"]
    water = merged["water_source_profile"]

    if not tank["tank_volume_l_gross"]:
        notes.append(warning_note("tank_profile.tank_volume_l_gross is missing or zero."))

    if user.water_source_profile is None or user.water_source_profile.tap_gh_dgh is None:
        notes.append(warning_note("water_source_profile.tap_gh_dgh is missing."))

    if water["tap_kh_dkh"] is None:
        notes.append(warning_note("Tap KH is unknown; test before dosing KH buffer."))

    if isinstance(selected_raw, list):
        merged["product_stack"]["selected_product_ids"] = [
            str(product_id) for product_id in selected_raw if product_id is not None
        ]
    elif selected_raw is not None or not has_enabled_products:
        notes.append(warning_note("product_stack.selected_product_ids is missing or invalid."))
        merged["product_stack"]["selected_product_ids"] = []

    if tank["net_volume_method"] == "explicit" and tank["net_water_volume_l"] is None:
        notes.append(warning_note(
            "tank_profile.net_water_volume_l is required when net_volume_method is explicit."
        ))

    setup = NormalizedSetup.model_validate(merged)
    logger.debug("Resolved setup with %d normalization notes", len(notes))
    return setup, notes

