"""Rendering and matching contexts.

Three views of the same computed state feed the phase expanders:

- ``build_placeholder_map``: flat ``{key: text}`` map for ``{key}`` templates
  (protocol rulesets and fallback template packs). Every value is already a
  display string.
- ``build_template_context``: nested dict for ``{{ dotted.path }}``
  templates and template conditions (phase templates, atom libraries).
- ``build_rules_context``: flat facts for structured ``when`` clauses.
"""

import logging
from typing import Optional

from aquatrack.engine.products import COMBO_ROLE, ROLE_CATEGORIES, enabled_roles
from aquatrack.engine.render import average_range, format_number, format_range, is_number
from aquatrack.schemas.catalog import Product
from aquatrack.schemas.normalized import NormalizedSetup
from aquatrack.schemas.setup import UserProduct

logger = logging.getLogger(__name__)

PER_LABEL = "per label"
CYCLE_SAFE_FISHLESS = {"ammonia": 6, "nitrite": 5}
CYCLE_SAFE_PH_MIN = 6.4
EMERGENCY_CHANGE_FRACTION = 0.5

SCHOOLING_KEYWORDS = ("tetra", "rasbora", "danio")
BOTTOM_DWELLER_KEYWORDS = ("corydoras", "loach", "pleco", "otocinclus")


def role_display_name(role: str, role_map: dict) -> str:
    product = role_map.get(role)
    if product is not None and product.display_name:
        return product.display_name
    return role.replace("_", " ")


def role_dose(product: Optional[Product], volume):
    """Per-volume dose of ``product`` for ``volume`` litres, or None."""
    if product is None or product.dose_model is None or not product.dose_model.is_per_volume:
        return None
    if not is_number(volume):
        return None
    dose_model = product.dose_model
    return volume / dose_model.per_volume_l * dose_model.amount


def _dose_text(product: Optional[Product], volume, decimals: int) -> str:
    amount = role_dose(product, volume)
    if amount is None:
        return PER_LABEL
    return f"{format_number(amount, decimals)} {product.dose_model.unit or ''}".strip()


def _target_value(targets: dict, name: str):
    """Scalar target, else the middle of the target range."""
    entry = targets.get(name) or {}
    value = entry.get("target")
    return value if value is not None else average_range(entry.get("target_range"))


def _scalar_target(targets: dict, name: str, default=None):
    value = (targets.get(name) or {}).get("target")
    return default if value is None else value


def build_placeholder_map(
    derived: dict,
    dosing_reference: dict,
    targets: dict,
    calculator_defaults,
    ammonia_solution_percent,
    role_map: dict,
    cycling_mode: str,
) -> dict[str, str]:
    """Flat replacement map for brace templates.

    Parameters
    ----------
    derived : dict
        Raw derived quantities (net volume, weekly change ranges, photoperiods)
    dosing_reference : dict
        Output of ``build_dosing_reference``
    targets : dict
        Effective targets merged over the parameter limits
    calculator_defaults : CalculatorDefaults
        Cycling ammonia targets and fertilizer factor
    ammonia_solution_percent : float
        Solution strength in use
    role_map : dict
        Role name to resolved Product (or None)
    cycling_mode : str
        Effective cycling mode; fishless cycling tolerates higher
        ammonia and nitrite than cycling with livestock

    Returns
    -------
    dict
        Keys are placeholder names, values display strings
    """
    net_volume = derived["net_water_volume_l"]
    wc_volumes = derived["weekly_water_change_volume_l_range"]
    emergency_volume = net_volume * EMERGENCY_CHANGE_FRACTION

    role_doses = {}
    for role in role_map:
        product = role_map[role]
        role_doses[f"doses.{role}.fullfill_dose_amount"] = format_number(role_dose(product, net_volume), 2)
        role_doses[f"doses.{role}.wc_dose_amount"] = format_range(
            [role_dose(product, volume) for volume in wc_volumes], 2
        )
        role_doses[f"doses.{role}.ewc_dose_amount"] = format_number(role_dose(product, emergency_volume), 2)

    if cycling_mode == "fishless_ammonia":
        cycle_safe = CYCLE_SAFE_FISHLESS
    else:
        cycle_safe = {
            "ammonia": _scalar_target(targets, "ammonia_ppm", 0),
            "nitrite": _scalar_target(targets, "nitrite_ppm", 0),
        }

    replacements = {
        "net_volume_l": format_number(net_volume, 1),
        "photoperiod_hours_initial": format_number(derived["photoperiod_hours_initial"], 1),
        "photoperiod_hours_post_cycle": format_number(derived["photoperiod_hours_post_cycle"], 1),
        "cycle_ammonia_target_range": format_range(list(calculator_defaults.cycle_ammonia_target_ppm_range), 1),
        "cycle_ammonia_max": format_number(calculator_defaults.cycle_ammonia_max_ppm, 1),
        "ammonia_ml_range": format_range(dosing_reference["ammonia_ml_range"], 2),
        "ammonia_solution_percent": format_number(ammonia_solution_percent, 0),
        "weekly_wc_percent_range": format_number(average_range(derived["weekly_water_change_percent_range"]), 0),
        "weekly_wc_volume_l_range": format_number(average_range(wc_volumes), 1),
        "gh_full_fill_g_range": format_range(dosing_reference["gh_full_fill_g_range"], 2),
        "gh_full_fill_g_target": format_number(average_range(dosing_reference["gh_full_fill_g_range"]), 1),
        "gh_wc_g_range": format_range(dosing_reference["gh_wc_g_range"], 2),
        "gh_wc_g_target": format_number(average_range(dosing_reference["gh_wc_g_range"]), 1),
        "kh_full_fill_g": format_number(dosing_reference["kh_full_fill_g"], 2),
        "kh_wc_g_range": format_range(dosing_reference["kh_wc_g_range"], 2),
        "kh_wc_g_target": format_number(average_range(dosing_reference["kh_wc_g_range"]), 1),
        "target_gh_range": format_range((targets.get("gh_dgh") or {}).get("target_range"), 1),
        "target_gh_dgh": format_number(_target_value(targets, "gh_dgh"), 1),
        "target_kh_dkh": format_number(_target_value(targets, "kh_dkh"), 1),
        "safe_ammonia_ppm": format_number(_scalar_target(targets, "ammonia_ppm"), 1),
        "safe_nitrite_ppm": format_number(_scalar_target(targets, "nitrite_ppm"), 1),
        "cycle_safe_ammonia_ppm": format_number(cycle_safe["ammonia"], 1),
        "cycle_safe_nitrite_ppm": format_number(cycle_safe["nitrite"], 1),
        "cycle_safe_ph_min": format_number(CYCLE_SAFE_PH_MIN, 1),
        "fertilizer_start_ml_week": format_number(dosing_reference["fertilizer_start_ml_week"], 2),
        "fertilizer_start_factor": format_number(calculator_defaults.fertilizer_start_factor, 2),
        "fertilizer_maint_ml_week_range": format_range(dosing_reference["fertilizer_maint_ml_week_range"], 2),
        "gh_remineralizer_name": role_display_name("gh_remineralizer", role_map),
        "kh_buffer_name": role_display_name("kh_buffer", role_map),
        "bacteria_starter_name": role_display_name("bacteria_starter", role_map),
        "conditioner_name": role_display_name("detoxifier_conditioner", role_map),
        "ammonia_source_name": role_display_name("ammonia_source", role_map),
        "fertilizer_micros_name": role_display_name("fertilizer_micros", role_map),
        "conditioner_full_dose": _dose_text(role_map.get("detoxifier_conditioner"), net_volume, 1),
        "bacteria_full_dose": _dose_text(role_map.get("bacteria_starter"), net_volume, 1),
        "bacteria_weekly_dose": _dose_text(role_map.get("bacteria_starter"), net_volume, 1),
        "co2_schedule": dosing_reference.get("co2_schedule") or "CO2 schedule unavailable",
    }
    replacements.update(role_doses)
    return replacements


def _mean_present(*values):
    present = [value for value in values if value is not None]
    if not present:
        return None
    return sum(present) / len(present)


def _combo_dose_to_target(base_dose, volume, tap_value, target_value, per_volume_l, effect_value):
    """Amount of a combined remineralizer to move ``tap_value`` to ``target_value``."""
    if not per_volume_l or not effect_value or not base_dose or not is_number(volume):
        return None
    delta = max(0, (target_value or 0) - (tap_value or 0))
    if not delta:
        return 0
    return (delta / effect_value) * (volume / per_volume_l) * base_dose


def _combo_blocks(combo: UserProduct, setup: NormalizedSetup, targets: dict, derived: dict):
    water = setup.water_source_profile
    net_volume = derived["net_water_volume_l"]
    volumes = {
        "fullfill_dose_amount": net_volume,
        "wc_dose_amount": average_range(derived["weekly_water_change_volume_l_range"]),
        "ewc_dose_amount": net_volume * EMERGENCY_CHANGE_FRACTION,
    }
    target_gh = _target_value(targets, "gh_dgh")
    target_kh = _target_value(targets, "kh_dkh")
    per_volume_gh = combo.per_volume_l_gh or combo.per_volume_l
    per_volume_kh = combo.per_volume_l_kh or combo.per_volume_l
    effect_gh = combo.effect_value_gh or combo.effect_value
    effect_kh = combo.effect_value_kh or combo.effect_value
    base_dose = combo.dose_amount or 0
    unit = combo.dose_unit or ""

    doses = {}
    for key, volume in volumes.items():
        gh = _combo_dose_to_target(base_dose, volume, water.tap_gh_dgh, target_gh, per_volume_gh, effect_gh)
        kh = _combo_dose_to_target(base_dose, volume, water.tap_kh_dkh or 0, target_kh, per_volume_kh, effect_kh)
        doses[key] = format_number(_mean_present(gh, kh), 1)

    product = {
        "selected": True,
        "display_name": combo.name or "GH/KH Remineralizer",
        "dose_unit": unit,
        "dose_text": f"{format_number(base_dose, 1)} {unit}".strip(),
    }
    return product, doses


def _has_keyword(names, keywords) -> bool:
    return any(keyword in name for name in names for keyword in keywords)


def build_template_context(
    setup: NormalizedSetup,
    derived: dict,
    targets: dict,
    calculator_defaults,
    dosing_reference: dict,
    role_map: dict,
) -> dict:
    """Nested context for ``{{ dotted.path }}`` templates and conditions.

    Top-level keys: ``setup``, ``derived``, ``targets``, ``products``,
    ``doses``, ``plants``, ``livestock``, ``source_water``. The expanders
    add ``modifiers`` (and ``args`` for playlist entries) per phase.
    """
    tank = setup.tank_profile
    preferences = setup.user_preferences
    testing = setup.testing
    biology = setup.biology_profile
    water = setup.water_source_profile

    net_volume = derived["net_water_volume_l"]
    wc_volumes = derived["weekly_water_change_volume_l_range"]
    wc_volume_target = average_range(wc_volumes)

    setup_context = {
        "substrate_type": tank.substrate.type,
        "hardscape_type": tank.hardscape.type,
        "co2_enabled": tank.co2.enabled,
        "heater_installed": tank.heater_installed,
        "photoperiod_hours_initial": preferences.photoperiod_hours_initial,
        "photoperiod_hours_post_cycle": preferences.photoperiod_hours_post_cycle,
        "plants_present": setup.plants_present,
        "plants_present_in_plan": setup.plants_present,
        "can_test_ammonia": testing.can_test_ammonia,
        "can_test_nitrite": testing.can_test_nitrite,
        "can_test_nitrate": testing.can_test_nitrate,
        "can_test_ph": testing.can_test_ph,
        "can_test_gh": testing.can_test_gh,
        "can_test_kh": testing.can_test_kh,
    }

    products = {}
    doses = {}
    for role in ROLE_CATEGORIES:
        product = role_map.get(role)
        full_amount = role_dose(product, net_volume)
        products[role] = {
            "selected": product is not None,
            "display_name": role_display_name(role, role_map),
            "dose_unit": (product.dose_model.unit or "") if product is not None and product.dose_model else "",
            "dose_text": _dose_text(product, net_volume, 2),
        }
        if full_amount is None:
            doses[role] = {}
            continue
        wc_amounts = [role_dose(product, volume) for volume in wc_volumes]
        doses[role] = {
            "fullfill_dose_amount": format_number(full_amount, 1),
            "wc_dose_amount": format_number(average_range(wc_amounts), 1),
            "ewc_dose_amount": format_number(role_dose(product, net_volume * EMERGENCY_CHANGE_FRACTION), 1),
        }

    ammonia_ml = [value for value in dosing_reference["ammonia_ml_range"] if value is not None]
    doses["ammonia_source"]["ammonia_ml_range"] = format_number(max(ammonia_ml) if ammonia_ml else None, 1)
    doses["fertilizer_micros"]["fertilizer_micros_ml_week_start"] = format_number(
        dosing_reference["fertilizer_start_ml_week"], 1
    )
    doses["fertilizer_micros"]["fertilizer_micros_ml_week_range"] = format_number(
        average_range(dosing_reference["fertilizer_maint_ml_week_range"]), 1
    )
    doses["gh_remineralizer"]["gh_remineralizer_g_wc_range"] = format_number(
        average_range(dosing_reference["gh_wc_g_range"]), 1
    )
    doses["kh_buffer"]["kh_buffer_g_wc_range"] = format_number(
        average_range(dosing_reference["kh_wc_g_range"]), 1
    )

    combo = next(
        (p for p in setup.product_stack.enabled_user_products if p.role == COMBO_ROLE),
        None,
    )
    if combo is not None:
        products[COMBO_ROLE], doses[COMBO_ROLE] = _combo_blocks(combo, setup, targets, derived)
    else:
        products[COMBO_ROLE] = {"selected": False}
        doses[COMBO_ROLE] = {}

    fish_names = [str(name or "").lower() for name in biology.livestock_plan.fish]
    categories = biology.plants.categories
    temperature_range = (targets.get("temperature_c") or {}).get("target_range")

    return {
        "setup": setup_context,
        "derived": {
            "net_water_volume_l": format_number(net_volume, 1),
            "weekly_water_change_percent_range": format_number(
                average_range(derived["weekly_water_change_percent_range"]), 0
            ),
            "weekly_water_change_volume_l_range": format_number(wc_volume_target, 1),
        },
        "targets": {
            "cycle_ammonia_target_ppm_range": format_number(
                max(calculator_defaults.cycle_ammonia_target_ppm_range), 1
            ),
            "cycle_ammonia_max_ppm": format_number(calculator_defaults.cycle_ammonia_max_ppm, 1),
            "temperature_target_c": format_number(average_range(temperature_range), 1),
            **targets,
        },
        "products": products,
        "doses": doses,
        "plants": {
            "has_epiphytes": "epiphytes" in categories,
            "has_stems": "stems" in categories,
            "has_root_feeders": "root_feeders" in categories,
        },
        "livestock": {
            "has_fish": len(fish_names) > 0,
            "has_schooling": _has_keyword(fish_names, SCHOOLING_KEYWORDS),
            "has_bottom_dwellers": _has_keyword(fish_names, BOTTOM_DWELLER_KEYWORDS),
            "has_shrimp": setup.shrimp_planned,
            "is_sensitive": biology.livestock_traits.is_sensitive,
            "has_diggers": biology.livestock_traits.has_diggers,
        },
        "source_water": {
            "has_chlorine": water.disinfectant != "none",
            "disinfectant": water.disinfectant,
            "ammonia_ppm": water.tap_ammonia_ppm,
        },
    }


def build_rules_context(setup: NormalizedSetup, selection, role_map: dict) -> dict:
    """Flat facts matched by ruleset ``when`` clauses."""
    tank = setup.tank_profile
    traits = setup.biology_profile.livestock_traits
    water = setup.water_source_profile
    return {
        "cycling_mode": selection.user_selected_cycling_mode,
        "dark_start_enabled": selection.user_selected_dark_start,
        "recommended_dark_start": selection.recommended_dark_start,
        "user_dark_start_override": selection.user_selected_dark_start != selection.recommended_dark_start,
        "dark_start_preference": selection.dark_start_preference,
        "substrate_type": tank.substrate.type,
        "hardscape_type": tank.hardscape.type,
        "heater_installed": tank.heater_installed,
        "co2_enabled": tank.co2.enabled,
        "plants_present": setup.plants_present,
        "shrimp_planned": setup.shrimp_planned,
        "livestock_sensitive": traits.is_sensitive,
        "livestock_diggers": traits.has_diggers,
        "risk_tolerance": setup.user_preferences.risk_tolerance,
        "tap_kh_status": setup.tap_kh_status,
        "tap_ammonia_ppm": water.tap_ammonia_ppm,
        "disinfectant": water.disinfectant,
        "ammonia_available": setup.ammonia_available,
        "roles_enabled": enabled_roles(role_map),
    }
