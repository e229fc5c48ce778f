"""Product role resolution.

The engine reasons about eight fixed product roles rather than brands.
Catalog products map onto a role through their ``category``; products the
user declared themselves are converted into synthetic catalog entries and,
when any of them is enabled, replace the static catalog entirely.
"""

import logging
import re
from typing import Iterable, Optional

from aquatrack.engine.calculators import bicarbonate_delta_kh, pure_ammonia_delta_ppm
from aquatrack.schemas.catalog import Product, ProductCatalog
from aquatrack.schemas.normalized import NormalizedSetup
from aquatrack.schemas.resolve import warning_note
from aquatrack.schemas.setup import UserProduct

logger = logging.getLogger(__name__)

ROLE_CATEGORIES = {
    "gh_remineralizer": "remineralizer_gh",
    "kh_buffer": "buffer_kh",
    "bacteria_starter": "bacteria_starter",
    "fertilizer_micros": "fertilizer_micros",
    "ammonia_source": "ammonia_source",
    "detoxifier_conditioner": "detoxifier_conditioner",
    "water_clarifier": "water_clarifier",
    "water_quality_support": "water_quality_support",
}

REQUIRED_ROLES = frozenset({"gh_remineralizer", "kh_buffer"})

TRIGGER_ROLES = ("detoxifier_conditioner", "water_clarifier", "water_quality_support")

COMBO_ROLE = "gh_kh_remineralizer"

# Routine instructions mentioning these words belong to trigger-only roles.
# Keyword matching is sensitive to template wording.
TRIGGER_ONLY_KEYWORDS = [
    ("detoxifier_conditioner", re.compile(r"detoxifier|conditioner", re.IGNORECASE)),
    ("water_clarifier", re.compile(r"clarifier", re.IGNORECASE)),
    ("water_quality_support", re.compile(r"water quality", re.IGNORECASE)),
]

# role -> (effect_type, strength units)
EFFECT_MAP = {
    "gh_remineralizer": ("delta_GH_dGH", "dGH"),
    "kh_buffer": ("delta_KH_dKH", "dKH"),
    COMBO_ROLE: ("delta_GH_KH_dGH", "dGH"),
    "fertilizer_micros": ("none", "support"),
    "ammonia_source": ("target_TAN_ppm", "ppm"),
    "bacteria_starter": ("bioaugmentation_support", "support"),
    "detoxifier_conditioner": ("detox_support", "support"),
    "water_clarifier": ("clarify_support", "support"),
    "water_quality_support": ("none", "support"),
}


def _first_present(primary, fallback):
    return primary if primary is not None else fallback


def _synthetic_product(
    role: str,
    display_name: str,
    user_product: UserProduct,
    per_volume_l: Optional[float],
    strength: Optional[float],
) -> Product:
    effect_type, units = EFFECT_MAP.get(role, ("none", "support"))
    return Product.model_validate({
        "product_id": role,
        "display_name": display_name,
        "category": ROLE_CATEGORIES.get(role),
        "dose_model": {
            "dose_basis": "per_volume",
            "amount": user_product.dose_amount,
            "unit": user_product.dose_unit,
            "per_volume_l": per_volume_l,
            "frequency_default": "as_needed",
            "scaling_rule": "linear_by_volume",
        },
        "effect_model": {
            "effect_type": effect_type,
            "strength": strength,
            "strength_units": units,
        },
        "constraints": {
            "allowed_phases": None,
            "requires_trigger": role in TRIGGER_ROLES,
            "warnings": [],
        },
    })


def build_catalog_from_user_products(user_products: Iterable[UserProduct]) -> ProductCatalog:
    """Convert user-declared products into a synthetic catalog.

    Each product becomes one entry whose ``product_id`` is its role. A
    combined GH/KH remineralizer becomes two entries, one per mineral, using
    the per-mineral volume and effect overrides when present.

    Strength is derived rather than declared for bicarbonate KH buffers
    (see ``bicarbonate_delta_kh``) and pure ammonia sources (see
    ``pure_ammonia_delta_ppm``). Fertilizers carry no strength.

    Parameters
    ----------
    user_products : iterable of UserProduct
        Normally only the enabled ones

    Returns
    -------
    ProductCatalog
        Catalog with ``catalog_id == "user_products"``
    """
    products = []
    for user_product in user_products:
        role = user_product.role
        name = user_product.name or role
        if role == COMBO_ROLE:
            products.append(_synthetic_product(
                "gh_remineralizer", name, user_product,
                _first_present(user_product.per_volume_l_gh, user_product.per_volume_l),
                _first_present(user_product.effect_value_gh, user_product.effect_value),
            ))
            products.append(_synthetic_product(
                "kh_buffer", name, user_product,
                _first_present(user_product.per_volume_l_kh, user_product.per_volume_l),
                _first_present(user_product.effect_value_kh, user_product.effect_value),
            ))
            continue

        strength = user_product.effect_value
        if role == "fertilizer_micros":
            strength = None
        elif role == "kh_buffer" and user_product.bicarbonate:
            strength = bicarbonate_delta_kh(user_product.dose_amount, user_product.per_volume_l)
        elif role == "ammonia_source" and user_product.pure_ammonia:
            strength = pure_ammonia_delta_ppm(
                user_product.dose_amount,
                user_product.per_volume_l,
                user_product.ammonia_solution_percent,
            )
        products.append(_synthetic_product(role, name, user_product, user_product.per_volume_l, strength))

    return ProductCatalog(version="user_products", catalog_id="user_products", products=products)


def selected_ids_for_user_products(user_products: Iterable[UserProduct]) -> list[str]:
    """Product ids that select every synthetic entry of ``user_products``."""
    ids = []
    for user_product in user_products:
        if user_product.role == COMBO_ROLE:
            ids.extend(["gh_remineralizer", "kh_buffer"])
        else:
            ids.append(user_product.role)
    return ids


def resolve_effective_catalog(
    setup: NormalizedSetup,
    catalog: ProductCatalog,
) -> tuple[list[Product], list[str]]:
    """Catalog products and selected ids the role resolver should use.

    Enabled user products take priority over the static catalog.
    """
    enabled = setup.product_stack.enabled_user_products
    if enabled:
        logger.debug("Using %d enabled user products in place of the catalog", len(enabled))
        return (
            build_catalog_from_user_products(enabled).products,
            selected_ids_for_user_products(enabled),
        )
    return list(catalog.products), list(setup.product_stack.selected_product_ids)


def select_products_by_role(
    products: Iterable[Product],
    selected_ids: Iterable[str],
) -> tuple[dict[str, Optional[Product]], list[dict]]:
    """Pick one selected product per role.

    For each role, the first product in catalog order whose category is the
    role's category and whose id is selected wins. A missing required role
    produces a warning note; it never stops plan generation.

    Returns
    -------
    role_map : dict
        Role name to Product, or None when nothing is selected for the role
    notes : list of dict
        Warning notes for missing required roles
    """
    products = list(products)
    selected = set(selected_ids or [])
    role_map: dict[str, Optional[Product]] = {}
    notes: list[dict] = []

    for role, category in ROLE_CATEGORIES.items():
        chosen = next(
            (p for p in products if p.category == category and p.product_id in selected),
            None,
        )
        if chosen is None and role in REQUIRED_ROLES:
            notes.append(warning_note(f"Required product role missing: {role}.", role=role))
        role_map[role] = chosen

    return role_map, notes


def enabled_roles(role_map: dict[str, Optional[Product]]) -> set[str]:
    return {role for role, product in role_map.items() if product is not None}


def should_skip_trigger_instruction(text: str, role_map: dict[str, Optional[Product]]) -> bool:
    """True if ``text`` is a routine instruction for a trigger-only product."""
    for role, pattern in TRIGGER_ONLY_KEYWORDS:
        product = role_map.get(role)
        if product is not None and product.constraints.requires_trigger and pattern.search(text):
            return True
    return False


def product_notes(role_map: dict[str, Optional[Product]]) -> list[dict]:
    """Trigger-only notes and catalog warnings for the resolved products."""
    notes = []
    for role, product in role_map.items():
        if product is None:
            continue
        if product.constraints.requires_trigger:
            notes.append({
                "type": "trigger_only",
                "role": role,
                "message": f"Use {role} only when specifically needed; do not schedule routinely.",
            })
        for warning in product.constraints.warnings:
            notes.append(warning_note(warning, role=role))
    return notes
