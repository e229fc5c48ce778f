"""Product catalog schemas.

Only the fields the engine reads are declared; catalogs carry more
(marketing copy, pack sizes, links) and those keys are ignored.
"""

from typing import Optional

from pydantic import ConfigDict, Field

from aquatrack.schemas.base import InputModel


class CatalogModel(InputModel):
    model_config = ConfigDict(frozen=True)


class DoseModel(CatalogModel):
    """How much of a product to dose.

    Only ``per_volume`` dosing is computed: ``amount`` of ``unit`` for every
    ``per_volume_l`` litres, scaled linearly by volume.
    """
    dose_basis: Optional[str] = None
    amount: Optional[float] = None
    unit: Optional[str] = None
    per_volume_l: Optional[float] = None
    frequency_default: Optional[str] = None
    scaling_rule: Optional[str] = None
    notes: Optional[str] = None

    @property
    def is_per_volume(self) -> bool:
        return (
            self.dose_basis == "per_volume"
            and self.amount is not None
            and self.per_volume_l is not None
            and self.per_volume_l > 0
        )


class EffectModel(CatalogModel):
    effect_type: Optional[str] = None
    strength: Optional[float] = None
    strength_units: Optional[str] = None
    calculation_method: Optional[str] = None
    notes: Optional[str] = None


class ProductConstraints(CatalogModel):
    allowed_phases: Optional[list[str]] = None
    requires_trigger: bool = False
    warnings: list[str] = Field(default_factory=list)


class Product(CatalogModel):
    """One catalog entry, mapped onto a role through its ``category``."""
    product_id: str
    display_name: Optional[str] = None
    category: Optional[str] = None
    dose_model: Optional[DoseModel] = None
    effect_model: Optional[EffectModel] = None
    constraints: ProductConstraints = Field(default_factory=ProductConstraints)


class ProductCatalog(CatalogModel):
    """Static product catalog: ``{"products": [...]}``."""
    version: Optional[str] = None
    catalog_id: Optional[str] = None
    products: list[Product] = Field(default_factory=list)
