"""NormalizedSetup: Authoritative, fully-defaulted tank setup.

This is the ONLY setup schema the engine reads. Every field has a value;
the defaults declared here are the documented defaults for an omitted
field and are not repeated anywhere else in the engine.

Instances are frozen: the engine never mutates a setup after resolution.
"""

from typing import Any, Literal, Optional, Union

from pydantic import ConfigDict, Field

from aquatrack.schemas.base import AquatrackBaseModel
from aquatrack.schemas.setup import UserProduct


CyclingMode = Literal["fishless_ammonia", "fish_in", "plant_assisted"]
CyclingModePreference = Literal["auto", "fishless_ammonia", "fish_in", "plant_assisted"]
DarkStartPreference = Union[bool, Literal["auto"]]
RiskTolerance = Literal["low", "medium", "high"]
Units = Literal["metric", "imperial"]
NetVolumeMethod = Literal["explicit", "estimate_multiplier"]
Co2StartIntent = Literal["eventual", "from_start"]
Disinfectant = Literal["unknown", "none", "chlorine", "chloramine"]


class FrozenModel(AquatrackBaseModel):
    """Immutable runtime model."""
    model_config = ConfigDict(frozen=True)


class UserPreferences(FrozenModel):
    cycling_mode_preference: CyclingModePreference = "auto"
    dark_start: DarkStartPreference = "auto"
    risk_tolerance: RiskTolerance = "low"
    goal_profile: str = "stability_first"
    photoperiod_hours_initial: float = 6
    photoperiod_hours_post_cycle: float = 8
    units: Units = "metric"


class Substrate(FrozenModel):
    type: str = "inert"
    sand_cap_cm: float = 2.0


class Hardscape(FrozenModel):
    type: str = "mixed"


class Filtration(FrozenModel):
    filter_model: str = ""
    rated_flow_lph: float = 0
    flow_class: str = "medium"


class Co2Profile(FrozenModel):
    enabled: bool = True
    injection_type: str = "diffuser"
    target_ph_drop: float = 1.0
    surface_agitation: str = "gentle_ripple"
    start_intent: Co2StartIntent = "eventual"


class TankProfile(FrozenModel):
    tank_volume_l_gross: float = 0
    net_volume_method: NetVolumeMethod = "estimate_multiplier"
    estimated_net_multiplier: float = 0.85
    net_water_volume_l: Optional[float] = None
    substrate: Substrate = Field(default_factory=Substrate)
    hardscape: Hardscape = Field(default_factory=Hardscape)
    filtration: Filtration = Field(default_factory=Filtration)
    heater_installed: bool = True
    co2: Co2Profile = Field(default_factory=Co2Profile)
    temperature_target_c: tuple[float, float] = (22, 24)


class Testing(FrozenModel):
    can_test_ammonia: bool = True
    can_test_nitrite: bool = True
    can_test_nitrate: bool = True
    can_test_ph: bool = True
    can_test_gh: bool = True
    can_test_kh: bool = True


class WaterSourceProfile(FrozenModel):
    tap_ph: float = 7.0
    tap_gh_dgh: float = 0
    tap_kh_dkh: Optional[float] = None
    tap_ammonia_ppm: float = 0
    disinfectant: Disinfectant = "unknown"
    weekly_water_change_percent_target: tuple[float, float] = (25, 25)


class Plants(FrozenModel):
    categories: tuple[str, ...] = ()
    demand_class: str = "auto"
    species: tuple[Any, ...] = ()


class LivestockPlan(FrozenModel):
    fish: tuple[Any, ...] = ()
    shrimp: tuple[Any, ...] = ()
    cleanup_crew: tuple[Any, ...] = ()


class LivestockTraits(FrozenModel):
    is_sensitive: bool = False
    has_diggers: bool = False


class BiologyProfile(FrozenModel):
    plants: Plants = Field(default_factory=Plants)
    livestock_plan: LivestockPlan = Field(default_factory=LivestockPlan)
    livestock_traits: LivestockTraits = Field(default_factory=LivestockTraits)


class AmmoniaSource(FrozenModel):
    type: str = "pure_ammonia"
    solution_percent: float = 10


class ProductStack(FrozenModel):
    ammonia_source: AmmoniaSource = Field(default_factory=AmmoniaSource)
    selected_product_ids: tuple[str, ...] = ()
    user_products: tuple[UserProduct, ...] = ()

    @property
    def enabled_user_products(self) -> list[UserProduct]:
        return [product for product in self.user_products if product.enabled]


class NormalizedSetup(FrozenModel):
    """Fully-defaulted setup consumed by every engine stage.

    Built by ``resolve_setup()``; do not construct from raw user data.
    """
    user_preferences: UserPreferences = Field(default_factory=UserPreferences)
    tank_profile: TankProfile = Field(default_factory=TankProfile)
    testing: Testing = Field(default_factory=Testing)
    water_source_profile: WaterSourceProfile = Field(default_factory=WaterSourceProfile)
    biology_profile: BiologyProfile = Field(default_factory=BiologyProfile)
    product_stack: ProductStack = Field(default_factory=ProductStack)

    @property
    def shrimp_planned(self) -> bool:
        return len(self.biology_profile.livestock_plan.shrimp) > 0

    @property
    def plants_present(self) -> bool:
        return len(self.biology_profile.plants.species) > 0

    @property
    def tap_kh_status(self) -> str:
        """'ok' when tap KH is known and at least 2 dKH."""
        tap_kh = self.water_source_profile.tap_kh_dkh
        return "unknown_or_low" if tap_kh is None or tap_kh < 2 else "ok"

    @property
    def ammonia_available(self) -> bool:
        return (
            self.product_stack.ammonia_source.type != "none"
            or any(p.role == "ammonia_source" for p in self.product_stack.enabled_user_products)
        )
