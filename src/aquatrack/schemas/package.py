"""EnginePackage: the data bundle the engine is driven by.

Decision tables, parameter limits, calculator constants, template packs,
schema versions and worksheets are data, not code. This module types the
parts the engine reads and provides expert defaults for calculator values
so that a package which omits a constant still produces a plan.

Decision tables and templates are kept as plain dicts: the engine
interprets them generically and their content is authored, not validated.
"""

from typing import Any, Optional

from pydantic import ConfigDict, Field

from aquatrack.schemas.base import InputModel


CYCLING_MODE_TABLE = "cycling_mode.decision_table.json"
DARK_START_TABLE = "dark_start.decision_table.json"
OVERRIDE_POLICY = "override.policy.json"
PARAMETER_LIMITS = "parameter_limits.generic.json"
CALCULATOR_FRAMEWORK = "calculator.framework.json"
FISH_IN_TEMPLATE_PACK = "template.pack.fish_in_v1.json"
FISHLESS_TEMPLATE_PACK = "template.pack.inert_fishless_v1.json"
SETUP_SCHEMA = "setup.schema.json"
PLAN_SCHEMA = "plan.output.schema.json"
GENERIC_WORKSHEETS = "worksheets.generic.json"


class PackageModel(InputModel):
    model_config = ConfigDict(frozen=True)


class CalculatorDefaults(PackageModel):
    """Expert defaults for dosing targets and factors."""
    cycle_ammonia_target_ppm_range: tuple[float, float] = (1.5, 2.0)
    cycle_ammonia_max_ppm: float = 4.0
    ammonia_solution_percent: float = 10
    fertilizer_start_factor: float = 0.5
    fertilizer_maint_factor_range: tuple[float, float] = (0.75, 1.0)
    co2_on_lead_hours: float = 1
    co2_off_lead_hours: float = 1


class AmmoniaCalibration(PackageModel):
    """Measured reference dose for one ammonia solution strength.

    ``reference_dose_ml`` of a ``reference_solution_percent`` solution in
    ``reference_volume_l`` litres gave ``reference_result_ppm`` total ammonia.
    """
    reference_solution_percent: float = 10
    reference_dose_ml: float = 0.6
    reference_volume_l: float = Field(60, gt=0)
    reference_result_ppm: float = Field(2.0, gt=0)


class GhRemineralizerConstant(PackageModel):
    g_per_l_per_1_dgh: float = 0.0666666667


class KhBufferConstant(PackageModel):
    g_per_10l_per_1_dkh: float = 0.3


class FertilizerLabel(PackageModel):
    ml_per_250l_per_week: float = 5


class CalculatorConstants(PackageModel):
    ammonia_calibration: AmmoniaCalibration = Field(default_factory=AmmoniaCalibration)
    gh_remineralizer: GhRemineralizerConstant = Field(default_factory=GhRemineralizerConstant)
    kh_buffer_rule_of_thumb: KhBufferConstant = Field(default_factory=KhBufferConstant)
    fertilizer_micros_label: FertilizerLabel = Field(default_factory=FertilizerLabel)


class CalculatorFramework(PackageModel):
    defaults: CalculatorDefaults = Field(default_factory=CalculatorDefaults)
    constants: CalculatorConstants = Field(default_factory=CalculatorConstants)


class SchemaInfo(PackageModel):
    version: str = "unknown"


class EnginePackage(PackageModel):
    """Typed view of an engine package bundle.

    Usage
    -----
        package = EnginePackage.model_validate(json.loads(path.read_text()))
        table = package.decision_table(CYCLING_MODE_TABLE)
        calculator = package.calculator
    """
    decision_tables: dict[str, dict[str, Any]] = Field(default_factory=dict)
    parameter_limits: dict[str, dict[str, Any]] = Field(default_factory=dict)
    calculators: dict[str, CalculatorFramework] = Field(default_factory=dict)
    templates: dict[str, dict[str, Any]] = Field(default_factory=dict)
    schemas: dict[str, SchemaInfo] = Field(default_factory=dict)
    worksheets: dict[str, Any] = Field(default_factory=dict)

    # Optional phase expansion data; explicit call arguments take priority
    protocol_ruleset: Optional[dict[str, Any]] = None
    phase_templates: Optional[dict[str, Any]] = None
    phase_playlists: Optional[Any] = None
    atom_library: Optional[dict[str, Any]] = None

    def decision_table(self, name: str) -> dict[str, Any]:
        """Return a named decision table, or an empty table."""
        return self.decision_tables.get(name) or {"rules": []}

    @property
    def override_policy(self) -> dict[str, Any]:
        return self.decision_tables.get(OVERRIDE_POLICY) or {}

    @property
    def limits(self) -> dict[str, Any]:
        return self.parameter_limits.get(PARAMETER_LIMITS) or {}

    @property
    def calculator(self) -> CalculatorFramework:
        return self.calculators.get(CALCULATOR_FRAMEWORK) or CalculatorFramework()

    def template_pack(self, name: str) -> dict[str, Any]:
        return self.templates.get(name) or {"phases": []}

    def schema_version(self, name: str) -> str:
        info = self.schemas.get(name)
        return info.version if info is not None else "unknown"

    @property
    def generic_worksheets(self) -> Any:
        return self.worksheets.get(GENERIC_WORKSHEETS)
