"""Base Pydantic models with strict defaults for Aquatrack schemas.

All Aquatrack schemas inherit from one of these bases to ensure consistent
validation behavior across setup input, catalogs, engine packages and CLI
arguments.
"""

from pydantic import BaseModel, ConfigDict


class AquatrackBaseModel(BaseModel):
    """Base model for all Aquatrack schemas.

    Enforces strict validation:
    - No extra fields allowed
    - Validates assignments after initialization
    - Enum values stored as plain values
    - Strings stripped of surrounding whitespace
    """

    model_config = ConfigDict(
        extra='forbid',           # Reject unknown fields
        validate_assignment=True, # Validate on field mutation
        use_enum_values=True,     # Convert enums to values
        str_strip_whitespace=True,# Strip whitespace from strings
    )


class InputModel(AquatrackBaseModel):
    """Base for data read from user files and shipped JSON bundles.

    Those documents carry many fields the engine never reads, so unknown
    keys are ignored instead of rejected.
    """

    model_config = AquatrackBaseModel.model_config.copy()
    model_config.update({"populate_by_name": True, "extra": "ignore"})
