"""CLIConfig: validated command-line arguments for the plan generator.

This schema handles arguments parsed by argparse, so that path and flag
handling is validated in one place before any file is read.
"""

from datetime import datetime
from pathlib import Path
from typing import Literal, Optional

from pydantic import field_validator

from aquatrack.schemas.base import AquatrackBaseModel


class CLIConfig(AquatrackBaseModel):
    """Command-line configuration.

    Usage
    -----
        cli_cfg = CLIConfig(
            setup_path="setup.json",
            catalog_path="product_catalog.json",
            package_path="engine_package.json",
            override_acknowledged=True,
        )
    """

    setup_path: Path
    catalog_path: Path
    package_path: Path
    output_path: Optional[Path] = None
    ruleset_path: Optional[Path] = None
    targets_path: Optional[Path] = None
    override_acknowledged: bool = False
    generated_at_iso: Optional[str] = None
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "WARNING"

    @field_validator("generated_at_iso")
    @classmethod
    def check_iso_timestamp(cls, v):
        """Reject timestamps that are not ISO-8601."""
        if v is None:
            return v
        datetime.fromisoformat(v.replace("Z", "+00:00"))
        return v

    @field_validator("log_level", mode="before")
    @classmethod
    def normalize_log_level(cls, v):
        if isinstance(v, str):
            return v.upper().strip()
        return v
