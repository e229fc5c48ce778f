"""Command-line plan generation.

    aquatrack-plan setup.json product_catalog.json engine_package.json [output.json] [--ack]

Reads the three input documents, generates the plan and prints it as JSON
on stdout (and to ``output.json`` when given). Logging goes to stderr so
stdout stays machine-readable.
"""

import argparse
import json
import logging
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from aquatrack.config import load_json
from aquatrack.contracts import ContractViolation
from aquatrack.pipeline import generate_plan
from aquatrack.schemas import CLIConfig, UserTargets


logger = logging.getLogger(__name__)


def _setup_logging(log_level: str = "WARNING") -> None:
    """Configure the root logger with a single stderr handler."""
    formatter = logging.Formatter(
        fmt='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )

    # Clear existing handlers and add new ones
    root = logging.getLogger()
    for handler in list(root.handlers):
        root.removeHandler(handler)
    root.setLevel(getattr(logging, log_level.upper(), logging.WARNING))

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setFormatter(formatter)
    root.addHandler(console_handler)


def utc_now_iso() -> str:
    """Current UTC time as ``YYYY-MM-DDTHH:MM:SS.mmmZ``."""
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def run_plan(cli_cfg: CLIConfig) -> dict:
    """Generate a plan from the files named in ``cli_cfg``.

    This is the core CLI execution function. It:
    1. Loads setup, product catalog and engine package JSON
    2. Loads the optional protocol ruleset and user targets
    3. Generates the plan (stamped with ``generated_at_iso`` or now)
    4. Writes the plan to ``output_path`` when one is given

    Parameters
    ----------
    cli_cfg : CLIConfig
        Validated command-line configuration

    Returns
    -------
    dict
        The plan document

    Raises
    ------
    FileNotFoundError
        If an input file does not exist
    ContractViolation
        If plan generation breaks an engine invariant

    Examples
    --------
    Run with the shipped package and catalog::

        from aquatrack.config import ENGINE_PACKAGE_PATH, PRODUCT_CATALOG_PATH

        plan = run_plan(CLIConfig(
            setup_path="my_tank.json",
            catalog_path=PRODUCT_CATALOG_PATH,
            package_path=ENGINE_PACKAGE_PATH,
        ))
    """
    setup = load_json(cli_cfg.setup_path)
    catalog = load_json(cli_cfg.catalog_path)
    package = load_json(cli_cfg.package_path)
    ruleset = load_json(cli_cfg.ruleset_path) if cli_cfg.ruleset_path else None
    targets = UserTargets.model_validate(load_json(cli_cfg.targets_path)) if cli_cfg.targets_path else None

    plan = generate_plan(
        setup,
        catalog,
        package,
        protocol_ruleset=ruleset,
        user_targets=targets,
        override_acknowledged=cli_cfg.override_acknowledged,
        generated_at_iso=cli_cfg.generated_at_iso or utc_now_iso(),
    )

    if cli_cfg.output_path:
        Path(cli_cfg.output_path).write_text(json.dumps(plan, indent=2), encoding="utf-8")
        logger.info("Plan written to %s", cli_cfg.output_path)
    return plan


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="aquatrack-plan",
        description="Generate an aquarium startup protocol plan",
    )
    parser.add_argument("setup", help="Path to setup JSON")
    parser.add_argument("catalog", help="Path to product catalog JSON")
    parser.add_argument("package", help="Path to engine package JSON")
    parser.add_argument("output", nargs="?", help="Optional path to write the plan JSON")
    parser.add_argument("--ack", action="store_true",
                        help="Acknowledge a non-recommended cycling mode")
    parser.add_argument("--ruleset", help="Path to protocol ruleset JSON")
    parser.add_argument("--targets", help="Path to user targets JSON")
    parser.add_argument("--generated-at", help="Plan timestamp (ISO format); default now")
    parser.add_argument("--log-level", default="WARNING", help="Logging level")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    return parser


def main(argv: Optional[list[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    cli_cfg = CLIConfig.model_validate({
        k: v
        for k, v in {
            "setup_path": args.setup,
            "catalog_path": args.catalog,
            "package_path": args.package,
            "output_path": args.output,
            "ruleset_path": args.ruleset,
            "targets_path": args.targets,
            "override_acknowledged": args.ack,
            "generated_at_iso": args.generated_at,
            "log_level": "DEBUG" if args.verbose else args.log_level,
        }.items()
        if v is not None
    })
    _setup_logging(cli_cfg.log_level)

    try:
        plan = run_plan(cli_cfg)
    except ContractViolation as exc:
        logger.error("Plan generation failed: %s", exc)
        return 1

    print(json.dumps(plan, indent=2))
    return 0


if __name__ == "__main__":
    sys.exit(main())
