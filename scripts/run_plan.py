#!/usr/bin/env python3
"""``Aquatrack`` plan generation runner.

Usage:
    python scripts/run_plan.py scripts/sample_setup.json \
        src/aquatrack/data/product_catalog.json src/aquatrack/data/engine_package.json
    python scripts/run_plan.py setup.json catalog.json package.json plan.json --ack
    python scripts/run_plan.py setup.json catalog.json package.json \
        --ruleset src/aquatrack/data/protocol_ruleset.json -v

Same as the ``aquatrack-plan`` console script.
"""

import sys
from pathlib import Path

# Add src to path
project_root = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(project_root / "src"))

from aquatrack.cli.invoke import main


if __name__ == "__main__":
    sys.exit(main())
