"""Plan output contract.

Enforces the guarantee that a generated plan is a complete,
JSON-serializable document with no non-finite numbers.
"""

import numpy as np

from aquatrack.contracts.base import require


PLAN_SECTIONS = (
    "meta",
    "selection",
    "derived",
    "global_reference",
    "phases",
    "phase_checklists",
    "worksheets",
    "notes",
)


def _non_finite_paths(value, path="plan"):
    if isinstance(value, dict):
        for key, item in value.items():
            yield from _non_finite_paths(item, f"{path}.{key}")
    elif isinstance(value, (list, tuple)):
        for index, item in enumerate(value):
            yield from _non_finite_paths(item, f"{path}[{index}]")
    elif isinstance(value, float) and not np.isfinite(value):
        yield path


def assert_plan_output(plan: dict) -> None:
    """Enforce plan output contract.

    Called once at the end of plan generation.

    Parameters
    ----------
    plan : dict
        Output of ``generate_plan()``

    Raises
    ------
    ContractViolation
        If a section is missing, phases/notes are not lists, or any float
        in the document is NaN or infinite
    """
    require(isinstance(plan, dict), f"Plan contract violated: output is {type(plan)}, expected dict")

    for section in PLAN_SECTIONS:
        require(section in plan, f"Plan contract violated: missing '{section}' section")

    require(isinstance(plan["phases"], list), "Plan contract violated: 'phases' must be a list")
    require(isinstance(plan["notes"], list), "Plan contract violated: 'notes' must be a list")

    bad_paths = list(_non_finite_paths(plan))
    require(
        not bad_paths,
        f"Plan contract violated: non-finite numbers at {', '.join(bad_paths[:5])}"
    )
