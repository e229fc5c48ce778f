"""Engine contracts: fail-fast enforcement of stage invariants.

This package enforces semantic guarantees between engine stages.
Contracts fail immediately and loudly when a stage does not produce its
promised invariants.

Key principle:
- Pydantic validates input shape
- notes[] carry questionable user data
- Contracts validate engine correctness
"""

from aquatrack.contracts.failure import ContractViolation
from aquatrack.contracts.base import require
from aquatrack.contracts.phases import assert_unique_phases
from aquatrack.contracts.plan import assert_plan_output
from aquatrack.contracts.schedule import assert_schedule_output

__all__ = [
    "ContractViolation",
    "require",
    "assert_unique_phases",
    "assert_plan_output",
    "assert_schedule_output",
]
