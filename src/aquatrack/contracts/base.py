"""The ``require`` helper behind every engine contract.

Each ``assert_*`` contract is a short list of ``require`` calls. They check
what the engine itself produced (phase lists, plan documents, schedule
frames); user input is validated by the schemas and reported as notes.
"""

import logging

from aquatrack.contracts.failure import ContractViolation

logger = logging.getLogger(__name__)


def require(condition: bool, message: str) -> None:
    """Raise ``ContractViolation`` with ``message`` unless ``condition`` holds.

    Parameters
    ----------
    condition : bool
        Property the engine guarantees at this point
    message : str
        Names the broken property and the offending value, e.g.
        ``"Duplicate sequence_number 100 (F1, DS1)"``

    Raises
    ------
    ContractViolation
        The engine or its shipped rule data is defective

    Examples
    --------
    >>> require(phase_id not in seen, f"Duplicate phase_id {phase_id}")
    >>> require("phases" in plan, "Plan contract violated: missing 'phases' section")
    """
    if not condition:
        logger.error("Contract violated: %s", message)
        raise ContractViolation(message)
