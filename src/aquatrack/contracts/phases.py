"""Phase sequencing contract.

Phase identity is global: across a generated phase list, ``phase_id`` and
``sequence_number`` are each unique. A collision is a defect in the
sequencer's own rules and stops plan generation.
"""

from aquatrack.contracts.base import require


def assert_unique_phases(phases) -> None:
    """Enforce phase identity uniqueness.

    Parameters
    ----------
    phases : iterable
        Phase skeletons (objects with ``phase_id`` and ``sequence_number``
        attributes) or phase dicts with those keys.

    Raises
    ------
    ContractViolation
        On the first repeated ``phase_id`` or ``sequence_number``.
    """
    seen_ids = set()
    seen_sequences = set()
    for phase in phases:
        if isinstance(phase, dict):
            phase_id, sequence_number = phase.get("phase_id"), phase.get("sequence_number")
        else:
            phase_id, sequence_number = phase.phase_id, phase.sequence_number
        require(phase_id not in seen_ids, f"Duplicate phase_id {phase_id}")
        require(
            sequence_number not in seen_sequences,
            f"Duplicate sequence_number {sequence_number}"
        )
        seen_ids.add(phase_id)
        seen_sequences.add(sequence_number)
