"""The single exception raised by engine contracts.

Contracts fail fast, loud, and once. There is no recovery mode; callers
catch ``ContractViolation`` to handle engine bugs uniformly.
"""


class ContractViolation(RuntimeError):
    """Raised when an engine contract is violated.

    This indicates a bug in engine logic or in the rule data shipped with
    it, not bad user input. It means an engine stage did not produce the
    invariants it promised (for example two phases sharing a sequence
    number).

    Key distinction:
    - ValidationError: Malformed input shape (handled by Pydantic)
    - notes[]: Missing or questionable user data (plan still generated)
    - ContractViolation: Engine bug (programmer error)
    """
    pass
