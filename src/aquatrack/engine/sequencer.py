"""Phase sequencer.

Computes the ordered phase skeletons for an effective cycling mode and
dark-start decision. Sequence numbers encode chronology: dark-start tracks
interleave their phases at shifted numbers (101/201/210/...) rather than
renumbering, and the routine maintenance phase is always last at 600.

Every phase passes the uniqueness contract as it is added; a collision is
a defect in the tables below and raises ContractViolation.
"""

import logging

from aquatrack.contracts import assert_unique_phases
from aquatrack.schemas.normalized import FrozenModel, NormalizedSetup

logger = logging.getLogger(__name__)

CO2_WAIT = "co2:wait"

# CO2 start gates
GATE_NEVER = "never"
GATE_POST_DARK_START = "post_dark_start_exit"
GATE_POST_CYCLE = "post_cycle_stable"
GATE_PLANT_ASSISTED_LOW = "plant_assisted_very_low"

WAITING_GATES = (GATE_POST_CYCLE, GATE_POST_DARK_START)


class PhaseSkeleton(FrozenModel):
    """A phase before expansion: identity, order and modifiers."""
    phase_id: str
    phase_name: str
    sequence_number: int
    modifiers_applied: tuple[str, ...] = ()


def derive_co2_start_gate(
    co2_enabled: bool,
    dark_start_enabled: bool,
    cycling_mode: str,
    co2_start_intent: str = "eventual",
) -> str:
    """When CO2 injection may start.

    Examples
    --------
    >>> derive_co2_start_gate(True, True, "fishless_ammonia")
    'post_dark_start_exit'
    >>> derive_co2_start_gate(True, False, "plant_assisted", "from_start")
    'plant_assisted_very_low'
    """
    if not co2_enabled:
        return GATE_NEVER
    if dark_start_enabled and cycling_mode != "fish_in":
        return GATE_POST_DARK_START
    if cycling_mode == "plant_assisted" and co2_start_intent == "from_start":
        return GATE_PLANT_ASSISTED_LOW
    return GATE_POST_CYCLE


class PhaseListBuilder:
    """Accumulates phase skeletons, enforcing identity uniqueness on add."""

    def __init__(self, co2_wait: bool):
        self.co2_wait = co2_wait
        self.phases: list[PhaseSkeleton] = []

    def add(self, phase_id, phase_name, sequence_number, modifiers=(), wait_for_co2=True):
        modifiers = list(modifiers)
        if wait_for_co2 and self.co2_wait:
            modifiers.append(CO2_WAIT)
        phase = PhaseSkeleton(
            phase_id=phase_id,
            phase_name=phase_name,
            sequence_number=sequence_number,
            modifiers_applied=tuple(modifiers),
        )
        assert_unique_phases([*self.phases, phase])
        self.phases.append(phase)
        return phase

    def ordered(self) -> list[PhaseSkeleton]:
        return sorted(self.phases, key=lambda phase: phase.sequence_number)


def _fishless_phases(builder: PhaseListBuilder, dark_start: bool) -> None:
    if not dark_start:
        builder.add("F1", "setup", 100)
        builder.add("F2", "ammonia introduction", 200)
        builder.add("F3", "nitrite dominance", 300)
        builder.add("F4", "completion test", 400)
        builder.add("F5", "transition to planted/stocked state", 500, ["light:ramp"], wait_for_co2=False)
        return

    dark = ["ctx:dark_start", "light:off"]
    builder.add("DS1", "dark start setup", 101, dark)
    builder.add("DS2", "dark start cycling", 201, dark)
    builder.add("DS3", "dark start exit & planting", 501, ["ctx:dark_start", "light:ramp"], wait_for_co2=False)
    builder.add("F2", "ammonia introduction", 210, dark)
    builder.add("F3", "nitrite dominance", 310, dark)
    builder.add("F4", "completion test", 410, dark)


def _fish_in_phases(builder: PhaseListBuilder, lighting_minimal: bool) -> None:
    if lighting_minimal:
        builder.add("I1", "setup", 102, ["light:minimal"])
    else:
        builder.add("I1", "setup", 100)
    builder.add("I2", "stabilization", 200)
    builder.add("I3", "biofilter build", 300)
    builder.add("I4", "transition", 500, ["light:ramp"], wait_for_co2=False)


def _plant_assisted_phases(builder: PhaseListBuilder, low_light: bool, co2_cautious: bool) -> None:
    sequence_number = 100
    modifiers = []
    if low_light:
        sequence_number = 102
        modifiers.append("light:minimal")
    if co2_cautious:
        sequence_number = 113 if low_light else 103
        modifiers.append("co2:cautious")
    builder.add("PA1", "planted setup", sequence_number, modifiers)
    builder.add("PA2", "stabilization", 200)
    builder.add("PA3", "initial bioload", 300)
    builder.add("PA4", "transition", 500, ["light:ramp"], wait_for_co2=False)


def build_phase_sequence(
    setup: NormalizedSetup,
    cycling_mode: str,
    dark_start_enabled: bool,
) -> list[PhaseSkeleton]:
    """Build the ordered phase skeletons.

    Parameters
    ----------
    setup : NormalizedSetup
        Resolved setup (photoperiod, CO2 configuration, dark-start preference)
    cycling_mode : str
        Effective cycling mode
    dark_start_enabled : bool
        Effective dark-start decision. Ignored for ``plant_assisted``.

    Returns
    -------
    list of PhaseSkeleton
        Sorted by ``sequence_number``; always ends with ``R1`` at 600. An
        unknown cycling mode yields ``R1`` alone.

    Raises
    ------
    ContractViolation
        If the tables produce a repeated phase_id or sequence_number
    """
    preferences = setup.user_preferences
    co2 = setup.tank_profile.co2

    dark_start = dark_start_enabled and cycling_mode != "plant_assisted"
    dark_start_forced = cycling_mode == "fish_in" and preferences.dark_start is True
    lights_on = not (dark_start and cycling_mode != "fish_in")
    low_light = preferences.photoperiod_hours_initial <= 6
    lighting_minimal = dark_start_forced or (
        lights_on and low_light and cycling_mode in ("fish_in", "plant_assisted")
    )

    gate = derive_co2_start_gate(co2.enabled, dark_start, cycling_mode, co2.start_intent)
    builder = PhaseListBuilder(co2_wait=co2.enabled and gate in WAITING_GATES)

    if cycling_mode == "fishless_ammonia":
        _fishless_phases(builder, dark_start)
    elif cycling_mode == "fish_in":
        _fish_in_phases(builder, lighting_minimal)
    elif cycling_mode == "plant_assisted":
        _plant_assisted_phases(builder, low_light, gate == GATE_PLANT_ASSISTED_LOW)
    else:
        logger.warning("Unknown cycling mode %r; sequencing routine maintenance only", cycling_mode)

    builder.add("R1", "routine maintenance", 600, wait_for_co2=False)

    phases = builder.ordered()
    logger.debug(
        "Sequenced %d phases for %s (dark start %s, CO2 gate %s)",
        len(phases), cycling_mode, dark_start, gate
    )
    return phases


def phase_sequence_document(phases: list[PhaseSkeleton]) -> list[dict]:
    """JSON form of the skeletons for ``plan.phase_sequence``."""
    return [
        {**phase.model_dump(), "modifiers_applied": list(phase.modifiers_applied)}
        for phase in phases
    ]
