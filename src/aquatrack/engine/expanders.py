"""Phase expansion strategies.

A PhaseExpander turns phase skeletons plus the rendering contexts into
fully rendered phases. Four strategies share the interface and the output
shape (``ExpandedPhase``):

1. RulesetExpander  - protocol ruleset phases and ``when``-matched rules,
   brace templates
2. TemplateExpander - one phase template per skeleton, condition-filtered
   atoms, ``{{ path }}`` templates
3. PlaylistExpander - explicit per-phase atom playlists over a shared atom
   library, ``{{ path }}`` templates
4. FallbackExpander - static template pack per cycling mode, brace
   templates with trigger-only instructions suppressed

``expand_phases`` tries them in that order; the first non-empty result wins.
"""

import logging
from abc import ABC, abstractmethod
from collections.abc import Mapping
from typing import Any, Optional

from pydantic import Field, field_validator

from aquatrack.engine.conditions import evaluate_template_condition, matches_when
from aquatrack.engine.paths import get_by_path
from aquatrack.engine.products import should_skip_trigger_instruction
from aquatrack.engine.render import render_mustache, render_template_text
from aquatrack.schemas.base import AquatrackBaseModel
from aquatrack.schemas.package import FISH_IN_TEMPLATE_PACK, FISHLESS_TEMPLATE_PACK
from aquatrack.schemas.setup import coerce_number

logger = logging.getLogger(__name__)

EXPECTED_BEHAVIOUR_TYPES = ("expected_behaviour", "expected_behavior")


# =============================================================================
# Output shape
# =============================================================================

class InstructionAtom(AquatrackBaseModel):
    id: Optional[str] = None
    cadence: str = "one_time"
    text: str


class TaskAtom(AquatrackBaseModel):
    id: Optional[str] = None
    cadence: str = "one_time"
    text: str
    until_phase_id: Optional[str] = None
    every_days: Optional[int] = None
    due_offset_days: Optional[int] = None

    @field_validator("every_days", "due_offset_days", mode="before")
    @classmethod
    def coerce_whole_days(cls, v):
        """Rule data may write 7.0 or "7"; anything non-numeric means unset."""
        number = coerce_number(v)
        return None if number is None else int(round(number))


class ExpandedPhase(AquatrackBaseModel):
    phase_id: str
    phase_name: str
    sequence_number: Optional[int] = None
    modifiers_applied: list[str] = Field(default_factory=list)
    objective_ids: list[str] = Field(default_factory=list)
    instruction_atoms: list[InstructionAtom] = Field(default_factory=list)
    task_atoms: list[TaskAtom] = Field(default_factory=list)
    expected_behavior_atoms: list[str] = Field(default_factory=list)
    measurement_hooks: list[Any] = Field(default_factory=list)
    exit_checks: list[Any] = Field(default_factory=list)


class ExpansionContext:
    """Everything an expander may read for one plan.

    Parameters
    ----------
    skeletons : list of PhaseSkeleton
        Sequencer output for the effective mode and dark start
    cycling_mode : str
        Effective cycling mode
    replacements : dict
        Flat brace placeholder map
    template_context : dict
        Nested ``{{ path }}`` context
    rules_context : dict
        Facts for ruleset ``when`` clauses
    role_map : dict
        Role name to resolved Product (or None)
    """

    def __init__(self, skeletons, cycling_mode, replacements, template_context, rules_context, role_map):
        self.skeletons = skeletons
        self.cycling_mode = cycling_mode
        self.replacements = replacements
        self.template_context = template_context
        self.rules_context = rules_context
        self.role_map = role_map

    def for_phase(self, skeleton, args: Optional[dict] = None) -> dict:
        """Template context with the phase's modifiers (and entry args)."""
        context = {**self.template_context, "modifiers": list(skeleton.modifiers_applied)}
        if args is not None:
            context["args"] = args
        return context


class PhaseExpander(ABC):
    """Skeletons x context -> rendered phases. Empty means not applicable."""

    name = "base"

    @abstractmethod
    def expand(self, context: ExpansionContext) -> list[ExpandedPhase]:
        """Expand phases; return [] when this strategy has no data."""


def _as_list(value) -> list:
    return list(value) if isinstance(value, (list, tuple)) else []


def _conditions_pass(conditions, context: Mapping) -> bool:
    return all(evaluate_template_condition(condition, context) for condition in _as_list(conditions))


def _every_days(atom: Mapping):
    value = atom.get("every_days")
    return value if value is not None else atom.get("everyDays")


# =============================================================================
# 1. Protocol ruleset
# =============================================================================

class RulesetExpander(PhaseExpander):
    """Expand ruleset phases by gathering every matching rule.

    Ruleset phases carry their own ids and labels (ordered by ``order``);
    a phase without an id is skipped.
    Instructions are deduplicated by rendered text, tasks by
    ``cadence:text``.
    """

    name = "ruleset"

    def __init__(self, ruleset: Optional[Mapping]):
        self.ruleset = ruleset or {}

    def _rule_applies(self, rule: Mapping, phase_id, context: ExpansionContext) -> bool:
        phase_ids = rule.get("phase_ids")
        if phase_ids is not None and phase_id not in phase_ids:
            return False
        if not matches_when(rule.get("when"), context.rules_context):
            return False
        required = rule.get("requires_roles")
        if isinstance(required, list):
            return all(role in context.rules_context["roles_enabled"] for role in required)
        return True

    def expand(self, context: ExpansionContext) -> list[ExpandedPhase]:
        ruleset_phases = _as_list(self.ruleset.get("phases"))
        if not ruleset_phases:
            return []
        rules = _as_list(self.ruleset.get("rules"))
        ordered = sorted(ruleset_phases, key=lambda phase: phase.get("order") or 0)

        phases = []
        for phase in ordered:
            if not matches_when(phase.get("when"), context.rules_context):
                continue
            phase_id = phase.get("id")
            if not phase_id:
                logger.warning("Skipping ruleset phase without an id: %r", phase.get("label"))
                continue
            objective_ids = list(dict.fromkeys(_as_list(phase.get("objective_ids"))))
            instructions, tasks, expected = [], [], []
            seen_instructions, seen_tasks = set(), set()

            for rule in rules:
                if not self._rule_applies(rule, phase_id, context):
                    continue
                for objective in _as_list(rule.get("objectives")):
                    if objective not in objective_ids:
                        objective_ids.append(objective)
                expected.extend(_as_list(rule.get("expected")))

                for instruction in _as_list(rule.get("instructions")):
                    text = render_template_text(instruction.get("text"), context.replacements)
                    if text in seen_instructions:
                        continue
                    seen_instructions.add(text)
                    instructions.append(InstructionAtom(
                        id=f"{rule.get('id')}_i_{len(instructions)}",
                        cadence=instruction.get("cadence") or "one_time",
                        text=text,
                    ))

                for task in _as_list(rule.get("tasks")):
                    text = render_template_text(task.get("text"), context.replacements)
                    key = f"{task.get('cadence')}:{text}"
                    if key in seen_tasks:
                        continue
                    seen_tasks.add(key)
                    tasks.append(TaskAtom(
                        id=f"{rule.get('id')}_t_{len(tasks)}",
                        cadence=task.get("cadence") or "one_time",
                        text=text,
                        until_phase_id=task.get("until_phase_id"),
                        every_days=_every_days(task),
                    ))

            phases.append(ExpandedPhase(
                phase_id=phase_id,
                phase_name=phase.get("label") or phase_id,
                sequence_number=phase.get("order"),
                objective_ids=objective_ids,
                instruction_atoms=instructions,
                task_atoms=tasks,
                expected_behavior_atoms=expected,
                measurement_hooks=_as_list(phase.get("measurement_hooks")),
                exit_checks=_as_list(phase.get("exit_checks")),
            ))
        return phases


# =============================================================================
# 2 and 3. Phase templates and playlists
# =============================================================================

def _append_atom(atom: Mapping, text: str, phase: dict, atom_id=None, args=None) -> None:
    """Route a rendered atom into the instruction/task/expected lists."""
    atom_type = atom.get("type")
    args = args or {}
    if atom_type == "instruction":
        phase["instruction_atoms"].append(InstructionAtom(
            id=atom_id, cadence=atom.get("cadence") or "one_time", text=text
        ))
    elif atom_type in EXPECTED_BEHAVIOUR_TYPES:
        phase["expected_behavior_atoms"].append(text)
    elif atom_type == "task":
        phase["task_atoms"].append(TaskAtom(
            id=atom_id,
            cadence=args.get("cadence") or atom.get("cadence") or "one_time",
            text=text,
            until_phase_id=atom.get("until_phase_id"),
            every_days=_every_days(args) if _every_days(args) is not None else _every_days(atom),
            due_offset_days=args.get("due_offset_days"),
        ))


def _empty_phase_lists() -> dict:
    return {"instruction_atoms": [], "task_atoms": [], "expected_behavior_atoms": []}


class TemplateExpander(PhaseExpander):
    """Render one phase template per skeleton.

    A template matches on ``(phase_id, sequence_number)``, falling back to
    ``phase_id`` alone. Atoms whose ``conditions`` do not all hold are
    dropped.
    """

    name = "templates"

    def __init__(self, phase_templates: Optional[Mapping]):
        self.templates = _as_list((phase_templates or {}).get("phase_templates"))

    def _find(self, skeleton) -> Mapping:
        for template in self.templates:
            if (template.get("phase_id") == skeleton.phase_id
                    and template.get("sequence_number") == skeleton.sequence_number):
                return template
        for template in self.templates:
            if template.get("phase_id") == skeleton.phase_id:
                return template
        return {}

    def expand(self, context: ExpansionContext) -> list[ExpandedPhase]:
        if not self.templates:
            return []
        phases = []
        for skeleton in context.skeletons:
            template = self._find(skeleton)
            phase_context = context.for_phase(skeleton)
            lists = _empty_phase_lists()
            for atom in _as_list(template.get("atoms")):
                if not _conditions_pass(atom.get("conditions"), phase_context):
                    continue
                text = render_mustache(atom.get("text_template"), phase_context)
                _append_atom(atom, text, lists, atom_id=atom.get("id"))
            phases.append(ExpandedPhase(
                phase_id=skeleton.phase_id,
                phase_name=template.get("phase_name") or skeleton.phase_name,
                sequence_number=skeleton.sequence_number,
                modifiers_applied=list(skeleton.modifiers_applied),
                objective_ids=_as_list(template.get("objective_ids")),
                **lists,
            ))
        return phases


def resolve_entry_args(args: Mapping, context: Mapping) -> dict:
    """Replace ``{"$expr": "a.b"}`` argument values with their context value."""
    resolved = {}
    for key, value in (args or {}).items():
        if isinstance(value, Mapping) and "$expr" in value:
            resolved[key] = get_by_path(context, value["$expr"])
        else:
            resolved[key] = value
    return resolved


class PlaylistExpander(PhaseExpander):
    """Render explicit per-phase atom playlists.

    Playlist sequences hold atom ids, or ``{id, args, when}`` entries as
    produced by the playlist DSL. An entry's ``when`` must hold, then the
    atom's own ``conditions``; ``args`` are visible to both and to the
    template as ``args.*``. Atoms that render to empty text are dropped.
    """

    name = "playlists"

    def __init__(self, phase_playlists, atom_library: Optional[Mapping]):
        if isinstance(phase_playlists, Mapping):
            phase_playlists = phase_playlists.get("playlists")
        self.playlists = _as_list(phase_playlists)
        library = atom_library or {}
        self.atoms = library.get("atom_library", library)

    def _find(self, skeleton) -> Mapping:
        key = f"{skeleton.phase_id}@{skeleton.sequence_number}"
        for playlist in self.playlists:
            playlist_key = playlist.get("key") or f"{playlist.get('phase_id')}@{playlist.get('sequence_number')}"
            if playlist_key == key:
                return playlist
        for playlist in self.playlists:
            if playlist.get("phase_id") == skeleton.phase_id:
                return playlist
        return {}

    def _expand_entry(self, entry, skeleton, context: ExpansionContext, lists: dict) -> None:
        if isinstance(entry, str):
            entry = {"id": entry}
        atom = self.atoms.get(entry.get("id"))
        if not atom:
            logger.debug("Playlist entry %r has no atom in the library", entry.get("id"))
            return

        base_context = context.for_phase(skeleton)
        args = resolve_entry_args(entry.get("args"), base_context)
        if entry.get("due_offset_days") is not None:
            args.setdefault("due_offset_days", entry["due_offset_days"])
        atom_context = context.for_phase(skeleton, args)

        if entry.get("when") and not evaluate_template_condition(entry["when"], atom_context):
            return
        if not _conditions_pass(atom.get("conditions"), atom_context):
            return
        template = atom.get("text_template") or atom.get("text") or ""
        text = render_mustache(template, atom_context) if template else ""
        if text:
            _append_atom(atom, text, lists, atom_id=entry.get("id"), args=args)

    def expand(self, context: ExpansionContext) -> list[ExpandedPhase]:
        if not self.playlists or not self.atoms:
            return []
        phases = []
        for skeleton in context.skeletons:
            playlist = self._find(skeleton)
            lists = _empty_phase_lists()
            for entry in _as_list(playlist.get("sequence")):
                self._expand_entry(entry, skeleton, context, lists)
            phases.append(ExpandedPhase(
                phase_id=skeleton.phase_id,
                phase_name=playlist.get("phase_name") or skeleton.phase_name,
                sequence_number=skeleton.sequence_number,
                modifiers_applied=list(skeleton.modifiers_applied),
                objective_ids=_as_list(playlist.get("objective_ids")),
                **lists,
            ))
        return phases


# =============================================================================
# 4. Static template packs
# =============================================================================

class FallbackExpander(PhaseExpander):
    """Render the shipped template pack for the cycling mode.

    ``fish_in`` uses the fish-in pack; every other mode uses the inert
    fishless pack. Instructions and tasks for trigger-only products are
    suppressed.
    """

    name = "template_pack"

    def __init__(self, engine_package):
        self.package = engine_package

    def pack_name(self, cycling_mode: str) -> str:
        return FISH_IN_TEMPLATE_PACK if cycling_mode == "fish_in" else FISHLESS_TEMPLATE_PACK

    def _render_atoms(self, atoms, context: ExpansionContext):
        for atom in _as_list(atoms):
            text = render_template_text(atom.get("text_template"), context.replacements)
            if should_skip_trigger_instruction(text, context.role_map):
                logger.debug("Suppressed trigger-only atom %s", atom.get("id"))
                continue
            yield atom, text

    def expand(self, context: ExpansionContext) -> list[ExpandedPhase]:
        pack = self.package.template_pack(self.pack_name(context.cycling_mode))
        phases = []
        for phase in _as_list(pack.get("phases")):
            instructions = [
                InstructionAtom(id=atom.get("id"), cadence=atom.get("cadence") or "one_time", text=text)
                for atom, text in self._render_atoms(phase.get("instruction_atoms"), context)
            ]
            tasks = [
                TaskAtom(
                    id=atom.get("id"),
                    cadence=atom.get("cadence") or "one_time",
                    text=text,
                    until_phase_id=atom.get("until_phase_id"),
                    every_days=_every_days(atom),
                )
                for atom, text in self._render_atoms(phase.get("task_atoms"), context)
            ]
            expected = [
                render_template_text(text, context.replacements)
                for text in _as_list(phase.get("expected_behavior_atoms"))
            ]
            phases.append(ExpandedPhase(
                phase_id=phase.get("phase_id"),
                phase_name=phase.get("phase_name") or phase.get("phase_id"),
                sequence_number=phase.get("sequence_number"),
                objective_ids=_as_list(phase.get("objective_ids")),
                instruction_atoms=instructions,
                task_atoms=tasks,
                expected_behavior_atoms=expected,
                measurement_hooks=_as_list(phase.get("measurement_hooks")),
                exit_checks=_as_list(phase.get("exit_checks")),
            ))
        return phases


def expand_phases(expanders: list[PhaseExpander], context: ExpansionContext) -> tuple[str, list[dict]]:
    """Run expanders in priority order; the first non-empty result wins.

    Returns
    -------
    strategy : str
        Name of the strategy that produced the phases ("none" if none did)
    phases : list of dict
        Phases as plain dicts
    """
    for expander in expanders:
        phases = expander.expand(context)
        if phases:
            logger.info("Expanded %d phases with the %s strategy", len(phases), expander.name)
            return expander.name, [phase.model_dump() for phase in phases]
    logger.warning("No expansion strategy produced phases")
    return "none", []
