"""Tests for the phase expansion strategies."""

import pytest

pytestmark = pytest.mark.unit

from aquatrack.engine.expanders import (
    ExpansionContext,
    FallbackExpander,
    PhaseExpander,
    PlaylistExpander,
    RulesetExpander,
    TemplateExpander,
    expand_phases,
    resolve_entry_args,
)
from aquatrack.engine.sequencer import PhaseSkeleton
from aquatrack.schemas import EnginePackage


SKELETONS = [
    PhaseSkeleton(phase_id="F1", phase_name="setup", sequence_number=100, modifiers_applied=("co2:wait",)),
    PhaseSkeleton(phase_id="R1", phase_name="routine maintenance", sequence_number=600),
]

REPLACEMENTS = {"net_volume_l": "51", "kh_buffer_name": "KH+"}

TEMPLATE_CONTEXT = {
    "setup": {"co2_enabled": True, "can_test_kh": True},
    "derived": {"net_water_volume_l": "51"},
    "products": {"kh_buffer": {"selected": True, "display_name": "KH+"}},
}

RULES_CONTEXT = {
    "cycling_mode": "fishless_ammonia",
    "dark_start_enabled": False,
    "disinfectant": "chloramine",
    "roles_enabled": {"kh_buffer"},
}


def expansion_context(role_map=None, cycling_mode="fishless_ammonia"):
    return ExpansionContext(
        SKELETONS, cycling_mode, REPLACEMENTS, TEMPLATE_CONTEXT, RULES_CONTEXT, role_map or {}
    )


class TestExpansionContext:
    """Test per-phase context views."""

    def test_modifiers_and_args(self):
        """Phase modifiers and entry args are layered over the shared context."""
        context = expansion_context().for_phase(SKELETONS[0], {"cadence": "weekly"})
        assert context["modifiers"] == ["co2:wait"]
        assert context["args"] == {"cadence": "weekly"}
        assert "modifiers" not in TEMPLATE_CONTEXT


class TestRulesetExpander:
    """Test protocol ruleset expansion."""

    RULESET = {
        "phases": [
            {"id": "P2", "label": "Cycle", "order": 2},
            {"id": "P1", "label": "Setup", "order": 1, "objective_ids": ["fill", "fill"]},
            {"id": "PX", "order": 3, "when": {"dark_start_enabled": True}},
        ],
        "rules": [
            {
                "id": "fill",
                "phase_ids": ["P1"],
                "objectives": ["dechlorinate"],
                "instructions": [
                    {"text": "Fill {net_volume_l} L."},
                    {"text": "Fill {net_volume_l} L."},
                ],
                "tasks": [{"cadence": "daily", "text": "Check temperature.", "everyDays": 1}],
            },
            {
                "id": "chloramine",
                "when": {"disinfectant_in": ["chloramine"]},
                "instructions": [{"text": "Use a chloramine-safe conditioner.", "cadence": "as_needed"}],
                "expected": ["Ammonia may read above zero from tap water."],
            },
            {
                "id": "kh",
                "phase_ids": ["P2"],
                "requires_roles": ["kh_buffer"],
                "tasks": [{"cadence": "weekly", "text": "Dose {kh_buffer_name}.", "until_phase_id": "R1"}],
            },
            {
                "id": "gh",
                "requires_roles": ["gh_remineralizer"],
                "instructions": [{"text": "Dose GH."}],
            },
        ],
    }

    def test_no_phases_is_empty(self):
        """Without phases the strategy does not apply."""
        assert RulesetExpander(None).expand(expansion_context()) == []
        assert RulesetExpander({"rules": [{"id": "x"}]}).expand(expansion_context()) == []

    def test_phases_ordered_and_filtered(self):
        """Phases sort by order; a failing phase 'when' drops the phase."""
        phases = RulesetExpander(self.RULESET).expand(expansion_context())
        assert [phase.phase_id for phase in phases] == ["P1", "P2"]
        assert phases[0].phase_name == "Setup"
        assert phases[0].sequence_number == 1

    def test_rules_gathered_and_deduplicated(self):
        """Matching rules contribute; repeated texts appear once."""
        setup_phase = RulesetExpander(self.RULESET).expand(expansion_context())[0]
        assert setup_phase.objective_ids == ["fill", "dechlorinate"]
        assert [atom.text for atom in setup_phase.instruction_atoms] == [
            "Fill 51 L.",
            "Use a chloramine-safe conditioner.",
        ]
        assert [atom.id for atom in setup_phase.instruction_atoms] == ["fill_i_0", "chloramine_i_1"]
        assert setup_phase.instruction_atoms[1].cadence == "as_needed"
        assert setup_phase.task_atoms[0].every_days == 1
        assert setup_phase.expected_behavior_atoms == ["Ammonia may read above zero from tap water."]

    def test_required_roles(self):
        """Rules needing an unselected role are skipped."""
        cycle_phase = RulesetExpander(self.RULESET).expand(expansion_context())[1]
        assert [atom.text for atom in cycle_phase.task_atoms] == ["Dose KH+."]
        assert cycle_phase.task_atoms[0].id == "kh_t_0"
        assert cycle_phase.task_atoms[0].until_phase_id == "R1"
        assert "Dose GH." not in [atom.text for atom in cycle_phase.instruction_atoms]

    def test_phase_without_id_skipped(self, caplog):
        """A ruleset phase with no id is dropped with a warning."""
        ruleset = {
            "phases": [{"label": "Orphan", "order": 1}, {"id": "P2", "label": "Cycle", "order": 2}],
            "rules": self.RULESET["rules"],
        }
        phases = RulesetExpander(ruleset).expand(expansion_context())
        assert [phase.phase_id for phase in phases] == ["P2"]
        assert "Orphan" in caplog.text

    def test_fractional_days_rounded(self):
        """Float and string day counts become whole days."""
        ruleset = {
            "phases": [{"id": "P1", "order": 1}],
            "rules": [{"id": "test", "tasks": [
                {"cadence": "interval", "text": "Test ammonia.", "every_days": 7.0},
                {"cadence": "interval", "text": "Test nitrite.", "every_days": "2"},
                {"cadence": "interval", "text": "Test nitrate.", "every_days": "often"},
            ]}],
        }
        tasks = RulesetExpander(ruleset).expand(expansion_context())[0].task_atoms
        assert [task.every_days for task in tasks] == [7, 2, None]


class TestTemplateExpander:
    """Test phase template expansion."""

    TEMPLATES = {"phase_templates": [
        {
            "phase_id": "F1",
            "phase_name": "Setup",
            "objective_ids": ["fill"],
            "atoms": [
                {"id": "a1", "type": "instruction", "text_template": "Fill {{ derived.net_water_volume_l }} L."},
                {"id": "a2", "type": "task", "cadence": "weekly",
                 "text_template": "Dose {{ products.kh_buffer.display_name }}.",
                 "conditions": ["products.kh_buffer.selected", "setup.can_test_kh"]},
                {"id": "a3", "type": "instruction", "text_template": "Hold CO2.",
                 "conditions": ["modifiers.includes('co2:wait')"]},
                {"id": "a4", "type": "expected_behavior", "text_template": "No algae.",
                 "conditions": ["!setup.co2_enabled"]},
            ],
        },
        {"phase_id": "F1", "sequence_number": 101, "phase_name": "dark variant", "atoms": []},
    ]}

    def test_no_templates_is_empty(self):
        """Without templates the strategy does not apply."""
        assert TemplateExpander(None).expand(expansion_context()) == []

    def test_one_phase_per_skeleton(self):
        """Every skeleton yields a phase, templated or not."""
        phases = TemplateExpander(self.TEMPLATES).expand(expansion_context())
        assert [phase.phase_id for phase in phases] == ["F1", "R1"]
        assert phases[1].phase_name == "routine maintenance"
        assert phases[1].instruction_atoms == []

    def test_phase_id_fallback_and_conditions(self):
        """Without a sequence match the phase_id template applies; conditions filter atoms."""
        phase = TemplateExpander(self.TEMPLATES).expand(expansion_context())[0]
        assert phase.phase_name == "Setup"
        assert phase.objective_ids == ["fill"]
        assert phase.modifiers_applied == ["co2:wait"]
        assert [atom.text for atom in phase.instruction_atoms] == ["Fill 51 L.", "Hold CO2."]
        assert [(atom.id, atom.cadence, atom.text) for atom in phase.task_atoms] == [("a2", "weekly", "Dose KH+.")]
        assert phase.expected_behavior_atoms == []

    def test_exact_sequence_match_wins(self):
        """A template naming the skeleton's sequence number is preferred."""
        skeleton = PhaseSkeleton(phase_id="F1", phase_name="setup", sequence_number=101)
        context = ExpansionContext([skeleton], "fishless_ammonia", REPLACEMENTS, TEMPLATE_CONTEXT, RULES_CONTEXT, {})
        assert TemplateExpander(self.TEMPLATES).expand(context)[0].phase_name == "dark variant"


class TestPlaylistExpander:
    """Test playlist expansion over an atom library."""

    LIBRARY = {"atom_library": {
        "i_fill": {"type": "instruction", "text_template": "Fill {{ derived.net_water_volume_l }} L."},
        "t_kh": {"type": "task", "cadence": "weekly", "text_template": "Test KH ({{ args.cadence }})."},
        "t_gh": {"type": "task", "cadence": "weekly", "text_template": "Test GH.",
                 "conditions": ["setup.can_test_gh"]},
        "i_blank": {"type": "instruction", "text_template": ""},
        "e_vol": {"type": "expected_behaviour", "text_template": "Volume {{ args.volume }} L."},
    }}

    PLAYLISTS = {"playlists": [{
        "phase_id": "F1",
        "phase_name": "Setup",
        "sequence": [
            "i_fill",
            {"id": "t_kh", "args": {"cadence": "daily"}, "when": "setup.can_test_kh"},
            {"id": "t_kh", "args": {"cadence": "monthly"}, "when": "!setup.can_test_kh"},
            "t_gh",
            "i_blank",
            "missing_atom",
            {"id": "e_vol", "args": {"volume": {"$expr": "derived.net_water_volume_l"}}},
        ],
    }]}

    def test_missing_inputs_is_empty(self):
        """Playlists without a library do not apply."""
        assert PlaylistExpander(self.PLAYLISTS, None).expand(expansion_context()) == []
        assert PlaylistExpander([], self.LIBRARY).expand(expansion_context()) == []

    def test_entries_rendered(self):
        """String and structured entries render; 'when', conditions and empty text filter."""
        phase = PlaylistExpander(self.PLAYLISTS, self.LIBRARY).expand(expansion_context())[0]
        assert phase.phase_name == "Setup"
        assert [atom.text for atom in phase.instruction_atoms] == ["Fill 51 L."]
        assert [(atom.id, atom.cadence, atom.text) for atom in phase.task_atoms] == [
            ("t_kh", "daily", "Test KH (daily)."),
        ]
        assert phase.expected_behavior_atoms == ["Volume 51 L."]

    def test_list_of_playlists_accepted(self):
        """A bare list of playlists works like the wrapped form."""
        phases = PlaylistExpander(self.PLAYLISTS["playlists"], self.LIBRARY).expand(expansion_context())
        assert phases[0].instruction_atoms[0].text == "Fill 51 L."

    def test_resolve_entry_args(self):
        """Only $expr values are looked up."""
        args = resolve_entry_args({"a": {"$expr": "setup.co2_enabled"}, "b": 3}, TEMPLATE_CONTEXT)
        assert args == {"a": True, "b": 3}


class TestFallbackExpander:
    """Test the shipped template packs."""

    def test_pack_per_mode(self):
        """Fish-in has its own pack; other modes use the fishless pack."""
        expander = FallbackExpander(EnginePackage())
        assert expander.pack_name("fish_in") != expander.pack_name("fishless_ammonia")
        assert expander.pack_name("plant_assisted") == expander.pack_name("fishless_ammonia")

    def test_empty_package(self):
        """A package without packs expands to nothing."""
        assert FallbackExpander(EnginePackage()).expand(expansion_context()) == []


class Static(PhaseExpander):
    name = "static"

    def __init__(self, phases):
        self.phases = phases

    def expand(self, context):
        return self.phases


class TestExpandPhases:
    """Test strategy priority."""

    def test_first_non_empty_wins(self):
        """Empty strategies are skipped."""
        template = TemplateExpander(TestTemplateExpander.TEMPLATES)
        strategy, phases = expand_phases([Static([]), template, Static([])], expansion_context())
        assert strategy == "templates"
        assert phases[0]["phase_id"] == "F1"
        assert isinstance(phases[0]["instruction_atoms"][0], dict)

    def test_nothing_applies(self):
        """No phases from any strategy gives 'none'."""
        assert expand_phases([Static([])], expansion_context()) == ("none", [])
