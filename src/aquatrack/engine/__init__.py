"""Plan engine components.

- conditions: Clause expressions, structured when clauses, template conditions
- decision_table: Merge-with-fallback decision table interpreter
- render: Number formatting, brace and double-brace renderers
- calculators: Net volume, water-change and dosing calculations
- dosing: Targets and the dosing reference block
- products: Product role resolution
- selection: Cycling-mode and dark-start decisions
- sequencer: Phase skeletons and the CO2 start gate
- context: Placeholder map, template context, rules context
- expanders: Ruleset, template, playlist and template-pack expansion
- playlist_dsl: Text authoring format for phase playlists
"""

from aquatrack.engine.decision_table import evaluate_decision_table
from aquatrack.engine.conditions import evaluate_expression, evaluate_template_condition, matches_when
from aquatrack.engine.render import format_number, format_range, render_mustache, render_template_text
from aquatrack.engine.sequencer import PhaseSkeleton, build_phase_sequence
from aquatrack.engine.playlist_dsl import build_phase_playlists_from_dsl, parse_playlist_dsl

__all__ = [
    "evaluate_decision_table",
    "evaluate_expression",
    "evaluate_template_condition",
    "matches_when",
    "format_number",
    "format_range",
    "render_mustache",
    "render_template_text",
    "PhaseSkeleton",
    "build_phase_sequence",
    "build_phase_playlists_from_dsl",
    "parse_playlist_dsl",
]
