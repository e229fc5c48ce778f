"""Plan pipeline modules.

- orchestrator: Plan generation controller and one-call helpers
- checklists: Per-phase cadence checklists
"""

from aquatrack.pipeline.orchestrator import (
    PlanOrchestrator,
    generate_plan,
    generate_phase_list,
    generate_phases_from_templates,
    generate_phases_from_playlists,
)
from aquatrack.pipeline.checklists import generate_checklists

__all__ = [
    "PlanOrchestrator",
    "generate_plan",
    "generate_phase_list",
    "generate_phases_from_templates",
    "generate_phases_from_playlists",
    "generate_checklists",
]
