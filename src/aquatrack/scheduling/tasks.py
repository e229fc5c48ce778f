"""Turn a generated plan's task atoms into schedulable tasks."""

import logging

from aquatrack.scheduling.cadence import Task

logger = logging.getLogger(__name__)

CADENCE_FREQUENCIES = {
    "one_time": "one-time",
    "daily": "daily",
    "weekly": "weekly",
    "monthly": "monthly",
    "interval": "interval",
}

UNSCHEDULED_CADENCES = {"as_needed"}


def tasks_from_plan(plan: dict) -> list[Task]:
    """Build ``Task`` records from ``plan["phases"][*]["task_atoms"]``.

    Task ids are ``{phase_id}:{atom_id}``, or ``{phase_id}:t_{n}`` for atoms
    without an id. One-time atoms are pinned to their phase; recurring atoms
    start in their phase and end at ``until_phase_id`` when one is given.
    ``as_needed`` atoms have no schedule and are skipped.
    """
    tasks = []
    seen = set()
    for phase in plan.get("phases") or []:
        phase_id = phase.get("phase_id")
        for n, atom in enumerate(phase.get("task_atoms") or [], start=1):
            cadence = atom.get("cadence") or "one_time"
            if cadence in UNSCHEDULED_CADENCES:
                continue
            frequency = CADENCE_FREQUENCIES.get(cadence)
            if frequency is None:
                logger.debug("Skipping task atom with unknown cadence %r in %s", cadence, phase_id)
                continue

            task_id = f"{phase_id}:{atom.get('id') or f't_{n}'}"
            if task_id in seen:
                task_id = f"{task_id}:{n}"
            seen.add(task_id)

            fields = {"id": task_id, "title": atom.get("text") or "", "frequency": frequency}
            if frequency == "one-time":
                fields["phase_id"] = phase_id
            else:
                fields["start_phase_id"] = phase_id
                fields["end_phase_id"] = atom.get("until_phase_id")
            if atom.get("every_days") is not None:
                fields["every_days"] = atom["every_days"]
            if atom.get("due_offset_days") is not None:
                fields["due_offset_days"] = atom["due_offset_days"]
            tasks.append(Task(**fields))

    logger.debug("Converted plan into %d tasks", len(tasks))
    return tasks
