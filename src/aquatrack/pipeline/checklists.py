"""Per-phase cadence checklists."""

CADENCE_ORDER = ("one_time", "daily", "weekly", "monthly", "as_needed")


def generate_checklists(phases: list[dict]) -> list[dict]:
    """Bucket each phase's task texts by cadence.

    Buckets follow ``CADENCE_ORDER`` and are always present; any other
    cadence (``interval``, for example) gets its own bucket after them, in
    first-seen order. Tasks without a cadence are left out.

    Parameters
    ----------
    phases : list of dict
        Expanded phases

    Returns
    -------
    list of dict
        ``{phase_id, phase_name, objectives, cadence}`` per phase, with
        ``objectives`` sorted

    Examples
    --------
    >>> generate_checklists([{"phase_id": "F1", "phase_name": "setup", "objective_ids": ["b", "a"],
    ...                       "task_atoms": [{"cadence": "daily", "text": "Test ammonia"}]}])[0]["cadence"]["daily"]
    ['Test ammonia']
    """
    checklists = []
    for phase in phases:
        buckets = {cadence: [] for cadence in CADENCE_ORDER}
        for task in phase.get("task_atoms") or []:
            cadence = task.get("cadence") if isinstance(task, dict) else None
            if not cadence:
                continue
            buckets.setdefault(cadence, []).append(task.get("text"))
        checklists.append({
            "phase_id": phase.get("phase_id"),
            "phase_name": phase.get("phase_name"),
            "objectives": sorted(phase.get("objective_ids") or []),
            "cadence": buckets,
        })
    return checklists
