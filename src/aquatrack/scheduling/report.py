"""Tabular schedule report."""

import logging
from datetime import datetime
from typing import Iterable, Union

import pandas as pd

from aquatrack.contracts import assert_schedule_output
from aquatrack.contracts.schedule import SCHEDULE_COLUMNS
from aquatrack.scheduling.cadence import CadenceContext, Task, get_task_schedule

logger = logging.getLogger(__name__)


def schedule_frame(tasks: Iterable[Union[Task, dict]], context: Union[CadenceContext, dict],
                   now: datetime) -> pd.DataFrame:
    """Schedule every task at ``now`` and tabulate the result.

    Parameters
    ----------
    tasks : iterable of Task or dict
        Tasks to schedule; dicts may use camelCase keys
    context : CadenceContext or dict
        Tank calendar
    now : datetime
        Current instant

    Returns
    -------
    pd.DataFrame
        One row per task with ``SCHEDULE_COLUMNS``, ordered by due date then
        task id

    Raises
    ------
    ContractViolation
        If the report loses or duplicates tasks
    """
    tasks = [task if isinstance(task, Task) else Task.model_validate(task) for task in tasks]
    if not isinstance(context, CadenceContext):
        context = CadenceContext.model_validate(context)

    rows = []
    for task in tasks:
        schedule = get_task_schedule(task, context, now)
        rows.append({
            "task_id": task.id,
            "title": task.title,
            "frequency": task.frequency,
            "due_date_key": schedule.due_date_key,
            "status": schedule.status,
            "is_completed_for_period": schedule.is_completed_for_period,
            "days_until_due": schedule.days_until_due,
        })

    df = pd.DataFrame(rows, columns=SCHEDULE_COLUMNS)
    df["is_completed_for_period"] = df["is_completed_for_period"].astype(bool)
    df["days_until_due"] = df["days_until_due"].astype("Int64")
    df = df.sort_values(["due_date_key", "task_id"], na_position="last", kind="stable").reset_index(drop=True)

    assert_schedule_output(df, expected_rows=len(tasks))

    if not df.empty:
        counts = df["status"].value_counts()
        logger.info(
            "Scheduled %d tasks: %s",
            len(df), ", ".join(f"{status}={count}" for status, count in counts.items())
        )
    return df
