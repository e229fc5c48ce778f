"""Schedule report contract.

Enforces the guarantee that the tabular schedule report has one row per
task, the required columns, and well-formed statuses.
"""

import pandas as pd

from aquatrack.contracts.base import require


SCHEDULE_COLUMNS = [
    "task_id",
    "title",
    "frequency",
    "due_date_key",
    "status",
    "is_completed_for_period",
    "days_until_due",
]

VALID_STATUSES = {"overdue", "due", "upcoming", "completed"}


def assert_schedule_output(df: pd.DataFrame, expected_rows: int) -> None:
    """Enforce schedule report contract.

    Parameters
    ----------
    df : pd.DataFrame
        Output of ``schedule_frame()``

    expected_rows : int
        Number of tasks that were scheduled

    Raises
    ------
    ContractViolation
        If structural requirements are violated
    """
    require(
        isinstance(df, pd.DataFrame),
        f"Schedule contract violated: output is {type(df)}, expected DataFrame"
    )

    for col in SCHEDULE_COLUMNS:
        require(
            col in df.columns,
            f"Schedule contract violated: missing required column '{col}'"
        )

    require(
        len(df) == expected_rows,
        f"Schedule contract violated: got {len(df)} rows, expected {expected_rows}"
    )

    if len(df) > 0:
        require(
            df["status"].isin(VALID_STATUSES).all(),
            "Schedule contract violated: unknown status value"
        )
        require(
            df["task_id"].is_unique,
            "Schedule contract violated: task_id must be unique"
        )
        completed = df[df["is_completed_for_period"]]
        require(
            (completed["status"] == "completed").all(),
            "Schedule contract violated: completed-for-period rows must have status 'completed'"
        )
