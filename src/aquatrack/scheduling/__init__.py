"""Task scheduling against a timezone-aware tank calendar.

Independent of plan generation: it consumes tasks (typically converted
from a plan's task atoms) plus an explicit "now".

Modules:
- datekeys: ``YYYY-MM-DD`` date-key arithmetic and timezone conversion
- cadence: Task, CadenceContext and per-task due date/status
- tasks: plan task atoms to Task records
- report: pandas schedule report
"""

from aquatrack.scheduling.cadence import (
    CadenceContext,
    ReminderSettings,
    Task,
    TaskSchedule,
    get_task_schedule,
    is_task_visible,
)
from aquatrack.scheduling.datekeys import (
    add_days_to_key,
    days_between_keys,
    format_date_key_for_display,
    format_zoned_timestamp,
    get_date_key_from_timestamp,
    get_zoned_date_key,
    normalize_date_key,
)
from aquatrack.scheduling.report import schedule_frame
from aquatrack.scheduling.tasks import tasks_from_plan

__all__ = [
    "CadenceContext",
    "ReminderSettings",
    "Task",
    "TaskSchedule",
    "get_task_schedule",
    "is_task_visible",
    "add_days_to_key",
    "days_between_keys",
    "format_date_key_for_display",
    "format_zoned_timestamp",
    "get_date_key_from_timestamp",
    "get_zoned_date_key",
    "normalize_date_key",
    "schedule_frame",
    "tasks_from_plan",
]
