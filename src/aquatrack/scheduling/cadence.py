"""Cadence engine: when is a task due, and is it done for now?

Each task is scheduled against a calendar anchored to phase start dates:

- one-time: due on the start date of its phase
- daily: due today, or tomorrow once done today
- interval: every N days from the last completion, or on the latest N-day
  boundary since the phase started
- weekly: on the reminder weekday, stepping from the last completion
- monthly: on the reminder day of month (clamped to short months),
  stepping from the last completion

A task whose phase has no recorded start date falls back to the tank start
date. The fallback is logged at DEBUG and otherwise silent.

All functions take ``now`` explicitly; nothing here reads a clock.
"""

import logging
from datetime import datetime
from typing import Literal, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import Field, field_validator

from aquatrack.schemas.base import InputModel
from aquatrack.scheduling.datekeys import (
    add_days_to_key,
    compare_date_keys,
    days_between_keys,
    get_date_key_from_timestamp,
    get_zoned_date_key,
    monthly_scheduled_key,
    next_monthly_key,
    next_weekly_key,
    normalize_date_key,
    parse_date_key,
)

logger = logging.getLogger(__name__)

TaskFrequency = Literal["one-time", "daily", "weekly", "interval", "monthly"]
TaskStatus = Literal["overdue", "due", "upcoming", "completed"]


class Task(InputModel):
    """A schedulable task as the app stores it (camelCase or snake_case keys)."""
    id: str
    title: str = ""
    frequency: TaskFrequency
    phase_id: Optional[str] = Field(None, alias="phaseId")
    start_phase_id: Optional[str] = Field(None, alias="startPhaseId")
    end_phase_id: Optional[str] = Field(None, alias="endPhaseId")
    every_days: Optional[int] = Field(None, alias="everyDays")
    due_offset_days: Optional[int] = Field(None, alias="dueOffsetDays")
    completed: bool = False
    last_completed_at: Optional[str] = Field(None, alias="lastCompletedAt")


class ReminderSettings(InputModel):
    weekly_day: int = Field(1, alias="weeklyDay", ge=0, le=6)
    monthly_day: int = Field(1, alias="monthlyDay", ge=1, le=31)


class CadenceContext(InputModel):
    """Calendar a task is scheduled against.

    ``start_date`` may be a date key or a timestamp; phase start dates
    likewise. Both are read as calendar days in ``timezone``.
    """
    start_date: str = Field(alias="startDate")
    timezone: str = "UTC"
    phase_start_dates: dict[str, str] = Field(default_factory=dict, alias="phaseStartDates")
    reminder_settings: ReminderSettings = Field(default_factory=ReminderSettings, alias="reminderSettings")
    active_phase: Optional[str] = Field(None, alias="activePhase")

    @field_validator("timezone")
    @classmethod
    def check_timezone(cls, v):
        try:
            ZoneInfo(v)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise ValueError(f"Unknown timezone: {v}") from exc
        return v

    @field_validator("start_date")
    @classmethod
    def check_start_date(cls, v):
        if normalize_date_key(v, "UTC") is None:
            raise ValueError(f"start_date is neither a date key nor a timestamp: {v}")
        return v

    @property
    def start_key(self) -> str:
        return normalize_date_key(self.start_date, self.timezone)

    def phase_start_key(self, phase_id: Optional[str]) -> str:
        """Start date key of ``phase_id``, or the tank start when unrecorded."""
        value = self.phase_start_dates.get(phase_id) if phase_id else None
        key = normalize_date_key(value, self.timezone) if value else None
        if key is None:
            logger.debug("No start date recorded for phase %s; using tank start %s", phase_id, self.start_key)
            return self.start_key
        return key


class TaskSchedule(InputModel):
    due_date_key: Optional[str] = Field(alias="dueDateKey")
    status: TaskStatus
    is_completed_for_period: bool = Field(alias="isCompletedForPeriod")
    days_until_due: Optional[int] = Field(alias="daysUntilDue")


def _status(is_completed_for_period: bool, days_until_due: Optional[int]) -> str:
    if is_completed_for_period:
        return "completed"
    if days_until_due is not None and days_until_due < 0:
        return "overdue"
    if days_until_due == 0:
        return "due"
    return "upcoming"


def _schedule(today_key, due_date_key, is_completed_for_period) -> TaskSchedule:
    days_until_due = days_between_keys(today_key, due_date_key) if due_date_key else None
    return TaskSchedule(
        due_date_key=due_date_key,
        status=_status(is_completed_for_period, days_until_due),
        is_completed_for_period=is_completed_for_period,
        days_until_due=days_until_due,
    )


def _interval_due(start_key, today_key, completion_key, every_days):
    interval = max(1, every_days or 1)
    if completion_key:
        due = add_days_to_key(completion_key, interval)
        return due, compare_date_keys(today_key, due) < 0
    if compare_date_keys(today_key, start_key) < 0:
        return start_key, False
    intervals = days_between_keys(start_key, today_key) // interval
    return add_days_to_key(start_key, intervals * interval), False


def _weekly_due(start_key, today_key, completion_key, weekday):
    if completion_key:
        due = next_weekly_key(completion_key, weekday, include_base=False)
        return due, compare_date_keys(today_key, due) < 0
    first = next_weekly_key(start_key, weekday, include_base=True)
    if compare_date_keys(today_key, first) < 0:
        return first, False
    weeks = days_between_keys(first, today_key) // 7
    return add_days_to_key(first, weeks * 7), False


def _monthly_due(start_key, today_key, completion_key, day_of_month):
    if completion_key:
        due = next_monthly_key(completion_key, day_of_month, include_base=False)
        return due, compare_date_keys(today_key, due) < 0
    first = next_monthly_key(start_key, day_of_month, include_base=True)
    if compare_date_keys(today_key, first) < 0:
        return first, False

    today = parse_date_key(today_key)
    scheduled = monthly_scheduled_key(today.year, today.month, day_of_month)
    if compare_date_keys(scheduled, today_key) > 0:
        if today.month == 1:
            scheduled = monthly_scheduled_key(today.year - 1, 12, day_of_month)
        else:
            scheduled = monthly_scheduled_key(today.year, today.month - 1, day_of_month)
    return max(scheduled, first), False


def get_task_schedule(task: Task, context: CadenceContext, now: datetime) -> TaskSchedule:
    """Compute a task's due date and status at ``now``.

    Parameters
    ----------
    task : Task
        Task to schedule
    context : CadenceContext
        Tank calendar: start dates, timezone, reminder weekday/day of month
    now : datetime
        Current instant. Naive datetimes are read as UTC.

    Returns
    -------
    TaskSchedule
        ``due_date_key``, ``status``, ``is_completed_for_period`` and
        ``days_until_due`` (negative when overdue)

    Notes
    -----
    A completion recorded before the task's anchor phase started does not
    count. Weekly and monthly due dates step from the last completion, so
    completing late never pulls the following due date forward.
    """
    tz = context.timezone
    today_key = get_zoned_date_key(now, tz)
    start_key = context.phase_start_key(task.start_phase_id)

    completion_key = get_date_key_from_timestamp(task.last_completed_at, tz)
    if completion_key is None and task.completed:
        completion_key = start_key
    if completion_key is not None and compare_date_keys(completion_key, start_key) < 0:
        completion_key = None

    if task.frequency == "one-time":
        due = context.phase_start_key(task.phase_id or context.active_phase)
        return _schedule(today_key, due, bool(task.completed or completion_key))

    if task.frequency == "daily":
        if completion_key == today_key:
            return _schedule(today_key, add_days_to_key(today_key, 1), True)
        return _schedule(today_key, max(start_key, today_key), False)

    settings = context.reminder_settings
    if task.frequency == "interval":
        due, done = _interval_due(start_key, today_key, completion_key, task.every_days)
    elif task.frequency == "weekly":
        due, done = _weekly_due(start_key, today_key, completion_key, settings.weekly_day)
    else:
        due, done = _monthly_due(start_key, today_key, completion_key, settings.monthly_day)
    return _schedule(today_key, due, done)


def is_task_visible(task: Task, active_phase: Optional[str], phase_order: list[str]) -> bool:
    """Whether a task belongs on the checklist of ``active_phase``.

    One-time tasks show only in their own phase (unanchored ones always).
    Recurring tasks show from ``start_phase_id`` onward and disappear after
    ``end_phase_id``. When a phase is missing from ``phase_order`` the task
    is visible only if it starts in the active phase.
    """
    if task.frequency == "one-time":
        return task.phase_id is None or task.phase_id == active_phase

    order = list(phase_order)
    if active_phase not in order or (task.start_phase_id and task.start_phase_id not in order):
        return task.start_phase_id == active_phase

    active = order.index(active_phase)
    start = order.index(task.start_phase_id) if task.start_phase_id else 0
    if active < start:
        return False
    if task.end_phase_id in order and active > order.index(task.end_phase_id):
        return False
    return True
