"""Tests for task due dates, statuses and visibility."""

from datetime import datetime, timezone

import pytest
from pydantic import ValidationError

pytestmark = pytest.mark.unit

from aquatrack.scheduling.cadence import CadenceContext, Task, get_task_schedule, is_task_visible


# 2024-01-01 is a Monday; "now" is Wednesday 2024-01-10 in UTC.
NOW = datetime(2024, 1, 10, 15, 0, tzinfo=timezone.utc)
PHASE_ORDER = ["F1", "F2", "F3", "R1"]


def schedule(task, now=NOW, **context):
    context.setdefault("startDate", "2024-01-01")
    return get_task_schedule(Task.model_validate(task), CadenceContext.model_validate(context), now)


def summary(result):
    return result.due_date_key, result.status, result.days_until_due


class TestContext:
    """Test calendar validation."""

    def test_aliases_and_defaults(self):
        """camelCase keys are accepted; reminders default to Monday and the 1st."""
        context = CadenceContext.model_validate({
            "startDate": "2024-01-01T08:00:00Z",
            "timezone": "Asia/Tokyo",
            "phaseStartDates": {"F2": "2024-01-05"},
        })
        assert context.start_key == "2024-01-01"
        assert context.phase_start_key("F2") == "2024-01-05"
        assert context.reminder_settings.weekly_day == 1
        assert context.reminder_settings.monthly_day == 1

    def test_unrecorded_phase_uses_tank_start(self):
        """Missing phase start dates fall back to the tank start."""
        context = CadenceContext(start_date="2024-01-01")
        assert context.phase_start_key("F3") == "2024-01-01"
        assert context.phase_start_key(None) == "2024-01-01"

    @pytest.mark.parametrize("fields", [
        {"startDate": "2024-01-01", "timezone": "Mars/Olympus"},
        {"startDate": "soon"},
        {"startDate": "2024-01-01", "reminderSettings": {"weeklyDay": 7}},
        {"startDate": "2024-01-01", "reminderSettings": {"monthlyDay": 0}},
    ])
    def test_invalid(self, fields):
        """Unknown zones, unreadable dates and out-of-range reminders are rejected."""
        with pytest.raises(ValidationError):
            CadenceContext.model_validate(fields)

    def test_task_aliases(self):
        """Tasks accept the app's camelCase keys."""
        task = Task.model_validate({
            "id": "t1", "frequency": "interval", "everyDays": 2,
            "startPhaseId": "F1", "endPhaseId": "F3", "lastCompletedAt": "2024-01-02",
        })
        assert (task.every_days, task.start_phase_id, task.end_phase_id) == (2, "F1", "F3")
        assert task.last_completed_at == "2024-01-02"

    def test_app_only_fields_ignored(self):
        """Display-only keys the app stores are accepted and dropped."""
        task = Task.model_validate({"id": "t1", "frequency": "daily", "logParameter": "nitrate", "logDerived": True})
        context = CadenceContext.model_validate({
            "startDate": "2024-01-01",
            "reminderSettings": {"enabled": True, "dailyTime": "09:00", "weeklyDay": 3},
        })
        assert "logParameter" not in task.model_dump(by_alias=True)
        assert context.reminder_settings.weekly_day == 3

    def test_unknown_frequency(self):
        """Frequencies outside the known set are rejected."""
        with pytest.raises(ValidationError):
            Task.model_validate({"id": "t1", "frequency": "hourly"})


class TestOneTime:
    """Test one-time tasks."""

    def test_due_at_phase_start(self):
        """Due on its phase's start date."""
        result = schedule({"id": "t", "frequency": "one-time", "phaseId": "F2"},
                          phaseStartDates={"F2": "2024-01-10"})
        assert summary(result) == ("2024-01-10", "due", 0)

    def test_unanchored_uses_active_phase(self):
        """Without a phase the active phase anchors it."""
        result = schedule({"id": "t", "frequency": "one-time"},
                          phaseStartDates={"F3": "2024-01-12"}, activePhase="F3")
        assert summary(result) == ("2024-01-12", "upcoming", 2)

    def test_overdue(self):
        """A past phase start makes it overdue."""
        result = schedule({"id": "t", "frequency": "one-time", "phaseId": "F1"})
        assert summary(result) == ("2024-01-01", "overdue", -9)

    def test_completed_flag(self):
        """The completed flag alone marks it done."""
        result = schedule({"id": "t", "frequency": "one-time", "phaseId": "F1", "completed": True})
        assert result.status == "completed"
        assert result.is_completed_for_period is True


class TestDaily:
    """Test daily tasks."""

    def test_due_today(self):
        """Not done today means due today."""
        assert summary(schedule({"id": "t", "frequency": "daily"})) == ("2024-01-10", "due", 0)

    def test_done_today(self):
        """Done today moves the due date to tomorrow."""
        result = schedule({"id": "t", "frequency": "daily", "lastCompletedAt": "2024-01-10T08:00:00Z"})
        assert summary(result) == ("2024-01-11", "completed", 1)

    def test_done_yesterday(self):
        """Yesterday's completion does not cover today."""
        result = schedule({"id": "t", "frequency": "daily", "lastCompletedAt": "2024-01-09T08:00:00Z"})
        assert summary(result) == ("2024-01-10", "due", 0)

    def test_future_phase(self):
        """Tasks in a phase that has not started are due at its start."""
        result = schedule({"id": "t", "frequency": "daily", "startPhaseId": "F3"},
                          phaseStartDates={"F3": "2024-01-20"})
        assert summary(result) == ("2024-01-20", "upcoming", 10)

    def test_timezone_decides_today(self):
        """Today and the completion day are read in the tank's zone."""
        now = datetime(2024, 1, 10, 2, 0, tzinfo=timezone.utc)
        result = schedule(
            {"id": "t", "frequency": "daily", "lastCompletedAt": "2024-01-10T01:00:00Z"},
            now=now, timezone="America/New_York",
        )
        assert summary(result) == ("2024-01-10", "completed", 1)

    def test_naive_now_is_utc(self):
        """A naive 'now' is read as UTC."""
        result = schedule({"id": "t", "frequency": "daily"}, now=datetime(2024, 1, 10, 23, 0))
        assert result.due_date_key == "2024-01-10"


class TestInterval:
    """Test every-N-days tasks."""

    def test_boundary_since_phase_start(self):
        """Without a completion the latest N-day boundary is due."""
        assert summary(schedule({"id": "t", "frequency": "interval", "everyDays": 3})) == ("2024-01-10", "due", 0)
        assert summary(schedule({"id": "t", "frequency": "interval", "everyDays": 4})) == (
            "2024-01-09", "overdue", -1
        )

    def test_from_completion(self):
        """After a completion the next one is N days later."""
        done = schedule({"id": "t", "frequency": "interval", "everyDays": 3, "lastCompletedAt": "2024-01-09"})
        assert summary(done) == ("2024-01-12", "completed", 2)
        late = schedule({"id": "t", "frequency": "interval", "everyDays": 3, "lastCompletedAt": "2024-01-05"})
        assert summary(late) == ("2024-01-08", "overdue", -2)

    def test_missing_interval_is_daily(self):
        """No interval means every day."""
        result = schedule({"id": "t", "frequency": "interval", "lastCompletedAt": "2024-01-10"})
        assert result.due_date_key == "2024-01-11"

    def test_completion_before_phase_ignored(self):
        """Completions from before the anchor phase started do not count."""
        result = schedule(
            {"id": "t", "frequency": "interval", "everyDays": 7, "startPhaseId": "F2",
             "lastCompletedAt": "2024-01-07"},
            phaseStartDates={"F2": "2024-01-08"},
        )
        assert summary(result) == ("2024-01-08", "overdue", -2)


class TestWeekly:
    """Test weekly tasks on the reminder weekday."""

    def test_latest_reminder_day(self):
        """Without a completion the latest reminder Monday is due."""
        assert summary(schedule({"id": "t", "frequency": "weekly"})) == ("2024-01-08", "overdue", -2)

    def test_done_this_week(self):
        """A completion on the reminder day covers the week."""
        result = schedule({"id": "t", "frequency": "weekly", "lastCompletedAt": "2024-01-08"})
        assert summary(result) == ("2024-01-15", "completed", 5)

    def test_late_completion_does_not_pull_forward(self):
        """Completing midweek still steps to the next reminder day."""
        result = schedule({"id": "t", "frequency": "weekly", "lastCompletedAt": "2024-01-10"})
        assert result.due_date_key == "2024-01-15"

    def test_old_completion(self):
        """A completion before the latest reminder day leaves it overdue."""
        result = schedule({"id": "t", "frequency": "weekly", "lastCompletedAt": "2024-01-03"})
        assert summary(result) == ("2024-01-08", "overdue", -2)

    def test_sunday_reminder(self):
        """weeklyDay 0 is Sunday."""
        result = schedule({"id": "t", "frequency": "weekly"}, reminderSettings={"weeklyDay": 0})
        assert summary(result) == ("2024-01-07", "overdue", -3)


class TestMonthly:
    """Test monthly tasks on the reminder day of month."""

    def test_clamped_to_short_month(self):
        """Day 31 falls on the last day of shorter months."""
        result = schedule({"id": "t", "frequency": "monthly"}, now=datetime(2024, 4, 15, tzinfo=timezone.utc),
                          startDate="2024-01-31", reminderSettings={"monthlyDay": 31})
        assert summary(result) == ("2024-03-31", "overdue", -15)

    def test_steps_from_completion(self):
        """The next due date follows the completion, clamped."""
        result = schedule(
            {"id": "t", "frequency": "monthly", "lastCompletedAt": "2024-03-31"},
            now=datetime(2024, 4, 15, tzinfo=timezone.utc),
            startDate="2024-01-31", reminderSettings={"monthlyDay": 31},
        )
        assert summary(result) == ("2024-04-30", "completed", 15)

    def test_leap_february(self):
        """February 2024 has a 29th."""
        result = schedule(
            {"id": "t", "frequency": "monthly", "lastCompletedAt": "2024-01-31"},
            now=datetime(2024, 2, 10, tzinfo=timezone.utc),
            startDate="2024-01-31", reminderSettings={"monthlyDay": 31},
        )
        assert summary(result) == ("2024-02-29", "completed", 19)

    def test_first_month_not_reached(self):
        """Before the first reminder day the task is upcoming."""
        result = schedule({"id": "t", "frequency": "monthly"}, startDate="2024-01-02")
        assert summary(result) == ("2024-02-01", "upcoming", 22)


class TestVisibility:
    """Test which tasks show for the active phase."""

    def task(self, **fields):
        return Task.model_validate({"id": "t", "frequency": "weekly", **fields})

    def test_one_time_only_in_its_phase(self):
        """One-time tasks show only in their own phase."""
        task = Task.model_validate({"id": "t", "frequency": "one-time", "phaseId": "F2"})
        assert is_task_visible(task, "F2", PHASE_ORDER)
        assert not is_task_visible(task, "F3", PHASE_ORDER)

    def test_unanchored_one_time_always(self):
        """One-time tasks without a phase always show."""
        task = Task.model_validate({"id": "t", "frequency": "one-time"})
        assert is_task_visible(task, "R1", PHASE_ORDER)

    def test_recurring_window(self):
        """Recurring tasks show from their start phase through their end phase."""
        task = self.task(startPhaseId="F2", endPhaseId="F3")
        assert [is_task_visible(task, phase, PHASE_ORDER) for phase in PHASE_ORDER] == [False, True, True, False]

    def test_open_ended(self):
        """Without start or end the task shows everywhere."""
        task = self.task()
        assert all(is_task_visible(task, phase, PHASE_ORDER) for phase in PHASE_ORDER)

    def test_unknown_phases(self):
        """Outside the known order only a matching start phase shows."""
        task = self.task(startPhaseId="DS1")
        assert is_task_visible(task, "DS1", PHASE_ORDER)
        assert not is_task_visible(task, "F2", PHASE_ORDER)
        assert not is_task_visible(self.task(startPhaseId="F2"), "DS2", PHASE_ORDER)
