"""Tests for date-key arithmetic and timezone conversion."""

from datetime import date, datetime, timezone

import pytest

pytestmark = pytest.mark.unit

from aquatrack.scheduling.datekeys import (
    add_days_to_key,
    days_between_keys,
    format_date_key_for_display,
    format_zoned_timestamp,
    get_date_key_from_timestamp,
    get_zoned_date_key,
    monthly_scheduled_key,
    next_monthly_key,
    next_weekly_key,
    normalize_date_key,
    parse_date_key,
    weekday_index,
)


class TestZonedKeys:
    """Test reading instants as calendar days."""

    def test_instant_in_zone(self):
        """The same instant falls on different days in different zones."""
        instant = datetime(2024, 3, 1, 2, 30, tzinfo=timezone.utc)
        assert get_zoned_date_key(instant, "America/New_York") == "2024-02-29"
        assert get_zoned_date_key(instant, "UTC") == "2024-03-01"

    def test_naive_is_utc(self):
        """Naive datetimes are read as UTC."""
        assert get_zoned_date_key(datetime(2024, 1, 1, 23, 0), "Asia/Tokyo") == "2024-01-02"

    def test_normalize(self):
        """Keys pass through; timestamps and dates are converted."""
        assert normalize_date_key("2024-03-10", "Asia/Tokyo") == "2024-03-10"
        assert normalize_date_key("2024-03-10T03:00:00Z", "America/Los_Angeles") == "2024-03-09"
        assert normalize_date_key(date(2024, 1, 2), "UTC") == "2024-01-02"
        assert normalize_date_key("next tuesday", "UTC") is None

    def test_format_zoned_timestamp(self):
        """Wall-clock time without an offset."""
        instant = datetime(2024, 7, 1, 12, 0, tzinfo=timezone.utc)
        assert format_zoned_timestamp(instant, "America/New_York") == "2024-07-01T08:00:00"


class TestCompletionTimestamps:
    """Test date keys of stored completion timestamps."""

    def test_local_timestamp_keeps_date(self):
        """Without an offset the literal date is kept."""
        assert get_date_key_from_timestamp("2024-05-01T23:30:00", "Asia/Tokyo") == "2024-05-01"

    def test_offset_timestamp_converted(self):
        """Z and +HH:MM timestamps convert into the zone."""
        assert get_date_key_from_timestamp("2024-05-01T23:30:00Z", "Asia/Tokyo") == "2024-05-02"
        assert get_date_key_from_timestamp("2024-05-01T23:30:00+09:00", "UTC") == "2024-05-01"

    @pytest.mark.parametrize("value", [None, "", "yesterday", "2024-02-30T10:00:00"])
    def test_unreadable(self, value):
        """Empty, unparseable and impossible dates give None."""
        assert get_date_key_from_timestamp(value, "UTC") is None


class TestArithmetic:
    """Test calendar-day arithmetic."""

    def test_parse_rejects_bad_keys(self):
        """Only real YYYY-MM-DD dates parse."""
        with pytest.raises(ValueError):
            parse_date_key("2024-13-01")
        with pytest.raises(ValueError, match="Not a date key"):
            parse_date_key("20240101")

    def test_add_days_crosses_leap_day(self):
        """Day arithmetic knows about leap years."""
        assert add_days_to_key("2024-02-28", 1) == "2024-02-29"
        assert add_days_to_key("2024-03-01", -1) == "2024-02-29"

    def test_days_between(self):
        """Differences are whole days, negative when earlier."""
        assert days_between_keys("2024-03-09", "2024-03-11") == 2
        assert days_between_keys("2024-01-10", "2024-01-03") == -7

    def test_weekday_sunday_first(self):
        """Sunday is day 0."""
        assert weekday_index("2024-01-07") == 0
        assert weekday_index("2024-01-08") == 1
        assert weekday_index("2024-01-13") == 6

    def test_display(self):
        """Month abbreviation and day without padding."""
        assert format_date_key_for_display("2024-01-05") == "Jan 5"
        assert format_date_key_for_display("2024-12-25") == "Dec 25"


class TestWeeklyAndMonthly:
    """Test weekly and monthly stepping."""

    def test_monthly_clamps(self):
        """Days past the end of a month clamp to its last day."""
        assert monthly_scheduled_key(2023, 2, 31) == "2023-02-28"
        assert monthly_scheduled_key(2024, 2, 31) == "2024-02-29"
        assert monthly_scheduled_key(2024, 4, 31) == "2024-04-30"

    def test_next_weekly(self):
        """The base day counts only when included."""
        assert next_weekly_key("2024-01-08", 1, include_base=True) == "2024-01-08"
        assert next_weekly_key("2024-01-08", 1, include_base=False) == "2024-01-15"
        assert next_weekly_key("2024-01-10", 1, include_base=True) == "2024-01-15"

    def test_next_monthly(self):
        """Steps into the next month, and year, with clamping."""
        assert next_monthly_key("2024-01-31", 31, include_base=True) == "2024-01-31"
        assert next_monthly_key("2024-01-31", 31, include_base=False) == "2024-02-29"
        assert next_monthly_key("2024-12-15", 1, include_base=True) == "2025-01-01"
