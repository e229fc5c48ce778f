"""Date keys: calendar days as ``YYYY-MM-DD`` strings.

Schedules are computed on date keys rather than on clock times. An instant
becomes a key by reading its calendar date in the tank's timezone; from then
on, arithmetic happens on plain calendar days (anchored at UTC noon when a
day difference is taken) so DST transitions never shift a due date.

Naive datetimes are interpreted as UTC.
"""

import calendar
import logging
import re
from datetime import date, datetime, time, timedelta, timezone
from typing import Optional, Union
from zoneinfo import ZoneInfo

logger = logging.getLogger(__name__)

DATE_KEY_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")
LEADING_DATE_PATTERN = re.compile(r"^(\d{4}-\d{2}-\d{2})")
EXPLICIT_OFFSET_PATTERN = re.compile(r"(Z|[+-]\d{2}:?\d{2})$", re.IGNORECASE)

SECONDS_PER_DAY = 86400


def is_date_key(value) -> bool:
    return isinstance(value, str) and bool(DATE_KEY_PATTERN.match(value))


def parse_date_key(key: str) -> date:
    """``YYYY-MM-DD`` to a date.

    Raises
    ------
    ValueError
        If ``key`` is not a valid calendar date key
    """
    if not is_date_key(key):
        raise ValueError(f"Not a date key: {key!r}")
    return date.fromisoformat(key)


def date_key_to_utc_noon(key: str) -> datetime:
    return datetime.combine(parse_date_key(key), time(12, 0), tzinfo=timezone.utc)


def _as_aware(instant: datetime) -> datetime:
    if instant.tzinfo is None:
        return instant.replace(tzinfo=timezone.utc)
    return instant


def parse_timestamp(value: str) -> Optional[datetime]:
    """Parse an ISO-8601 timestamp, or None when it is not one."""
    try:
        return _as_aware(datetime.fromisoformat(value.strip().replace("Z", "+00:00").replace("z", "+00:00")))
    except ValueError:
        return None


def get_zoned_date_key(instant: datetime, tz: str) -> str:
    """Calendar date of ``instant`` as seen in ``tz``.

    Examples
    --------
    >>> get_zoned_date_key(datetime(2024, 3, 1, 2, 30, tzinfo=timezone.utc), "America/New_York")
    '2024-02-29'
    """
    return _as_aware(instant).astimezone(ZoneInfo(tz)).date().isoformat()


def normalize_date_key(value: Union[str, datetime, date], tz: str) -> Optional[str]:
    """Coerce a date key, timestamp string, date or datetime to a date key.

    Date keys pass through unchanged. Returns None for strings that are
    neither a date key nor a timestamp.
    """
    if isinstance(value, datetime):
        return get_zoned_date_key(value, tz)
    if isinstance(value, date):
        return value.isoformat()
    if is_date_key(value):
        return value
    instant = parse_timestamp(value) if isinstance(value, str) else None
    if instant is None:
        return None
    return get_zoned_date_key(instant, tz)


def get_date_key_from_timestamp(timestamp: Optional[str], tz: str) -> Optional[str]:
    """Date key of a stored completion timestamp.

    Timestamps without an explicit offset were recorded as local dates and
    keep their literal date. Timestamps with ``Z`` or ``+HH:MM`` are
    converted into ``tz``. Empty or unreadable values give None.

    Examples
    --------
    >>> get_date_key_from_timestamp("2024-05-01T23:30:00", "Asia/Tokyo")
    '2024-05-01'
    >>> get_date_key_from_timestamp("2024-05-01T23:30:00Z", "Asia/Tokyo")
    '2024-05-02'
    """
    if not timestamp:
        return None
    text = timestamp.strip()
    match = LEADING_DATE_PATTERN.match(text)
    if not match:
        return None
    if not EXPLICIT_OFFSET_PATTERN.search(text):
        try:
            return parse_date_key(match.group(1)).isoformat()
        except ValueError:
            return None
    instant = parse_timestamp(text)
    if instant is None:
        return None
    return get_zoned_date_key(instant, tz)


def compare_date_keys(a: str, b: str) -> int:
    return (a > b) - (a < b)


def add_days_to_key(key: str, days: int) -> str:
    return (parse_date_key(key) + timedelta(days=days)).isoformat()


def days_between_keys(from_key: str, to_key: str) -> int:
    """Whole days from ``from_key`` to ``to_key`` (negative when earlier)."""
    delta = date_key_to_utc_noon(to_key) - date_key_to_utc_noon(from_key)
    return round(delta.total_seconds() / SECONDS_PER_DAY)


def weekday_index(key: str) -> int:
    """Day of the week with Sunday as 0."""
    return (parse_date_key(key).weekday() + 1) % 7


def days_in_month(year: int, month: int) -> int:
    return calendar.monthrange(year, month)[1]


def monthly_scheduled_key(year: int, month: int, day_of_month: int) -> str:
    """The scheduled day in a month, clamped to the days that month has."""
    day = min(max(1, day_of_month), days_in_month(year, month))
    return date(year, month, day).isoformat()


def next_weekly_key(base_key: str, weekday: int, include_base: bool) -> str:
    """Next ``weekday`` (Sunday = 0) on or after ``base_key``.

    With ``include_base=False`` a base that already falls on ``weekday``
    moves a full week ahead.
    """
    delta = (weekday - weekday_index(base_key) + 7) % 7
    if delta == 0 and not include_base:
        delta = 7
    return add_days_to_key(base_key, delta)


def next_monthly_key(base_key: str, day_of_month: int, include_base: bool) -> str:
    base = parse_date_key(base_key)
    candidate = monthly_scheduled_key(base.year, base.month, day_of_month)
    if (include_base and candidate >= base_key) or candidate > base_key:
        return candidate
    if base.month == 12:
        return monthly_scheduled_key(base.year + 1, 1, day_of_month)
    return monthly_scheduled_key(base.year, base.month + 1, day_of_month)


def format_date_key_for_display(key: str) -> str:
    """Short display form.

    >>> format_date_key_for_display("2024-01-05")
    'Jan 5'
    """
    day = parse_date_key(key)
    return f"{calendar.month_abbr[day.month]} {day.day}"


def format_zoned_timestamp(instant: datetime, tz: str) -> str:
    """Local wall-clock time of ``instant`` in ``tz``, without offset."""
    return _as_aware(instant).astimezone(ZoneInfo(tz)).strftime("%Y-%m-%dT%H:%M:%S")
