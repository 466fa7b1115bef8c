"""
UTC calendar helpers.

Every coverage decision is taken on the UTC calendar date, weekday and
time of day of the instant being checked, never on the server's local
timezone.
"""

from datetime import UTC, date, datetime, time
from enum import IntEnum
from typing import NamedTuple


class DayOfWeek(IntEnum):
    """Weekday of a weekly schedule rule (Sunday-based numbering)."""

    SUNDAY = 0
    MONDAY = 1
    TUESDAY = 2
    WEDNESDAY = 3
    THURSDAY = 4
    FRIDAY = 5
    SATURDAY = 6
    # Rule with no fixed weekday; never matches a calendar date
    NO_FIXED_DAY = 7

    @classmethod
    def of(cls, day: date) -> "DayOfWeek":
        """Return the weekday of a calendar date."""
        # date.weekday() is Monday=0
        return cls((day.weekday() + 1) % 7)

    @property
    def is_calendar_day(self) -> bool:
        """Whether this value can ever match a real date."""
        return self is not DayOfWeek.NO_FIXED_DAY


class UtcInstant(NamedTuple):
    """An instant decomposed into its UTC calendar parts."""

    date: date
    day_of_week: DayOfWeek
    time_of_day: time


def ensure_utc(value: datetime) -> datetime:
    """
    Normalize a datetime to an aware UTC datetime.

    Naive values are taken to already be in UTC.
    """
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def split_instant(instant: datetime) -> UtcInstant:
    """Decompose an instant into UTC date, weekday and time of day."""
    utc_instant = ensure_utc(instant)
    day = utc_instant.date()
    return UtcInstant(
        date=day,
        day_of_week=DayOfWeek.of(day),
        time_of_day=utc_instant.time().replace(tzinfo=None),
    )


def time_in_window(time_of_day: time, start_time: time, end_time: time) -> bool:
    """Check ``start_time <= time_of_day < end_time``."""
    return start_time <= time_of_day < end_time
