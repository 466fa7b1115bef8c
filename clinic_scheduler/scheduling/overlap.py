"""
Interval overlap rules.

Intervals are half-open: ``[a, b)`` and ``[c, d)`` overlap iff
``a < d and c < b``. Touching intervals (one ends exactly when the other
starts) do not overlap.
"""

from datetime import datetime

from clinic_scheduler.core.exceptions import ValidationException
from clinic_scheduler.scheduling.calendar import ensure_utc


def intervals_overlap(
    start_a: datetime,
    end_a: datetime,
    start_b: datetime,
    end_b: datetime,
) -> bool:
    """Return True when the half-open intervals share at least one instant."""
    return ensure_utc(start_a) < ensure_utc(end_b) and ensure_utc(start_b) < ensure_utc(end_a)


def validate_interval(start: datetime, end: datetime) -> tuple[datetime, datetime]:
    """
    Normalize an interval to UTC and check that it is well formed.

    Raises:
        ValidationException: If end is not after start
    """
    if start is None or end is None:
        raise ValidationException("Both start and end datetimes are required")

    start_utc = ensure_utc(start)
    end_utc = ensure_utc(end)
    if end_utc <= start_utc:
        raise ValidationException("End datetime must be after start datetime")
    return start_utc, end_utc
