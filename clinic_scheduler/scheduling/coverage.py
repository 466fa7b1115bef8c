"""Coverage predicates for weekly rules and date exceptions."""

from datetime import date, datetime

from clinic_scheduler.scheduling.calendar import split_instant, time_in_window
from clinic_scheduler.schemas.date_exceptions import DateExceptionResponse
from clinic_scheduler.schemas.schedule_rules import ScheduleRuleResponse


def rule_in_force(rule: ScheduleRuleResponse, day: date) -> bool:
    """Check whether a rule is active and its validity window contains ``day``."""
    if not rule.active:
        return False
    if rule.valid_from > day:
        return False
    return rule.valid_until is None or rule.valid_until >= day


def rule_covers(rule: ScheduleRuleResponse, instant: datetime) -> bool:
    """Check whether an in-force weekly rule covers the UTC instant."""
    parts = split_instant(instant)
    if not rule.day_of_week.is_calendar_day:
        return False
    if rule.day_of_week != parts.day_of_week:
        return False
    if not rule_in_force(rule, parts.date):
        return False
    return time_in_window(parts.time_of_day, rule.start_time, rule.end_time)


def exception_covers(exception: DateExceptionResponse, instant: datetime) -> bool:
    """Check whether a date exception covers the UTC instant."""
    parts = split_instant(instant)
    if exception.date != parts.date:
        return False
    return time_in_window(parts.time_of_day, exception.start_time, exception.end_time)


def windows_overlap(
    from_a: date,
    until_a: date | None,
    from_b: date,
    until_b: date | None,
) -> bool:
    """Check whether two inclusive validity windows share at least one date."""
    a_reaches_b = until_a is None or until_a >= from_b
    b_reaches_a = until_b is None or until_b >= from_a
    return a_reaches_b and b_reaches_a
