"""Tests for weekly rule, date exception and block management."""

from datetime import UTC, date, datetime, time, timedelta
from uuid import UUID, uuid4

import pytest

from clinic_scheduler.core.exceptions import (
    ConflictException,
    NotFoundException,
    ValidationException,
)
from clinic_scheduler.scheduling.calendar import DayOfWeek
from clinic_scheduler.schemas.date_exceptions import DateExceptionCreate, DateExceptionUpdate
from clinic_scheduler.schemas.schedule_rules import (
    ScheduleRuleCreate,
    ScheduleRuleUpdate,
    WeeklyScheduleReplace,
    WeeklySlot,
)
from clinic_scheduler.schemas.unavailability_blocks import (
    UnavailabilityBlockCreate,
    UnavailabilityBlockUpdate,
)
from clinic_scheduler.services.schedule_service import ScheduleService


def rule_data(professional_id: UUID, **overrides) -> ScheduleRuleCreate:
    values = {
        "professional_id": professional_id,
        "day_of_week": DayOfWeek.MONDAY,
        "start_time": time(9, 0),
        "end_time": time(12, 0),
        "valid_from": date(2026, 1, 1),
    }
    values.update(overrides)
    return ScheduleRuleCreate(**values)


def block_data(professional_id: UUID, start_hour: int, end_hour: int) -> UnavailabilityBlockCreate:
    return UnavailabilityBlockCreate(
        professional_id=professional_id,
        start_datetime=datetime(2026, 1, 5, start_hour, tzinfo=UTC),
        end_datetime=datetime(2026, 1, 5, end_hour, tzinfo=UTC),
        reason="Conference",
    )


@pytest.mark.asyncio
async def test_create_rule_uses_default_slot_duration(
    schedule_service: ScheduleService, professional_id: UUID
):
    """Test a rule without an explicit slot length gets the configured default."""
    rule = await schedule_service.create_rule(rule_data(professional_id))

    assert rule.slot_duration_minutes == 30
    assert rule.active is True
    assert rule.valid_until is None


@pytest.mark.asyncio
async def test_duplicate_rule_is_rejected(
    schedule_service: ScheduleService, professional_id: UUID
):
    """Test the same weekday and start time cannot be in force twice."""
    await schedule_service.create_rule(rule_data(professional_id))

    with pytest.raises(ConflictException):
        await schedule_service.create_rule(rule_data(professional_id, end_time=time(13, 0)))


@pytest.mark.asyncio
async def test_same_start_in_disjoint_windows_is_allowed(
    schedule_service: ScheduleService, professional_id: UUID
):
    """Test successive validity windows may reuse a weekday and start time."""
    await schedule_service.create_rule(
        rule_data(professional_id, valid_until=date(2026, 1, 31))
    )

    later = await schedule_service.create_rule(
        rule_data(professional_id, valid_from=date(2026, 2, 1))
    )

    assert later.valid_from == date(2026, 2, 1)


def test_rule_with_inverted_window_is_invalid(professional_id: UUID):
    """Test schema validation rejects end before start."""
    with pytest.raises(ValueError):
        rule_data(professional_id, start_time=time(12, 0), end_time=time(9, 0))
    with pytest.raises(ValueError):
        rule_data(professional_id, valid_until=date(2025, 12, 31))


@pytest.mark.asyncio
async def test_update_rule_validates_merged_values(
    schedule_service: ScheduleService, professional_id: UUID
):
    """Test a partial update is checked against the stored fields."""
    rule = await schedule_service.create_rule(rule_data(professional_id))

    with pytest.raises(ValidationException):
        await schedule_service.update_rule(rule.id, ScheduleRuleUpdate(end_time=time(8, 0)))

    updated = await schedule_service.update_rule(
        rule.id, ScheduleRuleUpdate(end_time=time(13, 0), slot_duration_minutes=20)
    )
    assert updated.end_time == time(13, 0)
    assert updated.slot_duration_minutes == 20


@pytest.mark.asyncio
async def test_update_rule_rejects_duplicate(
    schedule_service: ScheduleService, professional_id: UUID
):
    """Test moving a rule onto another rule's weekday and start is rejected."""
    await schedule_service.create_rule(rule_data(professional_id))
    tuesday = await schedule_service.create_rule(
        rule_data(professional_id, day_of_week=DayOfWeek.TUESDAY)
    )

    with pytest.raises(ConflictException):
        await schedule_service.update_rule(
            tuesday.id, ScheduleRuleUpdate(day_of_week=DayOfWeek.MONDAY)
        )


@pytest.mark.asyncio
async def test_activate_and_deactivate_reject_no_ops(
    schedule_service: ScheduleService, professional_id: UUID
):
    """Test toggling a rule into the state it already has is rejected."""
    rule = await schedule_service.create_rule(rule_data(professional_id))

    with pytest.raises(ConflictException):
        await schedule_service.activate_rule(rule.id)

    deactivated = await schedule_service.deactivate_rule(rule.id)
    assert deactivated.active is False
    with pytest.raises(ConflictException):
        await schedule_service.deactivate_rule(rule.id)

    reactivated = await schedule_service.activate_rule(rule.id)
    assert reactivated.active is True


@pytest.mark.asyncio
async def test_list_rules_hides_expired_unless_history_requested(
    schedule_service: ScheduleService, professional_id: UUID
):
    """Test expired rules only appear in the history listing."""
    await schedule_service.create_rule(
        rule_data(professional_id, valid_from=date(2020, 1, 1), valid_until=date(2020, 12, 31))
    )
    current = await schedule_service.create_rule(
        rule_data(professional_id, day_of_week=DayOfWeek.FRIDAY, valid_from=date(2021, 1, 1))
    )

    in_force = await schedule_service.list_rules(professional_id=professional_id)
    history = await schedule_service.list_rules(
        professional_id=professional_id, include_history=True
    )

    assert [r.id for r in in_force] == [current.id]
    assert len(history) == 2


@pytest.mark.asyncio
async def test_close_validity_ends_open_rules(
    schedule_service: ScheduleService, professional_id: UUID
):
    """Test closing ends running rules and deactivates future ones."""
    running = await schedule_service.create_rule(rule_data(professional_id))
    future = await schedule_service.create_rule(
        rule_data(professional_id, day_of_week=DayOfWeek.TUESDAY, valid_from=date(2026, 6, 1))
    )
    other_professional = await schedule_service.create_rule(rule_data(uuid4()))

    touched = await schedule_service.close_validity(professional_id, date(2026, 3, 31))

    assert touched == 2
    assert (await schedule_service.get_rule(running.id)).valid_until == date(2026, 3, 31)
    assert (await schedule_service.get_rule(future.id)).active is False
    assert (await schedule_service.get_rule(other_professional.id)).valid_until is None


@pytest.mark.asyncio
async def test_replace_weekly_schedule_keeps_history(
    schedule_service: ScheduleService, professional_id: UUID
):
    """Test a new weekly schedule supersedes the old one from its start date."""
    old = await schedule_service.create_rule(rule_data(professional_id))

    created = await schedule_service.replace_weekly_schedule(
        WeeklyScheduleReplace(
            professional_id=professional_id,
            valid_from=date(2026, 3, 1),
            slots=[
                WeeklySlot(day_of_week=DayOfWeek.MONDAY, start_time=time(9), end_time=time(13)),
                WeeklySlot(
                    day_of_week=DayOfWeek.WEDNESDAY, start_time=time(14), end_time=time(18)
                ),
            ],
        )
    )

    assert len(created) == 2
    assert all(rule.valid_from == date(2026, 3, 1) for rule in created)
    assert (await schedule_service.get_rule(old.id)).valid_until == date(2026, 2, 28)


@pytest.mark.asyncio
async def test_replace_weekly_schedule_twice_on_same_date(
    schedule_service: ScheduleService, professional_id: UUID
):
    """Test replacing again from the same date deactivates the first replacement."""
    request = WeeklyScheduleReplace(
        professional_id=professional_id,
        valid_from=date(2026, 3, 1),
        slots=[WeeklySlot(day_of_week=DayOfWeek.MONDAY, start_time=time(9), end_time=time(12))],
    )
    first = await schedule_service.replace_weekly_schedule(request)
    second = await schedule_service.replace_weekly_schedule(request)

    assert (await schedule_service.get_rule(first[0].id)).active is False
    assert second[0].active is True


@pytest.mark.asyncio
async def test_replace_weekly_schedule_rejects_duplicate_slots(
    schedule_service: ScheduleService, professional_id: UUID
):
    """Test a schedule listing the same slot twice is rejected before any change."""
    old = await schedule_service.create_rule(rule_data(professional_id))
    slot = WeeklySlot(day_of_week=DayOfWeek.MONDAY, start_time=time(9), end_time=time(12))

    with pytest.raises(ValidationException):
        await schedule_service.replace_weekly_schedule(
            WeeklyScheduleReplace(
                professional_id=professional_id,
                valid_from=date(2026, 3, 1),
                slots=[slot, slot],
            )
        )

    assert (await schedule_service.get_rule(old.id)).valid_until is None


@pytest.mark.asyncio
async def test_delete_rule(schedule_service: ScheduleService, professional_id: UUID):
    """Test deleting a rule and deleting it again."""
    rule = await schedule_service.create_rule(rule_data(professional_id))

    await schedule_service.delete_rule(rule.id)

    with pytest.raises(NotFoundException):
        await schedule_service.get_rule(rule.id)
    with pytest.raises(NotFoundException):
        await schedule_service.delete_rule(rule.id)


@pytest.mark.asyncio
async def test_date_exception_crud(schedule_service: ScheduleService, professional_id: UUID):
    """Test creating, listing, updating and deleting date exceptions."""
    exception = await schedule_service.create_exception(
        DateExceptionCreate(
            professional_id=professional_id,
            date=date(2026, 1, 6),
            start_time=time(14, 0),
            end_time=time(16, 0),
            notes="Extra afternoon",
        )
    )
    await schedule_service.create_exception(
        DateExceptionCreate(
            professional_id=professional_id,
            date=date(2026, 2, 10),
            start_time=time(8, 0),
            end_time=time(10, 0),
        )
    )

    january = await schedule_service.list_exceptions(
        professional_id, date(2026, 1, 1), date(2026, 1, 31)
    )
    assert [e.id for e in january] == [exception.id]

    with pytest.raises(ValidationException):
        await schedule_service.update_exception(
            exception.id, DateExceptionUpdate(end_time=time(13, 0))
        )
    updated = await schedule_service.update_exception(
        exception.id, DateExceptionUpdate(end_time=time(17, 0))
    )
    assert updated.end_time == time(17, 0)
    assert updated.notes == "Extra afternoon"

    await schedule_service.delete_exception(exception.id)
    with pytest.raises(NotFoundException):
        await schedule_service.get_exception(exception.id)


@pytest.mark.asyncio
async def test_overlapping_block_is_rejected(
    schedule_service: ScheduleService, professional_id: UUID
):
    """Test a block may not overlap another block of the same professional."""
    await schedule_service.create_block(block_data(professional_id, 9, 11))

    with pytest.raises(ConflictException):
        await schedule_service.create_block(block_data(professional_id, 10, 12))

    adjacent = await schedule_service.create_block(block_data(professional_id, 11, 12))
    assert adjacent.start_datetime == datetime(2026, 1, 5, 11, tzinfo=UTC)
    await schedule_service.create_block(block_data(uuid4(), 9, 11))


@pytest.mark.asyncio
async def test_update_block_rechecks_overlap_excluding_itself(
    schedule_service: ScheduleService, professional_id: UUID
):
    """Test a block can be widened unless it runs into another block."""
    block = await schedule_service.create_block(block_data(professional_id, 9, 10))
    await schedule_service.create_block(block_data(professional_id, 12, 13))

    widened = await schedule_service.update_block(
        block.id,
        UnavailabilityBlockUpdate(end_datetime=datetime(2026, 1, 5, 11, tzinfo=UTC)),
    )
    assert widened.end_datetime == datetime(2026, 1, 5, 11, tzinfo=UTC)

    with pytest.raises(ConflictException):
        await schedule_service.update_block(
            block.id,
            UnavailabilityBlockUpdate(end_datetime=datetime(2026, 1, 5, 12, 30, tzinfo=UTC)),
        )
    with pytest.raises(ValidationException):
        await schedule_service.update_block(
            block.id,
            UnavailabilityBlockUpdate(end_datetime=datetime(2026, 1, 5, 8, tzinfo=UTC)),
        )


@pytest.mark.asyncio
async def test_list_and_delete_blocks(schedule_service: ScheduleService, professional_id: UUID):
    """Test listing blocks in a range and deleting one."""
    morning = await schedule_service.create_block(block_data(professional_id, 9, 10))
    await schedule_service.create_block(block_data(professional_id, 15, 16))

    listed = await schedule_service.list_blocks(
        professional_id,
        start_from=datetime(2026, 1, 5, 0, tzinfo=UTC),
        end_to=datetime(2026, 1, 5, 12, tzinfo=UTC),
    )
    assert [b.id for b in listed] == [morning.id]

    await schedule_service.delete_block(morning.id)
    with pytest.raises(NotFoundException):
        await schedule_service.delete_block(morning.id)
    remaining = await schedule_service.list_blocks(professional_id)
    assert len(remaining) == 1
    assert remaining[0].end_datetime - remaining[0].start_datetime == timedelta(hours=1)


@pytest.mark.asyncio
async def test_update_rule_can_reopen_closed_rule(
    schedule_service: ScheduleService, professional_id: UUID
):
    """Test an explicit null clears the end of a rule's validity."""
    rule = await schedule_service.create_rule(
        rule_data(professional_id, valid_until=date(2026, 3, 31))
    )

    reopened = await schedule_service.update_rule(rule.id, ScheduleRuleUpdate(valid_until=None))

    assert reopened.valid_until is None
    assert (await schedule_service.get_rule(rule.id)).valid_until is None


@pytest.mark.asyncio
async def test_update_rule_rejects_null_required_field(
    schedule_service: ScheduleService, professional_id: UUID
):
    """Test fields without a null state cannot be cleared."""
    rule = await schedule_service.create_rule(rule_data(professional_id))

    with pytest.raises(ValidationException):
        await schedule_service.update_rule(rule.id, ScheduleRuleUpdate(start_time=None))

    assert (await schedule_service.get_rule(rule.id)).start_time == time(9, 0)


@pytest.mark.asyncio
async def test_update_clears_exception_notes_and_block_reason(
    schedule_service: ScheduleService, professional_id: UUID
):
    """Test optional text fields can be cleared with an explicit null."""
    exception = await schedule_service.create_exception(
        DateExceptionCreate(
            professional_id=professional_id,
            date=date(2026, 1, 6),
            start_time=time(14, 0),
            end_time=time(16, 0),
            notes="Extra afternoon",
        )
    )
    block = await schedule_service.create_block(block_data(professional_id, 9, 10))

    cleared = await schedule_service.update_exception(
        exception.id, DateExceptionUpdate(notes=None)
    )
    unlabelled = await schedule_service.update_block(
        block.id, UnavailabilityBlockUpdate(reason=None)
    )

    assert cleared.notes is None
    assert cleared.start_time == time(14, 0)
    assert unlabelled.reason is None
    with pytest.raises(ValidationException):
        await schedule_service.update_exception(exception.id, DateExceptionUpdate(date=None))
    with pytest.raises(ValidationException):
        await schedule_service.update_block(
            block.id, UnavailabilityBlockUpdate(start_datetime=None)
        )


@pytest.mark.asyncio
async def test_replace_weekly_schedule_with_end_date(
    schedule_service: ScheduleService, professional_id: UUID
):
    """Test a bounded weekly schedule, such as seasonal hours, ends on its date."""
    old = await schedule_service.create_rule(rule_data(professional_id))

    created = await schedule_service.replace_weekly_schedule(
        WeeklyScheduleReplace(
            professional_id=professional_id,
            valid_from=date(2026, 12, 1),
            valid_until=date(2027, 2, 28),
            slots=[
                WeeklySlot(day_of_week=DayOfWeek.MONDAY, start_time=time(8), end_time=time(11)),
            ],
        )
    )

    assert created[0].valid_from == date(2026, 12, 1)
    assert created[0].valid_until == date(2027, 2, 28)
    assert (await schedule_service.get_rule(old.id)).valid_until == date(2026, 11, 30)


def test_weekly_schedule_end_date_cannot_precede_start(professional_id: UUID):
    """Test a weekly schedule ending before it starts fails validation."""
    with pytest.raises(ValueError):
        WeeklyScheduleReplace(
            professional_id=professional_id,
            valid_from=date(2026, 3, 1),
            valid_until=date(2026, 2, 28),
            slots=[],
        )
