"""Service for managing weekly rules, date exceptions and unavailability blocks."""

from datetime import UTC, date, datetime, time, timedelta
from typing import Any
from uuid import UUID

import structlog
from pydantic import BaseModel

from clinic_scheduler.core.exceptions import (
    ConflictException,
    NotFoundException,
    ValidationException,
)
from clinic_scheduler.scheduling.calendar import DayOfWeek, ensure_utc
from clinic_scheduler.schemas.date_exceptions import (
    DateExceptionCreate,
    DateExceptionResponse,
    DateExceptionUpdate,
)
from clinic_scheduler.schemas.schedule_rules import (
    ScheduleRuleCreate,
    ScheduleRuleResponse,
    ScheduleRuleUpdate,
    WeeklyScheduleReplace,
)
from clinic_scheduler.schemas.unavailability_blocks import (
    UnavailabilityBlockCreate,
    UnavailabilityBlockResponse,
    UnavailabilityBlockUpdate,
)
from clinic_scheduler.stores.base import SchedulingStores

logger = structlog.get_logger(__name__)

_RULE_REQUIRED = (
    "day_of_week",
    "start_time",
    "end_time",
    "slot_duration_minutes",
    "active",
    "valid_from",
)
_EXCEPTION_REQUIRED = ("date", "start_time", "end_time", "slot_duration_minutes")
_BLOCK_REQUIRED = ("start_datetime", "end_datetime")


def _update_values(data: BaseModel, required: tuple[str, ...]) -> dict[str, Any]:
    """
    Collect the fields a partial update sets, explicit nulls included.

    Raises:
        ValidationException: If a non-nullable field is set to null
    """
    values = data.model_dump(exclude_unset=True)
    cleared = [field for field in required if field in values and values[field] is None]
    if cleared:
        raise ValidationException(f"Fields cannot be null: {', '.join(cleared)}")
    return values


class ScheduleService:
    """Service for the working-hours configuration of professionals."""

    def __init__(self, stores: SchedulingStores):
        """Initialize service with the scheduling stores."""
        self.stores = stores

    # Weekly rules

    async def create_rule(self, data: ScheduleRuleCreate) -> ScheduleRuleResponse:
        """
        Create a weekly schedule rule.

        Args:
            data: Rule creation data

        Returns:
            Created rule

        Raises:
            ConflictException: If a rule with the same weekday and start time
                is in force during an overlapping validity window
        """
        await self._ensure_unique_rule(
            data.professional_id,
            data.day_of_week,
            data.start_time,
            data.valid_from,
            data.valid_until,
        )
        rule = await self.stores.rules.create(data)
        logger.info(
            "schedule_rule_created",
            rule_id=str(rule.id),
            professional_id=str(rule.professional_id),
            day_of_week=rule.day_of_week.name,
        )
        return rule

    async def get_rule(self, rule_id: UUID) -> ScheduleRuleResponse:
        """
        Get a weekly rule by ID.

        Raises:
            NotFoundException: If rule not found
        """
        rule = await self.stores.rules.get(rule_id)
        if rule is None:
            raise NotFoundException("Schedule rule not found")
        return rule

    async def list_rules(
        self,
        professional_id: UUID | None = None,
        day_of_week: DayOfWeek | None = None,
        active: bool | None = None,
        include_history: bool = False,
    ) -> list[ScheduleRuleResponse]:
        """
        List weekly rules.

        Args:
            professional_id: Filter by professional
            day_of_week: Filter by weekday
            active: Filter by active flag
            include_history: Include rules whose validity already ended

        Returns:
            Matching rules
        """
        current_on = None if include_history else datetime.now(UTC).date()
        return await self.stores.rules.list_rules(
            professional_id=professional_id,
            day_of_week=day_of_week,
            active=active,
            current_on=current_on,
        )

    async def update_rule(self, rule_id: UUID, data: ScheduleRuleUpdate) -> ScheduleRuleResponse:
        """
        Update a weekly rule.

        Args:
            rule_id: Rule ID
            data: Fields to change

        Returns:
            Updated rule

        Raises:
            NotFoundException: If rule not found
            ValidationException: If the resulting windows are invalid
            ConflictException: If the change creates a duplicate rule
        """
        rule = await self.get_rule(rule_id)
        values = _update_values(data, _RULE_REQUIRED)
        if not values:
            return rule

        merged = rule.model_copy(update=values)
        if merged.end_time <= merged.start_time:
            raise ValidationException("End time must be after start time")
        if merged.valid_until is not None and merged.valid_until < merged.valid_from:
            raise ValidationException("valid_until cannot be before valid_from")

        await self._ensure_unique_rule(
            merged.professional_id,
            merged.day_of_week,
            merged.start_time,
            merged.valid_from,
            merged.valid_until,
            exclude_id=rule_id,
        )
        return await self.stores.rules.update(rule_id, values)

    async def delete_rule(self, rule_id: UUID) -> None:
        """
        Delete a weekly rule.

        Raises:
            NotFoundException: If rule not found
        """
        if not await self.stores.rules.delete(rule_id):
            raise NotFoundException("Schedule rule not found")
        logger.info("schedule_rule_deleted", rule_id=str(rule_id))

    async def activate_rule(self, rule_id: UUID) -> ScheduleRuleResponse:
        """
        Activate a weekly rule.

        Raises:
            NotFoundException: If rule not found
            ConflictException: If the rule is already active
        """
        return await self._set_rule_active(rule_id, True)

    async def deactivate_rule(self, rule_id: UUID) -> ScheduleRuleResponse:
        """
        Deactivate a weekly rule.

        Raises:
            NotFoundException: If rule not found
            ConflictException: If the rule is already inactive
        """
        return await self._set_rule_active(rule_id, False)

    async def close_validity(self, professional_id: UUID, until: date) -> int:
        """
        End the validity of a professional's open rules on ``until``.

        Args:
            professional_id: Professional whose schedule closes
            until: Last date the current rules stay in force

        Returns:
            Number of rules touched
        """
        touched = await self.stores.rules.close_validity(professional_id, until)
        logger.info(
            "schedule_validity_closed",
            professional_id=str(professional_id),
            until=until.isoformat(),
            rules=touched,
        )
        return touched

    async def replace_weekly_schedule(
        self, data: WeeklyScheduleReplace
    ) -> list[ScheduleRuleResponse]:
        """
        Supersede a professional's weekly schedule from ``valid_from`` on.

        The rules in force are closed the day before ``valid_from`` and one
        new rule is created per slot, bounded by ``valid_until`` when given.

        Args:
            data: New schedule

        Returns:
            Created rules

        Raises:
            ValidationException: If two slots share a weekday and start time
        """
        keys = [(slot.day_of_week, slot.start_time) for slot in data.slots]
        if len(keys) != len(set(keys)):
            raise ValidationException("Weekly schedule contains duplicate slots")

        await self.close_validity(data.professional_id, data.valid_from - timedelta(days=1))

        created = []
        for slot in data.slots:
            created.append(
                await self.create_rule(
                    ScheduleRuleCreate(
                        professional_id=data.professional_id,
                        valid_from=data.valid_from,
                        valid_until=data.valid_until,
                        **slot.model_dump(),
                    )
                )
            )
        return created

    # Date exceptions

    async def create_exception(self, data: DateExceptionCreate) -> DateExceptionResponse:
        """
        Create a date exception.

        Args:
            data: Exception creation data

        Returns:
            Created exception
        """
        exception = await self.stores.exceptions.create(data)
        logger.info(
            "date_exception_created",
            exception_id=str(exception.id),
            professional_id=str(exception.professional_id),
            date=exception.date.isoformat(),
        )
        return exception

    async def get_exception(self, exception_id: UUID) -> DateExceptionResponse:
        """
        Get a date exception by ID.

        Raises:
            NotFoundException: If exception not found
        """
        exception = await self.stores.exceptions.get(exception_id)
        if exception is None:
            raise NotFoundException("Date exception not found")
        return exception

    async def list_exceptions(
        self,
        professional_id: UUID | None = None,
        date_from: date | None = None,
        date_to: date | None = None,
    ) -> list[DateExceptionResponse]:
        """List date exceptions, optionally within a date range."""
        return await self.stores.exceptions.list_exceptions(professional_id, date_from, date_to)

    async def update_exception(
        self, exception_id: UUID, data: DateExceptionUpdate
    ) -> DateExceptionResponse:
        """
        Update a date exception.

        Raises:
            NotFoundException: If exception not found
            ValidationException: If the resulting window is invalid
        """
        exception = await self.get_exception(exception_id)
        values = _update_values(data, _EXCEPTION_REQUIRED)
        if not values:
            return exception

        merged = exception.model_copy(update=values)
        if merged.end_time <= merged.start_time:
            raise ValidationException("End time must be after start time")
        return await self.stores.exceptions.update(exception_id, values)

    async def delete_exception(self, exception_id: UUID) -> None:
        """
        Delete a date exception.

        Raises:
            NotFoundException: If exception not found
        """
        if not await self.stores.exceptions.delete(exception_id):
            raise NotFoundException("Date exception not found")
        logger.info("date_exception_deleted", exception_id=str(exception_id))

    # Unavailability blocks

    async def create_block(self, data: UnavailabilityBlockCreate) -> UnavailabilityBlockResponse:
        """
        Create an unavailability block.

        Args:
            data: Block creation data

        Returns:
            Created block

        Raises:
            ConflictException: If the block overlaps an existing block
        """
        if await self.stores.blocks.overlaps(
            data.professional_id, data.start_datetime, data.end_datetime
        ):
            raise ConflictException("Block overlaps an existing unavailability block")

        block = await self.stores.blocks.create(data)
        logger.info(
            "unavailability_block_created",
            block_id=str(block.id),
            professional_id=str(block.professional_id),
            start=block.start_datetime.isoformat(),
            end=block.end_datetime.isoformat(),
        )
        return block

    async def get_block(self, block_id: UUID) -> UnavailabilityBlockResponse:
        """
        Get an unavailability block by ID.

        Raises:
            NotFoundException: If block not found
        """
        block = await self.stores.blocks.get(block_id)
        if block is None:
            raise NotFoundException("Unavailability block not found")
        return block

    async def list_blocks(
        self,
        professional_id: UUID | None = None,
        start_from: datetime | None = None,
        end_to: datetime | None = None,
    ) -> list[UnavailabilityBlockResponse]:
        """List unavailability blocks, optionally within a range."""
        return await self.stores.blocks.list_blocks(professional_id, start_from, end_to)

    async def update_block(
        self, block_id: UUID, data: UnavailabilityBlockUpdate
    ) -> UnavailabilityBlockResponse:
        """
        Update an unavailability block.

        Raises:
            NotFoundException: If block not found
            ValidationException: If the resulting interval is invalid
            ConflictException: If the block would overlap another block
        """
        block = await self.get_block(block_id)
        values = _update_values(data, _BLOCK_REQUIRED)
        if not values:
            return block

        start = ensure_utc(values.get("start_datetime", block.start_datetime))
        end = ensure_utc(values.get("end_datetime", block.end_datetime))
        if end <= start:
            raise ValidationException("End datetime must be after start datetime")
        if await self.stores.blocks.overlaps(
            block.professional_id, start, end, exclude_id=block_id
        ):
            raise ConflictException("Block overlaps an existing unavailability block")

        return await self.stores.blocks.update(block_id, values)

    async def delete_block(self, block_id: UUID) -> None:
        """
        Delete an unavailability block.

        Raises:
            NotFoundException: If block not found
        """
        if not await self.stores.blocks.delete(block_id):
            raise NotFoundException("Unavailability block not found")
        logger.info("unavailability_block_deleted", block_id=str(block_id))

    async def _ensure_unique_rule(
        self,
        professional_id: UUID,
        day_of_week: DayOfWeek,
        start_time: time,
        valid_from: date,
        valid_until: date | None,
        exclude_id: UUID | None = None,
    ) -> None:
        if await self.stores.rules.has_duplicate(
            professional_id, day_of_week, start_time, valid_from, valid_until, exclude_id
        ):
            raise ConflictException(
                "A schedule rule for this weekday and start time already exists"
            )

    async def _set_rule_active(self, rule_id: UUID, active: bool) -> ScheduleRuleResponse:
        rule = await self.get_rule(rule_id)
        if rule.active == active:
            state = "active" if active else "inactive"
            raise ConflictException(f"Schedule rule is already {state}")
        if active:
            await self._ensure_unique_rule(
                rule.professional_id,
                rule.day_of_week,
                rule.start_time,
                rule.valid_from,
                rule.valid_until,
                exclude_id=rule_id,
            )

        rule = await self.stores.rules.update(rule_id, {"active": active})
        logger.info("schedule_rule_active_changed", rule_id=str(rule_id), active=active)
        return rule
