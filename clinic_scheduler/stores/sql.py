"""PostgreSQL store implementations using SQLAlchemy Core."""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import UTC, date, datetime, time
from enum import Enum
from typing import Any
from uuid import UUID

import structlog
from sqlalchemy import and_, delete, exists, func, insert, or_, select, true, update
from sqlalchemy.ext.asyncio import AsyncSession

from clinic_scheduler.models.appointments import appointments
from clinic_scheduler.models.date_exceptions import date_exceptions
from clinic_scheduler.models.schedule_rules import schedule_rules
from clinic_scheduler.models.unavailability_blocks import unavailability_blocks
from clinic_scheduler.scheduling.calendar import DayOfWeek, ensure_utc, split_instant
from clinic_scheduler.schemas.appointments import (
    SLOT_RELEASING_STATUSES,
    AppointmentCreate,
    AppointmentFilters,
    AppointmentResponse,
    AppointmentStatus,
)
from clinic_scheduler.schemas.date_exceptions import DateExceptionCreate, DateExceptionResponse
from clinic_scheduler.schemas.schedule_rules import ScheduleRuleCreate, ScheduleRuleResponse
from clinic_scheduler.schemas.unavailability_blocks import (
    UnavailabilityBlockCreate,
    UnavailabilityBlockResponse,
)
from clinic_scheduler.stores.base import (
    AppointmentStore,
    DateExceptionStore,
    ScheduleRuleStore,
    SchedulingStores,
    UnavailabilityBlockStore,
)

logger = structlog.get_logger()


def _column_values(values: dict[str, Any]) -> dict[str, Any]:
    """Convert enum members to their stored representation."""
    converted: dict[str, Any] = {}
    for field, value in values.items():
        if isinstance(value, DayOfWeek):
            converted[field] = int(value)
        elif isinstance(value, Enum):
            converted[field] = value.value
        elif isinstance(value, datetime):
            converted[field] = ensure_utc(value)
        else:
            converted[field] = value
    converted["updated_at"] = datetime.now(UTC)
    return converted


class SqlScheduleRuleStore(ScheduleRuleStore):
    """Weekly schedule rules backed by the ``schedule_rules`` table."""

    def __init__(self, db: AsyncSession):
        """Initialize store with database session."""
        self.db = db

    async def covers_instant(self, professional_id: UUID, instant: datetime) -> bool:
        parts = split_instant(instant)
        stmt = select(
            exists().where(
                and_(
                    schedule_rules.c.professional_id == professional_id,
                    schedule_rules.c.active.is_(True),
                    schedule_rules.c.day_of_week == int(parts.day_of_week),
                    schedule_rules.c.valid_from <= parts.date,
                    or_(
                        schedule_rules.c.valid_until.is_(None),
                        schedule_rules.c.valid_until >= parts.date,
                    ),
                    schedule_rules.c.start_time <= parts.time_of_day,
                    schedule_rules.c.end_time > parts.time_of_day,
                )
            )
        )
        result = await self.db.execute(stmt)
        return bool(result.scalar())

    async def get(self, rule_id: UUID) -> ScheduleRuleResponse | None:
        result = await self.db.execute(select(schedule_rules).where(schedule_rules.c.id == rule_id))
        row = result.fetchone()
        return ScheduleRuleResponse.model_validate(dict(row._mapping)) if row else None

    async def list_rules(
        self,
        professional_id: UUID | None = None,
        day_of_week: DayOfWeek | None = None,
        active: bool | None = None,
        current_on: date | None = None,
    ) -> list[ScheduleRuleResponse]:
        conditions = []

        if professional_id:
            conditions.append(schedule_rules.c.professional_id == professional_id)

        if day_of_week is not None:
            conditions.append(schedule_rules.c.day_of_week == int(day_of_week))

        if active is not None:
            conditions.append(schedule_rules.c.active.is_(active))

        if current_on is not None:
            conditions.append(
                or_(
                    schedule_rules.c.valid_until.is_(None),
                    schedule_rules.c.valid_until >= current_on,
                )
            )

        stmt = (
            select(schedule_rules)
            .where(and_(true(), *conditions))
            .order_by(
                schedule_rules.c.professional_id,
                schedule_rules.c.day_of_week,
                schedule_rules.c.start_time,
                schedule_rules.c.valid_from,
            )
        )
        result = await self.db.execute(stmt)
        return [ScheduleRuleResponse.model_validate(dict(row._mapping)) for row in result]

    async def create(self, data: ScheduleRuleCreate) -> ScheduleRuleResponse:
        values = data.model_dump()
        values["day_of_week"] = int(data.day_of_week)

        stmt = insert(schedule_rules).values(**values).returning(schedule_rules)
        result = await self.db.execute(stmt)
        await self.db.commit()

        row = result.fetchone()
        return ScheduleRuleResponse.model_validate(dict(row._mapping))

    async def update(self, rule_id: UUID, values: dict[str, Any]) -> ScheduleRuleResponse | None:
        stmt = (
            update(schedule_rules)
            .where(schedule_rules.c.id == rule_id)
            .values(**_column_values(values))
            .returning(schedule_rules)
        )
        result = await self.db.execute(stmt)
        await self.db.commit()

        row = result.fetchone()
        return ScheduleRuleResponse.model_validate(dict(row._mapping)) if row else None

    async def delete(self, rule_id: UUID) -> bool:
        stmt = delete(schedule_rules).where(schedule_rules.c.id == rule_id).returning(
            schedule_rules.c.id
        )
        result = await self.db.execute(stmt)
        await self.db.commit()
        return result.fetchone() is not None

    async def has_duplicate(
        self,
        professional_id: UUID,
        day_of_week: DayOfWeek,
        start_time: time,
        valid_from: date,
        valid_until: date | None,
        exclude_id: UUID | None = None,
    ) -> bool:
        conditions = [
            schedule_rules.c.professional_id == professional_id,
            schedule_rules.c.day_of_week == int(day_of_week),
            schedule_rules.c.start_time == start_time,
            schedule_rules.c.active.is_(True),
            # Inclusive validity windows overlap
            or_(
                schedule_rules.c.valid_until.is_(None),
                schedule_rules.c.valid_until >= valid_from,
            ),
        ]
        if valid_until is not None:
            conditions.append(schedule_rules.c.valid_from <= valid_until)
        if exclude_id:
            conditions.append(schedule_rules.c.id != exclude_id)

        result = await self.db.execute(select(exists().where(and_(*conditions))))
        return bool(result.scalar())

    async def close_validity(self, professional_id: UUID, until: date) -> int:
        now = datetime.now(UTC)
        open_rules = and_(
            schedule_rules.c.professional_id == professional_id,
            or_(
                schedule_rules.c.valid_until.is_(None),
                schedule_rules.c.valid_until > until,
            ),
        )

        closed = await self.db.execute(
            update(schedule_rules)
            .where(and_(open_rules, schedule_rules.c.valid_from <= until))
            .values(valid_until=until, updated_at=now)
        )
        # Rules scheduled to start later never took effect
        deactivated = await self.db.execute(
            update(schedule_rules)
            .where(
                and_(
                    open_rules,
                    schedule_rules.c.valid_from > until,
                    schedule_rules.c.active.is_(True),
                )
            )
            .values(active=False, updated_at=now)
        )
        await self.db.commit()
        return (closed.rowcount or 0) + (deactivated.rowcount or 0)


class SqlDateExceptionStore(DateExceptionStore):
    """Date exceptions backed by the ``date_exceptions`` table."""

    def __init__(self, db: AsyncSession):
        """Initialize store with database session."""
        self.db = db

    async def covers_instant(self, professional_id: UUID, instant: datetime) -> bool:
        parts = split_instant(instant)
        stmt = select(
            exists().where(
                and_(
                    date_exceptions.c.professional_id == professional_id,
                    date_exceptions.c.date == parts.date,
                    date_exceptions.c.start_time <= parts.time_of_day,
                    date_exceptions.c.end_time > parts.time_of_day,
                )
            )
        )
        result = await self.db.execute(stmt)
        return bool(result.scalar())

    async def get(self, exception_id: UUID) -> DateExceptionResponse | None:
        result = await self.db.execute(
            select(date_exceptions).where(date_exceptions.c.id == exception_id)
        )
        row = result.fetchone()
        return DateExceptionResponse.model_validate(dict(row._mapping)) if row else None

    async def list_exceptions(
        self,
        professional_id: UUID | None = None,
        date_from: date | None = None,
        date_to: date | None = None,
    ) -> list[DateExceptionResponse]:
        conditions = []

        if professional_id:
            conditions.append(date_exceptions.c.professional_id == professional_id)

        if date_from:
            conditions.append(date_exceptions.c.date >= date_from)

        if date_to:
            conditions.append(date_exceptions.c.date <= date_to)

        stmt = (
            select(date_exceptions)
            .where(and_(true(), *conditions))
            .order_by(date_exceptions.c.date, date_exceptions.c.start_time)
        )
        result = await self.db.execute(stmt)
        return [DateExceptionResponse.model_validate(dict(row._mapping)) for row in result]

    async def create(self, data: DateExceptionCreate) -> DateExceptionResponse:
        stmt = insert(date_exceptions).values(**data.model_dump()).returning(date_exceptions)
        result = await self.db.execute(stmt)
        await self.db.commit()

        row = result.fetchone()
        return DateExceptionResponse.model_validate(dict(row._mapping))

    async def update(
        self, exception_id: UUID, values: dict[str, Any]
    ) -> DateExceptionResponse | None:
        stmt = (
            update(date_exceptions)
            .where(date_exceptions.c.id == exception_id)
            .values(**_column_values(values))
            .returning(date_exceptions)
        )
        result = await self.db.execute(stmt)
        await self.db.commit()

        row = result.fetchone()
        return DateExceptionResponse.model_validate(dict(row._mapping)) if row else None

    async def delete(self, exception_id: UUID) -> bool:
        stmt = (
            delete(date_exceptions)
            .where(date_exceptions.c.id == exception_id)
            .returning(date_exceptions.c.id)
        )
        result = await self.db.execute(stmt)
        await self.db.commit()
        return result.fetchone() is not None


class SqlUnavailabilityBlockStore(UnavailabilityBlockStore):
    """Unavailability blocks backed by the ``unavailability_blocks`` table."""

    def __init__(self, db: AsyncSession):
        """Initialize store with database session."""
        self.db = db

    async def overlaps(
        self,
        professional_id: UUID,
        start: datetime,
        end: datetime,
        exclude_id: UUID | None = None,
    ) -> bool:
        conditions = [
            unavailability_blocks.c.professional_id == professional_id,
            # Half-open overlap: block.start < end AND start < block.end
            unavailability_blocks.c.start_datetime < ensure_utc(end),
            unavailability_blocks.c.end_datetime > ensure_utc(start),
        ]
        if exclude_id:
            conditions.append(unavailability_blocks.c.id != exclude_id)

        result = await self.db.execute(select(exists().where(and_(*conditions))))
        return bool(result.scalar())

    async def get(self, block_id: UUID) -> UnavailabilityBlockResponse | None:
        result = await self.db.execute(
            select(unavailability_blocks).where(unavailability_blocks.c.id == block_id)
        )
        row = result.fetchone()
        return UnavailabilityBlockResponse.model_validate(dict(row._mapping)) if row else None

    async def list_blocks(
        self,
        professional_id: UUID | None = None,
        start_from: datetime | None = None,
        end_to: datetime | None = None,
    ) -> list[UnavailabilityBlockResponse]:
        conditions = []

        if professional_id:
            conditions.append(unavailability_blocks.c.professional_id == professional_id)

        if start_from:
            conditions.append(unavailability_blocks.c.start_datetime >= ensure_utc(start_from))

        if end_to:
            conditions.append(unavailability_blocks.c.end_datetime <= ensure_utc(end_to))

        stmt = (
            select(unavailability_blocks)
            .where(and_(true(), *conditions))
            .order_by(unavailability_blocks.c.start_datetime)
        )
        result = await self.db.execute(stmt)
        return [UnavailabilityBlockResponse.model_validate(dict(row._mapping)) for row in result]

    async def create(self, data: UnavailabilityBlockCreate) -> UnavailabilityBlockResponse:
        values = data.model_dump()
        values["start_datetime"] = ensure_utc(data.start_datetime)
        values["end_datetime"] = ensure_utc(data.end_datetime)

        stmt = insert(unavailability_blocks).values(**values).returning(unavailability_blocks)
        result = await self.db.execute(stmt)
        await self.db.commit()

        row = result.fetchone()
        return UnavailabilityBlockResponse.model_validate(dict(row._mapping))

    async def update(
        self, block_id: UUID, values: dict[str, Any]
    ) -> UnavailabilityBlockResponse | None:
        stmt = (
            update(unavailability_blocks)
            .where(unavailability_blocks.c.id == block_id)
            .values(**_column_values(values))
            .returning(unavailability_blocks)
        )
        result = await self.db.execute(stmt)
        await self.db.commit()

        row = result.fetchone()
        return UnavailabilityBlockResponse.model_validate(dict(row._mapping)) if row else None

    async def delete(self, block_id: UUID) -> bool:
        stmt = (
            delete(unavailability_blocks)
            .where(unavailability_blocks.c.id == block_id)
            .returning(unavailability_blocks.c.id)
        )
        result = await self.db.execute(stmt)
        await self.db.commit()
        return result.fetchone() is not None


class SqlAppointmentStore(AppointmentStore):
    """Appointments backed by the ``appointments`` table."""

    def __init__(self, db: AsyncSession):
        """Initialize store with database session."""
        self.db = db

    def _overlap_conditions(
        self,
        professional_id: UUID,
        start: datetime,
        end: datetime,
        exclude_appointment_id: UUID | None,
    ) -> list:
        conditions = [
            appointments.c.professional_id == professional_id,
            appointments.c.status.not_in([s.value for s in SLOT_RELEASING_STATUSES]),
            appointments.c.start_datetime < ensure_utc(end),
            appointments.c.end_datetime > ensure_utc(start),
        ]
        if exclude_appointment_id:
            conditions.append(appointments.c.id != exclude_appointment_id)
        return conditions

    async def has_conflict(
        self,
        professional_id: UUID,
        start: datetime,
        end: datetime,
        exclude_appointment_id: UUID | None = None,
    ) -> bool:
        conditions = self._overlap_conditions(professional_id, start, end, exclude_appointment_id)
        result = await self.db.execute(select(exists().where(and_(*conditions))))
        return bool(result.scalar())

    async def has_patient_conflict(
        self,
        professional_id: UUID,
        patient_id: UUID,
        start: datetime,
        end: datetime,
        exclude_appointment_id: UUID | None = None,
    ) -> bool:
        conditions = self._overlap_conditions(professional_id, start, end, exclude_appointment_id)
        conditions.append(appointments.c.patient_id == patient_id)
        result = await self.db.execute(select(exists().where(and_(*conditions))))
        return bool(result.scalar())

    @asynccontextmanager
    async def booking_guard(self, professional_id: UUID) -> AsyncIterator[None]:
        """
        Hold a transaction-scoped advisory lock keyed on the professional.

        Concurrent bookings for the same professional queue on the lock; it
        is released when the transaction commits or rolls back.
        """
        await self.db.execute(
            select(func.pg_advisory_xact_lock(func.hashtextextended(str(professional_id), 0)))
        )
        logger.debug("booking_lock_acquired", professional_id=str(professional_id))
        try:
            yield
        except BaseException:
            await self.db.rollback()
            raise
        else:
            await self.db.commit()

    async def get(self, appointment_id: UUID) -> AppointmentResponse | None:
        result = await self.db.execute(
            select(appointments).where(appointments.c.id == appointment_id)
        )
        row = result.fetchone()
        return AppointmentResponse.model_validate(dict(row._mapping)) if row else None

    async def list_appointments(
        self, filters: AppointmentFilters
    ) -> tuple[list[AppointmentResponse], int]:
        conditions = []

        if filters.professional_id:
            conditions.append(appointments.c.professional_id == filters.professional_id)

        if filters.patient_id:
            conditions.append(appointments.c.patient_id == filters.patient_id)

        if filters.status:
            conditions.append(appointments.c.status == filters.status.value)

        if filters.from_date:
            conditions.append(appointments.c.start_datetime >= ensure_utc(filters.from_date))

        if filters.to_date:
            conditions.append(appointments.c.start_datetime <= ensure_utc(filters.to_date))

        count_stmt = (
            select(func.count()).select_from(appointments).where(and_(true(), *conditions))
        )
        total_result = await self.db.execute(count_stmt)
        total = total_result.scalar() or 0

        offset = (filters.page - 1) * filters.page_size

        stmt = (
            select(appointments)
            .where(and_(true(), *conditions))
            .order_by(appointments.c.start_datetime.asc())
            .limit(filters.page_size)
            .offset(offset)
        )

        result = await self.db.execute(stmt)
        items = [AppointmentResponse.model_validate(dict(row._mapping)) for row in result]
        return items, total

    async def insert(self, data: AppointmentCreate) -> AppointmentResponse:
        values = {
            "professional_id": data.professional_id,
            "patient_id": data.patient_id,
            "start_datetime": ensure_utc(data.start_datetime),
            "end_datetime": ensure_utc(data.end_datetime),
            "status": AppointmentStatus.PENDING.value,
            "is_extra_slot": data.is_extra_slot,
            "reason": data.reason,
        }

        stmt = insert(appointments).values(**values).returning(appointments)
        result = await self.db.execute(stmt)
        await self.db.commit()

        row = result.fetchone()
        return AppointmentResponse.model_validate(dict(row._mapping))

    async def update(
        self, appointment_id: UUID, values: dict[str, Any]
    ) -> AppointmentResponse | None:
        stmt = (
            update(appointments)
            .where(appointments.c.id == appointment_id)
            .values(**_column_values(values))
            .returning(appointments)
        )
        result = await self.db.execute(stmt)
        await self.db.commit()

        row = result.fetchone()
        return AppointmentResponse.model_validate(dict(row._mapping)) if row else None

    async def delete(self, appointment_id: UUID) -> bool:
        stmt = (
            delete(appointments)
            .where(appointments.c.id == appointment_id)
            .returning(appointments.c.id)
        )
        result = await self.db.execute(stmt)
        await self.db.commit()
        return result.fetchone() is not None


def build_sql_stores(db: AsyncSession) -> SchedulingStores:
    """Bundle the PostgreSQL stores sharing one session."""
    return SchedulingStores(
        rules=SqlScheduleRuleStore(db),
        exceptions=SqlDateExceptionStore(db),
        blocks=SqlUnavailabilityBlockStore(db),
        appointments=SqlAppointmentStore(db),
    )
