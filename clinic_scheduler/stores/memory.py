"""In-memory store implementations.

Used by the test suite and for running the API without a database. The
stores keep records as response models keyed by ID and apply the same
coverage and overlap predicates the SQL queries express.
"""

import asyncio
from collections import defaultdict
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import UTC, date, datetime, time
from typing import Any
from uuid import UUID, uuid4

from clinic_scheduler.scheduling.calendar import DayOfWeek, ensure_utc
from clinic_scheduler.scheduling.coverage import exception_covers, rule_covers, windows_overlap
from clinic_scheduler.scheduling.overlap import intervals_overlap
from clinic_scheduler.schemas.appointments import (
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


def _audit_fields() -> dict[str, Any]:
    now = datetime.now(UTC)
    return {"id": uuid4(), "created_at": now, "updated_at": now}


def _normalized(values: dict[str, Any]) -> dict[str, Any]:
    converted = {
        field: ensure_utc(value) if isinstance(value, datetime) else value
        for field, value in values.items()
    }
    converted["updated_at"] = datetime.now(UTC)
    return converted


class InMemoryScheduleRuleStore(ScheduleRuleStore):
    """Weekly schedule rules held in a dict."""

    def __init__(self) -> None:
        self.rules: dict[UUID, ScheduleRuleResponse] = {}

    async def covers_instant(self, professional_id: UUID, instant: datetime) -> bool:
        return any(
            rule_covers(rule, instant)
            for rule in self.rules.values()
            if rule.professional_id == professional_id
        )

    async def get(self, rule_id: UUID) -> ScheduleRuleResponse | None:
        return self.rules.get(rule_id)

    async def list_rules(
        self,
        professional_id: UUID | None = None,
        day_of_week: DayOfWeek | None = None,
        active: bool | None = None,
        current_on: date | None = None,
    ) -> list[ScheduleRuleResponse]:
        items = [
            rule
            for rule in self.rules.values()
            if (professional_id is None or rule.professional_id == professional_id)
            and (day_of_week is None or rule.day_of_week == day_of_week)
            and (active is None or rule.active == active)
            and (current_on is None or rule.valid_until is None or rule.valid_until >= current_on)
        ]
        return sorted(
            items,
            key=lambda r: (str(r.professional_id), r.day_of_week, r.start_time, r.valid_from),
        )

    async def create(self, data: ScheduleRuleCreate) -> ScheduleRuleResponse:
        rule = ScheduleRuleResponse(**data.model_dump(), **_audit_fields())
        self.rules[rule.id] = rule
        return rule

    async def update(self, rule_id: UUID, values: dict[str, Any]) -> ScheduleRuleResponse | None:
        rule = self.rules.get(rule_id)
        if rule is None:
            return None
        rule = rule.model_copy(update=_normalized(values))
        self.rules[rule_id] = rule
        return rule

    async def delete(self, rule_id: UUID) -> bool:
        return self.rules.pop(rule_id, None) is not None

    async def has_duplicate(
        self,
        professional_id: UUID,
        day_of_week: DayOfWeek,
        start_time: time,
        valid_from: date,
        valid_until: date | None,
        exclude_id: UUID | None = None,
    ) -> bool:
        return any(
            rule.professional_id == professional_id
            and rule.day_of_week == day_of_week
            and rule.start_time == start_time
            and rule.active
            and rule.id != exclude_id
            and windows_overlap(rule.valid_from, rule.valid_until, valid_from, valid_until)
            for rule in self.rules.values()
        )

    async def close_validity(self, professional_id: UUID, until: date) -> int:
        touched = 0
        for rule in list(self.rules.values()):
            if rule.professional_id != professional_id:
                continue
            if rule.valid_until is not None and rule.valid_until <= until:
                continue
            if rule.valid_from <= until:
                await self.update(rule.id, {"valid_until": until})
                touched += 1
            elif rule.active:
                await self.update(rule.id, {"active": False})
                touched += 1
        return touched


class InMemoryDateExceptionStore(DateExceptionStore):
    """Date exceptions held in a dict."""

    def __init__(self) -> None:
        self.exceptions: dict[UUID, DateExceptionResponse] = {}

    async def covers_instant(self, professional_id: UUID, instant: datetime) -> bool:
        return any(
            exception_covers(exception, instant)
            for exception in self.exceptions.values()
            if exception.professional_id == professional_id
        )

    async def get(self, exception_id: UUID) -> DateExceptionResponse | None:
        return self.exceptions.get(exception_id)

    async def list_exceptions(
        self,
        professional_id: UUID | None = None,
        date_from: date | None = None,
        date_to: date | None = None,
    ) -> list[DateExceptionResponse]:
        items = [
            exception
            for exception in self.exceptions.values()
            if (professional_id is None or exception.professional_id == professional_id)
            and (date_from is None or exception.date >= date_from)
            and (date_to is None or exception.date <= date_to)
        ]
        return sorted(items, key=lambda e: (e.date, e.start_time))

    async def create(self, data: DateExceptionCreate) -> DateExceptionResponse:
        exception = DateExceptionResponse(**data.model_dump(), **_audit_fields())
        self.exceptions[exception.id] = exception
        return exception

    async def update(
        self, exception_id: UUID, values: dict[str, Any]
    ) -> DateExceptionResponse | None:
        exception = self.exceptions.get(exception_id)
        if exception is None:
            return None
        exception = exception.model_copy(update=_normalized(values))
        self.exceptions[exception_id] = exception
        return exception

    async def delete(self, exception_id: UUID) -> bool:
        return self.exceptions.pop(exception_id, None) is not None


class InMemoryUnavailabilityBlockStore(UnavailabilityBlockStore):
    """Unavailability blocks held in a dict."""

    def __init__(self) -> None:
        self.blocks: dict[UUID, UnavailabilityBlockResponse] = {}

    async def overlaps(
        self,
        professional_id: UUID,
        start: datetime,
        end: datetime,
        exclude_id: UUID | None = None,
    ) -> bool:
        return any(
            intervals_overlap(block.start_datetime, block.end_datetime, start, end)
            for block in self.blocks.values()
            if block.professional_id == professional_id and block.id != exclude_id
        )

    async def get(self, block_id: UUID) -> UnavailabilityBlockResponse | None:
        return self.blocks.get(block_id)

    async def list_blocks(
        self,
        professional_id: UUID | None = None,
        start_from: datetime | None = None,
        end_to: datetime | None = None,
    ) -> list[UnavailabilityBlockResponse]:
        items = [
            block
            for block in self.blocks.values()
            if (professional_id is None or block.professional_id == professional_id)
            and (start_from is None or block.start_datetime >= ensure_utc(start_from))
            and (end_to is None or block.end_datetime <= ensure_utc(end_to))
        ]
        return sorted(items, key=lambda b: b.start_datetime)

    async def create(self, data: UnavailabilityBlockCreate) -> UnavailabilityBlockResponse:
        values = _normalized(data.model_dump())
        values.update(_audit_fields())
        block = UnavailabilityBlockResponse(**values)
        self.blocks[block.id] = block
        return block

    async def update(
        self, block_id: UUID, values: dict[str, Any]
    ) -> UnavailabilityBlockResponse | None:
        block = self.blocks.get(block_id)
        if block is None:
            return None
        block = block.model_copy(update=_normalized(values))
        self.blocks[block_id] = block
        return block

    async def delete(self, block_id: UUID) -> bool:
        return self.blocks.pop(block_id, None) is not None


class InMemoryAppointmentStore(AppointmentStore):
    """Appointments held in a dict, serialized per professional with asyncio locks."""

    def __init__(self) -> None:
        self.appointments: dict[UUID, AppointmentResponse] = {}
        self._locks: defaultdict[UUID, asyncio.Lock] = defaultdict(asyncio.Lock)

    def _overlapping(
        self,
        professional_id: UUID,
        start: datetime,
        end: datetime,
        exclude_appointment_id: UUID | None,
    ) -> list[AppointmentResponse]:
        return [
            appointment
            for appointment in self.appointments.values()
            if appointment.professional_id == professional_id
            and appointment.id != exclude_appointment_id
            and appointment.holds_slot
            and intervals_overlap(
                appointment.start_datetime, appointment.end_datetime, start, end
            )
        ]

    async def has_conflict(
        self,
        professional_id: UUID,
        start: datetime,
        end: datetime,
        exclude_appointment_id: UUID | None = None,
    ) -> bool:
        return bool(self._overlapping(professional_id, start, end, exclude_appointment_id))

    async def has_patient_conflict(
        self,
        professional_id: UUID,
        patient_id: UUID,
        start: datetime,
        end: datetime,
        exclude_appointment_id: UUID | None = None,
    ) -> bool:
        return any(
            appointment.patient_id == patient_id
            for appointment in self._overlapping(
                professional_id, start, end, exclude_appointment_id
            )
        )

    @asynccontextmanager
    async def booking_guard(self, professional_id: UUID) -> AsyncIterator[None]:
        async with self._locks[professional_id]:
            yield

    async def get(self, appointment_id: UUID) -> AppointmentResponse | None:
        return self.appointments.get(appointment_id)

    async def list_appointments(
        self, filters: AppointmentFilters
    ) -> tuple[list[AppointmentResponse], int]:
        items = [
            appointment
            for appointment in self.appointments.values()
            if (
                filters.professional_id is None
                or appointment.professional_id == filters.professional_id
            )
            and (filters.patient_id is None or appointment.patient_id == filters.patient_id)
            and (filters.status is None or appointment.status == filters.status)
            and (
                filters.from_date is None
                or appointment.start_datetime >= ensure_utc(filters.from_date)
            )
            and (
                filters.to_date is None
                or appointment.start_datetime <= ensure_utc(filters.to_date)
            )
        ]
        items.sort(key=lambda a: a.start_datetime)
        offset = (filters.page - 1) * filters.page_size
        return items[offset : offset + filters.page_size], len(items)

    async def insert(self, data: AppointmentCreate) -> AppointmentResponse:
        appointment = AppointmentResponse(
            professional_id=data.professional_id,
            patient_id=data.patient_id,
            start_datetime=ensure_utc(data.start_datetime),
            end_datetime=ensure_utc(data.end_datetime),
            status=AppointmentStatus.PENDING,
            is_extra_slot=data.is_extra_slot,
            reason=data.reason,
            **_audit_fields(),
        )
        self.appointments[appointment.id] = appointment
        return appointment

    async def update(
        self, appointment_id: UUID, values: dict[str, Any]
    ) -> AppointmentResponse | None:
        appointment = self.appointments.get(appointment_id)
        if appointment is None:
            return None
        appointment = appointment.model_copy(update=_normalized(values))
        self.appointments[appointment_id] = appointment
        return appointment

    async def delete(self, appointment_id: UUID) -> bool:
        return self.appointments.pop(appointment_id, None) is not None


def build_memory_stores() -> SchedulingStores:
    """Bundle a fresh set of in-memory stores."""
    return SchedulingStores(
        rules=InMemoryScheduleRuleStore(),
        exceptions=InMemoryDateExceptionStore(),
        blocks=InMemoryUnavailabilityBlockStore(),
        appointments=InMemoryAppointmentStore(),
    )
