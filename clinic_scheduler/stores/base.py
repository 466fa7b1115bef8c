"""
Store interfaces for the scheduling engine.

Each store is a narrow async interface over one kind of persisted record.
The availability resolver and the appointment lifecycle only talk to these
interfaces, so the conflict algorithms run the same against PostgreSQL
(``stores.sql``) and against the in-memory implementation (``stores.memory``).
"""

from abc import ABC, abstractmethod
from contextlib import AbstractAsyncContextManager
from dataclasses import dataclass
from datetime import date, datetime, time
from typing import Any
from uuid import UUID

from clinic_scheduler.scheduling.calendar import DayOfWeek
from clinic_scheduler.schemas.appointments import (
    AppointmentCreate,
    AppointmentFilters,
    AppointmentResponse,
)
from clinic_scheduler.schemas.date_exceptions import DateExceptionCreate, DateExceptionResponse
from clinic_scheduler.schemas.schedule_rules import ScheduleRuleCreate, ScheduleRuleResponse
from clinic_scheduler.schemas.unavailability_blocks import (
    UnavailabilityBlockCreate,
    UnavailabilityBlockResponse,
)


class ScheduleRuleStore(ABC):
    """Recurring weekly availability rules."""

    @abstractmethod
    async def covers_instant(self, professional_id: UUID, instant: datetime) -> bool:
        """
        Check whether an in-force weekly rule covers the instant.

        A rule covers the instant when it is active, its weekday equals the
        UTC weekday of the instant, its validity window contains the UTC
        date and ``start_time <= time_of_day < end_time``. Rules without a
        fixed weekday never match.
        """

    @abstractmethod
    async def get(self, rule_id: UUID) -> ScheduleRuleResponse | None:
        """Get a rule by ID."""

    @abstractmethod
    async def list_rules(
        self,
        professional_id: UUID | None = None,
        day_of_week: DayOfWeek | None = None,
        active: bool | None = None,
        current_on: date | None = None,
    ) -> list[ScheduleRuleResponse]:
        """
        List rules ordered by professional, weekday and start time.

        ``current_on`` drops rules whose validity window ended before that
        date; pass None to include the full history.
        """

    @abstractmethod
    async def create(self, data: ScheduleRuleCreate) -> ScheduleRuleResponse:
        """Persist a new rule."""

    @abstractmethod
    async def update(self, rule_id: UUID, values: dict[str, Any]) -> ScheduleRuleResponse | None:
        """Apply column values to a rule; None when it does not exist."""

    @abstractmethod
    async def delete(self, rule_id: UUID) -> bool:
        """Delete a rule; False when it does not exist."""

    @abstractmethod
    async def has_duplicate(
        self,
        professional_id: UUID,
        day_of_week: DayOfWeek,
        start_time: time,
        valid_from: date,
        valid_until: date | None,
        exclude_id: UUID | None = None,
    ) -> bool:
        """Check for another active rule sharing weekday, start time and validity dates."""

    @abstractmethod
    async def close_validity(self, professional_id: UUID, until: date) -> int:
        """
        End the validity of the professional's open rules on ``until``.

        Rules that would only start after ``until`` are deactivated instead.
        Returns the number of rules touched.
        """


class DateExceptionStore(ABC):
    """One-off working hours for a specific calendar date."""

    @abstractmethod
    async def covers_instant(self, professional_id: UUID, instant: datetime) -> bool:
        """Check whether an exception on the UTC date covers the UTC time of day."""

    @abstractmethod
    async def get(self, exception_id: UUID) -> DateExceptionResponse | None:
        """Get an exception by ID."""

    @abstractmethod
    async def list_exceptions(
        self,
        professional_id: UUID | None = None,
        date_from: date | None = None,
        date_to: date | None = None,
    ) -> list[DateExceptionResponse]:
        """List exceptions ordered by date and start time."""

    @abstractmethod
    async def create(self, data: DateExceptionCreate) -> DateExceptionResponse:
        """Persist a new exception."""

    @abstractmethod
    async def update(
        self, exception_id: UUID, values: dict[str, Any]
    ) -> DateExceptionResponse | None:
        """Apply column values to an exception; None when it does not exist."""

    @abstractmethod
    async def delete(self, exception_id: UUID) -> bool:
        """Delete an exception; False when it does not exist."""


class UnavailabilityBlockStore(ABC):
    """Vacation and absence blocks."""

    @abstractmethod
    async def overlaps(
        self,
        professional_id: UUID,
        start: datetime,
        end: datetime,
        exclude_id: UUID | None = None,
    ) -> bool:
        """Check whether any block of the professional overlaps ``[start, end)``."""

    @abstractmethod
    async def get(self, block_id: UUID) -> UnavailabilityBlockResponse | None:
        """Get a block by ID."""

    @abstractmethod
    async def list_blocks(
        self,
        professional_id: UUID | None = None,
        start_from: datetime | None = None,
        end_to: datetime | None = None,
    ) -> list[UnavailabilityBlockResponse]:
        """List blocks ordered by start."""

    @abstractmethod
    async def create(self, data: UnavailabilityBlockCreate) -> UnavailabilityBlockResponse:
        """Persist a new block."""

    @abstractmethod
    async def update(
        self, block_id: UUID, values: dict[str, Any]
    ) -> UnavailabilityBlockResponse | None:
        """Apply column values to a block; None when it does not exist."""

    @abstractmethod
    async def delete(self, block_id: UUID) -> bool:
        """Delete a block; False when it does not exist."""


class AppointmentStore(ABC):
    """Booked appointments and overlap queries."""

    @abstractmethod
    async def has_conflict(
        self,
        professional_id: UUID,
        start: datetime,
        end: datetime,
        exclude_appointment_id: UUID | None = None,
    ) -> bool:
        """Check for an overlapping appointment that still holds its slot."""

    @abstractmethod
    async def has_patient_conflict(
        self,
        professional_id: UUID,
        patient_id: UUID,
        start: datetime,
        end: datetime,
        exclude_appointment_id: UUID | None = None,
    ) -> bool:
        """Same as ``has_conflict`` restricted to one patient's appointments."""

    @abstractmethod
    def booking_guard(self, professional_id: UUID) -> AbstractAsyncContextManager[None]:
        """
        Serialize booking attempts for one professional.

        The conflict check and the write that follows it must both run
        inside this context so no other booking for the same professional
        can interleave.
        """

    @abstractmethod
    async def get(self, appointment_id: UUID) -> AppointmentResponse | None:
        """Get an appointment by ID."""

    @abstractmethod
    async def list_appointments(
        self, filters: AppointmentFilters
    ) -> tuple[list[AppointmentResponse], int]:
        """List one page of appointments and the total count."""

    @abstractmethod
    async def insert(self, data: AppointmentCreate) -> AppointmentResponse:
        """Persist a new pending appointment."""

    @abstractmethod
    async def update(
        self, appointment_id: UUID, values: dict[str, Any]
    ) -> AppointmentResponse | None:
        """Apply column values to an appointment; None when it does not exist."""

    @abstractmethod
    async def delete(self, appointment_id: UUID) -> bool:
        """Physically delete an appointment; False when it does not exist."""


@dataclass
class SchedulingStores:
    """The four stores used by one request."""

    rules: ScheduleRuleStore
    exceptions: DateExceptionStore
    blocks: UnavailabilityBlockStore
    appointments: AppointmentStore
