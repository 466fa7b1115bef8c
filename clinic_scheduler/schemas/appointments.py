"""Appointment schemas for request/response validation."""

from datetime import datetime
from enum import Enum
from uuid import UUID

from pydantic import BaseModel, Field, field_validator

from clinic_scheduler.scheduling.calendar import ensure_utc


class AppointmentStatus(str, Enum):
    """Appointment status enumeration."""

    PENDING = "pending"
    CONFIRMED = "confirmed"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    ABSENT = "absent"


# No transition leaves these states
TERMINAL_STATUSES = frozenset(
    {AppointmentStatus.COMPLETED, AppointmentStatus.CANCELLED, AppointmentStatus.ABSENT}
)

# Appointments in these states no longer hold their slot. An absent
# appointment still does.
SLOT_RELEASING_STATUSES = frozenset({AppointmentStatus.CANCELLED, AppointmentStatus.COMPLETED})


class AppointmentInterval(BaseModel):
    """A requested [start, end) interval."""

    start_datetime: datetime
    end_datetime: datetime

    @field_validator("end_datetime")
    @classmethod
    def validate_end_time(cls, v: datetime, info) -> datetime:
        """Validate end time is after start time."""
        start = info.data.get("start_datetime")
        if start is not None and ensure_utc(v) <= ensure_utc(start):
            raise ValueError("End time must be after start time")
        return v


class AppointmentCreate(AppointmentInterval):
    """Schema for booking a new appointment."""

    professional_id: UUID
    patient_id: UUID
    is_extra_slot: bool = False
    reason: str | None = Field(None, max_length=500)


class AppointmentReschedule(AppointmentInterval):
    """Schema for moving an appointment to a new interval."""


class AppointmentUpdate(BaseModel):
    """Schema for editing the non-temporal fields of an appointment."""

    reason: str | None = Field(None, max_length=500)
    is_extra_slot: bool | None = None


class AppointmentCancel(BaseModel):
    """Schema for cancelling an appointment."""

    reason: str | None = Field(None, max_length=500)


class AppointmentResponse(BaseModel):
    """Schema for appointment response."""

    id: UUID
    professional_id: UUID
    patient_id: UUID
    start_datetime: datetime
    end_datetime: datetime
    status: AppointmentStatus
    is_extra_slot: bool
    reason: str | None = None
    cancelled_by: UUID | None = None
    cancellation_reason: str | None = None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}

    @property
    def holds_slot(self) -> bool:
        """Whether this appointment still blocks its interval."""
        return self.status not in SLOT_RELEASING_STATUSES


class AppointmentListResponse(BaseModel):
    """Schema for paginated appointment list response."""

    total: int
    page: int
    page_size: int
    items: list[AppointmentResponse]


class AppointmentFilters(BaseModel):
    """Schema for appointment filtering."""

    professional_id: UUID | None = None
    patient_id: UUID | None = None
    status: AppointmentStatus | None = None
    from_date: datetime | None = None
    to_date: datetime | None = None
    page: int = Field(default=1, ge=1)
    page_size: int = Field(default=20, ge=1, le=100)
