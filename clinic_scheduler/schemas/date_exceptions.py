"""Date exception schemas for request/response validation."""

from datetime import date, datetime, time
from uuid import UUID

from pydantic import BaseModel, Field, model_validator

from clinic_scheduler.config import settings

# DateExceptionUpdate.date shadows the type inside its class body
OptionalDate = date | None


def _default_slot_duration() -> int:
    return settings.default_slot_duration_minutes


class DateExceptionBase(BaseModel):
    """Working hours for one specific calendar date."""

    date: date
    start_time: time
    end_time: time
    slot_duration_minutes: int = Field(default_factory=_default_slot_duration, gt=0, le=1440)
    notes: str | None = Field(None, max_length=1000)

    @model_validator(mode="after")
    def validate_window(self) -> "DateExceptionBase":
        """Validate end time is after start time."""
        if self.end_time <= self.start_time:
            raise ValueError("End time must be after start time")
        return self


class DateExceptionCreate(DateExceptionBase):
    """Schema for creating a new date exception."""

    professional_id: UUID


class DateExceptionUpdate(BaseModel):
    """Schema for updating an existing date exception."""

    date: OptionalDate = None
    start_time: time | None = None
    end_time: time | None = None
    slot_duration_minutes: int | None = Field(None, gt=0, le=1440)
    notes: str | None = Field(None, max_length=1000)


class DateExceptionResponse(DateExceptionBase):
    """Schema for date exception response."""

    id: UUID
    professional_id: UUID
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}
