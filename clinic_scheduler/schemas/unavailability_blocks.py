"""Unavailability block schemas for request/response validation."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field, field_validator

from clinic_scheduler.scheduling.calendar import ensure_utc


class UnavailabilityBlockBase(BaseModel):
    """A closed time range in which the professional cannot be booked."""

    start_datetime: datetime
    end_datetime: datetime
    reason: str | None = Field(None, max_length=500)

    @field_validator("end_datetime")
    @classmethod
    def validate_end(cls, v: datetime, info) -> datetime:
        """Validate end datetime is after start datetime."""
        start = info.data.get("start_datetime")
        if start is not None and ensure_utc(v) <= ensure_utc(start):
            raise ValueError("End datetime must be after start datetime")
        return v


class UnavailabilityBlockCreate(UnavailabilityBlockBase):
    """Schema for creating a new unavailability block."""

    professional_id: UUID


class UnavailabilityBlockUpdate(BaseModel):
    """Schema for updating an existing unavailability block."""

    start_datetime: datetime | None = None
    end_datetime: datetime | None = None
    reason: str | None = Field(None, max_length=500)


class UnavailabilityBlockResponse(UnavailabilityBlockBase):
    """Schema for unavailability block response."""

    id: UUID
    professional_id: UUID
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}
