"""Weekly schedule rule schemas for request/response validation."""

from datetime import UTC, date, datetime, time
from uuid import UUID

from pydantic import BaseModel, Field, model_validator

from clinic_scheduler.config import settings
from clinic_scheduler.scheduling.calendar import DayOfWeek


def _today_utc() -> date:
    return datetime.now(UTC).date()


def _default_slot_duration() -> int:
    return settings.default_slot_duration_minutes


class ScheduleRuleBase(BaseModel):
    """Base schedule rule schema with common fields."""

    day_of_week: DayOfWeek
    start_time: time
    end_time: time
    slot_duration_minutes: int = Field(default_factory=_default_slot_duration, gt=0, le=1440)
    active: bool = True
    valid_from: date = Field(default_factory=_today_utc)
    valid_until: date | None = None

    @model_validator(mode="after")
    def validate_windows(self) -> "ScheduleRuleBase":
        """Validate the working window and the validity window."""
        if self.end_time <= self.start_time:
            raise ValueError("End time must be after start time")
        if self.valid_until is not None and self.valid_until < self.valid_from:
            raise ValueError("valid_until cannot be before valid_from")
        return self


class ScheduleRuleCreate(ScheduleRuleBase):
    """Schema for creating a new schedule rule."""

    professional_id: UUID


class ScheduleRuleUpdate(BaseModel):
    """Schema for updating an existing schedule rule."""

    day_of_week: DayOfWeek | None = None
    start_time: time | None = None
    end_time: time | None = None
    slot_duration_minutes: int | None = Field(None, gt=0, le=1440)
    active: bool | None = None
    valid_from: date | None = None
    valid_until: date | None = None


class ScheduleRuleResponse(ScheduleRuleBase):
    """Schema for schedule rule response."""

    id: UUID
    professional_id: UUID
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class WeeklySlot(BaseModel):
    """One working window of a weekly schedule."""

    day_of_week: DayOfWeek
    start_time: time
    end_time: time
    slot_duration_minutes: int = Field(default_factory=_default_slot_duration, gt=0, le=1440)

    @model_validator(mode="after")
    def validate_window(self) -> "WeeklySlot":
        """Validate end time is after start time."""
        if self.end_time <= self.start_time:
            raise ValueError("End time must be after start time")
        return self


class WeeklyScheduleReplace(BaseModel):
    """
    Schema for superseding a professional's weekly schedule.

    The schedule in force closes the day before ``valid_from`` and the given
    slots take over from that date, so past dates keep their history. A
    ``valid_until`` bounds the new schedule, for example for seasonal hours.
    """

    professional_id: UUID
    valid_from: date = Field(default_factory=_today_utc)
    valid_until: date | None = None
    slots: list[WeeklySlot] = Field(default_factory=list)

    @model_validator(mode="after")
    def validate_validity(self) -> "WeeklyScheduleReplace":
        """Validate the optional end date of the new schedule."""
        if self.valid_until is not None and self.valid_until < self.valid_from:
            raise ValueError("valid_until cannot be before valid_from")
        return self


class ValidityClose(BaseModel):
    """Schema for closing the validity of a professional's rules."""

    professional_id: UUID
    until: date


class ValidityCloseResponse(BaseModel):
    """Schema for validity close response."""

    professional_id: UUID
    until: date
    rules_closed: int
