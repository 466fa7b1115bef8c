"""Availability check schemas."""

from datetime import datetime
from enum import Enum
from uuid import UUID

from pydantic import BaseModel


class RejectionReason(str, Enum):
    """Why a booking interval was rejected."""

    NOT_WORKING_HOURS = "NOT_WORKING_HOURS"
    BLOCKED_PERIOD = "BLOCKED_PERIOD"
    SLOT_TAKEN = "SLOT_TAKEN"


class BookingDecision(BaseModel):
    """Outcome of an availability resolution."""

    ok: bool
    reason: RejectionReason | None = None

    @classmethod
    def approve(cls) -> "BookingDecision":
        """Build an approving decision."""
        return cls(ok=True)

    @classmethod
    def reject(cls, reason: RejectionReason) -> "BookingDecision":
        """Build a rejecting decision."""
        return cls(ok=False, reason=reason)


class AvailabilityCheckResponse(BaseModel):
    """Schema for availability check response."""

    professional_id: UUID
    start_datetime: datetime
    end_datetime: datetime
    bookable: bool
    slot_free: bool
    reason: RejectionReason | None = None
