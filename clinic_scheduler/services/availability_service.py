"""Availability resolution for booking requests."""

from datetime import datetime
from uuid import UUID

import structlog

from clinic_scheduler.core.exceptions import (
    AppException,
    BlockedPeriodException,
    NotWorkingHoursException,
    SlotTakenException,
)
from clinic_scheduler.scheduling.overlap import validate_interval
from clinic_scheduler.schemas.availability import (
    AvailabilityCheckResponse,
    BookingDecision,
    RejectionReason,
)
from clinic_scheduler.stores.base import SchedulingStores

logger = structlog.get_logger(__name__)

_REJECTION_ERRORS: dict[RejectionReason, type[AppException]] = {
    RejectionReason.NOT_WORKING_HOURS: NotWorkingHoursException,
    RejectionReason.BLOCKED_PERIOD: BlockedPeriodException,
    RejectionReason.SLOT_TAKEN: SlotTakenException,
}


class AvailabilityResolver:
    """Decides whether an interval can be booked for a professional."""

    def __init__(self, stores: SchedulingStores):
        """Initialize resolver with the scheduling stores."""
        self.stores = stores

    async def can_book(
        self,
        professional_id: UUID,
        start: datetime,
        end: datetime,
        exclude_appointment_id: UUID | None = None,
    ) -> BookingDecision:
        """
        Resolve whether ``[start, end)`` can be booked.

        Checks run in a fixed order and stop at the first failure: working
        hours coverage of the start instant, unavailability blocks, then
        conflicting appointments.

        Args:
            professional_id: Professional to book with
            start: Interval start
            end: Interval end (exclusive)
            exclude_appointment_id: Appointment to ignore in the conflict check

        Returns:
            Approving decision, or a rejection carrying its reason

        Raises:
            ValidationException: If the interval is malformed
        """
        start, end = validate_interval(start, end)

        covered = await self.stores.rules.covers_instant(professional_id, start)
        if not covered:
            covered = await self.stores.exceptions.covers_instant(professional_id, start)
        if not covered:
            return self._reject(professional_id, start, end, RejectionReason.NOT_WORKING_HOURS)

        if await self.stores.blocks.overlaps(professional_id, start, end):
            return self._reject(professional_id, start, end, RejectionReason.BLOCKED_PERIOD)

        if await self.stores.appointments.has_conflict(
            professional_id, start, end, exclude_appointment_id
        ):
            return self._reject(professional_id, start, end, RejectionReason.SLOT_TAKEN)

        return BookingDecision.approve()

    async def is_slot_free(
        self,
        professional_id: UUID,
        start: datetime,
        end: datetime,
        exclude_appointment_id: UUID | None = None,
    ) -> bool:
        """
        Check that no appointment holding its slot overlaps ``[start, end)``.

        Working hours and blocks are not consulted; use ``can_book`` for the
        full decision.
        """
        start, end = validate_interval(start, end)
        return not await self.stores.appointments.has_conflict(
            professional_id, start, end, exclude_appointment_id
        )

    async def ensure_bookable(
        self,
        professional_id: UUID,
        start: datetime,
        end: datetime,
        exclude_appointment_id: UUID | None = None,
    ) -> None:
        """
        Raise the typed error of a rejected decision.

        Raises:
            NotWorkingHoursException: If the start is outside working hours
            BlockedPeriodException: If the interval overlaps a block
            SlotTakenException: If the interval overlaps an appointment
        """
        decision = await self.can_book(professional_id, start, end, exclude_appointment_id)
        self.raise_for(decision)

    @staticmethod
    def raise_for(decision: BookingDecision) -> None:
        """Raise the exception matching a rejected decision; approvals pass through."""
        if not decision.ok:
            raise _REJECTION_ERRORS[decision.reason]()

    async def check(
        self,
        professional_id: UUID,
        start: datetime,
        end: datetime,
    ) -> AvailabilityCheckResponse:
        """
        Build the availability report for one interval.

        Args:
            professional_id: Professional to check
            start: Interval start
            end: Interval end (exclusive)

        Returns:
            Booking decision together with slot freedom
        """
        decision = await self.can_book(professional_id, start, end)
        slot_free = (
            decision.reason != RejectionReason.SLOT_TAKEN
            and await self.is_slot_free(professional_id, start, end)
        )
        return AvailabilityCheckResponse(
            professional_id=professional_id,
            start_datetime=start,
            end_datetime=end,
            bookable=decision.ok,
            slot_free=slot_free,
            reason=decision.reason,
        )

    @staticmethod
    def _reject(
        professional_id: UUID,
        start: datetime,
        end: datetime,
        reason: RejectionReason,
    ) -> BookingDecision:
        logger.info(
            "booking_rejected",
            professional_id=str(professional_id),
            start=start.isoformat(),
            end=end.isoformat(),
            reason=reason.value,
        )
        return BookingDecision.reject(reason)
