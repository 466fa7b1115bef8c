"""Appointment lifecycle service."""

from datetime import datetime
from uuid import UUID

import structlog

from clinic_scheduler.config import settings
from clinic_scheduler.core.exceptions import (
    InvalidStateTransitionException,
    NotFoundException,
    SlotTakenException,
    ValidationException,
)
from clinic_scheduler.scheduling.overlap import validate_interval
from clinic_scheduler.schemas.appointments import (
    TERMINAL_STATUSES,
    AppointmentCreate,
    AppointmentFilters,
    AppointmentListResponse,
    AppointmentResponse,
    AppointmentStatus,
    AppointmentUpdate,
)
from clinic_scheduler.schemas.availability import RejectionReason
from clinic_scheduler.services.availability_service import AvailabilityResolver
from clinic_scheduler.stores.base import SchedulingStores

logger = structlog.get_logger(__name__)


class AppointmentLifecycle:
    """Service for booking appointments and moving them through their states."""

    def __init__(
        self,
        stores: SchedulingStores,
        prevent_same_patient_double_booking: bool | None = None,
    ):
        """Initialize service with the scheduling stores and booking policy."""
        self.stores = stores
        self.resolver = AvailabilityResolver(stores)
        if prevent_same_patient_double_booking is None:
            prevent_same_patient_double_booking = settings.prevent_same_patient_double_booking
        self.prevent_same_patient_double_booking = prevent_same_patient_double_booking

    async def create(self, data: AppointmentCreate) -> AppointmentResponse:
        """
        Book a new pending appointment.

        The availability check and the insert run under the professional's
        booking guard, so two requests for overlapping intervals cannot both
        succeed.

        Args:
            data: Appointment booking data

        Returns:
            Created appointment

        Raises:
            ValidationException: If the interval is malformed
            NotWorkingHoursException: If the start is outside working hours
            BlockedPeriodException: If the interval overlaps a block
            SlotTakenException: If the interval is already booked
        """
        start, end = validate_interval(data.start_datetime, data.end_datetime)

        async with self.stores.appointments.booking_guard(data.professional_id):
            await self._ensure_bookable(data.professional_id, data.patient_id, start, end)
            appointment = await self.stores.appointments.insert(
                data.model_copy(update={"start_datetime": start, "end_datetime": end})
            )

        logger.info(
            "appointment_booked",
            appointment_id=str(appointment.id),
            professional_id=str(appointment.professional_id),
            patient_id=str(appointment.patient_id),
            start=appointment.start_datetime.isoformat(),
            end=appointment.end_datetime.isoformat(),
        )
        return appointment

    async def get(self, appointment_id: UUID) -> AppointmentResponse:
        """
        Get appointment by ID.

        Raises:
            NotFoundException: If appointment not found
        """
        appointment = await self.stores.appointments.get(appointment_id)
        if appointment is None:
            raise NotFoundException("Appointment not found")
        return appointment

    async def list_appointments(self, filters: AppointmentFilters) -> AppointmentListResponse:
        """
        List appointments with filtering and pagination.

        Args:
            filters: Filter and pagination parameters

        Returns:
            Paginated list of appointments
        """
        items, total = await self.stores.appointments.list_appointments(filters)
        return AppointmentListResponse(
            total=total,
            page=filters.page,
            page_size=filters.page_size,
            items=items,
        )

    async def confirm(self, appointment_id: UUID) -> AppointmentResponse:
        """
        Confirm a pending appointment.

        Raises:
            NotFoundException: If appointment not found
            InvalidStateTransitionException: If the appointment is not pending
        """
        appointment = await self.get(appointment_id)
        if appointment.status != AppointmentStatus.PENDING:
            raise InvalidStateTransitionException(
                f"Cannot confirm an appointment that is {appointment.status.value}"
            )
        return await self._change_status(appointment, AppointmentStatus.CONFIRMED)

    async def complete(self, appointment_id: UUID) -> AppointmentResponse:
        """
        Mark a pending or confirmed appointment as completed.

        Raises:
            NotFoundException: If appointment not found
            InvalidStateTransitionException: If the appointment is terminal
        """
        appointment = await self.get(appointment_id)
        self._ensure_active(appointment, "complete")
        return await self._change_status(appointment, AppointmentStatus.COMPLETED)

    async def cancel(
        self,
        appointment_id: UUID,
        reason: str | None = None,
        cancelled_by: UUID | None = None,
    ) -> AppointmentResponse:
        """
        Cancel an appointment, releasing its slot.

        Args:
            appointment_id: Appointment ID
            reason: Cancellation reason
            cancelled_by: ID of the user cancelling

        Returns:
            Cancelled appointment

        Raises:
            NotFoundException: If appointment not found
            InvalidStateTransitionException: If the appointment is terminal
        """
        appointment = await self.get(appointment_id)
        self._ensure_active(appointment, "cancel")
        return await self._change_status(
            appointment,
            AppointmentStatus.CANCELLED,
            cancelled_by=cancelled_by,
            cancellation_reason=reason,
        )

    async def mark_absent(self, appointment_id: UUID) -> AppointmentResponse:
        """
        Record that the patient did not attend.

        The appointment keeps holding its slot.

        Raises:
            NotFoundException: If appointment not found
            InvalidStateTransitionException: If the appointment is terminal
        """
        appointment = await self.get(appointment_id)
        self._ensure_active(appointment, "mark as absent")
        return await self._change_status(appointment, AppointmentStatus.ABSENT)

    async def reschedule(
        self,
        appointment_id: UUID,
        start: datetime,
        end: datetime,
    ) -> AppointmentResponse:
        """
        Move an appointment to a new interval.

        On rejection the appointment is left unchanged.

        Args:
            appointment_id: Appointment ID
            start: New interval start
            end: New interval end (exclusive)

        Returns:
            Rescheduled appointment

        Raises:
            ValidationException: If the interval is malformed
            NotFoundException: If appointment not found
            InvalidStateTransitionException: If the appointment is terminal
            NotWorkingHoursException: If the start is outside working hours
            BlockedPeriodException: If the interval overlaps a block
            SlotTakenException: If the interval is already booked
        """
        start, end = validate_interval(start, end)
        appointment = await self.get(appointment_id)

        async with self.stores.appointments.booking_guard(appointment.professional_id):
            appointment = await self.get(appointment_id)
            self._ensure_active(appointment, "reschedule")
            if appointment.start_datetime == start and appointment.end_datetime == end:
                return appointment

            await self._ensure_bookable(
                appointment.professional_id,
                appointment.patient_id,
                start,
                end,
                exclude_appointment_id=appointment.id,
            )
            updated = await self.stores.appointments.update(
                appointment.id, {"start_datetime": start, "end_datetime": end}
            )

        logger.info(
            "appointment_rescheduled",
            appointment_id=str(appointment.id),
            previous_start=appointment.start_datetime.isoformat(),
            start=start.isoformat(),
            end=end.isoformat(),
        )
        return updated

    async def update_details(
        self, appointment_id: UUID, data: AppointmentUpdate
    ) -> AppointmentResponse:
        """
        Edit the non-temporal fields of an appointment.

        The interval and the status only change through reschedule and the
        state transitions.

        Args:
            appointment_id: Appointment ID
            data: Reason and extra-slot flag to change

        Returns:
            Updated appointment

        Raises:
            NotFoundException: If appointment not found
            ValidationException: If is_extra_slot is set to null
        """
        appointment = await self.get(appointment_id)
        values = data.model_dump(exclude_unset=True)
        if "is_extra_slot" in values and values["is_extra_slot"] is None:
            raise ValidationException("is_extra_slot cannot be null")
        if not values:
            return appointment

        updated = await self.stores.appointments.update(appointment_id, values)
        if updated is None:
            raise NotFoundException("Appointment not found")
        logger.info(
            "appointment_updated",
            appointment_id=str(appointment_id),
            fields=sorted(values),
        )
        return updated

    async def delete(self, appointment_id: UUID) -> None:
        """
        Physically delete an appointment.

        Raises:
            NotFoundException: If appointment not found
        """
        if not await self.stores.appointments.delete(appointment_id):
            raise NotFoundException("Appointment not found")
        logger.warning("appointment_deleted", appointment_id=str(appointment_id))

    async def _ensure_bookable(
        self,
        professional_id: UUID,
        patient_id: UUID,
        start: datetime,
        end: datetime,
        exclude_appointment_id: UUID | None = None,
    ) -> None:
        """
        Raise the typed rejection for an interval that cannot be booked.

        ``prevent_same_patient_double_booking`` never changes the outcome: a
        same-patient overlap is always an appointment conflict as well, so
        the flag only picks a more specific SLOT_TAKEN message.
        """
        decision = await self.resolver.can_book(
            professional_id, start, end, exclude_appointment_id
        )
        if decision.ok:
            return

        if (
            decision.reason == RejectionReason.SLOT_TAKEN
            and self.prevent_same_patient_double_booking
            and await self.stores.appointments.has_patient_conflict(
                professional_id, patient_id, start, end, exclude_appointment_id
            )
        ):
            raise SlotTakenException(
                "The patient already has an appointment with this professional at that time"
            )
        self.resolver.raise_for(decision)

    @staticmethod
    def _ensure_active(appointment: AppointmentResponse, action: str) -> None:
        if appointment.status in TERMINAL_STATUSES:
            raise InvalidStateTransitionException(
                f"Cannot {action} an appointment that is {appointment.status.value}"
            )

    async def _change_status(
        self,
        appointment: AppointmentResponse,
        new_status: AppointmentStatus,
        **values,
    ) -> AppointmentResponse:
        updated = await self.stores.appointments.update(
            appointment.id, {"status": new_status, **values}
        )
        if updated is None:
            raise NotFoundException("Appointment not found")

        logger.info(
            "appointment_status_changed",
            appointment_id=str(appointment.id),
            from_status=appointment.status.value,
            to_status=new_status.value,
        )
        return updated
