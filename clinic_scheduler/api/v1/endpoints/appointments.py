"""Appointment endpoints."""

from datetime import datetime
from uuid import UUID

from fastapi import APIRouter, Query, status

from clinic_scheduler.dependencies import (
    AdminCaller,
    BookingRateLimit,
    Caller,
    CurrentCaller,
    Lifecycle,
    ensure_professional_scope,
    scoped_professional_filter,
)
from clinic_scheduler.schemas.appointments import (
    AppointmentCancel,
    AppointmentCreate,
    AppointmentFilters,
    AppointmentListResponse,
    AppointmentReschedule,
    AppointmentResponse,
    AppointmentStatus,
    AppointmentUpdate,
)
from clinic_scheduler.services.appointment_service import AppointmentLifecycle

router = APIRouter()


async def _get_scoped_appointment(
    appointment_id: UUID, caller: Caller, lifecycle: AppointmentLifecycle
) -> AppointmentResponse:
    appointment = await lifecycle.get(appointment_id)
    ensure_professional_scope(caller, appointment.professional_id)
    return appointment


@router.post(
    "/",
    response_model=AppointmentResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[BookingRateLimit],
    summary="Book appointment",
)
async def create_appointment(
    data: AppointmentCreate,
    caller: CurrentCaller,
    lifecycle: Lifecycle,
) -> AppointmentResponse:
    """
    Book a new appointment.

    The interval must start inside the professional's working hours, must
    not overlap an unavailability block and must not overlap another
    appointment that still holds its slot.

    Args:
        data: Appointment booking data
        caller: Authenticated caller
        lifecycle: Appointment lifecycle service

    Returns:
        Created appointment in pending state
    """
    ensure_professional_scope(caller, data.professional_id)
    return await lifecycle.create(data)


@router.get(
    "/",
    response_model=AppointmentListResponse,
    status_code=status.HTTP_200_OK,
    summary="List appointments",
)
async def list_appointments(
    caller: CurrentCaller,
    lifecycle: Lifecycle,
    professional_id: UUID | None = Query(None),
    patient_id: UUID | None = Query(None),
    status_filter: AppointmentStatus | None = Query(None, alias="status"),
    from_date: datetime | None = Query(None),
    to_date: datetime | None = Query(None),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
) -> AppointmentListResponse:
    """
    List appointments with filtering.

    Args:
        caller: Authenticated caller
        lifecycle: Appointment lifecycle service
        professional_id: Filter by professional
        patient_id: Filter by patient
        status_filter: Filter by status
        from_date: Only appointments starting at or after this instant
        to_date: Only appointments starting at or before this instant
        page: Page number
        page_size: Items per page

    Returns:
        Paginated list of appointments
    """
    filters = AppointmentFilters(
        professional_id=scoped_professional_filter(caller, professional_id),
        patient_id=patient_id,
        status=status_filter,
        from_date=from_date,
        to_date=to_date,
        page=page,
        page_size=page_size,
    )
    return await lifecycle.list_appointments(filters)


@router.get(
    "/{appointment_id}",
    response_model=AppointmentResponse,
    status_code=status.HTTP_200_OK,
    summary="Get appointment by ID",
)
async def get_appointment(
    appointment_id: UUID,
    caller: CurrentCaller,
    lifecycle: Lifecycle,
) -> AppointmentResponse:
    """Get a specific appointment by ID."""
    return await _get_scoped_appointment(appointment_id, caller, lifecycle)


@router.patch(
    "/{appointment_id}",
    response_model=AppointmentResponse,
    status_code=status.HTTP_200_OK,
    summary="Update appointment details",
)
async def update_appointment(
    appointment_id: UUID,
    data: AppointmentUpdate,
    caller: CurrentCaller,
    lifecycle: Lifecycle,
) -> AppointmentResponse:
    """
    Edit the reason or the extra-slot flag of an appointment.

    Args:
        appointment_id: Appointment ID
        data: Fields to change
        caller: Authenticated caller
        lifecycle: Appointment lifecycle service

    Returns:
        Updated appointment
    """
    await _get_scoped_appointment(appointment_id, caller, lifecycle)
    return await lifecycle.update_details(appointment_id, data)


@router.patch(
    "/{appointment_id}/confirm",
    response_model=AppointmentResponse,
    status_code=status.HTTP_200_OK,
    summary="Confirm appointment",
)
async def confirm_appointment(
    appointment_id: UUID,
    caller: CurrentCaller,
    lifecycle: Lifecycle,
) -> AppointmentResponse:
    """Confirm a pending appointment."""
    await _get_scoped_appointment(appointment_id, caller, lifecycle)
    return await lifecycle.confirm(appointment_id)


@router.patch(
    "/{appointment_id}/complete",
    response_model=AppointmentResponse,
    status_code=status.HTTP_200_OK,
    summary="Complete appointment",
)
async def complete_appointment(
    appointment_id: UUID,
    caller: CurrentCaller,
    lifecycle: Lifecycle,
) -> AppointmentResponse:
    """Mark an appointment as attended and completed."""
    await _get_scoped_appointment(appointment_id, caller, lifecycle)
    return await lifecycle.complete(appointment_id)


@router.patch(
    "/{appointment_id}/cancel",
    response_model=AppointmentResponse,
    status_code=status.HTTP_200_OK,
    summary="Cancel appointment",
)
async def cancel_appointment(
    appointment_id: UUID,
    data: AppointmentCancel,
    caller: CurrentCaller,
    lifecycle: Lifecycle,
) -> AppointmentResponse:
    """
    Cancel an appointment and release its slot.

    Args:
        appointment_id: Appointment ID
        data: Cancellation details
        caller: Authenticated caller
        lifecycle: Appointment lifecycle service

    Returns:
        Cancelled appointment
    """
    await _get_scoped_appointment(appointment_id, caller, lifecycle)
    return await lifecycle.cancel(appointment_id, reason=data.reason, cancelled_by=caller.user_id)


@router.patch(
    "/{appointment_id}/absent",
    response_model=AppointmentResponse,
    status_code=status.HTTP_200_OK,
    summary="Mark appointment as absent",
)
async def mark_appointment_absent(
    appointment_id: UUID,
    caller: CurrentCaller,
    lifecycle: Lifecycle,
) -> AppointmentResponse:
    """Record that the patient did not attend."""
    await _get_scoped_appointment(appointment_id, caller, lifecycle)
    return await lifecycle.mark_absent(appointment_id)


@router.patch(
    "/{appointment_id}/reschedule",
    response_model=AppointmentResponse,
    status_code=status.HTTP_200_OK,
    dependencies=[BookingRateLimit],
    summary="Reschedule appointment",
)
async def reschedule_appointment(
    appointment_id: UUID,
    data: AppointmentReschedule,
    caller: CurrentCaller,
    lifecycle: Lifecycle,
) -> AppointmentResponse:
    """
    Move an appointment to a new interval.

    Args:
        appointment_id: Appointment ID
        data: New interval
        caller: Authenticated caller
        lifecycle: Appointment lifecycle service

    Returns:
        Rescheduled appointment
    """
    await _get_scoped_appointment(appointment_id, caller, lifecycle)
    return await lifecycle.reschedule(appointment_id, data.start_datetime, data.end_datetime)


@router.delete(
    "/{appointment_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete appointment",
)
async def delete_appointment(
    appointment_id: UUID,
    caller: AdminCaller,
    lifecycle: Lifecycle,
) -> None:
    """
    Physically delete an appointment. Admin only.

    Args:
        appointment_id: Appointment ID
        caller: Authenticated admin
        lifecycle: Appointment lifecycle service
    """
    await lifecycle.delete(appointment_id)
