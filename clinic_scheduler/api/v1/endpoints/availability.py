"""Availability endpoints."""

from datetime import datetime
from uuid import UUID

from fastapi import APIRouter, Query, status

from clinic_scheduler.dependencies import Availability, CurrentCaller, ensure_professional_scope
from clinic_scheduler.schemas.availability import AvailabilityCheckResponse

router = APIRouter()


@router.get(
    "/check",
    response_model=AvailabilityCheckResponse,
    status_code=status.HTTP_200_OK,
    summary="Check interval availability",
)
async def check_availability(
    caller: CurrentCaller,
    resolver: Availability,
    professional_id: UUID = Query(...),
    start_datetime: datetime = Query(...),
    end_datetime: datetime = Query(...),
) -> AvailabilityCheckResponse:
    """
    Check whether an interval can be booked with a professional.

    Read only: nothing is reserved, so a later booking may still be
    rejected.

    Args:
        caller: Authenticated caller
        resolver: Availability resolver
        professional_id: Professional to check
        start_datetime: Interval start
        end_datetime: Interval end (exclusive)

    Returns:
        Booking decision, rejection reason and whether the slot is free
    """
    ensure_professional_scope(caller, professional_id)
    return await resolver.check(professional_id, start_datetime, end_datetime)
