"""Date exception endpoints."""

from datetime import date
from uuid import UUID

from fastapi import APIRouter, Query, status

from clinic_scheduler.dependencies import (
    CurrentCaller,
    Schedule,
    ensure_professional_scope,
    scoped_professional_filter,
)
from clinic_scheduler.schemas.date_exceptions import (
    DateExceptionCreate,
    DateExceptionResponse,
    DateExceptionUpdate,
)

router = APIRouter()


@router.post(
    "/",
    response_model=DateExceptionResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create date exception",
)
async def create_exception(
    data: DateExceptionCreate,
    caller: CurrentCaller,
    service: Schedule,
) -> DateExceptionResponse:
    """
    Open one-off working hours for a professional on a specific date.

    Args:
        data: Exception creation data
        caller: Authenticated caller
        service: Schedule service

    Returns:
        Created exception
    """
    ensure_professional_scope(caller, data.professional_id)
    return await service.create_exception(data)


@router.get(
    "/",
    response_model=list[DateExceptionResponse],
    status_code=status.HTTP_200_OK,
    summary="List date exceptions",
)
async def list_exceptions(
    caller: CurrentCaller,
    service: Schedule,
    professional_id: UUID | None = Query(None),
    date_from: date | None = Query(None),
    date_to: date | None = Query(None),
) -> list[DateExceptionResponse]:
    """
    List date exceptions within an optional date range.

    Args:
        caller: Authenticated caller
        service: Schedule service
        professional_id: Filter by professional
        date_from: First date to include
        date_to: Last date to include

    Returns:
        Matching exceptions
    """
    return await service.list_exceptions(
        scoped_professional_filter(caller, professional_id), date_from, date_to
    )


@router.get(
    "/{exception_id}",
    response_model=DateExceptionResponse,
    status_code=status.HTTP_200_OK,
    summary="Get date exception",
)
async def get_exception(
    exception_id: UUID,
    caller: CurrentCaller,
    service: Schedule,
) -> DateExceptionResponse:
    """Get a date exception by ID."""
    exception = await service.get_exception(exception_id)
    ensure_professional_scope(caller, exception.professional_id)
    return exception


@router.patch(
    "/{exception_id}",
    response_model=DateExceptionResponse,
    status_code=status.HTTP_200_OK,
    summary="Update date exception",
)
async def update_exception(
    exception_id: UUID,
    data: DateExceptionUpdate,
    caller: CurrentCaller,
    service: Schedule,
) -> DateExceptionResponse:
    """
    Update a date exception.

    Args:
        exception_id: Exception ID
        data: Fields to change
        caller: Authenticated caller
        service: Schedule service

    Returns:
        Updated exception
    """
    exception = await service.get_exception(exception_id)
    ensure_professional_scope(caller, exception.professional_id)
    return await service.update_exception(exception_id, data)


@router.delete(
    "/{exception_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete date exception",
)
async def delete_exception(
    exception_id: UUID,
    caller: CurrentCaller,
    service: Schedule,
) -> None:
    """Delete a date exception."""
    exception = await service.get_exception(exception_id)
    ensure_professional_scope(caller, exception.professional_id)
    await service.delete_exception(exception_id)
