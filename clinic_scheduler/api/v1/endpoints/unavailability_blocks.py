"""Unavailability block endpoints."""

from datetime import datetime
from uuid import UUID

from fastapi import APIRouter, Query, status

from clinic_scheduler.dependencies import (
    CurrentCaller,
    Schedule,
    ensure_professional_scope,
    scoped_professional_filter,
)
from clinic_scheduler.schemas.unavailability_blocks import (
    UnavailabilityBlockCreate,
    UnavailabilityBlockResponse,
    UnavailabilityBlockUpdate,
)

router = APIRouter()


@router.post(
    "/",
    response_model=UnavailabilityBlockResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create unavailability block",
)
async def create_block(
    data: UnavailabilityBlockCreate,
    caller: CurrentCaller,
    service: Schedule,
) -> UnavailabilityBlockResponse:
    """
    Block a period of a professional's agenda (vacation, leave, training).

    Args:
        data: Block creation data
        caller: Authenticated caller
        service: Schedule service

    Returns:
        Created block
    """
    ensure_professional_scope(caller, data.professional_id)
    return await service.create_block(data)


@router.get(
    "/",
    response_model=list[UnavailabilityBlockResponse],
    status_code=status.HTTP_200_OK,
    summary="List unavailability blocks",
)
async def list_blocks(
    caller: CurrentCaller,
    service: Schedule,
    professional_id: UUID | None = Query(None),
    start_from: datetime | None = Query(None),
    end_to: datetime | None = Query(None),
) -> list[UnavailabilityBlockResponse]:
    """
    List unavailability blocks within an optional range.

    Args:
        caller: Authenticated caller
        service: Schedule service
        professional_id: Filter by professional
        start_from: Only blocks starting at or after this instant
        end_to: Only blocks ending at or before this instant

    Returns:
        Matching blocks
    """
    return await service.list_blocks(
        scoped_professional_filter(caller, professional_id), start_from, end_to
    )


@router.get(
    "/{block_id}",
    response_model=UnavailabilityBlockResponse,
    status_code=status.HTTP_200_OK,
    summary="Get unavailability block",
)
async def get_block(
    block_id: UUID,
    caller: CurrentCaller,
    service: Schedule,
) -> UnavailabilityBlockResponse:
    """Get an unavailability block by ID."""
    block = await service.get_block(block_id)
    ensure_professional_scope(caller, block.professional_id)
    return block


@router.patch(
    "/{block_id}",
    response_model=UnavailabilityBlockResponse,
    status_code=status.HTTP_200_OK,
    summary="Update unavailability block",
)
async def update_block(
    block_id: UUID,
    data: UnavailabilityBlockUpdate,
    caller: CurrentCaller,
    service: Schedule,
) -> UnavailabilityBlockResponse:
    """
    Update an unavailability block.

    Args:
        block_id: Block ID
        data: Fields to change
        caller: Authenticated caller
        service: Schedule service

    Returns:
        Updated block
    """
    block = await service.get_block(block_id)
    ensure_professional_scope(caller, block.professional_id)
    return await service.update_block(block_id, data)


@router.delete(
    "/{block_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete unavailability block",
)
async def delete_block(
    block_id: UUID,
    caller: CurrentCaller,
    service: Schedule,
) -> None:
    """Delete an unavailability block."""
    block = await service.get_block(block_id)
    ensure_professional_scope(caller, block.professional_id)
    await service.delete_block(block_id)
