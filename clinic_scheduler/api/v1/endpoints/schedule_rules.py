"""Weekly schedule rule endpoints."""

from uuid import UUID

from fastapi import APIRouter, Query, status

from clinic_scheduler.dependencies import (
    Caller,
    CurrentCaller,
    Schedule,
    ensure_professional_scope,
    scoped_professional_filter,
)
from clinic_scheduler.scheduling.calendar import DayOfWeek
from clinic_scheduler.schemas.schedule_rules import (
    ScheduleRuleCreate,
    ScheduleRuleResponse,
    ScheduleRuleUpdate,
    ValidityClose,
    ValidityCloseResponse,
    WeeklyScheduleReplace,
)
from clinic_scheduler.services.schedule_service import ScheduleService

router = APIRouter()


async def _get_scoped_rule(
    rule_id: UUID, caller: Caller, service: ScheduleService
) -> ScheduleRuleResponse:
    rule = await service.get_rule(rule_id)
    ensure_professional_scope(caller, rule.professional_id)
    return rule


@router.post(
    "/",
    response_model=ScheduleRuleResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create weekly schedule rule",
)
async def create_rule(
    data: ScheduleRuleCreate,
    caller: CurrentCaller,
    service: Schedule,
) -> ScheduleRuleResponse:
    """
    Create a recurring weekly working window for a professional.

    Args:
        data: Rule creation data
        caller: Authenticated caller
        service: Schedule service

    Returns:
        Created rule
    """
    ensure_professional_scope(caller, data.professional_id)
    return await service.create_rule(data)


@router.get(
    "/",
    response_model=list[ScheduleRuleResponse],
    status_code=status.HTTP_200_OK,
    summary="List weekly schedule rules",
)
async def list_rules(
    caller: CurrentCaller,
    service: Schedule,
    professional_id: UUID | None = Query(None),
    day_of_week: DayOfWeek | None = Query(None),
    active: bool | None = Query(None),
    include_history: bool = Query(False),
) -> list[ScheduleRuleResponse]:
    """
    List weekly rules, in force today unless history is requested.

    Professional callers only see their own rules.

    Args:
        caller: Authenticated caller
        service: Schedule service
        professional_id: Filter by professional
        day_of_week: Filter by weekday (0 = Sunday)
        active: Filter by active flag
        include_history: Include rules whose validity already ended

    Returns:
        Matching rules
    """
    return await service.list_rules(
        professional_id=scoped_professional_filter(caller, professional_id),
        day_of_week=day_of_week,
        active=active,
        include_history=include_history,
    )


@router.put(
    "/weekly",
    response_model=list[ScheduleRuleResponse],
    status_code=status.HTTP_200_OK,
    summary="Replace weekly schedule",
)
async def replace_weekly_schedule(
    data: WeeklyScheduleReplace,
    caller: CurrentCaller,
    service: Schedule,
) -> list[ScheduleRuleResponse]:
    """
    Supersede a professional's weekly schedule from a given date.

    Args:
        data: New weekly schedule
        caller: Authenticated caller
        service: Schedule service

    Returns:
        Newly created rules
    """
    ensure_professional_scope(caller, data.professional_id)
    return await service.replace_weekly_schedule(data)


@router.post(
    "/close-validity",
    response_model=ValidityCloseResponse,
    status_code=status.HTTP_200_OK,
    summary="Close validity of current rules",
)
async def close_validity(
    data: ValidityClose,
    caller: CurrentCaller,
    service: Schedule,
) -> ValidityCloseResponse:
    """
    End the validity of a professional's open rules on the given date.

    Args:
        data: Professional and last valid date
        caller: Authenticated caller
        service: Schedule service

    Returns:
        Number of rules closed
    """
    ensure_professional_scope(caller, data.professional_id)
    closed = await service.close_validity(data.professional_id, data.until)
    return ValidityCloseResponse(
        professional_id=data.professional_id,
        until=data.until,
        rules_closed=closed,
    )


@router.get(
    "/{rule_id}",
    response_model=ScheduleRuleResponse,
    status_code=status.HTTP_200_OK,
    summary="Get weekly schedule rule",
)
async def get_rule(
    rule_id: UUID,
    caller: CurrentCaller,
    service: Schedule,
) -> ScheduleRuleResponse:
    """Get a weekly rule by ID."""
    return await _get_scoped_rule(rule_id, caller, service)


@router.patch(
    "/{rule_id}",
    response_model=ScheduleRuleResponse,
    status_code=status.HTTP_200_OK,
    summary="Update weekly schedule rule",
)
async def update_rule(
    rule_id: UUID,
    data: ScheduleRuleUpdate,
    caller: CurrentCaller,
    service: Schedule,
) -> ScheduleRuleResponse:
    """
    Update a weekly rule.

    Args:
        rule_id: Rule ID
        data: Fields to change
        caller: Authenticated caller
        service: Schedule service

    Returns:
        Updated rule
    """
    await _get_scoped_rule(rule_id, caller, service)
    return await service.update_rule(rule_id, data)


@router.post(
    "/{rule_id}/activate",
    response_model=ScheduleRuleResponse,
    status_code=status.HTTP_200_OK,
    summary="Activate weekly schedule rule",
)
async def activate_rule(
    rule_id: UUID,
    caller: CurrentCaller,
    service: Schedule,
) -> ScheduleRuleResponse:
    """Activate an inactive rule."""
    await _get_scoped_rule(rule_id, caller, service)
    return await service.activate_rule(rule_id)


@router.post(
    "/{rule_id}/deactivate",
    response_model=ScheduleRuleResponse,
    status_code=status.HTTP_200_OK,
    summary="Deactivate weekly schedule rule",
)
async def deactivate_rule(
    rule_id: UUID,
    caller: CurrentCaller,
    service: Schedule,
) -> ScheduleRuleResponse:
    """Deactivate an active rule."""
    await _get_scoped_rule(rule_id, caller, service)
    return await service.deactivate_rule(rule_id)


@router.delete(
    "/{rule_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete weekly schedule rule",
)
async def delete_rule(
    rule_id: UUID,
    caller: CurrentCaller,
    service: Schedule,
) -> None:
    """Delete a weekly rule."""
    await _get_scoped_rule(rule_id, caller, service)
    await service.delete_rule(rule_id)
