"""FastAPI dependencies."""

from enum import Enum
from typing import Annotated
from uuid import UUID

import structlog
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pydantic import BaseModel, ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from clinic_scheduler.config import settings
from clinic_scheduler.core.exceptions import ForbiddenException, RateLimitException
from clinic_scheduler.core.redis_client import RateLimiter, get_rate_limiter
from clinic_scheduler.core.security import decode_access_token
from clinic_scheduler.database import get_db
from clinic_scheduler.services.appointment_service import AppointmentLifecycle
from clinic_scheduler.services.availability_service import AvailabilityResolver
from clinic_scheduler.services.schedule_service import ScheduleService
from clinic_scheduler.stores.base import SchedulingStores
from clinic_scheduler.stores.sql import build_sql_stores

# Security
security = HTTPBearer()


class CallerRole(str, Enum):
    """Roles allowed to call the scheduling API."""

    ADMIN = "admin"
    STAFF = "staff"
    PROFESSIONAL = "professional"


class Caller(BaseModel):
    """Authenticated caller extracted from the access token."""

    user_id: UUID
    role: CallerRole
    professional_id: UUID | None = None

    @property
    def is_admin(self) -> bool:
        """Whether the caller has the admin role."""
        return self.role == CallerRole.ADMIN

    def can_act_on(self, professional_id: UUID) -> bool:
        """Check whether the caller may manage the given professional's agenda."""
        if self.role != CallerRole.PROFESSIONAL:
            return True
        return self.professional_id == professional_id


async def get_current_caller(
    credentials: Annotated[HTTPAuthorizationCredentials, Depends(security)],
) -> Caller:
    """
    Extract and validate the caller from the JWT token.

    Args:
        credentials: Bearer token credentials

    Returns:
        Caller identity and role

    Raises:
        HTTPException: If token is invalid, expired or lacks a known role
    """
    payload = decode_access_token(credentials.credentials)

    if payload is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )

    try:
        caller = Caller(
            user_id=payload.get("sub"),
            role=payload.get("role"),
            professional_id=payload.get("professional_id"),
        )
    except ValidationError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token claims",
            headers={"WWW-Authenticate": "Bearer"},
        )

    structlog.contextvars.bind_contextvars(
        caller_id=str(caller.user_id), caller_role=caller.role.value
    )
    return caller


async def require_admin(
    caller: Annotated[Caller, Depends(get_current_caller)],
) -> Caller:
    """
    Require the admin role.

    Raises:
        ForbiddenException: If caller is not an admin
    """
    if not caller.is_admin:
        raise ForbiddenException("Admin role required")
    return caller


def ensure_professional_scope(caller: Caller, professional_id: UUID) -> None:
    """
    Check that the caller may act on the professional's agenda.

    Raises:
        ForbiddenException: If a professional targets another professional
    """
    if not caller.can_act_on(professional_id):
        raise ForbiddenException("Access denied to this professional's agenda")
    structlog.contextvars.bind_contextvars(professional_id=str(professional_id))


def scoped_professional_filter(caller: Caller, professional_id: UUID | None) -> UUID | None:
    """
    Narrow a list filter to the caller's own agenda when they are a professional.

    Raises:
        ForbiddenException: If a professional targets another professional
    """
    if caller.role != CallerRole.PROFESSIONAL:
        return professional_id
    if caller.professional_id is None:
        raise ForbiddenException("Token is not linked to a professional")
    if professional_id is None:
        return caller.professional_id
    ensure_professional_scope(caller, professional_id)
    return professional_id


async def enforce_booking_rate_limit(
    caller: Annotated[Caller, Depends(get_current_caller)],
    limiter: Annotated[RateLimiter, Depends(get_rate_limiter)],
) -> None:
    """
    Apply the per-caller booking rate limit.

    Raises:
        RateLimitException: If the caller exceeded the limit
    """
    key = f"rate_limit:booking:{caller.user_id}"
    if not limiter.check_rate_limit(key, settings.rate_limit_per_minute):
        raise RateLimitException("Too many booking requests, please try again later")


async def get_stores(
    db: Annotated[AsyncSession, Depends(get_db)],
) -> SchedulingStores:
    """Dependency for the PostgreSQL-backed scheduling stores."""
    return build_sql_stores(db)


async def get_schedule_service(
    stores: Annotated[SchedulingStores, Depends(get_stores)],
) -> ScheduleService:
    """Dependency for the schedule management service."""
    return ScheduleService(stores)


async def get_availability_resolver(
    stores: Annotated[SchedulingStores, Depends(get_stores)],
) -> AvailabilityResolver:
    """Dependency for the availability resolver."""
    return AvailabilityResolver(stores)


async def get_appointment_lifecycle(
    stores: Annotated[SchedulingStores, Depends(get_stores)],
) -> AppointmentLifecycle:
    """Dependency for the appointment lifecycle service."""
    return AppointmentLifecycle(stores)


# Type aliases for dependency injection
CurrentCaller = Annotated[Caller, Depends(get_current_caller)]
AdminCaller = Annotated[Caller, Depends(require_admin)]
BookingRateLimit = Depends(enforce_booking_rate_limit)
Schedule = Annotated[ScheduleService, Depends(get_schedule_service)]
Availability = Annotated[AvailabilityResolver, Depends(get_availability_resolver)]
Lifecycle = Annotated[AppointmentLifecycle, Depends(get_appointment_lifecycle)]
