"""Health check endpoints."""

from fastapi import APIRouter, Response, status
from pydantic import BaseModel

from clinic_scheduler.config import settings
from clinic_scheduler.core.redis_client import check_redis_connection
from clinic_scheduler.database import check_database_connection

router = APIRouter()


class HealthResponse(BaseModel):
    """Health check response model."""

    status: str
    service: str
    version: str
    environment: str


class DependencyHealthResponse(HealthResponse):
    """Health of the service and the backends it depends on."""

    database: str
    redis: str
    rate_limiting: str


def _state(healthy: bool) -> str:
    return "healthy" if healthy else "unhealthy"


@router.get(
    "/health",
    response_model=HealthResponse,
    status_code=status.HTTP_200_OK,
    summary="Liveness check",
)
async def health_check() -> HealthResponse:
    """
    Report that the scheduling service is running.

    Returns:
        Basic health status
    """
    return HealthResponse(
        status="healthy",
        service=settings.app_name,
        version=settings.app_version,
        environment=settings.environment,
    )


@router.get(
    "/health/detailed",
    response_model=DependencyHealthResponse,
    status_code=status.HTTP_200_OK,
    summary="Readiness check",
)
async def detailed_health_check(response: Response) -> DependencyHealthResponse:
    """
    Check PostgreSQL and Redis.

    Responds 503 when the database is unreachable. Redis only backs rate
    limiting, so losing it reports the service as degraded.

    Returns:
        Health status including dependencies
    """
    db_healthy = await check_database_connection()
    redis_healthy = await check_redis_connection()

    if not db_healthy:
        overall = "unavailable"
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    elif not redis_healthy:
        overall = "degraded"
    else:
        overall = "healthy"

    return DependencyHealthResponse(
        status=overall,
        service=settings.app_name,
        version=settings.app_version,
        environment=settings.environment,
        database=_state(db_healthy),
        redis=_state(redis_healthy),
        rate_limiting="enforced" if redis_healthy else "bypassed",
    )


@router.get(
    "/ping",
    status_code=status.HTTP_200_OK,
    summary="Simple ping",
)
async def ping() -> dict[str, str]:
    """Simple ping endpoint."""
    return {"message": "pong"}
