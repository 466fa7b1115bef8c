"""API v1 router configuration."""

from fastapi import APIRouter

from clinic_scheduler.api.v1.endpoints import (
    appointments,
    availability,
    date_exceptions,
    health,
    schedule_rules,
    unavailability_blocks,
)

api_router = APIRouter()

# Include routers
api_router.include_router(health.router, tags=["Health"])
api_router.include_router(
    schedule_rules.router, prefix="/schedule-rules", tags=["Schedule Rules"]
)
api_router.include_router(
    date_exceptions.router, prefix="/date-exceptions", tags=["Date Exceptions"]
)
api_router.include_router(
    unavailability_blocks.router, prefix="/unavailability-blocks", tags=["Unavailability Blocks"]
)
api_router.include_router(availability.router, prefix="/availability", tags=["Availability"])
api_router.include_router(appointments.router, prefix="/appointments", tags=["Appointments"])
