import os
from collections.abc import AsyncGenerator, AsyncIterator
from contextlib import asynccontextmanager
from datetime import date, time, timedelta
from unittest.mock import MagicMock
from uuid import UUID, uuid4

import pytest
import pytest_asyncio
from dotenv import load_dotenv
from httpx import ASGITransport, AsyncClient
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

# Load environment variables from .env file
load_dotenv()

from clinic_scheduler.config import settings
from clinic_scheduler.core.redis_client import RateLimiter, get_rate_limiter
from clinic_scheduler.core.security import create_access_token
from clinic_scheduler.dependencies import get_stores
from clinic_scheduler.main import app
from clinic_scheduler.models import metadata
from clinic_scheduler.scheduling.calendar import DayOfWeek
from clinic_scheduler.schemas.schedule_rules import ScheduleRuleCreate, ScheduleRuleResponse
from clinic_scheduler.services.appointment_service import AppointmentLifecycle
from clinic_scheduler.services.availability_service import AvailabilityResolver
from clinic_scheduler.services.schedule_service import ScheduleService
from clinic_scheduler.stores.base import SchedulingStores
from clinic_scheduler.stores.memory import build_memory_stores
from clinic_scheduler.stores.sql import build_sql_stores

# PostgreSQL-backed tests run only against a dedicated test database.
# Set TEST_DATABASE_URL in .env or the environment to enable them.
TEST_DATABASE_URL = os.getenv("TEST_DATABASE_URL")

if TEST_DATABASE_URL and TEST_DATABASE_URL == settings.database_url:
    pytest.exit("TEST_DATABASE_URL must not point at the application database", returncode=1)

if TEST_DATABASE_URL:
    # Ensure we're using asyncpg driver for async operations
    TEST_DATABASE_URL = TEST_DATABASE_URL.replace("postgresql://", "postgresql+asyncpg://")
    # NullPool gives every session its own connection
    test_engine = create_async_engine(TEST_DATABASE_URL, echo=False, poolclass=NullPool)
    TestSessionLocal = async_sessionmaker(
        test_engine, class_=AsyncSession, expire_on_commit=False
    )
else:
    test_engine = None
    TestSessionLocal = None


@asynccontextmanager
async def scheduling_schema() -> AsyncIterator[async_sessionmaker[AsyncSession]]:
    """Create the scheduling tables for one test and drop them afterwards."""
    async with test_engine.begin() as conn:
        await conn.execute(text('CREATE EXTENSION IF NOT EXISTS "pgcrypto"'))
        await conn.run_sync(metadata.drop_all)
        await conn.run_sync(metadata.create_all)

    try:
        yield TestSessionLocal
    finally:
        async with test_engine.begin() as conn:
            await conn.run_sync(metadata.drop_all)


def require_test_database() -> None:
    if TestSessionLocal is None:
        pytest.skip("TEST_DATABASE_URL is not set")


@pytest_asyncio.fixture(params=["memory", "postgres"])
async def stores(request: pytest.FixtureRequest) -> AsyncGenerator[SchedulingStores, None]:
    """Fresh scheduling stores for one test, in memory and on PostgreSQL."""
    if request.param == "memory":
        yield build_memory_stores()
        return

    require_test_database()
    async with scheduling_schema() as session_factory, session_factory() as session:
        yield build_sql_stores(session)


@pytest_asyncio.fixture
async def sql_session_factory() -> AsyncGenerator[async_sessionmaker[AsyncSession], None]:
    """Session factory over a fresh test schema, for tests needing several sessions."""
    require_test_database()
    async with scheduling_schema() as session_factory:
        yield session_factory


@pytest.fixture
def professional_id() -> UUID:
    return uuid4()


@pytest.fixture
def patient_id() -> UUID:
    return uuid4()


@pytest.fixture
def resolver(stores: SchedulingStores) -> AvailabilityResolver:
    return AvailabilityResolver(stores)


@pytest.fixture
def lifecycle(stores: SchedulingStores) -> AppointmentLifecycle:
    return AppointmentLifecycle(stores, prevent_same_patient_double_booking=False)


@pytest.fixture
def schedule_service(stores: SchedulingStores) -> ScheduleService:
    return ScheduleService(stores)


@pytest_asyncio.fixture
async def monday_rule(stores: SchedulingStores, professional_id: UUID) -> ScheduleRuleResponse:
    """Monday 09:00-12:00 rule in force from 2026-01-01."""
    return await stores.rules.create(
        ScheduleRuleCreate(
            professional_id=professional_id,
            day_of_week=DayOfWeek.MONDAY,
            start_time=time(9, 0),
            end_time=time(12, 0),
            slot_duration_minutes=30,
            valid_from=date(2026, 1, 1),
        )
    )


@pytest.fixture
def rate_limiter() -> MagicMock:
    """Rate limiter stub that always allows the request."""
    limiter = MagicMock(spec=RateLimiter)
    limiter.check_rate_limit.return_value = True
    return limiter


@pytest_asyncio.fixture
async def client(
    stores: SchedulingStores, rate_limiter: MagicMock
) -> AsyncGenerator[AsyncClient, None]:
    """Create a test HTTP client backed by in-memory stores."""
    app.dependency_overrides[get_stores] = lambda: stores
    app.dependency_overrides[get_rate_limiter] = lambda: rate_limiter

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


def make_auth_headers(role: str, professional_id: UUID | None = None) -> dict:
    """Create authentication headers for a caller with the given role."""
    token_data = {"sub": str(uuid4()), "role": role}
    if professional_id is not None:
        token_data["professional_id"] = str(professional_id)
    token = create_access_token(data=token_data, expires_delta=timedelta(minutes=30))
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def admin_headers() -> dict:
    return make_auth_headers("admin")


@pytest.fixture
def staff_headers() -> dict:
    return make_auth_headers("staff")


@pytest.fixture
def professional_headers(professional_id: UUID) -> dict:
    """Headers of the professional who owns the agenda under test."""
    return make_auth_headers("professional", professional_id)


@pytest.fixture
def other_professional_headers() -> dict:
    """Headers of a professional who does not own the agenda under test."""
    return make_auth_headers("professional", uuid4())
