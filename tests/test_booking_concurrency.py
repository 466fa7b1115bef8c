"""Tests for per-professional serialization of bookings."""

import asyncio
from datetime import UTC, date, datetime, time, timedelta
from uuid import UUID, uuid4

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from clinic_scheduler.core.exceptions import SlotTakenException
from clinic_scheduler.scheduling.calendar import DayOfWeek
from clinic_scheduler.schemas.appointments import AppointmentCreate, AppointmentFilters
from clinic_scheduler.schemas.schedule_rules import ScheduleRuleCreate
from clinic_scheduler.services.appointment_service import AppointmentLifecycle
from clinic_scheduler.stores.base import SchedulingStores
from clinic_scheduler.stores.memory import (
    InMemoryAppointmentStore,
    InMemoryDateExceptionStore,
    InMemoryScheduleRuleStore,
    InMemoryUnavailabilityBlockStore,
)
from clinic_scheduler.stores.sql import build_sql_stores

TEN_AM = datetime(2026, 1, 5, 10, 0, tzinfo=UTC)


class InterleavingAppointmentStore(InMemoryAppointmentStore):
    """Appointment store that hands control to the event loop before each conflict query."""

    async def has_conflict(self, *args, **kwargs) -> bool:
        await asyncio.sleep(0)
        return await super().has_conflict(*args, **kwargs)


def monday_rule_for(professional_id: UUID) -> ScheduleRuleCreate:
    return ScheduleRuleCreate(
        professional_id=professional_id,
        day_of_week=DayOfWeek.MONDAY,
        start_time=time(9, 0),
        end_time=time(12, 0),
        valid_from=date(2026, 1, 1),
    )


def booking(professional_id: UUID, start: datetime = TEN_AM) -> AppointmentCreate:
    return AppointmentCreate(
        professional_id=professional_id,
        patient_id=uuid4(),
        start_datetime=start,
        end_datetime=start + timedelta(minutes=30),
    )


def split_results(results: list) -> tuple[list, list]:
    successes = [r for r in results if not isinstance(r, BaseException)]
    failures = [r for r in results if isinstance(r, BaseException)]
    return successes, failures


@pytest_asyncio.fixture
async def interleaving_stores(professional_id: UUID) -> SchedulingStores:
    """In-memory stores whose bookings interleave at the conflict query."""
    stores = SchedulingStores(
        rules=InMemoryScheduleRuleStore(),
        exceptions=InMemoryDateExceptionStore(),
        blocks=InMemoryUnavailabilityBlockStore(),
        appointments=InterleavingAppointmentStore(),
    )
    await stores.rules.create(monday_rule_for(professional_id))
    return stores


@pytest.mark.asyncio
async def test_racing_bookings_for_same_slot_yield_one_success(
    interleaving_stores: SchedulingStores, professional_id: UUID
):
    """Test racing bookings for one interval cannot both succeed."""
    lifecycle = AppointmentLifecycle(
        interleaving_stores, prevent_same_patient_double_booking=False
    )

    results = await asyncio.gather(
        *(lifecycle.create(booking(professional_id)) for _ in range(5)),
        return_exceptions=True,
    )

    successes, failures = split_results(results)
    assert len(successes) == 1
    assert len(failures) == 4
    assert all(isinstance(f, SlotTakenException) for f in failures)
    _, total = await interleaving_stores.appointments.list_appointments(
        AppointmentFilters(professional_id=professional_id)
    )
    assert total == 1


@pytest.mark.asyncio
async def test_racing_reschedules_into_same_slot_yield_one_success(
    interleaving_stores: SchedulingStores, professional_id: UUID
):
    """Test two appointments moved onto the same interval cannot both land there."""
    lifecycle = AppointmentLifecycle(
        interleaving_stores, prevent_same_patient_double_booking=False
    )
    first = await lifecycle.create(booking(professional_id, TEN_AM - timedelta(hours=1)))
    second = await lifecycle.create(booking(professional_id, TEN_AM + timedelta(hours=1)))

    results = await asyncio.gather(
        lifecycle.reschedule(first.id, TEN_AM, TEN_AM + timedelta(minutes=30)),
        lifecycle.reschedule(second.id, TEN_AM, TEN_AM + timedelta(minutes=30)),
        return_exceptions=True,
    )

    successes, failures = split_results(results)
    assert len(successes) == 1
    assert isinstance(failures[0], SlotTakenException)


@pytest.mark.asyncio
async def test_bookings_for_different_professionals_proceed(
    interleaving_stores: SchedulingStores, professional_id: UUID
):
    """Test the booking guard only serializes one professional."""
    other = uuid4()
    await interleaving_stores.rules.create(monday_rule_for(other))
    lifecycle = AppointmentLifecycle(
        interleaving_stores, prevent_same_patient_double_booking=False
    )

    first, second = await asyncio.gather(
        lifecycle.create(booking(professional_id)),
        lifecycle.create(booking(other)),
    )

    assert first.professional_id == professional_id
    assert second.professional_id == other


async def book_in_own_session(
    session_factory: async_sessionmaker[AsyncSession], data: AppointmentCreate
):
    async with session_factory() as session:
        lifecycle = AppointmentLifecycle(
            build_sql_stores(session), prevent_same_patient_double_booking=False
        )
        return await lifecycle.create(data)


@pytest.mark.asyncio
async def test_advisory_lock_serializes_concurrent_sessions(
    sql_session_factory: async_sessionmaker[AsyncSession], professional_id: UUID
):
    """Test bookings from separate database sessions cannot double-book a slot."""
    async with sql_session_factory() as session:
        await build_sql_stores(session).rules.create(monday_rule_for(professional_id))

    results = await asyncio.gather(
        *(book_in_own_session(sql_session_factory, booking(professional_id)) for _ in range(5)),
        return_exceptions=True,
    )

    successes, failures = split_results(results)
    assert len(successes) == 1
    assert all(isinstance(f, SlotTakenException) for f in failures)
    async with sql_session_factory() as session:
        _, total = await build_sql_stores(session).appointments.list_appointments(
            AppointmentFilters(professional_id=professional_id)
        )
    assert total == 1


@pytest.mark.asyncio
async def test_advisory_lock_is_per_professional(
    sql_session_factory: async_sessionmaker[AsyncSession], professional_id: UUID
):
    """Test sessions booking different professionals do not block each other."""
    other = uuid4()
    async with sql_session_factory() as session:
        stores = build_sql_stores(session)
        await stores.rules.create(monday_rule_for(professional_id))
        await stores.rules.create(monday_rule_for(other))

    first, second = await asyncio.gather(
        book_in_own_session(sql_session_factory, booking(professional_id)),
        book_in_own_session(sql_session_factory, booking(other)),
    )

    assert first.professional_id == professional_id
    assert second.professional_id == other
