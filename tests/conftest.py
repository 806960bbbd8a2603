"""
Pytest configuration and fixtures for data core tests.
"""

from datetime import datetime, timedelta, timezone

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import StaticPool

from data_core.models import Base
from data_core.services.context import CallerContext
from data_core.services.crud.repository import GenericRepository
from shared.infrastructure.db import create_session_factory
from tests.models import Appointment, Clinic, Patient


# SQLite in-memory database for testing
SQLALCHEMY_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

T0 = datetime(2026, 1, 15, 9, 0, tzinfo=timezone.utc)


class FrozenClock:
    """Clock returning a fixed time until advanced."""

    def __init__(self, start: datetime = T0):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **delta) -> datetime:
        self.now = self.now + timedelta(**delta)
        return self.now


@pytest_asyncio.fixture
async def engine():
    """
    Create a fresh in-memory database for each test.
    StaticPool keeps the single connection (and its data) alive.
    """
    engine = create_async_engine(
        SQLALCHEMY_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    try:
        yield engine
    finally:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.drop_all)
        await engine.dispose()


@pytest_asyncio.fixture
async def db_session(engine):
    """Session from the production session factory, bound to the test engine."""
    factory = create_session_factory(engine)
    async with factory() as session:
        yield session


@pytest.fixture
def clock():
    return FrozenClock()


@pytest.fixture
def caller():
    """Regular caller: tenant 1, actor 100."""
    return CallerContext(tenant_id=1, actor_id=100, role_id=2)


@pytest.fixture
def repo_factory(db_session, clock):
    """Build repositories for any model/caller over the test session."""

    def _make(model=Patient, tenant_id=1, actor_id=100, role_id=2):
        return GenericRepository(
            model,
            db_session,
            CallerContext(tenant_id=tenant_id, actor_id=actor_id, role_id=role_id),
            clock=clock,
        )

    return _make


@pytest.fixture
def patient_repo(repo_factory):
    return repo_factory(Patient)


def make_patient(**overrides) -> Patient:
    """Build a transient patient with sensible defaults."""
    values = {
        "first_name": "Ana",
        "last_name": "Rojas",
        "mrn": "MRN-001",
        "phone": "555-0100",
    }
    values.update(overrides)
    return Patient(**values)


def make_appointment(**overrides) -> Appointment:
    values = {"reason": "Checkup", "scheduled_for": T0 + timedelta(days=7)}
    values.update(overrides)
    return Appointment(**values)


async def insert_patients(session, *patients: Patient) -> list[Patient]:
    """Insert rows directly (no stamping) and commit."""
    session.add_all(patients)
    await session.commit()
    return list(patients)


async def insert_clinics(session, *clinics: Clinic) -> list[Clinic]:
    session.add_all(clinics)
    await session.commit()
    return list(clinics)
