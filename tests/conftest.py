"""Shared test fixtures for MedBook tests.

Uses an in-memory SQLite async engine so tests run without PostgreSQL.
"""

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from medbook.core.database import Base, get_db
from medbook.main import app

# Import all models to ensure they're registered with Base.metadata
from medbook.models.appointment import Appointment, SlotReservation  # noqa: F401
from medbook.models.booking_session import BookingSession  # noqa: F401
from medbook.models.catalog import AppointmentType, Clinic, Provider
from medbook.models.schedule import CalendarException, Holiday, ScheduleTemplate  # noqa: F401
from medbook.services import template_registry
from tests.factories import BASE_RATE, CLINIC_ID, PROVIDER_ID, clinic_day_template


# Use aiosqlite for fast, isolated tests
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

engine = create_async_engine(
    TEST_DATABASE_URL,
    echo=False,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestSession = sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture(autouse=True)
async def setup_db():
    """Create all tables before each test, drop after."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


async def override_get_db():
    async with TestSession() as session:
        yield session


app.dependency_overrides[get_db] = override_get_db


@pytest_asyncio.fixture
async def client():
    """Async HTTP test client."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest_asyncio.fixture
async def db():
    """Direct DB session for test setup/assertions."""
    async with TestSession() as session:
        yield session


@pytest.fixture
def session_factory():
    """Factory for extra independent sessions (concurrency tests)."""
    return TestSession


@pytest_asyncio.fixture
async def provider(db):
    """A clinic, two appointment types and one active provider with no templates."""
    db.add(Clinic(id=CLINIC_ID, name="Test Clinic", address="Jl. Test 1"))
    db.add(AppointmentType(
        id="consultation", name="General Consultation", duration_minutes=30,
        price_min=150000, price_max=300000,
    ))
    db.add(AppointmentType(
        id="follow-up", name="Follow-up Visit", duration_minutes=15,
        price_min=100000, price_max=200000,
    ))
    p = Provider(
        id=PROVIDER_ID,
        name="Dr. Test",
        clinic_id=CLINIC_ID,
        specialty="General Practice",
        base_rate=BASE_RATE,
        is_active=True,
    )
    db.add(p)
    await db.commit()
    return p


@pytest_asyncio.fixture
async def weekday_provider(db, provider):
    """Provider working Monday-Friday 08:00-17:00 with a lunch break."""
    for weekday in range(5):
        await template_registry.set_template(db, PROVIDER_ID, weekday, clinic_day_template())
    return provider
