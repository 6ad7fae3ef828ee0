import os
import sys

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

# Add the project root to Python path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

# Settings are read at import time; keep tests off real brokers and databases
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("NOTIFICATIONS_ENABLED", "false")
os.environ.setdefault("BUSINESS_TIMEZONE", "UTC")
os.environ.setdefault("BOOKING_LOCK_BACKEND", "local")

from salon_booking.api.v1.endpoints.appointments import get_appointment_service
from salon_booking.core.database import Base, get_db
from salon_booking.core.locks import LocalEmployeeLocks
from salon_booking.main import app
from salon_booking.services.appointment import AppointmentService
from tests.fixtures.booking_fixtures import RecordingNotifier

# Use environment variable to point the suite at another database
TEST_DATABASE_URL = os.getenv("TEST_DATABASE_URL", "sqlite+aiosqlite:///:memory:")


@pytest.fixture
async def db():
    """Create a fresh database session for each test."""
    if TEST_DATABASE_URL.startswith("sqlite"):
        engine = create_async_engine(
            TEST_DATABASE_URL,
            echo=False,
            poolclass=StaticPool,
            connect_args={"check_same_thread": False},
        )
    else:
        engine = create_async_engine(TEST_DATABASE_URL, echo=False, pool_pre_ping=True)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)  # Clean slate
        await conn.run_sync(Base.metadata.create_all)

    async_session = async_sessionmaker(
        engine, class_=AsyncSession, expire_on_commit=False
    )

    async with async_session() as session:
        yield session

    await engine.dispose()


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def employee_locks() -> LocalEmployeeLocks:
    return LocalEmployeeLocks(timeout=1)


@pytest.fixture
def appointment_service(
    db: AsyncSession, notifier: RecordingNotifier, employee_locks: LocalEmployeeLocks
) -> AppointmentService:
    return AppointmentService(db, notifier=notifier, locks=employee_locks)


@pytest.fixture(autouse=True)
def override_get_db(
    db: AsyncSession, notifier: RecordingNotifier, employee_locks: LocalEmployeeLocks
):
    """Override the get_db dependency to use test database."""

    async def _override_get_db():
        yield db

    def _override_appointment_service():
        return AppointmentService(db, notifier=notifier, locks=employee_locks)

    app.dependency_overrides[get_db] = _override_get_db
    app.dependency_overrides[get_appointment_service] = _override_appointment_service
    yield
    app.dependency_overrides.clear()


# Import all booking fixtures to make them available
pytest_plugins = ["tests.fixtures.booking_fixtures"]
