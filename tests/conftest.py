import os

# Settings are read at import time; keep the app off the real database and scheduler.
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("ENV", "test")
os.environ.setdefault("REMINDER_SCHEDULER_ENABLED", "false")

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlmodel import SQLModel

import app.models  # noqa: F401 - register tables
from app.repositories.activity_repository import SqlActivityRepository
from app.repositories.appointment_repository import SqlAppointmentRepository
from app.repositories.availability_repository import SqlAvailabilityRepository
from app.repositories.email_settings_repository import SqlEmailSettingsRepository


@pytest_asyncio.fixture
async def engine(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)


@pytest_asyncio.fixture
async def session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def appointments(session) -> SqlAppointmentRepository:
    return SqlAppointmentRepository(session)


@pytest.fixture
def activities(session) -> SqlActivityRepository:
    return SqlActivityRepository(session)


@pytest.fixture
def availability(session) -> SqlAvailabilityRepository:
    return SqlAvailabilityRepository(session)


@pytest.fixture
def email_settings(session) -> SqlEmailSettingsRepository:
    return SqlEmailSettingsRepository(session)
