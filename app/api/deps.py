from collections.abc import Callable
from datetime import datetime

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.db import get_session, get_session_factory  # noqa: F401 - re-exported for routes
from app.core.timeutils import utc_now
from app.repositories.activity_repository import ActivityRepository, SqlActivityRepository
from app.repositories.appointment_repository import AppointmentRepository, SqlAppointmentRepository
from app.repositories.availability_repository import AvailabilityRepository, SqlAvailabilityRepository
from app.repositories.email_settings_repository import EmailSettingsRepository
from app.services.email_service import EmailService, SmtpEmailService


def get_clock() -> Callable[[], datetime]:
    return utc_now


def get_email_service_factory() -> Callable[[EmailSettingsRepository], EmailService]:
    return SmtpEmailService


def get_appointment_repository(session: AsyncSession = Depends(get_session)) -> AppointmentRepository:
    return SqlAppointmentRepository(session)


def get_activity_repository(session: AsyncSession = Depends(get_session)) -> ActivityRepository:
    return SqlActivityRepository(session)


def get_availability_repository(session: AsyncSession = Depends(get_session)) -> AvailabilityRepository:
    return SqlAvailabilityRepository(session)
