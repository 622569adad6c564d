from collections.abc import Callable
from datetime import datetime

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.api.deps import get_clock, get_email_service_factory, get_session_factory
from app.services.reminder_service import ReminderScheduler, ReminderTickResult

router = APIRouter(prefix="/reminders", tags=["reminders"])


@router.post("/run", response_model=ReminderTickResult)
async def run_reminders(
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
    email_service_factory=Depends(get_email_service_factory),
    clock: Callable[[], datetime] = Depends(get_clock),
) -> ReminderTickResult:
    """Run one reminder tick now. Safe to repeat: already reminded appointments are skipped."""
    scheduler = ReminderScheduler(session_factory, email_service_factory=email_service_factory, clock=clock)
    return await scheduler.run_once()
