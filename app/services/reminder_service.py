"""Periodic appointment reminders.

Each tick is independent: what is due is re-derived from the store every time,
so nothing needs to survive a restart. A reminder goes out on the tick whose
one-hour dispatch slice contains appointment start minus the activity's
hours_before. The flag is written after a successful send, so a crash between
the two can repeat one email (at-least-once delivery).

Run a single scheduler instance per deployment: two replicas reading
reminder_sent=False in the same hour can both send before either write lands.
"""
import asyncio
import logging
from collections.abc import Awaitable, Callable
from datetime import datetime

from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.core.config import settings
from app.core.timeutils import dispatch_slice, reminder_check_window, reminder_time, utc_now
from app.models.appointment import AppointmentStatus
from app.repositories.activity_repository import ActivityRepository, SqlActivityRepository
from app.repositories.appointment_repository import AppointmentRepository, SqlAppointmentRepository
from app.repositories.email_settings_repository import EmailSettingsRepository, SqlEmailSettingsRepository
from app.services.email_service import EmailService, SmtpEmailService
from app.services.notification_service import ReminderEmail

logger = logging.getLogger(__name__)

MINUTES_PER_DAY = 24 * 60


class ReminderTickResult(BaseModel):
    checked: int = 0
    due: int = 0
    sent: int = 0
    not_sent: int = 0
    failed: int = 0


async def run_reminder_tick(
    appointments: AppointmentRepository,
    activities: ActivityRepository,
    send_reminder: Callable[[int], Awaitable[bool]],
    now: datetime | None = None,
    hours_before: int | None = None,
    check_window_hours: int | None = None,
) -> ReminderTickResult:
    """Send every reminder whose instant falls in [now, now + 1h).

    Appointments are handled one at a time; a failure on one is logged and the
    tick moves on to the next.
    """
    now = now or utc_now()
    hours_before = hours_before if hours_before is not None else settings.reminder_hours_before
    check_window_hours = check_window_hours if check_window_hours is not None else settings.reminder_check_window_hours

    # One query for all activities instead of one per appointment
    activity_map = {a.id: a for a in await activities.find_all()}
    window_start, window_end = reminder_check_window(
        now,
        hours_before,
        check_window_hours,
        [a.reminder_settings.hours_before for a in activity_map.values() if a.reminder_settings.enabled],
    )
    candidates = [
        a
        for a in await appointments.find_by_date_range(window_start, window_end)
        if a.status == AppointmentStatus.CONFIRMED and now < a.date_time < window_end
    ]
    logger.info("Reminder tick at %s: %d confirmed appointment(s) in window", now, len(candidates))

    slice_start, slice_end = dispatch_slice(now)
    result = ReminderTickResult(checked=len(candidates))
    for appointment in candidates:
        activity = activity_map.get(appointment.activity_id)
        if not activity or not activity.reminder_settings.enabled or appointment.reminder_sent:
            continue
        due_at = reminder_time(appointment.date_time, activity.reminder_settings.hours_before)
        if not (slice_start <= due_at < slice_end):
            continue
        if appointment.id is None:
            logger.warning("Appointment without id found, cannot send reminder")
            continue
        result.due += 1
        logger.info(
            "Sending reminder for appointment %s (%dh before)",
            appointment.id,
            activity.reminder_settings.hours_before,
        )
        try:
            sent = await send_reminder(appointment.id)
        except Exception:
            logger.exception("Error sending reminder for appointment %s", appointment.id)
            result.failed += 1
            continue
        if sent:
            result.sent += 1
        else:
            result.not_sent += 1
            logger.warning("Reminder for appointment %s was not sent", appointment.id)
    return result


class ReminderScheduler:
    """Owns the reminder loop. The host starts it on boot and stops it on shutdown."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        email_service_factory: Callable[[EmailSettingsRepository], EmailService] = SmtpEmailService,
        clock: Callable[[], datetime] = utc_now,
        interval_minutes: int | None = None,
    ) -> None:
        self.session_factory = session_factory
        self.email_service_factory = email_service_factory
        self.clock = clock
        self.interval_minutes = interval_minutes or settings.reminder_interval_minutes
        if self.interval_minutes <= 0 or MINUTES_PER_DAY % self.interval_minutes:
            raise ValueError(f"Reminder interval must divide a day evenly, got {self.interval_minutes} min")
        self._task: asyncio.Task | None = None

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.is_running:
            logger.warning("Reminder scheduler already running")
            return
        self._task = asyncio.create_task(self._loop())
        logger.info("Reminder scheduler started (every %d min)", self.interval_minutes)

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("Reminder scheduler stopped")

    def seconds_until_next_tick(self, now: datetime) -> float:
        """Ticks fall on multiples of the interval counted from midnight UTC."""
        interval = self.interval_minutes * 60
        since_midnight = now.hour * 3600 + now.minute * 60 + now.second + now.microsecond / 1_000_000
        elapsed = since_midnight % interval
        return interval - elapsed if elapsed else float(interval)

    async def run_once(self) -> ReminderTickResult:
        async with self.session_factory() as session:
            return await run_reminder_tick(
                SqlAppointmentRepository(session),
                SqlActivityRepository(session),
                self._send_reminder,
                now=self.clock(),
            )

    async def _send_reminder(self, appointment_id: int) -> bool:
        # Own session per appointment: one failure cannot poison the others,
        # and the flag is committed right after its send.
        async with self.session_factory() as session:
            try:
                appointments = SqlAppointmentRepository(session)
                email_settings = SqlEmailSettingsRepository(session)
                reminder = ReminderEmail(self.email_service_factory(email_settings), email_settings, appointments)
                sent = await reminder.execute(appointment_id)
                await session.commit()
                return sent
            except Exception:
                await session.rollback()
                raise

    async def _loop(self) -> None:
        while True:
            await asyncio.sleep(self.seconds_until_next_tick(self.clock()))
            try:
                result = await asyncio.wait_for(self.run_once(), timeout=self.interval_minutes * 60)
                logger.info(
                    "Reminder tick done: %d due, %d sent, %d not sent, %d failed",
                    result.due,
                    result.sent,
                    result.not_sent,
                    result.failed,
                )
            except asyncio.TimeoutError:
                logger.warning("Reminder tick exceeded %d min; remaining reminders retry next tick", self.interval_minutes)
            except Exception as e:
                logger.exception("Reminder tick failed: %s", e)
