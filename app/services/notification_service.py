"""Appointment emails: confirmation, cancellation, reminder and admin new-booking.

Every variant runs the same pipeline: load settings and template, skip quietly
when SMTP is unconfigured or the template is disabled, substitute placeholders
literally, send, and record the outcome in the email log.
"""
import logging
from collections.abc import Callable
from datetime import datetime

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.core.config import settings
from app.core.errors import ConcurrencyConflict
from app.core.timeutils import to_local
from app.models.appointment import Appointment, AppointmentStatus
from app.models.email import EmailLog, EmailSettings, EmailTemplateType
from app.repositories.appointment_repository import AppointmentRepository, SqlAppointmentRepository
from app.repositories.email_settings_repository import EmailSettingsRepository, SqlEmailSettingsRepository
from app.services.email_service import EmailService

logger = logging.getLogger(__name__)


def format_date(dt: datetime, tz_name: str | None = None) -> str:
    return to_local(dt, tz_name or settings.business_timezone).strftime(settings.email_date_format)


def format_time(dt: datetime, tz_name: str | None = None) -> str:
    return to_local(dt, tz_name or settings.business_timezone).strftime(settings.email_time_format)


def template_variables(appointment: Appointment, tz_name: str | None = None) -> dict[str, str]:
    client = appointment.client_info
    return {
        "{{customer_name}}": client.name,
        "{{appointment_activity}}": appointment.activity_name,
        "{{appointment_date}}": format_date(appointment.date_time, tz_name),
        "{{appointment_time}}": f"{format_time(appointment.date_time, tz_name)} - {format_time(appointment.end_date_time, tz_name)}",
        "{{appointment_duration}}": f"{appointment.activity_duration_minutes} minutes",
        "{{customer_email}}": str(client.email),
        "{{customer_phone}}": client.phone or "Not provided",
        "{{customer_notes}}": client.custom_field or "None",
    }


def replace_template_variables(subject: str, body: str, variables: dict[str, str]) -> tuple[str, str]:
    """Literal replacement; values are never re-evaluated as templates."""
    for placeholder, value in variables.items():
        subject = subject.replace(placeholder, value)
        body = body.replace(placeholder, value)
    return subject, body


class AppointmentEmail:
    template_type: EmailTemplateType
    failure_message = "Failed to send appointment email"

    def __init__(
        self,
        email_service: EmailService,
        email_settings: EmailSettingsRepository,
        appointments: AppointmentRepository,
    ) -> None:
        self.email_service = email_service
        self.email_settings = email_settings
        self.appointments = appointments

    def recipient(self, appointment: Appointment, email_settings: EmailSettings) -> str:
        return str(appointment.client_info.email)

    def should_send(self, appointment: Appointment) -> bool:
        return True

    async def execute(self, appointment_id: int) -> bool:
        appointment = await self.appointments.find_by_id(appointment_id)
        if not appointment:
            logger.warning("%s: appointment %s not found", self.template_type.value, appointment_id)
            return False
        if not self.should_send(appointment):
            return False
        return await self.send(appointment)

    async def send(self, appointment: Appointment) -> bool:
        email_settings = await self.email_settings.get_email_settings()
        smtp = await self.email_settings.get_smtp_settings()
        template = await self.email_settings.get_email_template(self.template_type)

        if not smtp.is_configured or not email_settings.is_configured:
            logger.warning("Email settings not configured, %s email skipped", self.template_type.value)
            return False
        if not template.enabled:
            logger.warning("Template %s disabled, email skipped", self.template_type.value)
            return False

        to = self.recipient(appointment, email_settings)
        subject, body = replace_template_variables(template.subject, template.body, template_variables(appointment))

        try:
            result = await self.email_service.send_email(email_settings.sender, to, subject, body)
        except Exception as e:
            logger.exception("%s for appointment %s", self.failure_message, appointment.id)
            await self._log_result(appointment.id, to, subject, False, str(e) or type(e).__name__)
            return False

        await self._log_result(appointment.id, to, subject, result.success, result.error_message)
        return result.success

    async def _log_result(
        self, appointment_id: int | None, recipient: str, subject: str, success: bool, error_message: str | None
    ) -> None:
        try:
            if success:
                log = EmailLog.sent(appointment_id, self.template_type, recipient, subject)
            else:
                log = EmailLog.failed(appointment_id, self.template_type, recipient, subject, error_message or "")
            await self.email_settings.save_email_log(log)
        except Exception:
            # The audit log must never change the outcome of the send
            logger.exception("Failed to record email log for appointment %s", appointment_id)


class BookingConfirmationEmail(AppointmentEmail):
    template_type = EmailTemplateType.APPOINTMENT_BOOKING
    failure_message = "Failed to send booking confirmation email"


class AdminConfirmationEmail(AppointmentEmail):
    template_type = EmailTemplateType.APPOINTMENT_ADMIN_CONFIRMATION
    failure_message = "Failed to send appointment confirmation email"

    def should_send(self, appointment: Appointment) -> bool:
        return appointment.status == AppointmentStatus.CONFIRMED


class AdminNewBookingEmail(AppointmentEmail):
    template_type = EmailTemplateType.APPOINTMENT_ADMIN_NEW
    failure_message = "Failed to send new booking notification to administrator"

    def recipient(self, appointment: Appointment, email_settings: EmailSettings) -> str:
        return email_settings.administrator_email


class CancellationEmail(AppointmentEmail):
    template_type = EmailTemplateType.APPOINTMENT_CANCELLATION
    failure_message = "Failed to send cancellation email"

    def should_send(self, appointment: Appointment) -> bool:
        if appointment.status != AppointmentStatus.CANCELLED:
            logger.warning("Appointment %s is %s, cancellation email not sent", appointment.id, appointment.status.value)
            return False
        return True


class ReminderEmail(AppointmentEmail):
    """Sends the reminder, then persists reminder_sent through the optimistic lock."""

    template_type = EmailTemplateType.APPOINTMENT_REMINDER
    failure_message = "Failed to send appointment reminder email"

    def should_send(self, appointment: Appointment) -> bool:
        return appointment.status == AppointmentStatus.CONFIRMED and not appointment.reminder_sent

    async def send(self, appointment: Appointment) -> bool:
        sent = await super().send(appointment)
        if not sent:
            return False
        try:
            await self.appointments.update_with_optimistic_lock(appointment.mark_reminder_sent())
        except ConcurrencyConflict:
            # Sent, but someone else wrote first; the next tick re-reads the flag.
            logger.warning("Reminder sent for appointment %s but the flag write conflicted", appointment.id)
        return True


EMAILS_BY_TEMPLATE: dict[EmailTemplateType, type[AppointmentEmail]] = {
    cls.template_type: cls
    for cls in (
        BookingConfirmationEmail,
        AdminConfirmationEmail,
        AdminNewBookingEmail,
        CancellationEmail,
        ReminderEmail,
    )
}


async def send_appointment_emails(
    session_factory: async_sessionmaker[AsyncSession],
    email_service_factory: Callable[[EmailSettingsRepository], EmailService],
    appointment_id: int,
    *template_types: EmailTemplateType,
) -> None:
    """Background task: send the given emails for one appointment in a fresh session."""
    try:
        async with session_factory() as session:
            appointments = SqlAppointmentRepository(session)
            email_settings = SqlEmailSettingsRepository(session)
            email_service = email_service_factory(email_settings)
            for template_type in template_types:
                email = EMAILS_BY_TEMPLATE[template_type](email_service, email_settings, appointments)
                await email.execute(appointment_id)
            await session.commit()
    except Exception as e:
        logger.exception("Appointment email dispatch failed for %s: %s", appointment_id, e)
