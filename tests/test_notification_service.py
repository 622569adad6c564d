from datetime import datetime

import pytest_asyncio
from sqlalchemy import text

from app.models.appointment import AppointmentStatus
from app.models.email import EmailLogStatus, EmailSettings, EmailTemplate, EmailTemplateType
from app.repositories.activity_repository import SqlActivityRepository
from app.repositories.appointment_repository import SqlAppointmentRepository
from app.repositories.email_settings_repository import SqlEmailSettingsRepository
from app.services.notification_service import (
    AdminNewBookingEmail,
    BookingConfirmationEmail,
    CancellationEmail,
    ReminderEmail,
    replace_template_variables,
    send_appointment_emails,
    template_variables,
)
from factories import FailingEmailService, RecordingEmailService, configure_email, seed_activity, seed_appointment

TUESDAY_10 = datetime(2030, 6, 4, 10, 0)


class BrokenLogRepository(SqlEmailSettingsRepository):
    async def save_email_log(self, log) -> None:
        raise RuntimeError("log table unavailable")


class TestTemplates:
    async def test_variables(self, appointments, activities):
        activity = await seed_activity(activities, duration_minutes=45)
        a = await seed_appointment(appointments, activity, TUESDAY_10)
        variables = template_variables(a, "UTC")
        assert variables["{{customer_name}}"] == "Ada Client"
        assert variables["{{appointment_date}}"] == "Tuesday, June 04, 2030"
        assert variables["{{appointment_time}}"] == "10:00 - 10:45"
        assert variables["{{appointment_duration}}"] == "45 minutes"
        assert variables["{{customer_phone}}"] == "Not provided"
        assert variables["{{customer_notes}}"] == "None"

    def test_replacement_is_literal(self):
        subject, body = replace_template_variables(
            "Hi {{customer_name}}",
            "{{customer_name}} / {{unknown}}",
            {"{{customer_name}}": "{{appointment_date}} $1"},
        )
        assert subject == "Hi {{appointment_date}} $1"
        assert body == "{{appointment_date}} $1 / {{unknown}}"

    def test_default_template_is_disabled(self):
        template = EmailTemplate.default(EmailTemplateType.APPOINTMENT_REMINDER)
        assert template.enabled is False
        assert "{{appointment_activity}}" in template.subject

    def test_sender_uses_display_name(self):
        assert EmailSettings(administrator_email="admin@example.com", from_name="Studio").sender == "Studio <admin@example.com>"
        assert EmailSettings(administrator_email="admin@example.com").sender == "admin@example.com"


class TestSendPipeline:
    async def test_skipped_when_smtp_unconfigured(self, appointments, activities, email_settings):
        activity = await seed_activity(activities)
        a = await seed_appointment(appointments, activity, TUESDAY_10)
        mailer = RecordingEmailService()
        sent = await BookingConfirmationEmail(mailer, email_settings, appointments).execute(a.id)
        assert sent is False
        assert mailer.sent == []
        assert await email_settings.find_email_logs() == []

    async def test_skipped_when_template_disabled(self, appointments, activities, email_settings):
        activity = await seed_activity(activities)
        a = await seed_appointment(appointments, activity, TUESDAY_10)
        await configure_email(email_settings)
        mailer = RecordingEmailService()
        assert await BookingConfirmationEmail(mailer, email_settings, appointments).execute(a.id) is False
        assert mailer.sent == []

    async def test_sent_and_logged(self, appointments, activities, email_settings):
        activity = await seed_activity(activities)
        a = await seed_appointment(appointments, activity, TUESDAY_10)
        await configure_email(email_settings, EmailTemplateType.APPOINTMENT_BOOKING)
        mailer = RecordingEmailService()
        assert await BookingConfirmationEmail(mailer, email_settings, appointments).execute(a.id) is True
        assert mailer.sent[0]["to"] == "client@example.com"
        assert mailer.sent[0]["from"] == "Studio <admin@example.com>"
        assert mailer.sent[0]["subject"] == "Booking received: Consultation"
        logs = await email_settings.find_email_logs(a.id)
        assert [log.status for log in logs] == [EmailLogStatus.SENT.value]

    async def test_failure_is_logged(self, appointments, activities, email_settings):
        activity = await seed_activity(activities)
        a = await seed_appointment(appointments, activity, TUESDAY_10)
        await configure_email(email_settings, EmailTemplateType.APPOINTMENT_BOOKING)
        assert await BookingConfirmationEmail(FailingEmailService(), email_settings, appointments).execute(a.id) is False
        logs = await email_settings.find_email_logs(a.id)
        assert logs[0].status == EmailLogStatus.FAILED.value
        assert logs[0].error_message == "550 mailbox unavailable"

    async def test_log_failure_does_not_change_outcome(self, session, appointments, activities, email_settings):
        activity = await seed_activity(activities)
        a = await seed_appointment(appointments, activity, TUESDAY_10)
        await configure_email(email_settings, EmailTemplateType.APPOINTMENT_BOOKING)
        mailer = RecordingEmailService()
        sent = await BookingConfirmationEmail(mailer, BrokenLogRepository(session), appointments).execute(a.id)
        assert sent is True
        assert len(mailer.sent) == 1

    async def test_admin_email_goes_to_administrator(self, appointments, activities, email_settings):
        activity = await seed_activity(activities)
        a = await seed_appointment(appointments, activity, TUESDAY_10)
        await configure_email(email_settings, EmailTemplateType.APPOINTMENT_ADMIN_NEW)
        mailer = RecordingEmailService()
        assert await AdminNewBookingEmail(mailer, email_settings, appointments).execute(a.id) is True
        assert mailer.sent[0]["to"] == "admin@example.com"
        assert "client@example.com" in mailer.sent[0]["body"]

    async def test_missing_appointment(self, appointments, email_settings):
        await configure_email(email_settings, EmailTemplateType.APPOINTMENT_BOOKING)
        mailer = RecordingEmailService()
        assert await BookingConfirmationEmail(mailer, email_settings, appointments).execute(999) is False
        assert mailer.sent == []


class TestStatusGates:
    async def test_cancellation_requires_cancelled_status(self, appointments, activities, email_settings):
        activity = await seed_activity(activities)
        a = await seed_appointment(appointments, activity, TUESDAY_10, status=AppointmentStatus.CONFIRMED)
        await configure_email(email_settings, EmailTemplateType.APPOINTMENT_CANCELLATION)
        mailer = RecordingEmailService()
        email = CancellationEmail(mailer, email_settings, appointments)
        assert await email.execute(a.id) is False
        await appointments.update_with_optimistic_lock(a.cancel())
        assert await email.execute(a.id) is True

    async def test_reminder_marks_flag_once(self, appointments, activities, email_settings):
        activity = await seed_activity(activities)
        a = await seed_appointment(appointments, activity, TUESDAY_10, status=AppointmentStatus.CONFIRMED)
        await configure_email(email_settings, EmailTemplateType.APPOINTMENT_REMINDER)
        mailer = RecordingEmailService()
        reminder = ReminderEmail(mailer, email_settings, appointments)
        assert await reminder.execute(a.id) is True
        stored = await appointments.find_by_id(a.id)
        assert stored.reminder_sent is True
        assert stored.version == 2
        assert await reminder.execute(a.id) is False
        assert len(mailer.sent) == 1

    async def test_reminder_skips_pending(self, appointments, activities, email_settings):
        activity = await seed_activity(activities)
        a = await seed_appointment(appointments, activity, TUESDAY_10)
        await configure_email(email_settings, EmailTemplateType.APPOINTMENT_REMINDER)
        mailer = RecordingEmailService()
        assert await ReminderEmail(mailer, email_settings, appointments).execute(a.id) is False

    async def test_failed_reminder_leaves_flag_unset(self, appointments, activities, email_settings):
        activity = await seed_activity(activities)
        a = await seed_appointment(appointments, activity, TUESDAY_10, status=AppointmentStatus.CONFIRMED)
        await configure_email(email_settings, EmailTemplateType.APPOINTMENT_REMINDER)
        assert await ReminderEmail(FailingEmailService(), email_settings, appointments).execute(a.id) is False
        stored = await appointments.find_by_id(a.id)
        assert stored.reminder_sent is False
        assert stored.version == 1


class TestBackgroundDispatch:
    async def test_sends_each_template_in_its_own_session(self, session_factory):
        async with session_factory() as s:
            activity = await seed_activity(SqlActivityRepository(s))
            a = await seed_appointment(SqlAppointmentRepository(s), activity, TUESDAY_10)
            await configure_email(
                SqlEmailSettingsRepository(s),
                EmailTemplateType.APPOINTMENT_BOOKING,
                EmailTemplateType.APPOINTMENT_ADMIN_NEW,
            )
            await s.commit()

        mailer = RecordingEmailService()
        await send_appointment_emails(
            session_factory,
            lambda _settings: mailer,
            a.id,
            EmailTemplateType.APPOINTMENT_BOOKING,
            EmailTemplateType.APPOINTMENT_ADMIN_NEW,
        )
        assert [m["to"] for m in mailer.sent] == ["client@example.com", "admin@example.com"]

        async with session_factory() as s:
            logs = await SqlEmailSettingsRepository(s).find_email_logs(a.id)
        assert len(logs) == 2


@pytest_asyncio.fixture
async def without_log_table(engine, session_factory):
    """Confirmed appointment with every template enabled, and no email_logs table to write to."""
    async with session_factory() as s:
        activity = await seed_activity(SqlActivityRepository(s))
        a = await seed_appointment(SqlAppointmentRepository(s), activity, TUESDAY_10, status=AppointmentStatus.CONFIRMED)
        await configure_email(SqlEmailSettingsRepository(s), *EmailTemplateType)
        await s.commit()
    async with engine.begin() as conn:
        await conn.execute(text("DROP TABLE email_logs"))
    return a


class TestLogStoreFailure:
    async def test_reminder_flag_still_persisted(self, session_factory, without_log_table):
        a = without_log_table
        mailer = RecordingEmailService()
        async with session_factory() as s:
            reminder = ReminderEmail(mailer, SqlEmailSettingsRepository(s), SqlAppointmentRepository(s))
            assert await reminder.execute(a.id) is True
            await s.commit()
        assert len(mailer.sent) == 1
        async with session_factory() as s:
            stored = await SqlAppointmentRepository(s).find_by_id(a.id)
        assert stored.reminder_sent is True
        assert stored.version == a.version + 1

    async def test_later_emails_in_the_batch_still_go_out(self, session_factory, without_log_table):
        a = without_log_table
        mailer = RecordingEmailService()
        await send_appointment_emails(
            session_factory,
            lambda _settings: mailer,
            a.id,
            EmailTemplateType.APPOINTMENT_BOOKING,
            EmailTemplateType.APPOINTMENT_ADMIN_NEW,
        )
        assert [m["to"] for m in mailer.sent] == ["client@example.com", "admin@example.com"]
