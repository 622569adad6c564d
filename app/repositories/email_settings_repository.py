from abc import ABC, abstractmethod

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.email import (
    EmailLog,
    EmailLogRecord,
    EmailSettings,
    EmailSettingsRecord,
    EmailTemplate,
    EmailTemplateRecord,
    EmailTemplateType,
    EncryptionType,
    SmtpSettings,
)


class EmailSettingsRepository(ABC):
    @abstractmethod
    async def get_smtp_settings(self) -> SmtpSettings: ...

    @abstractmethod
    async def get_email_settings(self) -> EmailSettings: ...

    @abstractmethod
    async def get_email_template(self, template_type: EmailTemplateType) -> EmailTemplate:
        """Stored template, or the disabled default when none was saved."""

    @abstractmethod
    async def save_email_log(self, log: EmailLog) -> None: ...


class SqlEmailSettingsRepository(EmailSettingsRepository):
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def _settings_row(self) -> EmailSettingsRecord | None:
        result = await self.session.execute(select(EmailSettingsRecord).order_by(EmailSettingsRecord.id).limit(1))
        return result.scalar_one_or_none()

    async def get_smtp_settings(self) -> SmtpSettings:
        row = await self._settings_row()
        if not row:
            return SmtpSettings()
        return SmtpSettings(
            host=row.smtp_host,
            port=row.smtp_port,
            username=row.smtp_username,
            password=row.smtp_password,
            encryption=EncryptionType(row.smtp_encryption),
        )

    async def get_email_settings(self) -> EmailSettings:
        row = await self._settings_row()
        if not row:
            return EmailSettings()
        return EmailSettings(administrator_email=row.administrator_email, from_name=row.from_name)

    async def save_smtp_settings(self, smtp: SmtpSettings) -> None:
        row = await self._settings_row() or EmailSettingsRecord()
        row.smtp_host = smtp.host
        row.smtp_port = smtp.port
        row.smtp_username = smtp.username
        row.smtp_password = smtp.password
        row.smtp_encryption = smtp.encryption.value
        self.session.add(row)
        await self.session.flush()

    async def save_email_settings(self, email_settings: EmailSettings) -> None:
        row = await self._settings_row() or EmailSettingsRecord()
        row.administrator_email = email_settings.administrator_email
        row.from_name = email_settings.from_name
        self.session.add(row)
        await self.session.flush()

    async def get_email_template(self, template_type: EmailTemplateType) -> EmailTemplate:
        row = await self.session.get(EmailTemplateRecord, template_type.value)
        if not row:
            return EmailTemplate.default(template_type)
        return EmailTemplate(type=template_type, subject=row.subject, body=row.body, enabled=row.enabled)

    async def save_email_template(self, template: EmailTemplate) -> None:
        row = await self.session.get(EmailTemplateRecord, template.type.value)
        if not row:
            row = EmailTemplateRecord(type=template.type.value, subject=template.subject, body=template.body)
        row.subject = template.subject
        row.body = template.body
        row.enabled = template.enabled
        self.session.add(row)
        await self.session.flush()

    async def save_email_log(self, log: EmailLog) -> None:
        # Savepoint: a failed insert must leave the caller's transaction usable
        async with self.session.begin_nested():
            self.session.add(
                EmailLogRecord(
                    appointment_id=log.appointment_id,
                    template_type=log.template_type.value,
                    recipient=log.recipient,
                    subject=log.subject,
                    status=log.status.value,
                    error_message=log.error_message,
                    sent_at=log.sent_at,
                )
            )

    async def find_email_logs(self, appointment_id: int | None = None) -> list[EmailLogRecord]:
        q = select(EmailLogRecord).order_by(EmailLogRecord.sent_at.desc())
        if appointment_id is not None:
            q = q.where(EmailLogRecord.appointment_id == appointment_id)
        result = await self.session.execute(q)
        return list(result.scalars().all())
