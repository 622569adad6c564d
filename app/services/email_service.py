import asyncio
import logging
import smtplib
from abc import ABC, abstractmethod
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import parseaddr

from app.core.config import settings
from app.models.email import EmailSendResult, EncryptionType, SmtpSettings
from app.repositories.email_settings_repository import EmailSettingsRepository

logger = logging.getLogger(__name__)


class EmailService(ABC):
    """Mail transport. Reports failure through the result rather than raising."""

    @abstractmethod
    async def send_email(self, from_email: str, to: str, subject: str, body: str) -> EmailSendResult: ...


def _send_email_sync(smtp: SmtpSettings, from_email: str, to_email: str, subject: str, body: str) -> None:
    """Send email via SMTP (blocking). Run in a worker thread."""
    msg = MIMEMultipart("alternative")
    msg["Subject"] = subject
    msg["From"] = from_email
    msg["To"] = to_email
    msg.attach(MIMEText(body, "plain", "utf-8"))
    if smtp.encryption == EncryptionType.SSL:
        server = smtplib.SMTP_SSL(smtp.host, smtp.port, timeout=settings.smtp_timeout_seconds)
    else:
        server = smtplib.SMTP(smtp.host, smtp.port, timeout=settings.smtp_timeout_seconds)
    with server:
        if smtp.encryption == EncryptionType.TLS:
            server.starttls()
        server.login(smtp.username, smtp.password)
        server.sendmail(parseaddr(from_email)[1], [to_email], msg.as_string())


class SmtpEmailService(EmailService):
    def __init__(self, email_settings: EmailSettingsRepository) -> None:
        self.email_settings = email_settings

    async def send_email(self, from_email: str, to: str, subject: str, body: str) -> EmailSendResult:
        smtp = await self.email_settings.get_smtp_settings()
        if not smtp.is_configured:
            logger.debug("Email disabled (SMTP not configured), skipping send")
            return EmailSendResult(success=False, error_message="SMTP is not configured")
        try:
            await asyncio.to_thread(_send_email_sync, smtp, from_email, to, subject, body)
        except (smtplib.SMTPException, OSError) as e:
            logger.exception("Failed to send email to %s: %s", to, e)
            return EmailSendResult(success=False, error_message=str(e))
        logger.info("Email sent to %s", to)
        return EmailSendResult(success=True)
