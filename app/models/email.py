from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field as PydanticField, field_validator
from sqlalchemy import Column, DateTime
from sqlmodel import Field, SQLModel

from app.core.timeutils import utc_now


class EmailTemplateType(str, Enum):
    APPOINTMENT_BOOKING = "appointment-booking"
    APPOINTMENT_ADMIN_CONFIRMATION = "appointment-admin-confirmation"
    APPOINTMENT_ADMIN_NEW = "appointment-admin-new"
    APPOINTMENT_REMINDER = "appointment-reminder"
    APPOINTMENT_CANCELLATION = "appointment-cancellation"


class EncryptionType(str, Enum):
    NONE = "none"
    SSL = "ssl"
    TLS = "tls"


class SmtpSettings(BaseModel):
    model_config = ConfigDict(frozen=True)

    host: str = ""
    port: int = PydanticField(default=587, ge=1, le=65535)
    username: str = ""
    password: str = ""
    encryption: EncryptionType = EncryptionType.TLS

    @property
    def is_configured(self) -> bool:
        return bool(self.host and self.username and self.password)


class EmailSettings(BaseModel):
    model_config = ConfigDict(frozen=True)

    administrator_email: str = ""
    from_name: str = ""

    @property
    def is_configured(self) -> bool:
        return bool(self.administrator_email)

    @property
    def sender(self) -> str:
        """From header value: display name plus the administrator address."""
        if not self.from_name:
            return self.administrator_email
        return f"{self.from_name} <{self.administrator_email}>"


_DEFAULT_TEMPLATES: dict[EmailTemplateType, tuple[str, str]] = {
    EmailTemplateType.APPOINTMENT_BOOKING: (
        "Booking received: {{appointment_activity}}",
        "Hello {{customer_name}},\n\n"
        "We have received your booking.\n\n"
        "Activity: {{appointment_activity}}\n"
        "Date: {{appointment_date}}\n"
        "Time: {{appointment_time}}\n"
        "Duration: {{appointment_duration}}\n\n"
        "Phone: {{customer_phone}}\n"
        "Notes: {{customer_notes}}\n\n"
        "Kind regards",
    ),
    EmailTemplateType.APPOINTMENT_ADMIN_CONFIRMATION: (
        "Your appointment is confirmed: {{appointment_activity}}",
        "Hello {{customer_name}},\n\n"
        "Good news, our team has confirmed your appointment.\n\n"
        "Activity: {{appointment_activity}}\n"
        "Date: {{appointment_date}}\n"
        "Time: {{appointment_time}}\n"
        "Duration: {{appointment_duration}}\n\n"
        "See you soon!",
    ),
    EmailTemplateType.APPOINTMENT_ADMIN_NEW: (
        "New booking: {{appointment_activity}} - {{customer_name}}",
        "A new appointment has been booked.\n\n"
        "Activity: {{appointment_activity}}\n"
        "Date: {{appointment_date}}\n"
        "Time: {{appointment_time}}\n"
        "Duration: {{appointment_duration}}\n\n"
        "Client: {{customer_name}}\n"
        "Email: {{customer_email}}\n"
        "Phone: {{customer_phone}}\n"
        "Notes: {{customer_notes}}\n\n"
        "Status: awaiting confirmation",
    ),
    EmailTemplateType.APPOINTMENT_REMINDER: (
        "Reminder: {{appointment_activity}}",
        "Hello {{customer_name}},\n\n"
        "This is a reminder for your upcoming appointment.\n\n"
        "Activity: {{appointment_activity}}\n"
        "Date: {{appointment_date}}\n"
        "Time: {{appointment_time}}\n"
        "Duration: {{appointment_duration}}\n\n"
        "See you soon!",
    ),
    EmailTemplateType.APPOINTMENT_CANCELLATION: (
        "Appointment cancelled: {{appointment_activity}}",
        "Hello {{customer_name}},\n\n"
        "Your appointment has been cancelled.\n\n"
        "Activity: {{appointment_activity}}\n"
        "Planned date: {{appointment_date}}\n"
        "Planned time: {{appointment_time}}\n\n"
        "We hope to see you again soon.",
    ),
}


class EmailTemplate(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: EmailTemplateType
    subject: str = PydanticField(max_length=200)
    body: str = PydanticField(max_length=10000)
    enabled: bool = False

    @field_validator("subject", "body")
    @classmethod
    def _not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("must not be empty")
        return v

    @classmethod
    def default(cls, template_type: EmailTemplateType) -> "EmailTemplate":
        subject, body = _DEFAULT_TEMPLATES[template_type]
        return cls(type=template_type, subject=subject, body=body, enabled=False)


class EmailLogStatus(str, Enum):
    SENT = "sent"
    FAILED = "failed"


class EmailLog(BaseModel):
    model_config = ConfigDict(frozen=True)

    appointment_id: int | None
    template_type: EmailTemplateType
    recipient: str
    subject: str
    status: EmailLogStatus
    error_message: str | None = None
    sent_at: datetime = PydanticField(default_factory=utc_now)

    @classmethod
    def sent(cls, appointment_id: int | None, template_type: EmailTemplateType, recipient: str, subject: str) -> "EmailLog":
        return cls(
            appointment_id=appointment_id,
            template_type=template_type,
            recipient=recipient,
            subject=subject,
            status=EmailLogStatus.SENT,
        )

    @classmethod
    def failed(
        cls,
        appointment_id: int | None,
        template_type: EmailTemplateType,
        recipient: str,
        subject: str,
        error_message: str,
    ) -> "EmailLog":
        return cls(
            appointment_id=appointment_id,
            template_type=template_type,
            recipient=recipient,
            subject=subject,
            status=EmailLogStatus.FAILED,
            error_message=error_message or "Unknown error",
        )


class EmailSendResult(BaseModel):
    success: bool
    error_message: str | None = None


class EmailSettingsRecord(SQLModel, table=True):
    __tablename__ = "email_settings"
    id: int | None = Field(default=None, primary_key=True)
    smtp_host: str = ""
    smtp_port: int = 587
    smtp_username: str = ""
    smtp_password: str = ""
    smtp_encryption: str = EncryptionType.TLS.value
    administrator_email: str = ""
    from_name: str = ""
    updated_at: datetime = Field(default_factory=utc_now, sa_column=Column(DateTime(), nullable=False))


class EmailTemplateRecord(SQLModel, table=True):
    __tablename__ = "email_templates"
    type: str = Field(primary_key=True)
    subject: str
    body: str
    enabled: bool = False
    updated_at: datetime = Field(default_factory=utc_now, sa_column=Column(DateTime(), nullable=False))


class EmailLogRecord(SQLModel, table=True):
    __tablename__ = "email_logs"
    id: int | None = Field(default=None, primary_key=True)
    appointment_id: int | None = Field(default=None, index=True)
    template_type: str
    recipient: str
    subject: str
    status: str
    error_message: str | None = None
    sent_at: datetime = Field(default_factory=utc_now, sa_column=Column(DateTime(), nullable=False, index=True))
