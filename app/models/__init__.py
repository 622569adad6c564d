from app.models.activity import (
    Activity,
    ActivityCreate,
    ActivityRecord,
    ReminderSettings,
    RequiredFieldsConfig,
)
from app.models.appointment import (
    Appointment,
    AppointmentCreate,
    AppointmentRecord,
    AppointmentStatus,
    ClientInfo,
)
from app.models.availability import (
    Availability,
    AvailabilityException,
    AvailabilityRecord,
    WeeklySlot,
)
from app.models.email import (
    EmailLog,
    EmailLogRecord,
    EmailLogStatus,
    EmailSendResult,
    EmailSettings,
    EmailSettingsRecord,
    EmailTemplate,
    EmailTemplateRecord,
    EmailTemplateType,
    EncryptionType,
    SmtpSettings,
)

__all__ = [
    "Activity",
    "ActivityCreate",
    "ActivityRecord",
    "ReminderSettings",
    "RequiredFieldsConfig",
    "Appointment",
    "AppointmentCreate",
    "AppointmentRecord",
    "AppointmentStatus",
    "ClientInfo",
    "Availability",
    "AvailabilityException",
    "AvailabilityRecord",
    "WeeklySlot",
    "EmailLog",
    "EmailLogRecord",
    "EmailLogStatus",
    "EmailSendResult",
    "EmailSettings",
    "EmailSettingsRecord",
    "EmailTemplate",
    "EmailTemplateRecord",
    "EmailTemplateType",
    "EncryptionType",
    "SmtpSettings",
]
