from datetime import datetime, timedelta
from enum import Enum

from pydantic import BaseModel, ConfigDict, EmailStr, Field as PydanticField, field_validator
from sqlalchemy import Column, DateTime, Index, text
from sqlmodel import Field, SQLModel

from app.core.errors import InvalidClientInfo, InvalidStatusTransition
from app.core.timeutils import utc_now
from app.models.activity import RequiredFieldsConfig


class AppointmentStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"

    def can_transition_to(self, target: "AppointmentStatus") -> bool:
        return target in _TRANSITIONS[self]


# No "completed" state: past appointments simply age out.
_TRANSITIONS: dict[AppointmentStatus, frozenset[AppointmentStatus]] = {
    AppointmentStatus.PENDING: frozenset({AppointmentStatus.CONFIRMED, AppointmentStatus.CANCELLED}),
    AppointmentStatus.CONFIRMED: frozenset({AppointmentStatus.CANCELLED}),
    AppointmentStatus.CANCELLED: frozenset(),
}


class ClientInfo(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    email: EmailStr
    phone: str | None = None
    address: str | None = None
    custom_field: str | None = None

    @field_validator("name")
    @classmethod
    def _name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Client name is required")
        return v

    @field_validator("phone", "address", "custom_field", mode="before")
    @classmethod
    def _blank(cls, v: str | None) -> str | None:
        if v is None:
            return None
        return v.strip() or None

    def check_required(self, required: RequiredFieldsConfig) -> None:
        missing = []
        if required.phone and not self.phone:
            missing.append("phone")
        if required.address and not self.address:
            missing.append("address")
        if required.custom_field and not self.custom_field:
            missing.append(required.custom_field_label or "custom_field")
        if missing:
            raise InvalidClientInfo(f"Missing required client fields: {', '.join(missing)}")


class Appointment(BaseModel):
    """One booking. Transition methods return new values; persistence does the
    versioned compare-and-swap, so `version` here is the version last read."""

    model_config = ConfigDict(frozen=True)

    id: int | None = None
    activity_id: int
    activity_name: str
    activity_duration_minutes: int = PydanticField(gt=0)
    client_info: ClientInfo
    date_time: datetime
    status: AppointmentStatus = AppointmentStatus.PENDING
    version: int = PydanticField(default=1, ge=1)
    reminder_sent: bool = False
    created_at: datetime = PydanticField(default_factory=utc_now)
    updated_at: datetime = PydanticField(default_factory=utc_now)

    @field_validator("activity_name")
    @classmethod
    def _activity_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Activity name is required")
        return v

    @property
    def end_date_time(self) -> datetime:
        return self.date_time + timedelta(minutes=self.activity_duration_minutes)

    def overlaps(self, other: "Appointment") -> bool:
        return self.date_time < other.end_date_time and other.date_time < self.end_date_time

    def _transition(self, target: AppointmentStatus) -> "Appointment":
        if not self.status.can_transition_to(target):
            raise InvalidStatusTransition(self.status.value, target.value)
        return self.model_copy(update={"status": target, "updated_at": utc_now()})

    def confirm(self) -> "Appointment":
        return self._transition(AppointmentStatus.CONFIRMED)

    def cancel(self) -> "Appointment":
        return self._transition(AppointmentStatus.CANCELLED)

    def mark_reminder_sent(self) -> "Appointment":
        return self.model_copy(update={"reminder_sent": True, "updated_at": utc_now()})


class AppointmentCreate(BaseModel):
    activity_id: int
    date_time: datetime
    client_info: ClientInfo


class AppointmentRecord(SQLModel, table=True):
    __tablename__ = "appointments"
    __table_args__ = (
        # One live booking per start instant; cancelled rows free the slot
        Index(
            "uq_appointments_active_start",
            "date_time",
            unique=True,
            postgresql_where=text("status <> 'cancelled'"),
            sqlite_where=text("status <> 'cancelled'"),
        ),
    )
    id: int | None = Field(default=None, primary_key=True)
    activity_id: int = Field(foreign_key="activities.id", index=True)
    activity_name: str
    activity_duration_minutes: int
    client_name: str
    client_email: str
    client_phone: str | None = None
    client_address: str | None = None
    client_custom_field: str | None = None
    date_time: datetime = Field(sa_column=Column(DateTime(), nullable=False, index=True))
    end_date_time: datetime = Field(sa_column=Column(DateTime(), nullable=False, index=True))
    status: str = Field(default=AppointmentStatus.PENDING.value, index=True)
    version: int = 1
    reminder_sent: bool = False
    created_at: datetime = Field(default_factory=utc_now, sa_column=Column(DateTime(), nullable=False))
    updated_at: datetime = Field(default_factory=utc_now, sa_column=Column(DateTime(), nullable=False))
