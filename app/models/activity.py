import re
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field as PydanticField, field_validator
from sqlalchemy import Column, DateTime
from sqlmodel import Field, SQLModel

from app.core.timeutils import utc_now

HEX_COLOR_RE = re.compile(r"^#([A-Fa-f0-9]{6}|[A-Fa-f0-9]{3})$")


class RequiredFieldsConfig(BaseModel):
    """Which optional client fields an activity insists on at booking time."""

    model_config = ConfigDict(frozen=True)

    phone: bool = False
    address: bool = False
    custom_field: bool = False
    custom_field_label: str | None = None


class ReminderSettings(BaseModel):
    model_config = ConfigDict(frozen=True)

    enabled: bool = True
    hours_before: int = PydanticField(default=24, ge=1)


class ActivityBase(BaseModel):
    name: str
    description: str | None = None
    duration_minutes: int = PydanticField(gt=0)
    color: str = "#3b82f6"
    price: float = PydanticField(default=0, ge=0)
    required_fields: RequiredFieldsConfig = RequiredFieldsConfig()
    reminder_settings: ReminderSettings = ReminderSettings()
    minimum_booking_notice_hours: float = PydanticField(default=0, ge=0)

    @field_validator("name")
    @classmethod
    def _name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Activity name is required")
        return v

    @field_validator("description")
    @classmethod
    def _description(cls, v: str | None) -> str | None:
        return v.strip() or None if v is not None else None

    @field_validator("color")
    @classmethod
    def _color(cls, v: str) -> str:
        if not HEX_COLOR_RE.match(v):
            raise ValueError("Invalid color (expected #RRGGBB or #RGB)")
        return v.lower()


class ActivityCreate(ActivityBase):
    pass


class Activity(ActivityBase):
    """Bookable service type. Reference data for the scheduling core."""

    model_config = ConfigDict(frozen=True)

    id: int | None = None
    created_at: datetime = PydanticField(default_factory=utc_now)
    updated_at: datetime = PydanticField(default_factory=utc_now)

    def update(self, data: ActivityCreate) -> "Activity":
        return Activity(
            **data.model_dump(),
            id=self.id,
            created_at=self.created_at,
            updated_at=utc_now(),
        )


class ActivityRecord(SQLModel, table=True):
    __tablename__ = "activities"
    id: int | None = Field(default=None, primary_key=True)
    name: str
    description: str | None = None
    duration_minutes: int
    color: str = "#3b82f6"
    price: float = 0
    require_phone: bool = False
    require_address: bool = False
    require_custom_field: bool = False
    custom_field_label: str | None = None
    reminder_enabled: bool = True
    reminder_hours_before: int = 24
    minimum_booking_notice_hours: float = 0
    created_at: datetime = Field(default_factory=utc_now, sa_column=Column(DateTime(), nullable=False))
    updated_at: datetime = Field(default_factory=utc_now, sa_column=Column(DateTime(), nullable=False))
