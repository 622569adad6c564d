from datetime import date, datetime, time, timedelta

from pydantic import BaseModel, ConfigDict, Field as PydanticField, field_validator, model_validator
from sqlalchemy import JSON, Column, DateTime
from sqlmodel import Field, SQLModel

from app.core.timeutils import day_of_week, parse_hhmm, to_local, utc_now


class WeeklySlot(BaseModel):
    """Recurring open hours on one day of the week (0 = Sunday ... 6 = Saturday)."""

    model_config = ConfigDict(frozen=True)

    day_of_week: int = PydanticField(ge=0, le=6)
    start_time: str
    end_time: str

    @field_validator("start_time", "end_time")
    @classmethod
    def _check_format(cls, v: str) -> str:
        parse_hhmm(v)
        return v

    @model_validator(mode="after")
    def _check_order(self) -> "WeeklySlot":
        if parse_hhmm(self.end_time) <= parse_hhmm(self.start_time):
            raise ValueError("end_time must be after start_time")
        return self

    @property
    def start_minutes(self) -> int:
        return parse_hhmm(self.start_time)

    @property
    def end_minutes(self) -> int:
        return parse_hhmm(self.end_time)

    @property
    def duration_minutes(self) -> int:
        return self.end_minutes - self.start_minutes

    def overlaps(self, other: "WeeklySlot") -> bool:
        if self.day_of_week != other.day_of_week:
            return False
        return self.start_minutes < other.end_minutes and other.start_minutes < self.end_minutes

    def contains(self, start_minutes: float, end_minutes: float) -> bool:
        return self.start_minutes <= start_minutes and end_minutes <= self.end_minutes


class AvailabilityException(BaseModel):
    """Date-range blackout. Without times it blocks whole days; with times it
    blocks the same sub-interval on every day of the range."""

    model_config = ConfigDict(frozen=True)

    start_date: date
    end_date: date
    start_time: str | None = None
    end_time: str | None = None
    reason: str | None = None

    @field_validator("start_time", "end_time", mode="before")
    @classmethod
    def _blank_time(cls, v: str | None) -> str | None:
        return v or None

    @field_validator("reason", mode="before")
    @classmethod
    def _trim_reason(cls, v: str | None) -> str | None:
        if v is None:
            return None
        return v.strip() or None

    @model_validator(mode="after")
    def _check(self) -> "AvailabilityException":
        if self.end_date < self.start_date:
            raise ValueError("end_date must not be before start_date")
        if (self.start_time is None) != (self.end_time is None):
            raise ValueError("start_time and end_time must be provided together")
        if self.start_time is not None and parse_hhmm(self.end_time) <= parse_hhmm(self.start_time):
            raise ValueError("end_time must be after start_time")
        return self

    @property
    def is_all_day(self) -> bool:
        return self.start_time is None

    def covers_date(self, d: date) -> bool:
        return self.start_date <= d <= self.end_date

    def blocks(self, d: date, start_minutes: float, end_minutes: float) -> bool:
        if not self.covers_date(d):
            return False
        if self.is_all_day:
            return True
        return parse_hhmm(self.start_time) < end_minutes and start_minutes < parse_hhmm(self.end_time)


class Availability(BaseModel):
    """Singleton aggregate: weekly open hours plus date exceptions. Edited wholesale."""

    model_config = ConfigDict(frozen=True)

    id: int | None = None
    weekly_slots: tuple[WeeklySlot, ...] = ()
    exceptions: tuple[AvailabilityException, ...] = ()
    updated_at: datetime = PydanticField(default_factory=utc_now)

    @classmethod
    def empty(cls) -> "Availability":
        return cls()

    def slots_for_day(self, dow: int) -> list[WeeklySlot]:
        return [s for s in self.weekly_slots if s.day_of_week == dow]

    def is_date_excluded(self, d: date) -> bool:
        return any(e.is_all_day and e.covers_date(d) for e in self.exceptions)

    def is_bookable(self, instant: datetime, duration_minutes: int, tz_name: str = "UTC") -> bool:
        """True when [instant, instant + duration) sits inside one weekly slot and
        touches no blocking exception. Intervals crossing local midnight are never
        bookable; adjacent slots are not merged."""
        if duration_minutes <= 0:
            return False
        local_start = to_local(instant, tz_name)
        local_end = to_local(instant + timedelta(minutes=duration_minutes), tz_name)
        day = local_start.date()
        if local_end.date() != day:
            return False
        midnight = datetime.combine(day, time())
        start_minutes = (local_start - midnight).total_seconds() / 60
        end_minutes = (local_end - midnight).total_seconds() / 60
        if any(e.blocks(day, start_minutes, end_minutes) for e in self.exceptions):
            return False
        return any(s.contains(start_minutes, end_minutes) for s in self.slots_for_day(day_of_week(day)))

    def add_weekly_slot(self, slot: WeeklySlot) -> "Availability":
        if any(existing.overlaps(slot) for existing in self.weekly_slots):
            raise ValueError("This slot overlaps an existing slot")
        return self.model_copy(update={"weekly_slots": (*self.weekly_slots, slot), "updated_at": utc_now()})

    def remove_weekly_slot(self, slot: WeeklySlot) -> "Availability":
        remaining = tuple(s for s in self.weekly_slots if s != slot)
        return self.model_copy(update={"weekly_slots": remaining, "updated_at": utc_now()})

    def add_exception(self, exception: AvailabilityException) -> "Availability":
        return self.model_copy(update={"exceptions": (*self.exceptions, exception), "updated_at": utc_now()})

    def remove_exceptions_on(self, d: date) -> "Availability":
        remaining = tuple(e for e in self.exceptions if not e.covers_date(d))
        return self.model_copy(update={"exceptions": remaining, "updated_at": utc_now()})

    def replace(
        self,
        weekly_slots: list[WeeklySlot] | None = None,
        exceptions: list[AvailabilityException] | None = None,
    ) -> "Availability":
        slots = tuple(weekly_slots) if weekly_slots is not None else self.weekly_slots
        for i, slot in enumerate(slots):
            if any(slot.overlaps(other) for other in slots[i + 1:]):
                raise ValueError(f"Slot {slot.start_time}-{slot.end_time} overlaps another slot on the same day")
        return self.model_copy(
            update={
                "weekly_slots": slots,
                "exceptions": tuple(exceptions) if exceptions is not None else self.exceptions,
                "updated_at": utc_now(),
            }
        )


class AvailabilityRecord(SQLModel, table=True):
    __tablename__ = "availability"
    id: int | None = Field(default=None, primary_key=True)
    weekly_slots: list[dict] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))
    exceptions: list[dict] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))
    updated_at: datetime = Field(default_factory=utc_now, sa_column=Column(DateTime(), nullable=False))
