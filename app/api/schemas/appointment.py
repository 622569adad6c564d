from datetime import datetime

from pydantic import BaseModel

from app.models.appointment import Appointment, AppointmentStatus, ClientInfo
from app.models.availability import AvailabilityException, WeeklySlot


class SlotInfo(BaseModel):
    start_utc: datetime
    end_utc: datetime


class AvailableSlotsResponse(BaseModel):
    date: str  # YYYY-MM-DD
    activity_id: int
    slots: list[SlotInfo]


class BookAppointmentRequest(BaseModel):
    activity_id: int
    date_time: datetime
    client_info: ClientInfo


class AppointmentPublic(BaseModel):
    id: int
    activity_id: int
    activity_name: str
    activity_duration_minutes: int
    client_info: ClientInfo
    date_time: datetime
    end_date_time: datetime
    status: AppointmentStatus
    version: int
    reminder_sent: bool
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_domain(cls, a: Appointment) -> "AppointmentPublic":
        return cls(
            id=a.id,
            activity_id=a.activity_id,
            activity_name=a.activity_name,
            activity_duration_minutes=a.activity_duration_minutes,
            client_info=a.client_info,
            date_time=a.date_time,
            end_date_time=a.end_date_time,
            status=a.status,
            version=a.version,
            reminder_sent=a.reminder_sent,
            created_at=a.created_at,
            updated_at=a.updated_at,
        )


class AvailabilityPayload(BaseModel):
    weekly_slots: list[WeeklySlot] = []
    exceptions: list[AvailabilityException] = []


class AvailabilityPublic(AvailabilityPayload):
    updated_at: datetime
