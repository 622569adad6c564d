import logging
from datetime import datetime

from pydantic import BaseModel

from app.core.config import settings
from app.core.errors import BookingNoticeViolation, NotFound, SlotUnavailable
from app.core.timeutils import hours_until, to_naive_utc, utc_now
from app.models.appointment import Appointment, AppointmentCreate, AppointmentStatus
from app.repositories.activity_repository import ActivityRepository
from app.repositories.appointment_repository import AppointmentRepository
from app.repositories.availability_repository import AvailabilityRepository

logger = logging.getLogger(__name__)

DEFAULT_ACTIVITY_COLOR = "#3b82f6"


async def create_appointment(
    appointments: AppointmentRepository,
    activities: ActivityRepository,
    availability: AvailabilityRepository,
    data: AppointmentCreate,
    now: datetime | None = None,
) -> Appointment:
    """Validate a booking request and persist it as a pending appointment.

    Raises NotFound, BookingNoticeViolation, InvalidClientInfo or SlotUnavailable.
    The overlap check runs again inside the repository's save, in the same
    transaction as the insert; without a storage-level constraint spanning
    whole intervals this remains a best-effort guard against concurrent bookings.
    """
    now = now or utc_now()
    start = to_naive_utc(data.date_time)

    activity = await activities.find_by_id(data.activity_id)
    if not activity:
        raise NotFound("Activity", data.activity_id)

    until = hours_until(start, now)
    if until < activity.minimum_booking_notice_hours:
        raise BookingNoticeViolation(activity.minimum_booking_notice_hours, until)

    data.client_info.check_required(activity.required_fields)

    opening_hours = await availability.find()
    if not opening_hours or not opening_hours.is_bookable(start, activity.duration_minutes, settings.business_timezone):
        raise SlotUnavailable("This time is outside the available booking hours")

    if await appointments.has_overlapping_appointment(start, activity.duration_minutes):
        raise SlotUnavailable()

    appointment = Appointment(
        activity_id=activity.id,
        activity_name=activity.name,
        activity_duration_minutes=activity.duration_minutes,
        client_info=data.client_info,
        date_time=start,
        status=AppointmentStatus.PENDING,
        version=1,
        reminder_sent=False,
        created_at=now,
        updated_at=now,
    )
    saved = await appointments.save(appointment)
    logger.info("Appointment %s booked for activity %s at %s", saved.id, activity.id, start)
    return saved


async def get_appointment(appointments: AppointmentRepository, appointment_id: int) -> Appointment:
    appointment = await appointments.find_by_id(appointment_id)
    if not appointment:
        raise NotFound("Appointment", appointment_id)
    return appointment


async def confirm_appointment(appointments: AppointmentRepository, appointment_id: int) -> Appointment:
    appointment = await get_appointment(appointments, appointment_id)
    confirmed = await appointments.update_with_optimistic_lock(appointment.confirm())
    logger.info("Appointment %s confirmed (version %d)", appointment_id, confirmed.version)
    return confirmed


async def cancel_appointment(appointments: AppointmentRepository, appointment_id: int) -> Appointment:
    appointment = await get_appointment(appointments, appointment_id)
    cancelled = await appointments.update_with_optimistic_lock(appointment.cancel())
    logger.info("Appointment %s cancelled (version %d)", appointment_id, cancelled.version)
    return cancelled


async def delete_appointment(appointments: AppointmentRepository, appointment_id: int) -> None:
    await get_appointment(appointments, appointment_id)
    await appointments.delete(appointment_id)
    logger.info("Appointment %s deleted", appointment_id)


async def list_appointments(appointments: AppointmentRepository) -> list[Appointment]:
    return await appointments.find_all()


async def get_appointments_by_date_range(
    appointments: AppointmentRepository, start: datetime, end: datetime
) -> list[Appointment]:
    return await appointments.find_by_date_range(to_naive_utc(start), to_naive_utc(end))


class CalendarEvent(BaseModel):
    id: int
    title: str
    start: datetime
    end: datetime
    color: str
    activity_id: int
    activity_name: str
    client_name: str
    client_email: str
    status: AppointmentStatus


async def get_calendar_events(
    appointments: AppointmentRepository,
    activities: ActivityRepository,
    start: datetime,
    end: datetime,
) -> list[CalendarEvent]:
    rows = await get_appointments_by_date_range(appointments, start, end)
    colors = {a.id: a.color for a in await activities.find_all()}
    return [
        CalendarEvent(
            id=a.id,
            title=f"{a.activity_name} - {a.client_info.name}",
            start=a.date_time,
            end=a.end_date_time,
            color=colors.get(a.activity_id, DEFAULT_ACTIVITY_COLOR),
            activity_id=a.activity_id,
            activity_name=a.activity_name,
            client_name=a.client_info.name,
            client_email=str(a.client_info.email),
            status=a.status,
        )
        for a in rows
        if a.id is not None
    ]
