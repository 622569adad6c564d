from datetime import date, datetime, timedelta

from app.core.config import settings
from app.core.errors import NotFound
from app.core.timeutils import day_of_week, hours_until, local_to_utc, parse_hhmm, utc_now
from app.models.appointment import AppointmentStatus
from app.repositories.activity_repository import ActivityRepository
from app.repositories.appointment_repository import AppointmentRepository
from app.repositories.availability_repository import AvailabilityRepository


def _candidate_starts(d: date, start_time: str, end_time: str, duration_minutes: int, step_minutes: int) -> list[datetime]:
    """Local wall-clock starts inside one weekly slot whose whole duration fits the slot."""
    midnight = datetime(d.year, d.month, d.day, 0, 0, 0)
    slot_end = midnight + timedelta(minutes=parse_hhmm(end_time))
    current = midnight + timedelta(minutes=parse_hhmm(start_time))
    duration = timedelta(minutes=duration_minutes)
    step = timedelta(minutes=step_minutes)
    starts: list[datetime] = []
    while current + duration <= slot_end:
        starts.append(current)
        current += step
    return starts


async def get_available_slots(
    appointments: AppointmentRepository,
    activities: ActivityRepository,
    availability: AvailabilityRepository,
    activity_id: int,
    d: date,
    now: datetime | None = None,
) -> list[tuple[datetime, datetime]]:
    """Bookable (start_utc, end_utc) pairs for an activity on a local calendar date."""
    now = now or utc_now()
    activity = await activities.find_by_id(activity_id)
    if not activity:
        raise NotFound("Activity", activity_id)
    opening_hours = await availability.find()
    if not opening_hours or opening_hours.is_date_excluded(d):
        return []
    day_slots = opening_hours.slots_for_day(day_of_week(d))
    if not day_slots:
        return []

    tz = settings.business_timezone
    duration = timedelta(minutes=activity.duration_minutes)
    day_start = local_to_utc(datetime(d.year, d.month, d.day), tz)
    # Local days are 23 or 25 hours long across DST changes
    next_day = d + timedelta(days=1)
    day_end = local_to_utc(datetime(next_day.year, next_day.month, next_day.day), tz)
    existing = [
        a
        for a in await appointments.find_by_date_range(day_start - timedelta(days=1), day_end)
        if a.status != AppointmentStatus.CANCELLED
    ]

    out: list[tuple[datetime, datetime]] = []
    for slot in day_slots:
        for local_start in _candidate_starts(
            d, slot.start_time, slot.end_time, activity.duration_minutes, settings.slot_step_minutes
        ):
            start = local_to_utc(local_start, tz)
            end = start + duration
            if hours_until(start, now) < activity.minimum_booking_notice_hours:
                continue
            if not opening_hours.is_bookable(start, activity.duration_minutes, tz):
                continue
            if any(a.date_time < end and start < a.end_date_time for a in existing):
                continue
            out.append((start, end))
    out.sort()
    return out
