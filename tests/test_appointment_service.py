from datetime import date, datetime, timedelta

import pytest

from app.core.config import settings
from app.core.errors import (
    ActivityInUse,
    BookingNoticeViolation,
    InvalidClientInfo,
    InvalidStatusTransition,
    NotFound,
    SlotUnavailable,
)
from app.models.activity import ActivityCreate, RequiredFieldsConfig
from app.models.appointment import AppointmentCreate, AppointmentStatus, ClientInfo
from app.models.availability import AvailabilityException, WeeklySlot
from app.services.activity_service import create_activity, delete_activity, update_activity
from app.services.appointment_service import (
    cancel_appointment,
    confirm_appointment,
    create_appointment,
    delete_appointment,
    get_appointment,
    get_calendar_events,
)
from app.services.availability_service import get_availability, update_availability
from app.services.slot_service import get_available_slots
from factories import NOW, seed_activity, seed_appointment, seed_weekdays

TUESDAY_10 = datetime(2030, 6, 4, 10, 0)


def request(activity_id: int, when: datetime, **client) -> AppointmentCreate:
    info = {"name": "Ada Client", "email": "ada@example.com"}
    info.update(client)
    return AppointmentCreate(activity_id=activity_id, date_time=when, client_info=ClientInfo(**info))


class TestCreateAppointment:
    async def test_books_pending_appointment(self, appointments, activities, availability):
        activity = await seed_activity(activities)
        await seed_weekdays(availability)
        a = await create_appointment(appointments, activities, availability, request(activity.id, TUESDAY_10), now=NOW)
        assert a.id is not None
        assert a.status == AppointmentStatus.PENDING
        assert a.version == 1
        assert a.reminder_sent is False
        assert a.activity_name == "Consultation"
        assert a.activity_duration_minutes == 60

    async def test_overlapping_booking_rejected(self, appointments, activities, availability):
        """A 60-minute booking at 10:00 blocks a second one at 10:30."""
        activity = await seed_activity(activities)
        await seed_weekdays(availability)
        await create_appointment(appointments, activities, availability, request(activity.id, TUESDAY_10), now=NOW)
        with pytest.raises(SlotUnavailable):
            await create_appointment(
                appointments,
                activities,
                availability,
                request(activity.id, TUESDAY_10 + timedelta(minutes=30), email="bob@example.com"),
                now=NOW,
            )
        rows = await appointments.find_all()
        assert len(rows) == 1

    async def test_minimum_notice(self, appointments, activities, availability):
        """24h notice: a booking 23h out is rejected and nothing is stored."""
        activity = await seed_activity(activities, minimum_booking_notice_hours=24)
        await seed_weekdays(availability)
        too_soon = TUESDAY_10
        with pytest.raises(BookingNoticeViolation):
            await create_appointment(
                appointments, activities, availability, request(activity.id, too_soon), now=too_soon - timedelta(hours=23)
            )
        assert await appointments.find_all() == []

    async def test_notice_boundary_is_inclusive(self, appointments, activities, availability):
        activity = await seed_activity(activities, minimum_booking_notice_hours=24)
        await seed_weekdays(availability)
        a = await create_appointment(
            appointments, activities, availability, request(activity.id, TUESDAY_10), now=TUESDAY_10 - timedelta(hours=24)
        )
        assert a.id is not None

    async def test_unknown_activity(self, appointments, activities, availability):
        with pytest.raises(NotFound):
            await create_appointment(appointments, activities, availability, request(42, TUESDAY_10), now=NOW)

    async def test_required_client_fields(self, appointments, activities, availability):
        activity = await seed_activity(activities, required_fields=RequiredFieldsConfig(phone=True))
        await seed_weekdays(availability)
        with pytest.raises(InvalidClientInfo):
            await create_appointment(appointments, activities, availability, request(activity.id, TUESDAY_10), now=NOW)
        a = await create_appointment(
            appointments, activities, availability, request(activity.id, TUESDAY_10, phone="555-0100"), now=NOW
        )
        assert a.client_info.phone == "555-0100"

    async def test_outside_opening_hours(self, appointments, activities, availability):
        activity = await seed_activity(activities)
        await seed_weekdays(availability)
        with pytest.raises(SlotUnavailable):
            await create_appointment(
                appointments, activities, availability, request(activity.id, datetime(2030, 6, 8, 10, 0)), now=NOW
            )
        with pytest.raises(SlotUnavailable):
            await create_appointment(
                appointments, activities, availability, request(activity.id, datetime(2030, 6, 4, 16, 30)), now=NOW
            )

    async def test_no_availability_configured(self, appointments, activities, availability):
        activity = await seed_activity(activities)
        with pytest.raises(SlotUnavailable):
            await create_appointment(appointments, activities, availability, request(activity.id, TUESDAY_10), now=NOW)


class TestTransitions:
    async def test_confirm_then_cancel(self, appointments, activities, availability):
        activity = await seed_activity(activities)
        await seed_weekdays(availability)
        a = await create_appointment(appointments, activities, availability, request(activity.id, TUESDAY_10), now=NOW)
        confirmed = await confirm_appointment(appointments, a.id)
        assert confirmed.status == AppointmentStatus.CONFIRMED
        assert confirmed.version == 2
        cancelled = await cancel_appointment(appointments, a.id)
        assert cancelled.status == AppointmentStatus.CANCELLED
        assert cancelled.version == 3
        with pytest.raises(InvalidStatusTransition):
            await confirm_appointment(appointments, a.id)

    async def test_missing_appointment(self, appointments):
        with pytest.raises(NotFound):
            await confirm_appointment(appointments, 404)
        with pytest.raises(NotFound):
            await delete_appointment(appointments, 404)

    async def test_delete(self, appointments, activities, availability):
        activity = await seed_activity(activities)
        await seed_weekdays(availability)
        a = await create_appointment(appointments, activities, availability, request(activity.id, TUESDAY_10), now=NOW)
        await delete_appointment(appointments, a.id)
        with pytest.raises(NotFound):
            await get_appointment(appointments, a.id)


class TestCalendar:
    async def test_events_use_activity_color(self, appointments, activities, availability):
        activity = await seed_activity(activities, color="#FF0000")
        await seed_weekdays(availability)
        await create_appointment(appointments, activities, availability, request(activity.id, TUESDAY_10), now=NOW)
        events = await get_calendar_events(
            appointments, activities, datetime(2030, 6, 4), datetime(2030, 6, 4, 23, 59)
        )
        assert len(events) == 1
        assert events[0].color == "#ff0000"
        assert events[0].title == "Consultation - Ada Client"
        assert events[0].end == datetime(2030, 6, 4, 11, 0)


class TestAvailableSlots:
    async def test_slots_skip_booked_times(self, appointments, activities, availability):
        activity = await seed_activity(activities)
        await seed_weekdays(availability, "09:00", "12:00")
        await create_appointment(appointments, activities, availability, request(activity.id, TUESDAY_10), now=NOW)
        slots = await get_available_slots(appointments, activities, availability, activity.id, date(2030, 6, 4), now=NOW)
        starts = [s for s, _ in slots]
        # 09:30 and 10:30 would overlap the 10:00 booking
        assert starts == [datetime(2030, 6, 4, 9, 0), datetime(2030, 6, 4, 11, 0)]
        assert slots[0][1] == datetime(2030, 6, 4, 10, 0)

    async def test_excluded_day_has_no_slots(self, appointments, activities, availability):
        activity = await seed_activity(activities)
        await update_availability(
            availability,
            [WeeklySlot(day_of_week=2, start_time="09:00", end_time="12:00")],
            [AvailabilityException(start_date=date(2030, 6, 4), end_date=date(2030, 6, 4), reason="Closed")],
        )
        assert await get_available_slots(appointments, activities, availability, activity.id, date(2030, 6, 4), now=NOW) == []

    async def test_notice_filters_early_slots(self, appointments, activities, availability):
        activity = await seed_activity(activities, minimum_booking_notice_hours=2)
        await seed_weekdays(availability, "09:00", "12:00")
        slots = await get_available_slots(
            appointments, activities, availability, activity.id, date(2030, 6, 4), now=datetime(2030, 6, 4, 8, 0)
        )
        assert slots[0][0] == datetime(2030, 6, 4, 10, 0)

    async def test_slot_list_sees_bookings_late_on_a_25_hour_day(
        self, monkeypatch, appointments, activities, availability
    ):
        """2030-10-27 in Paris ends at 23:00 UTC, an hour after start of day plus 24h."""
        monkeypatch.setattr(settings, "business_timezone", "Europe/Paris")
        activity = await seed_activity(activities)
        await update_availability(availability, [WeeklySlot(day_of_week=0, start_time="22:00", end_time="23:59")], [])
        # 23:15 local, after the clocks went back
        await seed_appointment(
            appointments, await seed_activity(activities, duration_minutes=30), datetime(2030, 10, 27, 22, 15)
        )
        slots = await get_available_slots(appointments, activities, availability, activity.id, date(2030, 10, 27), now=NOW)
        # 22:30 local would run until 22:30 UTC and collide
        assert slots == [(datetime(2030, 10, 27, 21, 0), datetime(2030, 10, 27, 22, 0))]


class TestAvailabilityService:
    async def test_empty_when_never_saved(self, availability):
        a = await get_availability(availability)
        assert a.weekly_slots == ()
        assert a.exceptions == ()

    async def test_replace_round_trips_through_storage(self, availability):
        slot = WeeklySlot(day_of_week=3, start_time="08:00", end_time="12:00")
        exception = AvailabilityException(
            start_date=date(2030, 6, 5), end_date=date(2030, 6, 6), start_time="09:00", end_time="10:00", reason="Dentist"
        )
        await update_availability(availability, [slot], [exception])
        stored = await get_availability(availability)
        assert stored.weekly_slots == (slot,)
        assert stored.exceptions == (exception,)

    async def test_overlapping_slots_rejected(self, availability):
        with pytest.raises(ValueError):
            await update_availability(
                availability,
                [
                    WeeklySlot(day_of_week=1, start_time="09:00", end_time="12:00"),
                    WeeklySlot(day_of_week=1, start_time="11:00", end_time="13:00"),
                ],
                [],
            )


class TestActivityService:
    async def test_update_keeps_appointment_snapshot(self, appointments, activities, availability):
        activity = await seed_activity(activities)
        await seed_weekdays(availability)
        a = await create_appointment(appointments, activities, availability, request(activity.id, TUESDAY_10), now=NOW)
        await update_activity(activities, activity.id, ActivityCreate(name="Long consultation", duration_minutes=90))
        stored = await get_appointment(appointments, a.id)
        assert stored.activity_name == "Consultation"
        assert stored.activity_duration_minutes == 60

    async def test_delete_in_use_rejected(self, appointments, activities, availability):
        activity = await seed_activity(activities)
        await seed_weekdays(availability)
        await create_appointment(appointments, activities, availability, request(activity.id, TUESDAY_10), now=NOW)
        with pytest.raises(ActivityInUse):
            await delete_activity(activities, appointments, activity.id)

    async def test_create_and_delete_unused(self, appointments, activities):
        activity = await create_activity(activities, ActivityCreate(name="  Massage ", duration_minutes=45))
        assert activity.name == "Massage"
        await delete_activity(activities, appointments, activity.id)
        assert await activities.find_by_id(activity.id) is None
