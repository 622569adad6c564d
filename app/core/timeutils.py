"""Day boundaries, reminder arithmetic and timezone helpers.

All instants handled by the service are naive UTC, matching the
TIMESTAMP WITHOUT TIME ZONE columns they are stored in.
"""
import re
from collections.abc import Iterable
from datetime import UTC, date, datetime, timedelta

import pytz

HHMM_RE = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")
ONE_HOUR = timedelta(hours=1)


def utc_now() -> datetime:
    """Naive UTC for comparison with TIMESTAMP WITHOUT TIME ZONE."""
    return datetime.now(UTC).replace(tzinfo=None)


def to_naive_utc(dt: datetime) -> datetime:
    """Convert to naive UTC for TIMESTAMP WITHOUT TIME ZONE columns."""
    if dt.tzinfo is not None:
        return dt.astimezone(UTC).replace(tzinfo=None)
    return dt


def start_of_day(dt: datetime) -> datetime:
    return datetime(dt.year, dt.month, dt.day, 0, 0, 0)


def end_of_day(dt: datetime) -> datetime:
    return start_of_day(dt) + timedelta(days=1) - timedelta(microseconds=1)


def next_day(dt: datetime) -> datetime:
    return dt + timedelta(days=1)


def hours_until(target: datetime, now: datetime) -> float:
    return (target - now).total_seconds() / 3600


def reminder_time(appointment_start: datetime, hours_before: float) -> datetime:
    return appointment_start - timedelta(hours=hours_before)


def dispatch_slice(now: datetime) -> tuple[datetime, datetime]:
    """The [now, now + 1h) slice a reminder instant must fall in to be sent on this tick."""
    return now, now + ONE_HOUR


def reminder_check_window(
    now: datetime,
    default_hours_before: float,
    check_window_hours: float,
    activity_hours_before: Iterable[float] = (),
) -> tuple[datetime, datetime]:
    """Appointment start range scanned by one reminder tick.

    With only the default policy this is [now + default, now + default + window).
    Activities configured with a shorter or longer lead time widen it so that
    their reminder instant can still fall in the current dispatch slice.
    """
    lead_times = [h for h in activity_hours_before if h is not None]
    shortest = min([default_hours_before, *lead_times])
    longest = max([default_hours_before, *lead_times])
    start = now + timedelta(hours=shortest)
    end = max(
        now + timedelta(hours=default_hours_before + check_window_hours),
        now + timedelta(hours=longest) + ONE_HOUR,
    )
    return start, end


def parse_hhmm(value: str) -> int:
    """Minutes since midnight for an "HH:MM" 24h string."""
    if not isinstance(value, str) or not HHMM_RE.match(value):
        raise ValueError(f"Invalid time {value!r} (expected HH:MM)")
    hours, minutes = value.split(":")
    return int(hours) * 60 + int(minutes)


def minutes_of_day(dt: datetime) -> int:
    return dt.hour * 60 + dt.minute


def to_local(dt: datetime, tz_name: str) -> datetime:
    """Naive UTC instant -> naive wall-clock time in tz_name."""
    tz = pytz.timezone(tz_name)
    return pytz.utc.localize(dt).astimezone(tz).replace(tzinfo=None)


def local_to_utc(dt: datetime, tz_name: str) -> datetime:
    """Naive wall-clock time in tz_name -> naive UTC instant."""
    tz = pytz.timezone(tz_name)
    return tz.localize(dt).astimezone(pytz.utc).replace(tzinfo=None)


def day_of_week(d: date) -> int:
    """0 = Sunday ... 6 = Saturday."""
    return (d.weekday() + 1) % 7
