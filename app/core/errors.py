class SchedulingError(Exception):
    """Base class for errors surfaced to callers of the booking use cases."""


class NotFound(SchedulingError):
    def __init__(self, entity: str, entity_id: object) -> None:
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} {entity_id} not found")


class BookingNoticeViolation(SchedulingError):
    def __init__(self, minimum_notice_hours: float, hours_until: float) -> None:
        self.minimum_notice_hours = minimum_notice_hours
        self.hours_until = hours_until
        super().__init__(
            f"Bookings must be made at least {minimum_notice_hours:g} hours in advance"
        )


class SlotUnavailable(SchedulingError):
    def __init__(self, message: str = "This time slot is no longer available") -> None:
        super().__init__(message)


class ConcurrencyConflict(SchedulingError):
    """A versioned write found the stored version had moved on (or the row is gone).

    Callers must re-fetch and re-apply their business rules; never retry blindly.
    """

    def __init__(self, appointment_id: object, expected_version: int) -> None:
        self.appointment_id = appointment_id
        self.expected_version = expected_version
        super().__init__(
            f"Appointment {appointment_id} was modified concurrently (expected version {expected_version})"
        )


class InvalidStatusTransition(SchedulingError):
    def __init__(self, current: str, target: str) -> None:
        self.current = current
        self.target = target
        super().__init__(f"Cannot move appointment from {current} to {target}")


class InvalidClientInfo(SchedulingError):
    pass


class ActivityInUse(SchedulingError):
    def __init__(self, activity_id: object) -> None:
        self.activity_id = activity_id
        super().__init__(f"Activity {activity_id} still has appointments")
