"""Domain errors raised by the scheduling services."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from cowork.domain.models import Booking


class SchedulingError(ValueError):
    """Base class for rule violations detected by the scheduling core."""


class BookingConflictError(SchedulingError):
    """The requested interval overlaps one or more active bookings."""

    def __init__(self, conflicts: list[Booking]) -> None:
        self.conflicts = conflicts
        ranges = ", ".join(
            f"{c.start_time.isoformat()} - {c.end_time.isoformat()}" for c in conflicts
        )
        super().__init__(f"Time slot conflicts with existing bookings: {ranges}")


class InvalidRecurrenceError(SchedulingError):
    """A recurrence rule that cannot be expanded."""


class InvalidTransitionError(SchedulingError):
    """A booking status change that the lifecycle does not allow."""


class EventFullError(SchedulingError):
    """The event has no free capacity left."""


class RegistrationError(SchedulingError):
    """An attendee/waitlist change that conflicts with the member's current state."""
