"""Booking and event status transitions, plus periodic sweeps over bookings."""

from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime, timedelta

from cowork.domain.errors import InvalidTransitionError
from cowork.domain.models import Booking, BookingStatus, Event, EventStatus

_TRANSITIONS: dict[BookingStatus, set[BookingStatus]] = {
    BookingStatus.PENDING: {BookingStatus.APPROVED, BookingStatus.CANCELLED},
    BookingStatus.APPROVED: {BookingStatus.CHECKED_IN, BookingStatus.CANCELLED},
    BookingStatus.CHECKED_IN: {BookingStatus.COMPLETED},
    BookingStatus.COMPLETED: set(),
    BookingStatus.CANCELLED: set(),
}


def transition(booking: Booking, target: BookingStatus, now: datetime) -> None:
    """Move *booking* to *target*, stamping check-in/out times."""
    if target not in _TRANSITIONS[booking.status]:
        raise InvalidTransitionError(
            f"Cannot change booking {booking.id} from {booking.status} to {target}"
        )
    booking.status = target
    booking.updated_at = now
    if target == BookingStatus.CHECKED_IN:
        booking.check_in_time = now
    elif target == BookingStatus.COMPLETED:
        booking.check_out_time = now


_EVENT_TRANSITIONS: dict[EventStatus, set[EventStatus]] = {
    EventStatus.PENDING: {EventStatus.APPROVED, EventStatus.REJECTED},
    EventStatus.APPROVED: {EventStatus.REJECTED},
    EventStatus.REJECTED: {EventStatus.APPROVED},
}


def review_event(
    event: Event, target: EventStatus, now: datetime, reason: str | None = None
) -> None:
    """Approve or reject a proposed event; *reason* is kept on rejection."""
    if target not in _EVENT_TRANSITIONS[event.status]:
        raise InvalidTransitionError(
            f"Cannot change event {event.id} from {event.status} to {target}"
        )
    event.status = target
    event.updated_at = now
    event.rejection_reason = reason if target == EventStatus.REJECTED else None


def expired_check_ins(
    bookings: Iterable[Booking], now: datetime, grace: timedelta
) -> list[Booking]:
    """Checked-in bookings that ended at least *grace* ago."""
    cutoff = now - grace
    return [
        b
        for b in bookings
        if b.status == BookingStatus.CHECKED_IN and b.end_time <= cutoff
    ]


def stale_completed(
    bookings: Iterable[Booking], now: datetime, age: timedelta
) -> list[Booking]:
    cutoff = now - age
    return [
        b
        for b in bookings
        if b.status == BookingStatus.COMPLETED and b.end_time <= cutoff
    ]
