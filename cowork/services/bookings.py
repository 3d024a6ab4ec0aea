"""Service for writing bookings with an authoritative conflict check."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, tzinfo

from cowork.domain.bus import EventBus
from cowork.domain.errors import BookingConflictError, InvalidTransitionError
from cowork.domain.events import (
    BookingCreated,
    BookingStatusChanged,
    RecurringSeriesCreated,
)
from cowork.domain.models import (
    Booking,
    BookingRequest,
    BookingStatus,
    RecurrenceResult,
    RecurrenceRule,
)
from cowork.repos.memory import BookingRepository
from cowork.services.conflicts import advisory_conflict_check, find_conflicts
from cowork.services.lifecycle import expired_check_ins, transition
from cowork.services.recurrence import expand_recurrence

logger = logging.getLogger(__name__)


class BookingService:
    """Booking writes, status changes and recurring series for one store."""

    def __init__(self, bus: EventBus, booking_repo: BookingRepository) -> None:
        self.bus = bus
        self.booking_repo = booking_repo
        self.check_conflicts = advisory_conflict_check(booking_repo.list_for_amenity)

    def persist(self, booking: Booking) -> str:
        """Write *booking* unless it overlaps an active booking of its amenity.

        Raises ``BookingConflictError`` carrying the overlapping bookings.
        """
        conflicts = find_conflicts(
            booking.amenity_id,
            booking.start_time,
            booking.end_time,
            self.booking_repo.list_for_amenity(booking.amenity_id),
            exclude_booking_id=booking.id,
        )
        if conflicts:
            raise BookingConflictError(conflicts)
        booking_id = self.booking_repo.add(booking)
        self.bus.publish(BookingCreated(booking_id=booking_id))
        return booking_id

    def create(self, request: BookingRequest) -> Booking:
        booking = Booking(
            amenity_id=request.amenity_id,
            member_id=request.member_id,
            start_time=request.start_time,
            end_time=request.end_time,
            notes=request.notes,
        )
        self.persist(booking)
        return booking

    def reschedule(
        self, booking: Booking, start: datetime, end: datetime, now: datetime
    ) -> Booking:
        """Move *booking* to a new interval; only active bookings can be moved."""
        if not booking.is_active:
            raise InvalidTransitionError(
                f"Cannot reschedule booking {booking.id} with status {booking.status}"
            )
        conflicts = find_conflicts(
            booking.amenity_id,
            start,
            end,
            self.booking_repo.list_for_amenity(booking.amenity_id),
            exclude_booking_id=booking.id,
        )
        if conflicts:
            raise BookingConflictError(conflicts)
        booking.start_time = start
        booking.end_time = end
        booking.updated_at = now
        return booking

    def create_recurring(
        self, request: BookingRequest, rule: RecurrenceRule, local_tz: tzinfo | None = None
    ) -> RecurrenceResult:
        base = Booking(
            amenity_id=request.amenity_id,
            member_id=request.member_id,
            start_time=request.start_time,
            end_time=request.end_time,
            notes=request.notes,
        )
        result = expand_recurrence(
            base, rule, self.check_conflicts, self.persist, local_tz=local_tz
        )
        self.bus.publish(
            RecurringSeriesCreated(
                member_id=request.member_id,
                amenity_id=request.amenity_id,
                created_ids=[b.id for b in result.created],
                summary=result.summary(),
            )
        )
        return result

    def change_status(
        self, booking: Booking, target: BookingStatus, now: datetime
    ) -> Booking:
        transition(booking, target, now)
        self.bus.publish(BookingStatusChanged(booking_id=booking.id, status=target))
        return booking

    def auto_checkout(self, now: datetime, grace: timedelta) -> list[Booking]:
        """Complete checked-in bookings that ended more than *grace* ago."""
        expired = expired_check_ins(self.booking_repo.list_all(), now, grace)
        for booking in expired:
            self.change_status(booking, BookingStatus.COMPLETED, now)
        if expired:
            logger.info("Auto-checked out %d expired bookings", len(expired))
        return expired

