"""Domain event handlers, wired up at application startup."""

from __future__ import annotations

import logging

from cowork.domain.bus import EventBus
from cowork.domain.events import (
    AttendeeUnregistered,
    BookingCreated,
    BookingStatusChanged,
    EventReminderDue,
    RecurringSeriesCreated,
    WaitlistPromoted,
)
from cowork.domain.models import BookingStatus, Notification, NotificationLevel
from cowork.repos.memory import (
    AmenityRepository,
    BookingRepository,
    EventRepository,
    NotificationRepository,
)
from cowork.services.waitlist import promote

logger = logging.getLogger(__name__)

_STATUS_MESSAGES = {
    BookingStatus.APPROVED: ("Your booking for {amenity} was approved.", NotificationLevel.SUCCESS),
    BookingStatus.CHECKED_IN: ("Checked in to {amenity}.", NotificationLevel.INFO),
    BookingStatus.COMPLETED: ("Checked out of {amenity}.", NotificationLevel.INFO),
    BookingStatus.CANCELLED: ("Your booking for {amenity} was cancelled.", NotificationLevel.ERROR),
}


class HandlerRegistry:
    """Wires domain-event handlers to the bus with access to all repositories."""

    def __init__(
        self,
        bus: EventBus,
        booking_repo: BookingRepository,
        amenity_repo: AmenityRepository,
        event_repo: EventRepository,
        notification_repo: NotificationRepository,
    ) -> None:
        self.bus = bus
        self.booking_repo = booking_repo
        self.amenity_repo = amenity_repo
        self.event_repo = event_repo
        self.notification_repo = notification_repo
        self._register()

    def _register(self) -> None:
        self.bus.subscribe(BookingCreated, self.on_booking_created)
        self.bus.subscribe(BookingStatusChanged, self.on_booking_status_changed)
        self.bus.subscribe(RecurringSeriesCreated, self.on_recurring_series_created)
        self.bus.subscribe(AttendeeUnregistered, self.on_attendee_unregistered)
        self.bus.subscribe(WaitlistPromoted, self.on_waitlist_promoted)
        self.bus.subscribe(EventReminderDue, self.on_event_reminder_due)

    def _notify(
        self, member_id: str, message: str, level: NotificationLevel = NotificationLevel.INFO
    ) -> None:
        self.notification_repo.add(
            Notification(member_id=member_id, message=message, level=level)
        )

    def _amenity_name(self, amenity_id: str) -> str:
        amenity = self.amenity_repo.get(amenity_id)
        return amenity.name if amenity else amenity_id

    # ------------------------------------------------------------------
    # Handlers
    # ------------------------------------------------------------------

    def on_booking_created(self, event: BookingCreated) -> None:
        booking = self.booking_repo.get(event.booking_id)
        if booking is None:
            return
        # Occurrences of a recurring series are summarised once by
        # on_recurring_series_created.
        if booking.recurrence_pattern is not None:
            return
        amenity = self._amenity_name(booking.amenity_id)
        logger.info(
            "Booking %s created for %s (%s - %s)",
            booking.id,
            amenity,
            booking.start_time.isoformat(),
            booking.end_time.isoformat(),
        )
        self._notify(
            booking.member_id,
            f"Booking request for {amenity} on "
            f"{booking.start_time:%Y-%m-%d %H:%M} submitted for approval.",
            NotificationLevel.SUCCESS,
        )

    def on_booking_status_changed(self, event: BookingStatusChanged) -> None:
        booking = self.booking_repo.get(event.booking_id)
        if booking is None or event.status not in _STATUS_MESSAGES:
            return
        template, level = _STATUS_MESSAGES[event.status]
        self._notify(
            booking.member_id,
            template.format(amenity=self._amenity_name(booking.amenity_id)),
            level,
        )

    def on_recurring_series_created(self, event: RecurringSeriesCreated) -> None:
        logger.info(
            "Recurring series for %s on %s: %s",
            event.member_id,
            event.amenity_id,
            event.summary,
        )
        level = NotificationLevel.SUCCESS if event.created_ids else NotificationLevel.ERROR
        self._notify(event.member_id, event.summary, level)

    def on_attendee_unregistered(self, event: AttendeeUnregistered) -> None:
        stored = self.event_repo.get(event.event_id)
        if stored is None or stored.capacity <= 0 or not stored.waitlist:
            return

        promotion = promote(stored, stored.capacity - len(stored.attendees))
        if not promotion.promoted_member_ids:
            return

        self.event_repo.apply_attendance(
            stored.id, promotion.promoted_member_ids, promotion.remaining_waitlist
        )
        logger.info(
            "Auto-promoted %d member(s) from waitlist for event %s",
            len(promotion.promoted_member_ids),
            stored.id,
        )
        self.bus.publish(
            WaitlistPromoted(event_id=stored.id, member_ids=promotion.promoted_member_ids)
        )

    def on_waitlist_promoted(self, event: WaitlistPromoted) -> None:
        stored = self.event_repo.get(event.event_id)
        title = stored.title if stored else event.event_id
        for member_id in event.member_ids:
            self._notify(
                member_id,
                f"A spot opened up: you are now registered for {title}.",
                NotificationLevel.SUCCESS,
            )

    def on_event_reminder_due(self, event: EventReminderDue) -> None:
        stored = self.event_repo.get(event.event_id)
        if stored is None:
            return
        for member_id in stored.attendees:
            self._notify(
                member_id,
                f"Reminder: {stored.title} starts at {stored.date:%Y-%m-%d %H:%M}.",
            )
