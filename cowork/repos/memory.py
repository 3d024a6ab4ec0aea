"""In-memory repositories standing in for the document store."""

from __future__ import annotations

from cowork.domain.models import (
    Amenity,
    AvailabilityConfig,
    Booking,
    Event,
    Notification,
)


class BookingRepository:
    """Dict-backed store for Booking instances, keyed by id."""

    def __init__(self) -> None:
        self._store: dict[str, Booking] = {}

    def add(self, booking: Booking) -> str:
        self._store[booking.id] = booking
        return booking.id

    def get(self, booking_id: str) -> Booking | None:
        return self._store.get(booking_id)

    def list_all(self) -> list[Booking]:
        return sorted(self._store.values(), key=lambda b: b.start_time)

    def list_for_amenity(self, amenity_id: str) -> list[Booking]:
        """All bookings of an amenity regardless of status."""
        return [b for b in self.list_all() if b.amenity_id == amenity_id]

    def list_for_member(self, member_id: str) -> list[Booking]:
        return [b for b in self.list_all() if b.member_id == member_id]


class AmenityRepository:
    """Dict-backed store for Amenity instances, keyed by id."""

    def __init__(self) -> None:
        self._store: dict[str, Amenity] = {}

    def add(self, amenity: Amenity) -> None:
        self._store[amenity.id] = amenity

    def get(self, amenity_id: str) -> Amenity | None:
        return self._store.get(amenity_id)

    def list_all(self) -> list[Amenity]:
        return sorted(self._store.values(), key=lambda a: a.name)


class EventRepository:
    """Dict-backed store for community Event instances, keyed by id."""

    def __init__(self) -> None:
        self._store: dict[str, Event] = {}

    def add(self, event: Event) -> None:
        self._store[event.id] = event

    def get(self, event_id: str) -> Event | None:
        return self._store.get(event_id)

    def remove(self, event_id: str) -> bool:
        return self._store.pop(event_id, None) is not None

    def list_all(self) -> list[Event]:
        return sorted(self._store.values(), key=lambda e: e.date)

    def apply_attendance(
        self, event_id: str, attendees_to_add: list[str], new_waitlist: list[str]
    ) -> None:
        """Union *attendees_to_add* into the attendees and replace the waitlist."""
        event = self._store.get(event_id)
        if event is None:
            return
        for member_id in attendees_to_add:
            if member_id not in event.attendees:
                event.attendees.append(member_id)
        event.waitlist = list(new_waitlist)


class NotificationRepository:
    """List-backed store for member Notification instances."""

    def __init__(self) -> None:
        self._items: list[Notification] = []

    def add(self, notification: Notification) -> None:
        self._items.append(notification)

    def list_for_member(self, member_id: str) -> list[Notification]:
        return [n for n in self._items if n.member_id == member_id]


# ---------------------------------------------------------------------------
# Seed data - the hub's standard amenities
# ---------------------------------------------------------------------------


def _seed_amenities(repo: AmenityRepository) -> None:
    weekdays = AvailabilityConfig(start_hour=8, end_hour=18)
    repo.add(Amenity(id="hot-desk", name="Hot Desk", type="desk", capacity=1, availability=weekdays))
    repo.add(
        Amenity(
            id="meeting-room",
            name="Meeting Room",
            type="meeting-room",
            capacity=8,
            availability=weekdays,
        )
    )
    repo.add(
        Amenity(
            id="podcast-room",
            name="Podcast Room",
            type="podcast-room",
            capacity=4,
            availability=AvailabilityConfig(start_hour=9, end_hour=21, slot_duration=60),
        )
    )
    repo.add(
        Amenity(
            id="event-space",
            name="Event Space",
            type="event-space",
            capacity=80,
            availability=AvailabilityConfig(
                start_hour=8, end_hour=22, available_days=[0, 1, 2, 3, 4, 5, 6]
            ),
        )
    )


def create_amenity_repository() -> AmenityRepository:
    """Return an AmenityRepository pre-loaded with the hub's amenities."""
    repo = AmenityRepository()
    _seed_amenities(repo)
    return repo
