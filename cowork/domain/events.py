"""Domain events emitted by bookings and event attendance changes."""

from __future__ import annotations

from pydantic import BaseModel

from cowork.domain.models import BookingStatus


class BookingCreated(BaseModel):
    """Fired when a booking has been written to the store."""

    booking_id: str


class BookingStatusChanged(BaseModel):
    booking_id: str
    status: BookingStatus


class RecurringSeriesCreated(BaseModel):
    """Fired once per recurring request, after every occurrence was attempted."""

    member_id: str
    amenity_id: str
    created_ids: list[str]
    summary: str


class AttendeeUnregistered(BaseModel):
    """Fired when a member leaves an event, freeing a place."""

    event_id: str
    member_id: str


class WaitlistPromoted(BaseModel):
    event_id: str
    member_ids: list[str]


class EventReminderDue(BaseModel):
    event_id: str
