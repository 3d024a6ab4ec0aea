"""Service for event registration and waitlist promotion."""

from __future__ import annotations

import math

from cowork.domain.errors import EventFullError, RegistrationError
from cowork.domain.models import Event, WaitlistPromotion


def available_spots(event: Event) -> float:
    """Free places at the event; ``math.inf`` when capacity is unlimited (0)."""
    if event.capacity > 0:
        return max(0, event.capacity - len(event.attendees))
    return math.inf


def promote(event: Event, requested_count: int) -> WaitlistPromotion:
    """Compute which waitlisted members move into attendance.

    Members are promoted first-in-first-out, up to the smallest of
    *requested_count*, the free places and the waitlist length.  The event is
    not modified; the caller applies the result.
    """
    to_promote = int(min(requested_count, available_spots(event), len(event.waitlist)))
    if to_promote <= 0:
        return WaitlistPromotion(remaining_waitlist=list(event.waitlist))
    return WaitlistPromotion(
        promoted_member_ids=event.waitlist[:to_promote],
        remaining_waitlist=event.waitlist[to_promote:],
    )


def register(event: Event, member_id: str) -> None:
    if member_id in event.attendees:
        return
    if event.is_full:
        raise EventFullError(f"Event {event.id} is full; join the waitlist instead")
    if member_id in event.waitlist:
        event.waitlist.remove(member_id)
    event.attendees.append(member_id)


def unregister(event: Event, member_id: str) -> None:
    if member_id not in event.attendees:
        raise RegistrationError(f"Member {member_id} is not registered for event {event.id}")
    event.attendees.remove(member_id)


def join_waitlist(event: Event, member_id: str) -> int:
    """Append *member_id* to the waitlist and return their 1-based position."""
    if member_id in event.attendees:
        raise RegistrationError(f"Member {member_id} is already attending event {event.id}")
    if member_id not in event.waitlist:
        event.waitlist.append(member_id)
    return event.waitlist.index(member_id) + 1


def leave_waitlist(event: Event, member_id: str) -> None:
    if member_id in event.waitlist:
        event.waitlist.remove(member_id)
