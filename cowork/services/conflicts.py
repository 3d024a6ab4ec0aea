"""Service for detecting scheduling conflicts between bookings."""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from datetime import datetime

from cowork.domain.models import (
    ACTIVE_STATUSES,
    Booking,
    ConflictCheckResult,
    ConflictSummary,
)

logger = logging.getLogger(__name__)

ConflictCheck = Callable[..., ConflictCheckResult]


def overlaps(
    a_start: datetime, a_end: datetime, b_start: datetime, b_end: datetime
) -> bool:
    """Return True if the half-open intervals ``[a_start, a_end)`` and
    ``[b_start, b_end)`` intersect.

    Exact boundary touches (a_end == b_start) are NOT overlaps.  Both intervals
    are expected to have start < end.
    """
    return a_start < b_end and b_start < a_end


def find_conflicts(
    amenity_id: str,
    new_start: datetime,
    new_end: datetime,
    active_bookings: Iterable[Booking],
    exclude_booking_id: str | None = None,
) -> list[Booking]:
    """Return the bookings of *amenity_id* that overlap the given time range.

    Only pending, approved and checked-in bookings can conflict.  The booking
    with id *exclude_booking_id* is ignored, so an existing booking can be
    checked against everything but itself while it is being edited.
    """
    return [
        booking
        for booking in active_bookings
        if booking.amenity_id == amenity_id
        and booking.status in ACTIVE_STATUSES
        and booking.id != exclude_booking_id
        and overlaps(new_start, new_end, booking.start_time, booking.end_time)
    ]


def summarize(conflicts: list[Booking]) -> ConflictCheckResult:
    return ConflictCheckResult(
        has_conflicts=bool(conflicts),
        conflicts=[
            ConflictSummary(id=c.id, start_time=c.start_time, end_time=c.end_time)
            for c in conflicts
        ],
    )


def advisory_conflict_check(
    fetch_active_bookings: Callable[[str], list[Booking]],
) -> ConflictCheck:
    """Build a ``check_conflicts(amenity_id, start, end, exclude_booking_id=None)``
    callable backed by *fetch_active_bookings*.

    The check is advisory: when the fetch fails the result degrades to "no
    known conflicts" and the authoritative check at write time decides.
    """

    def check_conflicts(
        amenity_id: str,
        start: datetime,
        end: datetime,
        exclude_booking_id: str | None = None,
    ) -> ConflictCheckResult:
        try:
            bookings = fetch_active_bookings(amenity_id)
        except Exception:
            logger.warning(
                "Conflict check for amenity %s failed; assuming no conflicts",
                amenity_id,
                exc_info=True,
            )
            return ConflictCheckResult()
        return summarize(
            find_conflicts(amenity_id, start, end, bookings, exclude_booking_id)
        )

    return check_conflicts
