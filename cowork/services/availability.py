"""Service for building slot grids from an amenity's operating hours."""

from __future__ import annotations

from collections.abc import Iterable
from datetime import date, datetime, time, timedelta, timezone

from cowork.domain.models import (
    AvailabilityConfig,
    AvailabilityView,
    Booking,
    DayAvailability,
    SlotState,
    SlotView,
    TimeSlot,
)
from cowork.services.conflicts import overlaps


def weekday_index(day: date) -> int:
    """Weekday number as stored on amenities: 0 = Sunday ... 6 = Saturday."""
    return (day.weekday() + 1) % 7


def is_open_on(day: date, availability: AvailabilityConfig) -> bool:
    return weekday_index(day) in availability.available_days


def _local_instant(day: date, hour: int, availability: AvailabilityConfig) -> datetime:
    local = datetime.combine(day, time(hour), tzinfo=availability.tzinfo)
    return local.astimezone(timezone.utc)


def _day_bounds(day: date, availability: AvailabilityConfig) -> tuple[datetime, datetime]:
    start = _local_instant(day, 0, availability)
    end = _local_instant(day + timedelta(days=1), 0, availability)
    return start, end


def generate_slots(
    day: date,
    availability: AvailabilityConfig,
    bookings: Iterable[Booking],
) -> list[TimeSlot]:
    """Split the operating hours of *day* into fixed-size slots.

    There are exactly ``(end_hour - start_hour) * 60 / slot_duration`` slots,
    in chronological order.  A slot is available unless an active booking
    overlaps it.  Weekday gating and past/selected states are left to callers.
    """
    active = [b for b in bookings if b.is_active]
    step = timedelta(minutes=availability.slot_duration)
    count = (availability.end_hour - availability.start_hour) * 60 // availability.slot_duration
    first = _local_instant(day, availability.start_hour, availability)

    slots: list[TimeSlot] = []
    for i in range(count):
        slot_start = first + i * step
        slot_end = slot_start + step
        booked = any(
            overlaps(slot_start, slot_end, b.start_time, b.end_time) for b in active
        )
        slots.append(TimeSlot(start=slot_start, end=slot_end, available=not booked))
    return slots


def day_availability(
    day: date,
    availability: AvailabilityConfig,
    bookings: Iterable[Booking],
) -> DayAvailability:
    """Slot grid for one day, with every slot closed on non-operating weekdays."""
    day_start, day_end = _day_bounds(day, availability)
    day_bookings = [
        b
        for b in bookings
        if b.is_active and overlaps(day_start, day_end, b.start_time, b.end_time)
    ]
    slots = generate_slots(day, availability, day_bookings)
    is_open = is_open_on(day, availability)
    if not is_open:
        slots = [slot.model_copy(update={"available": False}) for slot in slots]
    return DayAvailability(date=day, is_open=is_open, bookings=day_bookings, slots=slots)


def weekly_availability(
    week_start: date,
    availability: AvailabilityConfig,
    bookings: Iterable[Booking],
) -> list[DayAvailability]:
    bookings = list(bookings)
    return [
        day_availability(week_start + timedelta(days=offset), availability, bookings)
        for offset in range(7)
    ]


def classify_slot(slot: TimeSlot, day_open: bool, now: datetime) -> SlotState:
    """Presentation state of a slot, evaluated against an explicit *now*."""
    if not day_open:
        return SlotState.CLOSED
    if slot.start < now:
        return SlotState.PAST
    if not slot.available:
        return SlotState.BOOKED
    return SlotState.AVAILABLE


def to_view(day: DayAvailability, now: datetime) -> AvailabilityView:
    return AvailabilityView(
        date=day.date,
        is_open=day.is_open,
        slots=[
            SlotView(start=s.start, end=s.end, state=classify_slot(s, day.is_open, now))
            for s in day.slots
        ],
    )
