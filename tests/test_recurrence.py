"""Tests for the recurring-booking expansion service."""

from __future__ import annotations

from datetime import date, datetime, timedelta, timezone

import pytest
from dateutil import tz

from cowork.domain.errors import BookingConflictError, InvalidRecurrenceError
from cowork.domain.models import (
    Booking,
    ConflictCheckResult,
    Frequency,
    RecurrenceRule,
    SkipReason,
)
from cowork.services.recurrence import expand_recurrence, occurrence_start


def _base(start: datetime, duration: timedelta = timedelta(hours=1)) -> Booking:
    return Booking(
        amenity_id="meeting-room",
        member_id="member-1",
        start_time=start,
        end_time=start + duration,
    )


def _no_conflicts(*args) -> ConflictCheckResult:
    return ConflictCheckResult()


class _Store:
    """Persistence stub recording every booking it is asked to write."""

    def __init__(self) -> None:
        self.saved: list[Booking] = []

    def __call__(self, booking: Booking) -> str:
        self.saved.append(booking)
        return booking.id


_MONDAY = datetime(2025, 1, 6, 10, 0, tzinfo=timezone.utc)


# ---------------------------------------------------------------------------
# occurrence dates
# ---------------------------------------------------------------------------


def test_weekly_three_occurrences():
    store = _Store()
    result = expand_recurrence(
        _base(_MONDAY),
        RecurrenceRule(frequency=Frequency.WEEKLY, occurrences=3),
        _no_conflicts,
        store,
    )

    assert result.total_created == 3
    assert result.skipped == []
    assert [b.start_time for b in result.created] == [
        datetime(2025, 1, 6, 10, 0, tzinfo=timezone.utc),
        datetime(2025, 1, 13, 10, 0, tzinfo=timezone.utc),
        datetime(2025, 1, 20, 10, 0, tzinfo=timezone.utc),
    ]
    for booking in result.created:
        assert booking.end_time - booking.start_time == timedelta(hours=1)
    assert store.saved == result.created


def test_daily_occurrences_until_end_date_inclusive():
    result = expand_recurrence(
        _base(_MONDAY),
        RecurrenceRule(frequency=Frequency.DAILY, end_date=date(2025, 1, 8)),
        _no_conflicts,
        _Store(),
    )
    assert [b.start_time.day for b in result.created] == [6, 7, 8]


def test_monthly_clamps_to_end_of_short_months():
    jan_31 = datetime(2025, 1, 31, 9, 0, tzinfo=timezone.utc)
    result = expand_recurrence(
        _base(jan_31),
        RecurrenceRule(frequency=Frequency.MONTHLY, occurrences=3),
        _no_conflicts,
        _Store(),
    )
    assert [b.start_time.date() for b in result.created] == [
        date(2025, 1, 31),
        date(2025, 2, 28),
        date(2025, 3, 31),
    ]


def test_end_date_is_read_in_local_timezone():
    # 06:00 in Ho Chi Minh City is still the previous day in UTC.
    saigon = tz.gettz("Asia/Ho_Chi_Minh")
    local_start = datetime(2025, 1, 20, 6, 0, tzinfo=saigon)
    result = expand_recurrence(
        _base(local_start),
        RecurrenceRule(frequency=Frequency.DAILY, end_date=date(2025, 1, 20)),
        _no_conflicts,
        _Store(),
        local_tz=saigon,
    )
    assert [b.start_time for b in result.created] == [local_start]


def test_daily_series_keeps_local_hour_across_dst():
    new_york = tz.gettz("America/New_York")
    saturday = datetime(2025, 3, 8, 9, 0, tzinfo=new_york)
    result = expand_recurrence(
        _base(saturday),
        RecurrenceRule(frequency=Frequency.DAILY, occurrences=2),
        _no_conflicts,
        _Store(),
        local_tz=new_york,
    )
    assert [b.start_time.astimezone(new_york).hour for b in result.created] == [9, 9]
    assert result.created[1].start_time - result.created[0].start_time == timedelta(
        hours=23
    )


def test_occurrence_start_index_zero_is_base():
    assert occurrence_start(_MONDAY, Frequency.MONTHLY, 0) == _MONDAY


def test_safety_cap_bounds_unbounded_rules():
    result = expand_recurrence(
        _base(_MONDAY),
        RecurrenceRule(frequency=Frequency.DAILY),
        _no_conflicts,
        _Store(),
        safety_cap=5,
    )
    assert result.total_created == 5


def test_fractional_duration_is_preserved():
    result = expand_recurrence(
        _base(_MONDAY, duration=timedelta(hours=1, minutes=30)),
        RecurrenceRule(frequency=Frequency.WEEKLY, occurrences=2),
        _no_conflicts,
        _Store(),
    )
    for booking in result.created:
        assert booking.end_time - booking.start_time == timedelta(hours=1.5)


def test_occurrences_carry_recurrence_tag():
    result = expand_recurrence(
        _base(_MONDAY),
        RecurrenceRule(frequency=Frequency.WEEKLY, occurrences=2),
        _no_conflicts,
        _Store(),
    )
    ids = {b.id for b in result.created}
    assert len(ids) == 2
    for booking in result.created:
        assert booking.recurrence_pattern is not None
        assert booking.recurrence_pattern.frequency == Frequency.WEEKLY
        assert booking.recurrence_pattern.original_start == _MONDAY


# ---------------------------------------------------------------------------
# conflicts and failures
# ---------------------------------------------------------------------------


def test_conflicting_occurrence_is_skipped():
    second = datetime(2025, 1, 13, 10, 0, tzinfo=timezone.utc)

    def conflict_on_second(amenity_id, start, end):
        return ConflictCheckResult(has_conflicts=start == second)

    result = expand_recurrence(
        _base(_MONDAY),
        RecurrenceRule(frequency=Frequency.WEEKLY, occurrences=3),
        conflict_on_second,
        _Store(),
    )

    assert result.total_created == 2
    assert len(result.skipped) == 1
    assert result.skipped[0].date == second
    assert result.skipped[0].reason == SkipReason.CONFLICT
    assert [b.start_time.day for b in result.created] == [6, 20]
    assert result.summary() == (
        "2 of 3 recurring bookings created; 1 skipped due to conflicts"
    )


def test_persist_failure_is_recorded_and_loop_continues():
    store = _Store()

    def flaky(booking: Booking) -> str:
        if booking.start_time.day == 7:
            raise RuntimeError("write failed")
        return store(booking)

    result = expand_recurrence(
        _base(_MONDAY),
        RecurrenceRule(frequency=Frequency.DAILY, occurrences=3),
        _no_conflicts,
        flaky,
    )

    assert result.total_created == 2
    assert [(s.date.day, s.reason) for s in result.skipped] == [
        (7, SkipReason.CREATE_FAILED)
    ]


def test_write_time_conflict_is_recorded_as_conflict():
    def rejecting(booking: Booking) -> str:
        raise BookingConflictError([])

    result = expand_recurrence(
        _base(_MONDAY),
        RecurrenceRule(frequency=Frequency.WEEKLY, occurrences=2),
        _no_conflicts,
        rejecting,
    )
    assert result.total_created == 0
    assert {s.reason for s in result.skipped} == {SkipReason.CONFLICT}


def test_failing_conflict_check_does_not_block_creation():
    def broken_check(*args):
        raise TimeoutError("no response")

    result = expand_recurrence(
        _base(_MONDAY),
        RecurrenceRule(frequency=Frequency.WEEKLY, occurrences=2),
        broken_check,
        _Store(),
    )
    assert result.total_created == 2


def test_series_does_not_conflict_with_itself():
    # 26-hour bookings repeated daily overlap the previous day's occurrence.
    result = expand_recurrence(
        _base(_MONDAY, duration=timedelta(hours=26)),
        RecurrenceRule(frequency=Frequency.DAILY, occurrences=3),
        _no_conflicts,
        _Store(),
    )
    assert [b.start_time.day for b in result.created] == [6, 8]
    assert [(s.date.day, s.reason) for s in result.skipped] == [(7, SkipReason.CONFLICT)]


def test_should_stop_returns_partial_tally():
    store = _Store()
    result = expand_recurrence(
        _base(_MONDAY),
        RecurrenceRule(frequency=Frequency.DAILY, occurrences=10),
        _no_conflicts,
        store,
        should_stop=lambda: len(store.saved) >= 2,
    )
    assert result.total_created == 2


# ---------------------------------------------------------------------------
# rule validation
# ---------------------------------------------------------------------------


@pytest.mark.parametrize("occurrences", [0, -3])
def test_non_positive_occurrences_rejected(occurrences):
    store = _Store()
    with pytest.raises(InvalidRecurrenceError):
        expand_recurrence(
            _base(_MONDAY),
            RecurrenceRule(frequency=Frequency.WEEKLY, occurrences=occurrences),
            _no_conflicts,
            store,
        )
    assert store.saved == []


def test_end_date_before_start_rejected():
    with pytest.raises(InvalidRecurrenceError, match="end_date"):
        expand_recurrence(
            _base(_MONDAY),
            RecurrenceRule(frequency=Frequency.DAILY, end_date=date(2025, 1, 1)),
            _no_conflicts,
            _Store(),
        )
