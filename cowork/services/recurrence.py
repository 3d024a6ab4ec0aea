"""Service for expanding a recurring booking request into individual bookings."""

from __future__ import annotations

import logging
import uuid
from collections.abc import Callable
from datetime import date, datetime, timezone, tzinfo

from dateutil.relativedelta import relativedelta

from cowork.config import settings
from cowork.domain.errors import BookingConflictError, InvalidRecurrenceError
from cowork.domain.models import (
    Booking,
    BookingStatus,
    Frequency,
    RecurrencePattern,
    RecurrenceResult,
    RecurrenceRule,
    SkippedOccurrence,
    SkipReason,
)
from cowork.services.conflicts import ConflictCheck, find_conflicts

logger = logging.getLogger(__name__)

_STEPS = {
    Frequency.DAILY: relativedelta(days=1),
    Frequency.WEEKLY: relativedelta(weeks=1),
    Frequency.MONTHLY: relativedelta(months=1),
}


def occurrence_start(first: datetime, frequency: Frequency, index: int) -> datetime:
    """Start of the *index*-th occurrence (0 = the base booking).

    Offsets are always taken from the first start, so a monthly series on the
    31st lands on the last day of shorter months and returns to the 31st
    afterwards instead of drifting.
    """
    return first + _STEPS[frequency] * index


def validate_rule(
    base: Booking, rule: RecurrenceRule, local_tz: tzinfo | None = None
) -> None:
    """Raise ``InvalidRecurrenceError`` for rules that cannot be expanded."""
    if base.end_time <= base.start_time:
        raise InvalidRecurrenceError("Base booking must end after it starts")
    if rule.occurrences is not None and rule.occurrences <= 0:
        raise InvalidRecurrenceError("occurrences must be a positive number")
    if rule.end_date is not None and rule.end_date < _local_date(base.start_time, local_tz):
        raise InvalidRecurrenceError("end_date is before the first occurrence")


def _local_date(instant: datetime, local_tz: tzinfo | None) -> date:
    return instant.astimezone(local_tz or timezone.utc).date()


def _has_conflict(
    check: ConflictCheck, amenity_id: str, start: datetime, end: datetime
) -> bool:
    try:
        return check(amenity_id, start, end).has_conflicts
    except Exception:
        logger.warning(
            "Conflict check failed for occurrence at %s; continuing without it",
            start.isoformat(),
            exc_info=True,
        )
        return False


def expand_recurrence(
    base: Booking,
    rule: RecurrenceRule,
    conflict_check: ConflictCheck,
    persist: Callable[[Booking], str],
    *,
    safety_cap: int | None = None,
    should_stop: Callable[[], bool] | None = None,
    local_tz: tzinfo | None = None,
) -> RecurrenceResult:
    """Create one booking per occurrence of *rule*, starting at *base*.

    Each occurrence keeps the base duration exactly.  Occurrences that overlap
    an active booking (or one created earlier in this run) are skipped with
    reason ``conflict``; occurrences whose ``persist`` call fails are skipped
    with reason ``create-failed``.  Nothing is rolled back: the result is a
    tally of what was created and what was skipped.

    Without ``rule.occurrences`` and ``rule.end_date`` the loop stops at
    *safety_cap* (``RECURRENCE_SAFETY_CAP`` by default).  *should_stop* is
    polled before every occurrence and ends the run early when it returns True.

    ``rule.end_date`` is an inclusive calendar date in *local_tz* (the
    amenity's timezone; UTC when omitted).
    """
    validate_rule(base, rule, local_tz)

    limit = rule.occurrences or safety_cap or settings.RECURRENCE_SAFETY_CAP
    duration = base.end_time - base.start_time
    pattern = RecurrencePattern(frequency=rule.frequency, original_start=base.start_time)
    result = RecurrenceResult()

    # Steps are taken on the local wall clock so a series keeps its local hour.
    first = base.start_time.astimezone(local_tz or timezone.utc)

    count = 0
    while count < limit:
        start = occurrence_start(first, rule.frequency, count).astimezone(timezone.utc)
        if rule.end_date is not None and _local_date(start, local_tz) > rule.end_date:
            break
        if should_stop is not None and should_stop():
            logger.info("Recurring booking expansion stopped after %d occurrences", count)
            break
        end = start + duration

        if find_conflicts(base.amenity_id, start, end, result.created) or _has_conflict(
            conflict_check, base.amenity_id, start, end
        ):
            result.skipped.append(SkippedOccurrence(date=start, reason=SkipReason.CONFLICT))
        else:
            occurrence = base.model_copy(
                update={
                    "id": str(uuid.uuid4()),
                    "start_time": start,
                    "end_time": end,
                    "status": BookingStatus.PENDING,
                    "recurrence_pattern": pattern,
                }
            )
            try:
                booking_id = persist(occurrence)
            except BookingConflictError:
                result.skipped.append(
                    SkippedOccurrence(date=start, reason=SkipReason.CONFLICT)
                )
            except Exception:
                logger.warning(
                    "Failed to create recurring booking for %s",
                    start.isoformat(),
                    exc_info=True,
                )
                result.skipped.append(
                    SkippedOccurrence(date=start, reason=SkipReason.CREATE_FAILED)
                )
            else:
                if booking_id and booking_id != occurrence.id:
                    occurrence = occurrence.model_copy(update={"id": booking_id})
                result.created.append(occurrence)

        count += 1

    result.total_created = len(result.created)
    return result
