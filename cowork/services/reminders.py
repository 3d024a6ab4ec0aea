"""Service for selecting events whose attendees should be reminded."""

from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime, timedelta

from cowork.domain.models import Event


def events_due_for_reminder(
    events: Iterable[Event],
    now: datetime,
    lead: timedelta,
    window: timedelta,
) -> list[Event]:
    """Return events starting in ``[now + lead, now + lead + window)``.

    With an hourly tick and a one-hour window each event is picked up exactly
    once, roughly *lead* before it starts.
    """
    earliest = now + lead
    latest = earliest + window
    return [e for e in events if earliest <= e.date < latest]
