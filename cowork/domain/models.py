"""Domain models for the coworking scheduling service.

Documents coming from the store use camelCase keys (``amenityId``,
``startTime``); every model accepts those as well as the snake_case field
names, and serialises with the camelCase aliases.
"""

from __future__ import annotations

import uuid
from datetime import date, datetime, timedelta, timezone
from enum import StrEnum
from typing import Annotated, Any, Literal

from dateutil import tz
from pydantic import (
    AfterValidator,
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)
from pydantic.alias_generators import to_camel

from cowork.config import settings


class BookingStatus(StrEnum):
    PENDING = "pending"
    APPROVED = "approved"
    CHECKED_IN = "checked-in"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


# Bookings in these states still occupy the calendar.
ACTIVE_STATUSES = frozenset(
    {BookingStatus.PENDING, BookingStatus.APPROVED, BookingStatus.CHECKED_IN}
)


class Frequency(StrEnum):
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"


class SkipReason(StrEnum):
    CONFLICT = "conflict"
    CREATE_FAILED = "create-failed"


class SlotState(StrEnum):
    CLOSED = "closed"
    PAST = "past"
    BOOKED = "booked"
    AVAILABLE = "available"


class EventStatus(StrEnum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class NotificationLevel(StrEnum):
    INFO = "info"
    SUCCESS = "success"
    ERROR = "error"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _new_id() -> str:
    return str(uuid.uuid4())


def _as_utc(value: datetime) -> datetime:
    """Naive instants are taken as UTC; aware ones are converted to UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


UtcDatetime = Annotated[datetime, AfterValidator(_as_utc)]


class DocumentModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ---------------------------------------------------------------------------
# Core domain models
# ---------------------------------------------------------------------------


class RecurrencePattern(DocumentModel):
    """Tag stored on every booking generated from a recurring request."""

    frequency: Frequency
    original_start: UtcDatetime


class Booking(DocumentModel):
    id: str = Field(default_factory=_new_id)
    amenity_id: str
    member_id: str
    start_time: UtcDatetime
    end_time: UtcDatetime
    status: BookingStatus = BookingStatus.PENDING
    recurrence_pattern: RecurrencePattern | None = None
    notes: str | None = None
    check_in_time: UtcDatetime | None = None
    check_out_time: UtcDatetime | None = None
    created_at: UtcDatetime = Field(default_factory=_utcnow)
    updated_at: UtcDatetime | None = None

    @model_validator(mode="after")
    def _end_after_start(self) -> Booking:
        if self.end_time <= self.start_time:
            raise ValueError("end_time must be after start_time")
        return self

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_STATUSES

    @property
    def duration(self) -> timedelta:
        return self.end_time - self.start_time


class AvailabilityConfig(DocumentModel):
    """Operating hours of an amenity, read in the amenity's own timezone."""

    start_hour: int = Field(default_factory=lambda: settings.DEFAULT_START_HOUR, ge=0, le=23)
    end_hour: int = Field(default_factory=lambda: settings.DEFAULT_END_HOUR, ge=1, le=24)
    available_days: list[int] = Field(
        default_factory=lambda: list(settings.DEFAULT_AVAILABLE_DAYS)
    )
    slot_duration: Literal[15, 30, 60] = Field(
        default_factory=lambda: settings.DEFAULT_SLOT_DURATION
    )
    timezone: str = Field(default_factory=lambda: settings.DEFAULT_TIMEZONE)

    @field_validator("available_days")
    @classmethod
    def _valid_weekdays(cls, days: list[int]) -> list[int]:
        if any(d < 0 or d > 6 for d in days):
            raise ValueError("available_days must be weekday numbers 0-6 (0 = Sunday)")
        return sorted(set(days))

    @field_validator("timezone")
    @classmethod
    def _known_timezone(cls, name: str) -> str:
        if tz.gettz(name) is None:
            raise ValueError(f"Unknown timezone: {name}")
        return name

    @model_validator(mode="after")
    def _start_before_end(self) -> AvailabilityConfig:
        if self.start_hour >= self.end_hour:
            raise ValueError("start_hour must be before end_hour")
        return self

    @property
    def tzinfo(self):
        return tz.gettz(self.timezone)


_AVAILABILITY_KEYS = ("startHour", "endHour", "availableDays", "slotDuration", "timezone")


class Amenity(DocumentModel):
    id: str = Field(default_factory=_new_id)
    name: str
    type: str = "desk"
    capacity: int | None = Field(default=None, ge=0)
    is_available: bool = True
    availability: AvailabilityConfig = Field(default_factory=AvailabilityConfig)

    @model_validator(mode="before")
    @classmethod
    def _lift_flat_availability(cls, data: Any) -> Any:
        # Stored amenity documents keep the availability fields at the top level.
        if isinstance(data, dict) and "availability" not in data:
            flat = {k: data[k] for k in _AVAILABILITY_KEYS if k in data}
            if flat:
                data = {k: v for k, v in data.items() if k not in flat}
                data["availability"] = flat
        return data


class TimeSlot(DocumentModel):
    start: UtcDatetime
    end: UtcDatetime
    available: bool


class DayAvailability(DocumentModel):
    date: date
    is_open: bool
    bookings: list[Booking] = Field(default_factory=list)
    slots: list[TimeSlot] = Field(default_factory=list)


class RecurrenceRule(DocumentModel):
    """How to repeat a base booking.

    ``end_date`` is inclusive: an occurrence starting on that (UTC) day is
    still generated.  ``occurrences`` counts the base booking itself.
    """

    frequency: Frequency
    end_date: date | None = None
    occurrences: int | None = None


class Event(DocumentModel):
    id: str = Field(default_factory=_new_id)
    title: str
    date: UtcDatetime
    capacity: int = Field(default=0, ge=0)  # 0 = unlimited
    attendees: list[str] = Field(default_factory=list)
    waitlist: list[str] = Field(default_factory=list)
    description: str | None = None
    location: str | None = None
    organizer_id: str | None = None
    status: EventStatus = EventStatus.PENDING
    rejection_reason: str | None = None
    created_at: UtcDatetime = Field(default_factory=_utcnow)
    updated_at: UtcDatetime | None = None

    @model_validator(mode="after")
    def _consistent_attendance(self) -> Event:
        if len(set(self.attendees)) != len(self.attendees):
            raise ValueError("attendees must not contain duplicates")
        if len(set(self.waitlist)) != len(self.waitlist):
            raise ValueError("waitlist must not contain duplicates")
        if self.capacity > 0 and len(self.attendees) > self.capacity:
            raise ValueError("attendees exceed event capacity")
        if set(self.attendees) & set(self.waitlist):
            raise ValueError("a member cannot be both attending and waitlisted")
        return self

    @property
    def is_full(self) -> bool:
        return self.capacity > 0 and len(self.attendees) >= self.capacity


class Notification(DocumentModel):
    id: str = Field(default_factory=_new_id)
    member_id: str
    message: str
    level: NotificationLevel = NotificationLevel.INFO
    created_at: UtcDatetime = Field(default_factory=_utcnow)


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------


class ConflictSummary(DocumentModel):
    id: str
    start_time: UtcDatetime
    end_time: UtcDatetime


class ConflictCheckResult(DocumentModel):
    has_conflicts: bool = False
    conflicts: list[ConflictSummary] = Field(default_factory=list)


class SkippedOccurrence(DocumentModel):
    date: UtcDatetime
    reason: SkipReason


class RecurrenceResult(DocumentModel):
    created: list[Booking] = Field(default_factory=list)
    skipped: list[SkippedOccurrence] = Field(default_factory=list)
    total_created: int = 0

    @property
    def attempted(self) -> int:
        return self.total_created + len(self.skipped)

    def summary(self) -> str:
        conflicts = sum(1 for s in self.skipped if s.reason == SkipReason.CONFLICT)
        line = f"{self.total_created} of {self.attempted} recurring bookings created"
        if conflicts:
            line += f"; {conflicts} skipped due to conflicts"
        failed = len(self.skipped) - conflicts
        if failed:
            line += f"; {failed} failed to save"
        return line


class WaitlistPromotion(DocumentModel):
    promoted_member_ids: list[str] = Field(default_factory=list)
    remaining_waitlist: list[str] = Field(default_factory=list)


class SlotView(DocumentModel):
    start: UtcDatetime
    end: UtcDatetime
    state: SlotState


class AvailabilityView(DocumentModel):
    date: date
    is_open: bool
    slots: list[SlotView] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Request / Response DTOs
# ---------------------------------------------------------------------------


class BookingRequest(DocumentModel):
    amenity_id: str
    member_id: str
    start_time: UtcDatetime
    end_time: UtcDatetime
    notes: str | None = None

    @model_validator(mode="after")
    def _end_after_start(self) -> BookingRequest:
        if self.end_time <= self.start_time:
            raise ValueError("end_time must be after start_time")
        return self


class RescheduleRequest(DocumentModel):
    start_time: UtcDatetime
    end_time: UtcDatetime

    @model_validator(mode="after")
    def _end_after_start(self) -> RescheduleRequest:
        if self.end_time <= self.start_time:
            raise ValueError("end_time must be after start_time")
        return self


class ConflictCheckRequest(DocumentModel):
    amenity_id: str
    start_time: UtcDatetime
    end_time: UtcDatetime
    exclude_booking_id: str | None = None


class RecurringBookingRequest(DocumentModel):
    booking: BookingRequest
    recurrence: RecurrenceRule


class RecurringBookingResponse(RecurrenceResult):
    message: str


class MemberRequest(DocumentModel):
    member_id: str


class EventRequest(DocumentModel):
    title: str
    date: UtcDatetime
    capacity: int = 0
    description: str | None = None
    location: str | None = None
    organizer_id: str | None = None


class RejectEventRequest(DocumentModel):
    reason: str = ""


class PromoteRequest(DocumentModel):
    count: int = Field(default=1, ge=1)
