"""FastAPI entry point for the coworking scheduling service."""

from __future__ import annotations

import logging
from datetime import date, datetime, timedelta, timezone

from fastapi import FastAPI, HTTPException, Query
from pydantic import ValidationError

from cowork.config import settings
from cowork.domain.bus import EventBus
from cowork.domain.errors import (
    BookingConflictError,
    EventFullError,
    InvalidRecurrenceError,
    InvalidTransitionError,
    RegistrationError,
)
from cowork.domain.events import AttendeeUnregistered, EventReminderDue, WaitlistPromoted
from cowork.domain.handlers import HandlerRegistry
from cowork.domain.models import (
    Amenity,
    AvailabilityView,
    Booking,
    BookingRequest,
    BookingStatus,
    ConflictCheckRequest,
    Event,
    EventRequest,
    EventStatus,
    MemberRequest,
    Notification,
    PromoteRequest,
    RecurringBookingRequest,
    RejectEventRequest,
    RecurringBookingResponse,
    RescheduleRequest,
    WaitlistPromotion,
)
from cowork.repos.memory import (
    BookingRepository,
    EventRepository,
    NotificationRepository,
    create_amenity_repository,
)
from cowork.services import waitlist
from cowork.services.availability import day_availability, to_view, weekly_availability
from cowork.services.bookings import BookingService
from cowork.services.conflicts import summarize
from cowork.services.lifecycle import review_event, stale_completed
from cowork.services.reminders import events_due_for_reminder

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title="Coworking Scheduling Service")

# ── Singletons (created at import time for simplicity) ────────────────
event_bus = EventBus()
booking_repo = BookingRepository()
amenity_repo = create_amenity_repository()
event_repo = EventRepository()
notification_repo = NotificationRepository()

booking_service = BookingService(bus=event_bus, booking_repo=booking_repo)

handler_registry = HandlerRegistry(
    bus=event_bus,
    booking_repo=booking_repo,
    amenity_repo=amenity_repo,
    event_repo=event_repo,
    notification_repo=notification_repo,
)


def _now(now: datetime | None) -> datetime:
    if now is None:
        return datetime.now(timezone.utc)
    if now.tzinfo is None:
        return now.replace(tzinfo=timezone.utc)
    return now.astimezone(timezone.utc)


def _conflict_error(err: BookingConflictError) -> HTTPException:
    return HTTPException(
        status_code=409,
        detail={
            "message": str(err),
            "conflicts": summarize(err.conflicts).model_dump(mode="json", by_alias=True)[
                "conflicts"
            ],
        },
    )


def _get_amenity(amenity_id: str) -> Amenity:
    amenity = amenity_repo.get(amenity_id)
    if amenity is None:
        raise HTTPException(status_code=404, detail="Amenity not found")
    return amenity


def _bookable_amenity(amenity_id: str) -> Amenity:
    amenity = _get_amenity(amenity_id)
    if not amenity.is_available:
        raise HTTPException(
            status_code=409, detail=f"{amenity.name} is not available for booking"
        )
    return amenity


def _get_booking(booking_id: str) -> Booking:
    booking = booking_repo.get(booking_id)
    if booking is None:
        raise HTTPException(status_code=404, detail="Booking not found")
    return booking


def _get_event(event_id: str) -> Event:
    event = event_repo.get(event_id)
    if event is None:
        raise HTTPException(status_code=404, detail="Event not found")
    return event


# ── Amenities & availability ──────────────────────────────────────────


@app.get("/amenities", response_model=list[Amenity])
def list_amenities() -> list[Amenity]:
    return amenity_repo.list_all()


@app.get("/amenities/{amenity_id}", response_model=Amenity)
def get_amenity(amenity_id: str) -> Amenity:
    return _get_amenity(amenity_id)


@app.get("/amenities/{amenity_id}/availability", response_model=AvailabilityView)
def get_day_availability(
    amenity_id: str,
    day: date = Query(alias="date"),
    now: datetime | None = None,
) -> AvailabilityView:
    """Slot grid for one day, with past/closed/booked/available states."""
    amenity = _get_amenity(amenity_id)
    result = day_availability(
        day, amenity.availability, booking_repo.list_for_amenity(amenity_id)
    )
    return to_view(result, _now(now))


@app.get("/amenities/{amenity_id}/availability/week", response_model=list[AvailabilityView])
def get_week_availability(
    amenity_id: str,
    start: date,
    now: datetime | None = None,
) -> list[AvailabilityView]:
    amenity = _get_amenity(amenity_id)
    current = _now(now)
    days = weekly_availability(
        start, amenity.availability, booking_repo.list_for_amenity(amenity_id)
    )
    return [to_view(d, current) for d in days]


# ── Bookings ──────────────────────────────────────────────────────────


@app.post("/bookings/check-conflicts")
def check_conflicts(payload: ConflictCheckRequest) -> dict:
    """Advisory conflict check; never fails because of the lookup itself."""
    result = booking_service.check_conflicts(
        payload.amenity_id,
        payload.start_time,
        payload.end_time,
        payload.exclude_booking_id,
    )
    return result.model_dump(mode="json", by_alias=True)


@app.post("/bookings", response_model=Booking, status_code=201)
def create_booking(payload: BookingRequest) -> Booking:
    _bookable_amenity(payload.amenity_id)
    try:
        return booking_service.create(payload)
    except BookingConflictError as err:
        raise _conflict_error(err) from err


@app.post("/bookings/recurring", response_model=RecurringBookingResponse)
def create_recurring_booking(payload: RecurringBookingRequest) -> RecurringBookingResponse:
    """Create one pending booking per occurrence, skipping conflicting dates."""
    amenity = _bookable_amenity(payload.booking.amenity_id)
    try:
        result = booking_service.create_recurring(
            payload.booking, payload.recurrence, local_tz=amenity.availability.tzinfo
        )
    except InvalidRecurrenceError as err:
        raise HTTPException(status_code=422, detail=str(err)) from err
    return RecurringBookingResponse(**result.model_dump(), message=result.summary())


@app.get("/bookings", response_model=list[Booking])
def list_bookings(
    amenity_id: str | None = None,
    member_id: str | None = None,
    status: BookingStatus | None = None,
) -> list[Booking]:
    bookings = booking_repo.list_all()
    if amenity_id is not None:
        bookings = [b for b in bookings if b.amenity_id == amenity_id]
    if member_id is not None:
        bookings = [b for b in bookings if b.member_id == member_id]
    if status is not None:
        bookings = [b for b in bookings if b.status == status]
    return bookings


@app.get("/bookings/{booking_id}", response_model=Booking)
def get_booking(booking_id: str) -> Booking:
    return _get_booking(booking_id)


@app.post("/bookings/{booking_id}/reschedule", response_model=Booking)
def reschedule_booking(
    booking_id: str, payload: RescheduleRequest, now: datetime | None = None
) -> Booking:
    booking = _get_booking(booking_id)
    try:
        return booking_service.reschedule(
            booking, payload.start_time, payload.end_time, _now(now)
        )
    except BookingConflictError as err:
        raise _conflict_error(err) from err
    except InvalidTransitionError as err:
        raise HTTPException(status_code=400, detail=str(err)) from err


_ACTIONS = {
    "approve": BookingStatus.APPROVED,
    "check-in": BookingStatus.CHECKED_IN,
    "check-out": BookingStatus.COMPLETED,
    "cancel": BookingStatus.CANCELLED,
}


@app.post("/bookings/{booking_id}/{action}", response_model=Booking)
def change_booking_status(
    booking_id: str, action: str, now: datetime | None = None
) -> Booking:
    """Apply a lifecycle action: approve, check-in, check-out or cancel."""
    target = _ACTIONS.get(action)
    if target is None:
        raise HTTPException(status_code=404, detail=f"Unknown action: {action}")
    booking = _get_booking(booking_id)
    try:
        return booking_service.change_status(booking, target, _now(now))
    except InvalidTransitionError as err:
        raise HTTPException(status_code=400, detail=str(err)) from err


# ── Events & waitlist ─────────────────────────────────────────────────


@app.get("/events", response_model=list[Event])
def list_events(
    status: EventStatus | None = None,
    organizer_id: str | None = None,
) -> list[Event]:
    events = event_repo.list_all()
    if status is not None:
        events = [e for e in events if e.status == status]
    if organizer_id is not None:
        events = [e for e in events if e.organizer_id == organizer_id]
    return events


@app.post("/events", response_model=Event, status_code=201)
def create_event(payload: EventRequest) -> Event:
    """Propose a community event; it starts out pending review."""
    try:
        event = Event.model_validate(payload.model_dump())
    except ValidationError as err:
        raise HTTPException(status_code=422, detail=str(err)) from err
    event_repo.add(event)
    logger.info("Event %s proposed for %s", event.id, event.date.isoformat())
    return event


@app.get("/events/{event_id}", response_model=Event)
def get_event(event_id: str) -> Event:
    return _get_event(event_id)


@app.post("/events/{event_id}/approve", response_model=Event)
def approve_event(event_id: str, now: datetime | None = None) -> Event:
    event = _get_event(event_id)
    try:
        review_event(event, EventStatus.APPROVED, _now(now))
    except InvalidTransitionError as err:
        raise HTTPException(status_code=400, detail=str(err)) from err
    return event


@app.post("/events/{event_id}/reject", response_model=Event)
def reject_event(
    event_id: str, payload: RejectEventRequest, now: datetime | None = None
) -> Event:
    event = _get_event(event_id)
    try:
        review_event(event, EventStatus.REJECTED, _now(now), reason=payload.reason)
    except InvalidTransitionError as err:
        raise HTTPException(status_code=400, detail=str(err)) from err
    return event


@app.delete("/events/{event_id}", status_code=204)
def delete_event(event_id: str) -> None:
    if not event_repo.remove(event_id):
        raise HTTPException(status_code=404, detail="Event not found")


@app.post("/events/{event_id}/register", response_model=Event)
def register_for_event(event_id: str, payload: MemberRequest) -> Event:
    event = _get_event(event_id)
    try:
        waitlist.register(event, payload.member_id)
    except EventFullError as err:
        raise HTTPException(status_code=409, detail=str(err)) from err
    return event


@app.post("/events/{event_id}/unregister", response_model=Event)
def unregister_from_event(event_id: str, payload: MemberRequest) -> Event:
    """Leave an event; freed places are filled from the waitlist."""
    event = _get_event(event_id)
    try:
        waitlist.unregister(event, payload.member_id)
    except RegistrationError as err:
        raise HTTPException(status_code=400, detail=str(err)) from err
    event_bus.publish(AttendeeUnregistered(event_id=event_id, member_id=payload.member_id))
    return event


@app.post("/events/{event_id}/waitlist")
def join_event_waitlist(event_id: str, payload: MemberRequest) -> dict:
    event = _get_event(event_id)
    try:
        position = waitlist.join_waitlist(event, payload.member_id)
    except RegistrationError as err:
        raise HTTPException(status_code=400, detail=str(err)) from err
    return {"eventId": event_id, "memberId": payload.member_id, "position": position}


@app.post("/events/{event_id}/waitlist/leave", response_model=Event)
def leave_event_waitlist(event_id: str, payload: MemberRequest) -> Event:
    event = _get_event(event_id)
    waitlist.leave_waitlist(event, payload.member_id)
    return event


@app.post("/events/{event_id}/promote", response_model=WaitlistPromotion)
def promote_from_waitlist(event_id: str, payload: PromoteRequest) -> WaitlistPromotion:
    """Manually move up to *count* waitlisted members into attendance."""
    event = _get_event(event_id)
    promotion = waitlist.promote(event, payload.count)
    if promotion.promoted_member_ids:
        event_repo.apply_attendance(
            event_id, promotion.promoted_member_ids, promotion.remaining_waitlist
        )
        logger.info(
            "Promoted %d member(s) from waitlist for event %s",
            len(promotion.promoted_member_ids),
            event_id,
        )
        event_bus.publish(
            WaitlistPromoted(event_id=event_id, member_ids=promotion.promoted_member_ids)
        )
    return promotion


# ── Members ───────────────────────────────────────────────────────────


@app.get("/members/{member_id}/notifications", response_model=list[Notification])
def list_notifications(member_id: str) -> list[Notification]:
    return notification_repo.list_for_member(member_id)


# ── Housekeeping ──────────────────────────────────────────────────────


@app.post("/tick")
def tick(now: datetime | None = None) -> dict:
    """Run the periodic sweeps against *now*.

    Completes expired check-ins, reminds attendees of events starting in about
    ``REMINDER_LEAD_HOURS`` and reports old completed bookings.
    """
    current_time = _now(now)

    checked_out = booking_service.auto_checkout(
        current_time, timedelta(minutes=settings.AUTO_CHECKOUT_GRACE_MINUTES)
    )

    due = events_due_for_reminder(
        event_repo.list_all(),
        current_time,
        lead=timedelta(hours=settings.REMINDER_LEAD_HOURS),
        window=timedelta(hours=settings.REMINDER_WINDOW_HOURS),
    )
    for event in due:
        event_bus.publish(EventReminderDue(event_id=event.id))

    stale = stale_completed(
        booking_repo.list_all(), current_time, timedelta(days=settings.STALE_BOOKING_DAYS)
    )
    if stale:
        logger.info("Found %d old completed bookings to clean up", len(stale))

    return {
        "time": current_time.isoformat(),
        "checkedOut": [b.id for b in checked_out],
        "remindersSent": [e.id for e in due],
        "staleBookings": [b.id for b in stale],
    }
