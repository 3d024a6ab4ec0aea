"""End-to-end tests for event registration and the waitlist endpoints."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient

from cowork.domain.models import Event
from cowork.main import app, booking_repo, event_repo, notification_repo


@pytest.fixture(autouse=True)
def _clear_repos():
    booking_repo._store.clear()
    event_repo._store.clear()
    notification_repo._items.clear()
    yield
    booking_repo._store.clear()
    event_repo._store.clear()
    notification_repo._items.clear()


@pytest.fixture()
def client():
    return TestClient(app)


_NOW = datetime(2025, 3, 10, 9, 0, tzinfo=timezone.utc)


def _seed_event(capacity: int, attendees: list[str], waitlist: list[str] | None = None) -> Event:
    event = Event(
        title="Founders breakfast",
        date=_NOW + timedelta(days=2),
        capacity=capacity,
        attendees=attendees,
        waitlist=waitlist or [],
        location="Event Space",
    )
    event_repo.add(event)
    return event


def test_list_and_get_events(client: TestClient):
    event = _seed_event(capacity=10, attendees=["A"])

    resp = client.get("/events")
    assert [e["id"] for e in resp.json()] == [event.id]

    resp = client.get(f"/events/{event.id}")
    assert resp.status_code == 200
    assert resp.json()["title"] == "Founders breakfast"
    assert client.get("/events/nope").status_code == 404


def test_create_event(client: TestClient):
    resp = client.post(
        "/events",
        json={
            "title": "Product teardown",
            "date": (_NOW + timedelta(days=5)).isoformat(),
            "capacity": 20,
            "organizerId": "member-9",
        },
    )
    assert resp.status_code == 201
    body = resp.json()
    assert body["status"] == "pending"
    assert body["attendees"] == []
    assert body["waitlist"] == []
    assert event_repo.get(body["id"]) is not None

    resp = client.get("/events", params={"organizer_id": "member-9"})
    assert [e["id"] for e in resp.json()] == [body["id"]]


def test_create_event_with_negative_capacity_returns_422(client: TestClient):
    resp = client.post(
        "/events",
        json={"title": "Bad", "date": _NOW.isoformat(), "capacity": -1},
    )
    assert resp.status_code == 422
    assert event_repo.list_all() == []


def test_approve_and_reject_event(client: TestClient):
    event = _seed_event(capacity=5, attendees=[])

    resp = client.post(f"/events/{event.id}/approve")
    assert resp.status_code == 200
    assert resp.json()["status"] == "approved"
    assert client.post(f"/events/{event.id}/approve").status_code == 400

    resp = client.post(f"/events/{event.id}/reject", json={"reason": "Room double-booked"})
    assert resp.status_code == 200
    assert resp.json()["rejectionReason"] == "Room double-booked"

    resp = client.get("/events", params={"status": "rejected"})
    assert [e["id"] for e in resp.json()] == [event.id]


def test_delete_event(client: TestClient):
    event = _seed_event(capacity=5, attendees=[])
    assert client.delete(f"/events/{event.id}").status_code == 204
    assert event_repo.get(event.id) is None
    assert client.delete(f"/events/{event.id}").status_code == 404


def test_register_for_event(client: TestClient):
    event = _seed_event(capacity=2, attendees=["A"])
    resp = client.post(f"/events/{event.id}/register", json={"memberId": "B"})
    assert resp.status_code == 200
    assert resp.json()["attendees"] == ["A", "B"]


def test_register_for_full_event_returns_409(client: TestClient):
    event = _seed_event(capacity=1, attendees=["A"])
    resp = client.post(f"/events/{event.id}/register", json={"memberId": "B"})
    assert resp.status_code == 409
    assert event.attendees == ["A"]


def test_join_waitlist_reports_position(client: TestClient):
    event = _seed_event(capacity=1, attendees=["A"], waitlist=["B"])
    resp = client.post(f"/events/{event.id}/waitlist", json={"memberId": "C"})
    assert resp.status_code == 200
    assert resp.json() == {"eventId": event.id, "memberId": "C", "position": 2}


def test_attendee_cannot_join_waitlist(client: TestClient):
    event = _seed_event(capacity=1, attendees=["A"])
    resp = client.post(f"/events/{event.id}/waitlist", json={"memberId": "A"})
    assert resp.status_code == 400


def test_leave_waitlist(client: TestClient):
    event = _seed_event(capacity=1, attendees=["A"], waitlist=["B", "C"])
    resp = client.post(f"/events/{event.id}/waitlist/leave", json={"memberId": "B"})
    assert resp.status_code == 200
    assert resp.json()["waitlist"] == ["C"]


def test_unregister_promotes_first_waitlisted_member(client: TestClient):
    event = _seed_event(capacity=2, attendees=["A", "B"], waitlist=["C", "D"])

    resp = client.post(f"/events/{event.id}/unregister", json={"memberId": "A"})
    assert resp.status_code == 200
    body = resp.json()
    assert body["attendees"] == ["B", "C"]
    assert body["waitlist"] == ["D"]

    notes = client.get("/members/C/notifications").json()
    assert len(notes) == 1
    assert "Founders breakfast" in notes[0]["message"]
    assert client.get("/members/D/notifications").json() == []


def test_unregister_non_attendee_returns_400(client: TestClient):
    event = _seed_event(capacity=2, attendees=["A"])
    resp = client.post(f"/events/{event.id}/unregister", json={"memberId": "Z"})
    assert resp.status_code == 400


def test_promote_endpoint_respects_free_spots(client: TestClient):
    event = _seed_event(capacity=3, attendees=["A"], waitlist=["B", "C", "D"])

    resp = client.post(f"/events/{event.id}/promote", json={"count": 5})
    assert resp.status_code == 200
    assert resp.json() == {
        "promotedMemberIds": ["B", "C"],
        "remainingWaitlist": ["D"],
    }
    assert event.attendees == ["A", "B", "C"]
    assert event.waitlist == ["D"]
    assert len(client.get("/members/B/notifications").json()) == 1


def test_promote_unlimited_event(client: TestClient):
    event = _seed_event(capacity=0, attendees=["A"], waitlist=["B", "C"])
    resp = client.post(f"/events/{event.id}/promote", json={"count": 1})
    assert resp.json()["promotedMemberIds"] == ["B"]
    assert event.waitlist == ["C"]


def test_promote_rejects_non_positive_count(client: TestClient):
    event = _seed_event(capacity=3, attendees=[], waitlist=["B"])
    resp = client.post(f"/events/{event.id}/promote", json={"count": 0})
    assert resp.status_code == 422


def test_tick_sends_event_reminders(client: TestClient):
    event = Event(
        title="Demo day",
        date=_NOW + timedelta(hours=24, minutes=20),
        capacity=5,
        attendees=["A"],
    )
    event_repo.add(event)
    _seed_event(capacity=5, attendees=["B"])

    resp = client.post("/tick", params={"now": _NOW.isoformat()})
    assert resp.json()["remindersSent"] == [event.id]

    notes = client.get("/members/A/notifications").json()
    assert notes[0]["message"].startswith("Reminder: Demo day")
    assert client.get("/members/B/notifications").json() == []
