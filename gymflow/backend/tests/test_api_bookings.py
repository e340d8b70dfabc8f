from datetime import datetime, timedelta, timezone

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from app.api import deps
from app.api.routes import bookings, classes, members, misc
from app.core.security import Principal
from app.db import models
from app.db.session import get_db
from app.events import BookingPromoted, EventChannel

STAFF = Principal(subject="staff-1", role="admin")


@pytest.fixture()
def api_client(session_factory):
    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    test_app = FastAPI()
    for module in (bookings, classes, members, misc):
        test_app.include_router(module.router, prefix="/api/v1")
    test_app.state.events = EventChannel()
    test_app.state.principal = STAFF

    test_app.dependency_overrides[get_db] = override_get_db
    test_app.dependency_overrides[deps.get_current_principal] = lambda: test_app.state.principal

    with TestClient(test_app) as client:
        yield client, test_app

    test_app.dependency_overrides.clear()


@pytest.fixture()
def seeded(session_factory):
    with session_factory() as db:
        gym_class = models.ClassSession(
            title="Morning WOD",
            starts_at=datetime.now(timezone.utc) + timedelta(days=1),
            capacity=1,
        )
        people = [models.Member(full_name=name, email=f"{name}@example.com") for name in ("ana", "bea", "caio")]
        db.add(gym_class)
        db.add_all(people)
        db.commit()
        return gym_class.id, [member.id for member in people]


def test_create_booking_then_waitlist(api_client, seeded):
    client, _ = api_client
    class_id, member_ids = seeded

    first = client.post("/api/v1/bookings", json={"class_id": class_id, "member_id": member_ids[0]})
    second = client.post("/api/v1/bookings", json={"class_id": class_id, "member_id": member_ids[1]})

    assert first.status_code == 201
    assert first.json()["status"] == "booked"
    assert second.status_code == 201
    assert second.json()["status"] == "waitlisted"


def test_duplicate_booking_returns_conflict(api_client, seeded):
    client, _ = api_client
    class_id, member_ids = seeded
    payload = {"class_id": class_id, "member_id": member_ids[0]}

    client.post("/api/v1/bookings", json=payload)
    response = client.post("/api/v1/bookings", json=payload)

    assert response.status_code == 409
    assert response.json()["detail"] == "Member already booked this class"


def test_unknown_class_returns_not_found(api_client, seeded):
    client, _ = api_client
    _, member_ids = seeded

    response = client.post("/api/v1/bookings", json={"class_id": 999, "member_id": member_ids[0]})

    assert response.status_code == 404
    assert response.json()["detail"] == "Class not found"


def test_cancel_promotes_and_queues_event(api_client, seeded):
    client, test_app = api_client
    class_id, member_ids = seeded
    booked = client.post("/api/v1/bookings", json={"class_id": class_id, "member_id": member_ids[0]}).json()
    waiting = client.post("/api/v1/bookings", json={"class_id": class_id, "member_id": member_ids[1]}).json()

    response = client.post(f"/api/v1/bookings/{booked['id']}/cancel")

    assert response.status_code == 200
    body = response.json()
    assert body["booking"]["status"] == "cancelled"
    assert body["booking"]["cancelled_by"] == "staff-1"
    assert body["promoted"]["id"] == waiting["id"]
    assert body["promoted"]["status"] == "booked"

    received = []
    test_app.state.events.subscribe(BookingPromoted, received.append)
    test_app.state.events.dispatch_pending()
    assert [event.booking_id for event in received] == [waiting["id"]]


def test_cancel_unknown_booking_is_empty_result(api_client):
    client, _ = api_client

    response = client.post("/api/v1/bookings/9999/cancel")

    assert response.status_code == 200
    assert response.json() == {"booking": None, "promoted": None}


def test_member_cannot_book_for_someone_else(api_client, seeded):
    client, test_app = api_client
    class_id, member_ids = seeded
    test_app.state.principal = Principal(subject="user-1", role="member", member_id=member_ids[0])

    own = client.post("/api/v1/bookings", json={"class_id": class_id, "member_id": member_ids[0]})
    other = client.post("/api/v1/bookings", json={"class_id": class_id, "member_id": member_ids[1]})

    assert own.status_code == 201
    assert other.status_code == 403


def test_member_cannot_cancel_someone_elses_booking(api_client, seeded):
    client, test_app = api_client
    class_id, member_ids = seeded
    booking = client.post("/api/v1/bookings", json={"class_id": class_id, "member_id": member_ids[0]}).json()
    test_app.state.principal = Principal(subject="user-2", role="member", member_id=member_ids[1])

    response = client.post(f"/api/v1/bookings/{booking['id']}/cancel")

    assert response.status_code == 403


def test_members_cannot_list_all_bookings(api_client, seeded):
    client, test_app = api_client
    _, member_ids = seeded
    test_app.state.principal = Principal(subject="user-1", role="member", member_id=member_ids[0])

    assert client.get("/api/v1/bookings").status_code == 403


def test_occupancy_shows_waitlist_positions(api_client, seeded):
    client, _ = api_client
    class_id, member_ids = seeded
    for member_id in member_ids:
        client.post("/api/v1/bookings", json={"class_id": class_id, "member_id": member_id})

    body = client.get(f"/api/v1/classes/{class_id}/occupancy").json()

    assert body["capacity"] == 1
    assert body["booked"] == 1
    assert body["available"] == 0
    assert [entry["position"] for entry in body["waitlist"]] == [1, 2]
    assert [entry["booking"]["member_id"] for entry in body["waitlist"]] == member_ids[1:]


def test_list_classes_includes_seat_counts(api_client, seeded):
    client, _ = api_client
    class_id, member_ids = seeded
    for member_id in member_ids[:2]:
        client.post("/api/v1/bookings", json={"class_id": class_id, "member_id": member_id})

    body = client.get("/api/v1/classes").json()

    assert body[0]["id"] == class_id
    assert body[0]["booked_seats"] == 1
    assert body[0]["available_seats"] == 0
    assert body[0]["waitlist_count"] == 1


def test_cancelled_class_rejects_booking(api_client, seeded):
    client, _ = api_client
    class_id, member_ids = seeded

    cancelled = client.post(f"/api/v1/classes/{class_id}/cancel")
    response = client.post("/api/v1/bookings", json={"class_id": class_id, "member_id": member_ids[0]})

    assert cancelled.json()["status"] == "cancelled"
    assert response.status_code == 409
    assert response.json()["detail"] == "Class is cancelled"


def test_capacity_increase_promotes_waitlist(api_client, seeded):
    client, _ = api_client
    class_id, member_ids = seeded
    for member_id in member_ids:
        client.post("/api/v1/bookings", json={"class_id": class_id, "member_id": member_id})

    response = client.patch(f"/api/v1/classes/{class_id}", json={"capacity": 2})
    occupancy = client.get(f"/api/v1/classes/{class_id}/occupancy").json()

    assert response.status_code == 200
    assert response.json()["capacity"] == 2
    assert occupancy["booked"] == 2
    assert len(occupancy["waitlist"]) == 1


def test_check_in_and_stats(api_client, seeded):
    client, _ = api_client
    class_id, member_ids = seeded
    booked = client.post("/api/v1/bookings", json={"class_id": class_id, "member_id": member_ids[0]}).json()
    client.post("/api/v1/bookings", json={"class_id": class_id, "member_id": member_ids[1]})

    checked = client.post(f"/api/v1/bookings/{booked['id']}/check-in")
    stats = client.get("/api/v1/bookings/stats").json()

    assert checked.status_code == 200
    assert checked.json()["checked_in_at"] is not None
    assert stats["total"] == 2
    assert stats["booked"] == 1
    assert stats["waitlisted"] == 1
    assert stats["checked_in"] == 1


def test_member_bookings_and_preferences(api_client, seeded):
    client, _ = api_client
    class_id, member_ids = seeded
    client.post("/api/v1/bookings", json={"class_id": class_id, "member_id": member_ids[0]})

    listed = client.get(f"/api/v1/members/{member_ids[0]}/bookings", params={"active_only": True})
    updated = client.put(
        f"/api/v1/members/{member_ids[0]}/notification-preferences",
        json={"event": "booking.promoted", "channel": "email", "enabled": False},
    )
    preferences = client.get(f"/api/v1/members/{member_ids[0]}/notification-preferences")

    assert [booking["class_id"] for booking in listed.json()] == [class_id]
    assert updated.json() == {"event": "booking.promoted", "channel": "email", "enabled": False}
    assert preferences.json() == [updated.json()]
    assert client.get("/api/v1/members/999/bookings").status_code == 404


def test_health_reports_event_queue(api_client):
    client, _ = api_client

    response = client.get("/api/v1/health")

    assert response.json() == {"status": "ok", "pending_events": 0, "dropped_events": 0}


def test_store_failure_returns_service_unavailable(api_client, seeded, session_factory, monkeypatch):
    client, _ = api_client
    class_id, member_ids = seeded

    def db_down(self):
        raise OperationalError("COMMIT", {}, Exception("db down"))

    monkeypatch.setattr(Session, "commit", db_down)
    booking = client.post("/api/v1/bookings", json={"class_id": class_id, "member_id": member_ids[0]})
    cancel = client.post(f"/api/v1/classes/{class_id}/cancel")
    monkeypatch.undo()

    assert booking.status_code == 503
    assert cancel.status_code == 503
    with session_factory() as db:
        assert db.query(models.Booking).count() == 0
        assert db.get(models.ClassSession, class_id).status == models.ClassStatus.scheduled
