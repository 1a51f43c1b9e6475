from __future__ import annotations

from datetime import datetime, timedelta

import pytest

from campus_connect.analytics import events_by_month
from campus_connect.extensions import db
from campus_connect.models import (
    ActivityPoint,
    AdminAuditLog,
    ClubMeeting,
    ClubMembership,
    Event,
    EventCategory,
    EventRegistration,
    UserActivity,
)
from conftest import login


def _event_payload(**overrides) -> dict:
    payload = {
        "title": "Intro to Machine Learning",
        "description": "A hands-on session covering the basics of model training.",
        "date": (datetime.utcnow() + timedelta(days=10)).replace(microsecond=0).isoformat() + "Z",
        "time": "3:00 PM",
        "location": "Engineering Building, Room 305",
        "imageUrl": "https://images.example.com/ml.jpg",
        "categories": ["workshop", "academic"],
    }
    payload.update(overrides)
    return payload


def _club_payload(**overrides) -> dict:
    payload = {
        "name": "Robotics Club",
        "description": "Build and program robots for regional competitions.",
        "category": "coding",
    }
    payload.update(overrides)
    return payload


@pytest.mark.integration
@pytest.mark.parametrize(
    "method, path",
    [
        ("get", "/api/admin/events"),
        ("post", "/api/admin/events"),
        ("delete", "/api/admin/events/1"),
        ("get", "/api/admin/clubs"),
        ("get", "/api/admin/analytics"),
    ],
)
def test_admin_routes_reject_anonymous_and_students(client, student_client, method, path):
    anonymous = getattr(client, method)(path)
    assert anonymous.status_code == 401
    assert anonymous.get_json() == {"message": "Unauthorized"}

    forbidden = getattr(student_client, method)(path)
    assert forbidden.status_code == 403
    assert forbidden.get_json() == {"message": "Forbidden - Admin access required"}


@pytest.mark.integration
def test_create_event(app, admin_client):
    resp = admin_client.post("/api/admin/events", json=_event_payload())
    assert resp.status_code == 201

    body = resp.get_json()
    assert body["title"] == "Intro to Machine Learning"
    assert body["categories"] == ["Academic", "Workshop"]
    assert body["categoryValues"] == ["academic", "workshop"]
    assert body["imageUrl"] == "https://images.example.com/ml.jpg"

    with app.app_context():
        event = db.session.get(Event, body["id"])
        # Stored as naive UTC.
        assert event.date.tzinfo is None
        assert AdminAuditLog.query.filter_by(action="create_event", target_id=event.id).count() == 1

    listed = admin_client.get("/api/admin/events").get_json()
    assert [e["id"] for e in listed] == [body["id"]]


@pytest.mark.integration
def test_create_event_validation_errors(admin_client):
    resp = admin_client.post(
        "/api/admin/events",
        json=_event_payload(
            title="ab",
            description="short",
            date="next tuesday",
            location="",
            imageUrl="not a url",
            categories=[],
        ),
    )
    assert resp.status_code == 400

    body = resp.get_json()
    assert body["message"] == "Validation failed"
    errors = body["errors"]
    assert errors["title"] == ["Title must be at least 3 characters"]
    assert errors["description"] == ["Description must be at least 10 characters"]
    assert errors["date"] == ["Please enter a valid date"]
    assert errors["location"] == ["Location must be at least 3 characters"]
    assert "Please enter a valid URL" in errors["imageUrl"]
    assert errors["categories"] == ["At least one category is required"]
    assert "time" not in errors


@pytest.mark.integration
def test_create_event_requires_date(admin_client):
    payload = _event_payload()
    del payload["date"]

    resp = admin_client.post("/api/admin/events", json=payload)
    assert resp.status_code == 400
    assert resp.get_json()["errors"]["date"] == ["Date is required"]


@pytest.mark.integration
def test_update_event_replaces_categories(admin_client, make_event):
    event_id = make_event("Spring Career Fair", categories=("career",))

    resp = admin_client.put(
        f"/api/admin/events/{event_id}",
        json=_event_payload(title="Spring Career Fair", categories="workshop, cultural"),
    )
    assert resp.status_code == 200
    assert resp.get_json()["categoryValues"] == ["cultural", "workshop"]

    assert admin_client.put("/api/admin/events/9999", json=_event_payload()).status_code == 404


@pytest.mark.integration
def test_delete_event_keeps_points_and_feed(app, student, student_client, admin_client, make_event):
    event_id = make_event("Spring Career Fair")
    student_client.post(f"/api/events/{event_id}/register")

    resp = admin_client.delete(f"/api/admin/events/{event_id}")
    assert resp.status_code == 200
    assert resp.get_json() == {"message": "Event deleted successfully"}

    with app.app_context():
        assert db.session.get(Event, event_id) is None
        assert EventRegistration.query.filter_by(event_id=event_id).count() == 0
        assert EventCategory.query.filter_by(event_id=event_id).count() == 0
        assert ActivityPoint.query.filter_by(user_id=student, entity_id=event_id).count() == 1
        assert UserActivity.query.filter_by(user_id=student, entity_id=event_id).count() == 1

    assert student_client.get(f"/api/events/{event_id}").status_code == 404

    stats = student_client.get("/api/users/stats").get_json()
    assert stats["registeredEvents"] == 0
    assert stats["activityPoints"] == 10

    feed = student_client.get("/api/users/activities").get_json()
    assert feed[0]["entityName"] == "Spring Career Fair"

    assert admin_client.delete(f"/api/admin/events/{event_id}").status_code == 404


@pytest.mark.integration
def test_club_crud(app, student, student_client, admin_client):
    created = admin_client.post("/api/admin/clubs", json=_club_payload())
    assert created.status_code == 201
    club_id = created.get_json()["id"]

    duplicate = admin_client.post("/api/admin/clubs", json=_club_payload())
    assert duplicate.status_code == 400
    assert duplicate.get_json()["errors"] == {"name": ["A club with this name already exists"]}

    invalid = admin_client.post("/api/admin/clubs", json={"name": "AB", "description": "tiny", "category": " "})
    assert invalid.status_code == 400
    assert set(invalid.get_json()["errors"]) == {"name", "description", "category"}

    updated = admin_client.put(
        f"/api/admin/clubs/{club_id}",
        json=_club_payload(description="Design, build and program competition robots."),
    )
    assert updated.status_code == 200
    assert updated.get_json()["description"] == "Design, build and program competition robots."

    student_client.post(f"/api/clubs/{club_id}/join")
    with app.app_context():
        db.session.add(ClubMeeting(club_id=club_id, date=datetime.utcnow() + timedelta(days=1), time="6:00 PM", location="Lab"))
        db.session.commit()

    deleted = admin_client.delete(f"/api/admin/clubs/{club_id}")
    assert deleted.status_code == 200
    assert deleted.get_json() == {"message": "Club deleted successfully"}

    with app.app_context():
        assert ClubMembership.query.filter_by(club_id=club_id).count() == 0
        assert ClubMeeting.query.filter_by(club_id=club_id).count() == 0
        assert ActivityPoint.query.filter_by(user_id=student, entity_id=club_id).count() == 1
        actions = [row.action for row in AdminAuditLog.query.order_by(AdminAuditLog.id).all()]
        assert actions == ["create_club", "update_club", "delete_club"]

    assert student_client.get("/api/users/clubs").get_json() == []
    assert admin_client.delete(f"/api/admin/clubs/{club_id}").status_code == 404


@pytest.mark.integration
def test_rename_club_to_existing_name(admin_client, make_club):
    make_club("Chess Club", category="chess")
    club_id = make_club("Coding Club")

    resp = admin_client.put(f"/api/admin/clubs/{club_id}", json=_club_payload(name="Chess Club"))
    assert resp.status_code == 400
    assert resp.get_json()["errors"]["name"] == ["A club with this name already exists"]


@pytest.mark.integration
def test_analytics(student, student_client, admin_client, make_user, make_event, make_club):
    popular = make_event("Spring Career Fair")
    quiet = make_event("Full-Stack Development Workshop", categories=("workshop",))
    club_id = make_club()
    make_user("bob")

    student_client.post(f"/api/events/{popular}/register")

    body = admin_client.get("/api/admin/analytics").get_json()
    assert body["usersCount"] == 3
    assert body["eventsCount"] == 2
    assert body["clubsCount"] == 1
    assert body["topEvents"][0] == {"id": popular, "title": "Spring Career Fair", "registrations": 1}
    assert body["topEvents"][1]["id"] == quiet
    assert body["topClubs"] == [{"id": club_id, "name": "Coding Club", "members": 0}]
    assert sum(row["count"] for row in body["eventsByMonth"]) <= 2


@pytest.mark.unit
def test_events_by_month_covers_current_year(app, make_event):
    now = datetime(2026, 6, 1, 9, 0)
    make_event("January Kickoff", date=datetime(2026, 1, 20, 10))
    make_event("March Lecture", date=datetime(2026, 3, 3, 10))
    make_event("March Workshop", date=datetime(2026, 3, 25, 10), categories=("workshop",))
    make_event("Last Year Gala", date=datetime(2025, 12, 31, 20))
    make_event("Next Year Gala", date=datetime(2027, 1, 1, 20))

    with app.app_context():
        assert events_by_month(now=now) == [{"month": "Jan", "count": 1}, {"month": "Mar", "count": 2}]


@pytest.mark.integration
def test_delete_event_with_three_registrants(app, admin_client, make_user, make_event):
    event_id = make_event("Spring Career Fair")
    users = [make_user(f"attendee{i}") for i in range(3)]

    for i in range(3):
        client = app.test_client()
        login(client, f"attendee{i}", "password1")
        assert client.post(f"/api/events/{event_id}/register").status_code == 201

    assert admin_client.delete(f"/api/admin/events/{event_id}").status_code == 200
    assert admin_client.get("/api/admin/events").get_json() == []

    with app.app_context():
        for user_id in users:
            feed = UserActivity.query.filter_by(user_id=user_id).all()
            assert [(a.entity_id, a.entity_name) for a in feed] == [(event_id, "Spring Career Fair")]


@pytest.mark.integration
@pytest.mark.parametrize(
    "categories, message",
    [
        (["no-such-category"], "Unknown category: no-such-category"),
        (["workshop", "robotics"], "Unknown category: robotics"),
        # Club categories are not valid on events.
        (["chess"], "Unknown category: chess"),
    ],
)
def test_create_event_rejects_unknown_categories(app, admin_client, categories, message):
    resp = admin_client.post("/api/admin/events", json=_event_payload(categories=categories))
    assert resp.status_code == 400
    assert resp.get_json()["errors"]["categories"] == [message]

    with app.app_context():
        assert Event.query.count() == 0


@pytest.mark.integration
def test_update_event_with_unknown_category_keeps_links(app, admin_client, make_event):
    event_id = make_event("Spring Career Fair", categories=("career",))

    resp = admin_client.put(
        f"/api/admin/events/{event_id}",
        json=_event_payload(title="Renamed Career Fair", categories=["no-such-category"]),
    )
    assert resp.status_code == 400
    assert resp.get_json()["errors"]["categories"] == ["Unknown category: no-such-category"]

    with app.app_context():
        event = db.session.get(Event, event_id)
        assert event.title == "Spring Career Fair"
        assert [link.category.value for link in event.category_links] == ["career"]
