from __future__ import annotations

from datetime import datetime, timedelta

import pytest

from campus_connect.engagement import award_points, get_user_stats, list_activities, record_activity, total_points
from campus_connect.extensions import db
from campus_connect.models import Event
from campus_connect.participation import register_for_event


@pytest.mark.unit
@pytest.mark.parametrize("points", [0, -5])
def test_award_points_rejects_non_positive(ctx, student, points):
    with pytest.raises(ValueError):
        award_points(student, points, "event_registration", 1, "Registered for an event")


@pytest.mark.unit
def test_record_activity_rejects_unknown_type(ctx, student):
    with pytest.raises(ValueError):
        record_activity(student, "event_liked", 1, "Something")


@pytest.mark.unit
def test_total_points_is_zero_without_ledger_rows(ctx, student):
    assert total_points(student) == 0


@pytest.mark.unit
def test_feed_is_newest_first(ctx, student):
    base = datetime(2026, 3, 1, 12, 0)
    for i, name in enumerate(("First", "Second", "Third")):
        row = record_activity(student, "event_registered", i + 1, name, 10)
        row.timestamp = base + timedelta(minutes=i)
    db.session.commit()

    names = [a.entity_name for a in list_activities(student)]
    assert names == ["Third", "Second", "First"]

    assert [a.entity_name for a in list_activities(student, limit=1, offset=1)] == ["Second"]


@pytest.mark.unit
def test_stats_count_only_future_registrations_as_upcoming(app, student, make_event):
    now = datetime.utcnow()
    past = make_event("Last Term Mixer", date=now - timedelta(days=3))
    later = make_event("International Culture Festival", date=now + timedelta(days=12), categories=("cultural",))
    sooner = make_event("Spring Career Fair", date=now + timedelta(days=7))

    with app.app_context():
        for event_id in (past, later, sooner):
            register_for_event(db.session.get(Event, event_id), student)

        stats = get_user_stats(student, now=now)

    assert stats.registered_events == 3
    assert stats.upcoming_events == 2
    assert stats.activity_points == 30
    assert stats.next_event_name == "Spring Career Fair"
    assert stats.next_event_id == sooner
    assert stats.club_memberships == 0


@pytest.mark.unit
def test_stats_without_registrations(ctx, student):
    stats = get_user_stats(student).to_dict()
    assert stats == {
        "registeredEvents": 0,
        "clubMemberships": 0,
        "activityPoints": 0,
        "upcomingEvents": 0,
        "nextEventName": None,
        "nextEventId": None,
        "nextEventDate": None,
    }


@pytest.mark.integration
def test_feed_keeps_name_from_registration_time(app, student_client, admin_client, make_event):
    event_id = make_event("Spring Career Fair")
    student_client.post(f"/api/events/{event_id}/register")

    resp = admin_client.put(
        f"/api/admin/events/{event_id}",
        json={
            "title": "Autumn Career Fair",
            "description": "Meet employers hiring for internships and full-time roles.",
            "date": (datetime.utcnow() + timedelta(days=30)).isoformat(),
            "time": "11:00 AM",
            "location": "Student Union Ballroom",
            "imageUrl": "https://images.example.com/fair.jpg",
            "categories": ["career"],
        },
    )
    assert resp.status_code == 200
    assert resp.get_json()["title"] == "Autumn Career Fair"

    feed = student_client.get("/api/users/activities").get_json()
    assert len(feed) == 1
    assert feed[0]["entityName"] == "Spring Career Fair"
    assert feed[0]["activityType"] == "event_registered"
    assert feed[0]["points"] == 10


@pytest.mark.integration
def test_activities_pagination_args(student_client, make_event, make_club):
    for i in range(3):
        event_id = make_event(f"Event number {i}")
        student_client.post(f"/api/events/{event_id}/register")
    club_id = make_club()
    student_client.post(f"/api/clubs/{club_id}/join")

    everything = student_client.get("/api/users/activities").get_json()
    assert len(everything) == 4
    assert everything[0]["activityType"] == "club_joined"

    page = student_client.get("/api/users/activities?limit=2&offset=1").get_json()
    assert [a["id"] for a in page] == [a["id"] for a in everything[1:3]]

    # Garbage values fall back to the defaults.
    assert len(student_client.get("/api/users/activities?limit=abc&offset=-4").get_json()) == 4
