from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from .extensions import db
from .models import ActivityPoint, ClubMembership, Event, EventRegistration, UserActivity, iso


ACTIVITY_TYPES = frozenset({"event_registered", "club_joined", "points_earned", "comment_posted"})

DEFAULT_FEED_LIMIT = 10


@dataclass(frozen=True)
class UserStats:
    registered_events: int
    club_memberships: int
    activity_points: int
    upcoming_events: int
    next_event_name: str | None = None
    next_event_id: int | None = None
    next_event_date: datetime | None = None

    def to_dict(self) -> dict:
        return {
            "registeredEvents": self.registered_events,
            "clubMemberships": self.club_memberships,
            "activityPoints": self.activity_points,
            "upcomingEvents": self.upcoming_events,
            "nextEventName": self.next_event_name,
            "nextEventId": self.next_event_id,
            "nextEventDate": iso(self.next_event_date),
        }


def award_points(
    user_id: int,
    points: int,
    activity_type: str,
    entity_id: int,
    description: str,
) -> ActivityPoint:
    """Append a ledger row. The caller commits and owns de-duplication."""
    if int(points) <= 0:
        raise ValueError("points must be a positive integer")

    row = ActivityPoint()
    row.user_id = user_id
    row.points = int(points)
    row.activity_type = activity_type
    row.entity_id = entity_id
    row.description = description
    row.awarded_at = datetime.utcnow()
    db.session.add(row)
    return row


def total_points(user_id: int) -> int:
    total = (
        db.session.query(db.func.sum(ActivityPoint.points))
        .filter(ActivityPoint.user_id == user_id)
        .scalar()
    )
    return int(total or 0)


def record_activity(
    user_id: int,
    activity_type: str,
    entity_id: int,
    entity_name: str,
    points: int | None = None,
) -> UserActivity:
    """Append a feed entry; entity_name is stored as-is and never refreshed."""
    if activity_type not in ACTIVITY_TYPES:
        raise ValueError(f"unknown activity type: {activity_type}")

    row = UserActivity()
    row.user_id = user_id
    row.activity_type = activity_type
    row.entity_id = entity_id
    row.entity_name = entity_name
    row.points = points
    row.timestamp = datetime.utcnow()
    db.session.add(row)
    return row


def list_activities(user_id: int, limit: int = DEFAULT_FEED_LIMIT, offset: int = 0) -> list[UserActivity]:
    return (
        UserActivity.query.filter_by(user_id=user_id)
        .order_by(UserActivity.timestamp.desc(), UserActivity.id.desc())
        .limit(limit)
        .offset(offset)
        .all()
    )


def get_user_stats(user_id: int, *, now: datetime | None = None) -> UserStats:
    now = now or datetime.utcnow()

    registered = EventRegistration.query.filter_by(user_id=user_id).count()
    memberships = ClubMembership.query.filter_by(user_id=user_id).count()

    upcoming_q = (
        db.session.query(Event)
        .join(EventRegistration, EventRegistration.event_id == Event.id)
        .filter(EventRegistration.user_id == user_id, Event.date >= now)
    )
    upcoming = upcoming_q.count()
    next_event = upcoming_q.order_by(Event.date.asc(), Event.id.asc()).first()

    return UserStats(
        registered_events=registered,
        club_memberships=memberships,
        activity_points=total_points(user_id),
        upcoming_events=upcoming,
        next_event_name=next_event.title if next_event else None,
        next_event_id=next_event.id if next_event else None,
        next_event_date=next_event.date if next_event else None,
    )
