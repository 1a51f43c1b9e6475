from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime

from .extensions import db
from .models import Club, ClubMembership, Event, EventRegistration, User


TOP_N = 5
MONTH_ABBR = ("Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec")


@dataclass(frozen=True)
class Analytics:
    users_count: int
    events_count: int
    clubs_count: int
    events_by_month: list[dict] = field(default_factory=list)
    top_events: list[dict] = field(default_factory=list)
    top_clubs: list[dict] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "usersCount": self.users_count,
            "eventsCount": self.events_count,
            "clubsCount": self.clubs_count,
            "eventsByMonth": self.events_by_month,
            "topEvents": self.top_events,
            "topClubs": self.top_clubs,
        }


def events_by_month(*, now: datetime | None = None) -> list[dict]:
    now = now or datetime.utcnow()
    year_start = datetime(now.year, 1, 1)
    next_year = datetime(now.year + 1, 1, 1)

    # Bucketed in Python to stay portable across SQLite and Postgres.
    counts: dict[int, int] = {}
    for (date,) in db.session.query(Event.date).filter(Event.date >= year_start, Event.date < next_year).all():
        counts[date.month] = counts.get(date.month, 0) + 1

    return [{"month": MONTH_ABBR[m - 1], "count": counts[m]} for m in sorted(counts)]


def top_events(limit: int = TOP_N) -> list[dict]:
    registrations = db.func.count(EventRegistration.id)
    rows = (
        db.session.query(Event.id, Event.title, registrations)
        .outerjoin(EventRegistration, EventRegistration.event_id == Event.id)
        .group_by(Event.id, Event.title)
        .order_by(registrations.desc(), Event.id.asc())
        .limit(limit)
        .all()
    )
    return [{"id": id_, "title": title, "registrations": int(n)} for id_, title, n in rows]


def top_clubs(limit: int = TOP_N) -> list[dict]:
    members = db.func.count(ClubMembership.id)
    rows = (
        db.session.query(Club.id, Club.name, members)
        .outerjoin(ClubMembership, ClubMembership.club_id == Club.id)
        .group_by(Club.id, Club.name)
        .order_by(members.desc(), Club.id.asc())
        .limit(limit)
        .all()
    )
    return [{"id": id_, "name": name, "members": int(n)} for id_, name, n in rows]


def build_analytics(*, now: datetime | None = None) -> Analytics:
    return Analytics(
        users_count=User.query.count(),
        events_count=Event.query.count(),
        clubs_count=Club.query.count(),
        events_by_month=events_by_month(now=now),
        top_events=top_events(),
        top_clubs=top_clubs(),
    )
