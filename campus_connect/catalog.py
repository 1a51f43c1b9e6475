"""Read models and admin writes for events and clubs."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Iterable

from flask import current_app
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import selectinload

from .errors import InternalError, ValidationError
from .extensions import db
from .models import (
    Category,
    Club,
    ClubMeeting,
    ClubMembership,
    Event,
    EventCategory,
    EventRegistration,
    iso,
)


DEFAULT_PAGE_SIZE = 100
DATE_FILTERS = ("today", "this-week", "this-month", "upcoming", "past")

# First matching category value wins.
CALENDAR_COLORS = (
    ("workshop", "secondary"),
    ("cultural", "accent"),
    ("career", "destructive"),
)


@dataclass(frozen=True)
class EventWithCategories:
    id: int
    title: str
    description: str
    date: datetime
    time: str
    location: str
    image_url: str
    created_at: datetime
    category_ids: list[int] = field(default_factory=list)
    categories: list[str] = field(default_factory=list)
    category_values: list[str] = field(default_factory=list)
    registration_count: int = 0

    @classmethod
    def from_event(cls, event: Event, registration_count: int = 0) -> "EventWithCategories":
        linked = sorted((link.category for link in event.category_links), key=lambda c: c.name)
        return cls(
            id=event.id,
            title=event.title,
            description=event.description,
            date=event.date,
            time=event.time,
            location=event.location,
            image_url=event.image_url,
            created_at=event.created_at,
            category_ids=[c.id for c in linked],
            categories=[c.name for c in linked],
            category_values=[c.value for c in linked],
            registration_count=int(registration_count or 0),
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "date": iso(self.date),
            "time": self.time,
            "location": self.location,
            "imageUrl": self.image_url,
            "createdAt": iso(self.created_at),
            "categoryIds": self.category_ids,
            "categories": self.categories,
            "categoryValues": self.category_values,
            "registrationCount": self.registration_count,
        }


@dataclass(frozen=True)
class ClubWithNextMeeting:
    id: int
    name: str
    description: str
    category: str
    created_at: datetime
    member_count: int = 0
    next_meeting: ClubMeeting | None = None

    def to_dict(self) -> dict:
        meeting = None
        if self.next_meeting is not None:
            meeting = {
                "date": iso(self.next_meeting.date),
                "time": self.next_meeting.time,
                "location": self.next_meeting.location,
            }
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "category": self.category,
            "createdAt": iso(self.created_at),
            "memberCount": self.member_count,
            "nextMeeting": meeting,
        }


@dataclass(frozen=True)
class RegisteredEvent:
    id: int
    title: str
    description: str
    date: datetime
    time: str
    location: str
    image_url: str
    registered_at: datetime
    categories: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "date": iso(self.date),
            "time": self.time,
            "location": self.location,
            "imageUrl": self.image_url,
            "registeredAt": iso(self.registered_at),
            "categories": self.categories,
            "isRegistered": True,
        }


@dataclass(frozen=True)
class UserClub:
    id: int
    name: str
    description: str
    category: str
    joined_at: datetime
    member_count: int
    next_meeting: str | None = None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "category": self.category,
            "joinedAt": iso(self.joined_at),
            "memberCount": self.member_count,
            "nextMeeting": self.next_meeting,
            "isMember": True,
        }


@dataclass(frozen=True)
class CalendarEntry:
    id: int
    title: str
    date: datetime
    time: str
    color: str

    def to_dict(self) -> dict:
        return {"id": self.id, "title": self.title, "date": iso(self.date), "time": self.time, "color": self.color}


def _day_start(now: datetime) -> datetime:
    return datetime(now.year, now.month, now.day)


def date_bucket_bounds(date_filter: str, now: datetime) -> tuple[datetime | None, datetime | None]:
    """Return the [start, end) window for a date filter; None means open-ended."""
    day = _day_start(now)
    if date_filter == "today":
        return day, day + timedelta(days=1)
    if date_filter == "this-week":
        start = day - timedelta(days=day.weekday())  # Monday
        return start, start + timedelta(days=7)
    if date_filter == "this-month":
        start = day.replace(day=1)
        return start, (start + timedelta(days=32)).replace(day=1)
    if date_filter == "upcoming":
        return now, None
    if date_filter == "past":
        return None, now
    return None, None


def _contains(column, text: str):
    """Case-insensitive substring match with LIKE wildcards in text taken literally."""
    escaped = text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return column.ilike(f"%{escaped}%", escape="\\")


def _registration_counts():
    return (
        db.session.query(
            EventRegistration.event_id.label("event_id"),
            db.func.count(EventRegistration.id).label("n"),
        )
        .group_by(EventRegistration.event_id)
        .subquery()
    )


def _member_counts():
    return (
        db.session.query(
            ClubMembership.club_id.label("club_id"),
            db.func.count(ClubMembership.id).label("n"),
        )
        .group_by(ClubMembership.club_id)
        .subquery()
    )


def _event_query():
    counts = _registration_counts()
    return (
        db.session.query(Event, db.func.coalesce(counts.c.n, 0))
        .outerjoin(counts, counts.c.event_id == Event.id)
        .options(selectinload(Event.category_links).selectinload(EventCategory.category))
    )


def list_events(
    category: str | None = None,
    date_filter: str | None = None,
    search: str | None = None,
    limit: int = DEFAULT_PAGE_SIZE,
    offset: int = 0,
    *,
    now: datetime | None = None,
) -> list[EventWithCategories]:
    now = now or datetime.utcnow()
    query = _event_query()

    if category and category != "all":
        query = query.filter(Event.category_links.any(EventCategory.category.has(Category.value == category)))

    if date_filter:
        start, end = date_bucket_bounds(date_filter, now)
        if start is not None:
            query = query.filter(Event.date >= start)
        if end is not None:
            query = query.filter(Event.date < end)

    if search:
        query = query.filter(_contains(Event.title, search))

    rows = query.order_by(Event.date.asc(), Event.id.asc()).limit(limit).offset(offset).all()
    return [EventWithCategories.from_event(event, count) for event, count in rows]


def get_event(event_id: int) -> EventWithCategories | None:
    row = _event_query().filter(Event.id == event_id).first()
    if not row:
        return None
    event, count = row
    return EventWithCategories.from_event(event, count)


def upcoming_events(limit: int = 3, *, now: datetime | None = None) -> list[EventWithCategories]:
    now = now or datetime.utcnow()
    rows = _event_query().filter(Event.date >= now).order_by(Event.date.asc(), Event.id.asc()).limit(limit).all()
    return [EventWithCategories.from_event(event, count) for event, count in rows]


def registered_event_ids(user_id: int, event_ids: Iterable[int]) -> set[int]:
    ids = list(event_ids)
    if not ids:
        return set()
    rows = (
        db.session.query(EventRegistration.event_id)
        .filter(EventRegistration.user_id == user_id, EventRegistration.event_id.in_(ids))
        .all()
    )
    return {event_id for (event_id,) in rows}


def member_club_ids(user_id: int, club_ids: Iterable[int]) -> set[int]:
    ids = list(club_ids)
    if not ids:
        return set()
    rows = (
        db.session.query(ClubMembership.club_id)
        .filter(ClubMembership.user_id == user_id, ClubMembership.club_id.in_(ids))
        .all()
    )
    return {club_id for (club_id,) in rows}


def next_meeting_for(club_id: int, now: datetime) -> ClubMeeting | None:
    return (
        ClubMeeting.query.filter(ClubMeeting.club_id == club_id, ClubMeeting.date >= now)
        .order_by(ClubMeeting.date.asc())
        .first()
    )


def list_clubs(
    category: str | None = None,
    search: str | None = None,
    limit: int = DEFAULT_PAGE_SIZE,
    offset: int = 0,
) -> list[ClubWithNextMeeting]:
    counts = _member_counts()
    member_count = db.func.coalesce(counts.c.n, 0)
    query = db.session.query(Club, member_count).outerjoin(counts, counts.c.club_id == Club.id)

    if category and category != "all":
        query = query.filter(Club.category == category)
    if search:
        query = query.filter(_contains(Club.name, search))

    rows = query.order_by(member_count.desc(), Club.name.asc()).limit(limit).offset(offset).all()
    return [
        ClubWithNextMeeting(
            id=club.id,
            name=club.name,
            description=club.description,
            category=club.category,
            created_at=club.created_at,
            member_count=int(count or 0),
        )
        for club, count in rows
    ]


def get_club(club_id: int, *, now: datetime | None = None) -> ClubWithNextMeeting | None:
    now = now or datetime.utcnow()
    club = db.session.get(Club, club_id)
    if not club:
        return None
    return ClubWithNextMeeting(
        id=club.id,
        name=club.name,
        description=club.description,
        category=club.category,
        created_at=club.created_at,
        member_count=ClubMembership.query.filter_by(club_id=club.id).count(),
        next_meeting=next_meeting_for(club.id, now),
    )


def list_categories(kind: str) -> list[Category]:
    return Category.query.filter_by(type=kind).order_by(Category.name.asc()).all()


def user_registered_events(user_id: int) -> list[RegisteredEvent]:
    rows = (
        db.session.query(Event, EventRegistration.registered_at)
        .join(EventRegistration, EventRegistration.event_id == Event.id)
        .filter(EventRegistration.user_id == user_id)
        .options(selectinload(Event.category_links).selectinload(EventCategory.category))
        .order_by(Event.date.asc(), Event.id.asc())
        .all()
    )
    return [
        RegisteredEvent(
            id=event.id,
            title=event.title,
            description=event.description,
            date=event.date,
            time=event.time,
            location=event.location,
            image_url=event.image_url,
            registered_at=registered_at,
            categories=sorted(link.category.value for link in event.category_links),
        )
        for event, registered_at in rows
    ]


def describe_meeting(meeting: ClubMeeting, now: datetime) -> str:
    day = meeting.date.date()
    today = now.date()
    if day == today:
        return f"Today, {meeting.time}"
    if day == today + timedelta(days=1):
        return f"Tomorrow, {meeting.time}"
    return f"{meeting.date.strftime('%A')}, {meeting.time}"


def user_clubs(user_id: int, *, now: datetime | None = None) -> list[UserClub]:
    now = now or datetime.utcnow()
    counts = _member_counts()
    rows = (
        db.session.query(Club, ClubMembership.joined_at, db.func.coalesce(counts.c.n, 0))
        .join(ClubMembership, ClubMembership.club_id == Club.id)
        .outerjoin(counts, counts.c.club_id == Club.id)
        .filter(ClubMembership.user_id == user_id)
        .order_by(ClubMembership.joined_at.asc(), Club.id.asc())
        .all()
    )

    result = []
    for club, joined_at, count in rows:
        meeting = next_meeting_for(club.id, now)
        result.append(
            UserClub(
                id=club.id,
                name=club.name,
                description=club.description,
                category=club.category,
                joined_at=joined_at,
                member_count=int(count or 0),
                next_meeting=describe_meeting(meeting, now) if meeting else None,
            )
        )
    return result


def calendar_color(category_values: Iterable[str]) -> str:
    values = set(category_values)
    for value, color in CALENDAR_COLORS:
        if value in values:
            return color
    return "primary"


def user_calendar(user_id: int) -> list[CalendarEntry]:
    return [
        CalendarEntry(id=e.id, title=e.title, date=e.date, time=e.time, color=calendar_color(e.categories))
        for e in user_registered_events(user_id)
    ]


# Admin writes


def _link_categories(event_id: int, values: list[str]) -> None:
    if not values:
        return
    for category in Category.query.filter(Category.value.in_(values)).all():
        db.session.add(EventCategory(event_id=event_id, category_id=category.id))


def create_event(fields: dict, categories: list[str], created_by: int) -> EventWithCategories:
    try:
        event = Event(created_by=created_by, **fields)
        db.session.add(event)
        db.session.flush()
        _link_categories(event.id, categories)
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.exception("Creating event failed")
        raise InternalError() from e
    return get_event(event.id)


def update_event(event_id: int, fields: dict, categories: list[str] | None = None) -> EventWithCategories | None:
    event = db.session.get(Event, event_id)
    if not event:
        return None

    try:
        for key, value in fields.items():
            setattr(event, key, value)
        if categories:
            EventCategory.query.filter_by(event_id=event_id).delete()
            db.session.expire(event, ["category_links"])
            _link_categories(event_id, categories)
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.exception("Updating event %s failed", event_id)
        raise InternalError() from e
    return get_event(event_id)


def delete_event(event_id: int) -> bool:
    """Delete an event with its registrations and category links.

    Points and activity rows that reference the event are history and stay.
    """
    if db.session.get(Event, event_id) is None:
        return False

    try:
        EventRegistration.query.filter_by(event_id=event_id).delete()
        EventCategory.query.filter_by(event_id=event_id).delete()
        deleted = Event.query.filter_by(id=event_id).delete()
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.exception("Deleting event %s failed", event_id)
        raise InternalError() from e
    return deleted > 0


def _ensure_unique_club_name(name: str, exclude_id: int | None = None) -> None:
    query = Club.query.filter(Club.name == name)
    if exclude_id is not None:
        query = query.filter(Club.id != exclude_id)
    if query.first():
        raise ValidationError({"name": ["A club with this name already exists"]})


def create_club(fields: dict, created_by: int) -> ClubWithNextMeeting:
    _ensure_unique_club_name(fields["name"])
    try:
        club = Club(created_by=created_by, **fields)
        db.session.add(club)
        db.session.commit()
    except IntegrityError as e:
        db.session.rollback()
        raise ValidationError({"name": ["A club with this name already exists"]}) from e
    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.exception("Creating club failed")
        raise InternalError() from e
    return get_club(club.id)


def update_club(club_id: int, fields: dict) -> ClubWithNextMeeting | None:
    club = db.session.get(Club, club_id)
    if not club:
        return None

    _ensure_unique_club_name(fields.get("name", club.name), exclude_id=club_id)
    try:
        for key, value in fields.items():
            setattr(club, key, value)
        db.session.commit()
    except IntegrityError as e:
        db.session.rollback()
        raise ValidationError({"name": ["A club with this name already exists"]}) from e
    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.exception("Updating club %s failed", club_id)
        raise InternalError() from e
    return get_club(club_id)


def delete_club(club_id: int) -> bool:
    if db.session.get(Club, club_id) is None:
        return False

    try:
        ClubMembership.query.filter_by(club_id=club_id).delete()
        ClubMeeting.query.filter_by(club_id=club_id).delete()
        deleted = Club.query.filter_by(id=club_id).delete()
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.exception("Deleting club %s failed", club_id)
        raise InternalError() from e
    return deleted > 0

