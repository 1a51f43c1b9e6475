"""Event registration and club membership writes.

Both operations are idempotent on their (entity, user) pair. The first
successful write also appends a points ledger row and an activity feed entry;
all three rows are committed together or not at all.
"""
from __future__ import annotations

from datetime import datetime

from flask import current_app
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from .engagement import award_points, record_activity
from .errors import InternalError
from .extensions import db
from .models import Club, ClubMembership, Event, EventRegistration


EVENT_REGISTRATION_POINTS = 10
CLUB_MEMBERSHIP_POINTS = 15

_DIALECT_INSERTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


def get_event_registration(event_id: int, user_id: int) -> EventRegistration | None:
    return EventRegistration.query.filter_by(event_id=event_id, user_id=user_id).first()


def get_club_membership(club_id: int, user_id: int) -> ClubMembership | None:
    return ClubMembership.query.filter_by(club_id=club_id, user_id=user_id).first()


def _insert_once(model, conflict_columns: tuple[str, ...], values: dict) -> bool:
    """Insert a row unless the unique key already exists. Returns True if inserted."""
    make_insert = _DIALECT_INSERTS.get(db.engine.dialect.name)
    if make_insert is not None:
        stmt = make_insert(model).values(**values).on_conflict_do_nothing(index_elements=list(conflict_columns))
        result = db.session.execute(stmt)
        return result.rowcount > 0

    # Other backends: rely on the unique constraint inside a savepoint.
    try:
        with db.session.begin_nested():
            db.session.add(model(**values))
    except IntegrityError:
        return False
    return True


def register_for_event(event: Event, user_id: int) -> tuple[EventRegistration, bool]:
    existing = get_event_registration(event.id, user_id)
    if existing:
        current_app.logger.debug("User %s already registered for event %s", user_id, event.id)
        return existing, False

    event_id = event.id
    title = event.title
    try:
        created = _insert_once(
            EventRegistration,
            ("event_id", "user_id"),
            {"event_id": event_id, "user_id": user_id, "registered_at": datetime.utcnow()},
        )
        if created:
            award_points(
                user_id,
                EVENT_REGISTRATION_POINTS,
                "event_registration",
                event_id,
                "Registered for an event",
            )
            record_activity(user_id, "event_registered", event_id, title, EVENT_REGISTRATION_POINTS)
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.exception("Registration write failed (event=%s user=%s)", event_id, user_id)
        raise InternalError() from e

    registration = get_event_registration(event_id, user_id)
    if registration is None:
        raise InternalError()
    if created:
        current_app.logger.info("User %s registered for event %s (+%s points)", user_id, event_id, EVENT_REGISTRATION_POINTS)
    return registration, created


def join_club(club: Club, user_id: int) -> tuple[ClubMembership, bool]:
    existing = get_club_membership(club.id, user_id)
    if existing:
        current_app.logger.debug("User %s already a member of club %s", user_id, club.id)
        return existing, False

    club_id = club.id
    name = club.name
    try:
        created = _insert_once(
            ClubMembership,
            ("club_id", "user_id"),
            {"club_id": club_id, "user_id": user_id, "joined_at": datetime.utcnow()},
        )
        if created:
            award_points(user_id, CLUB_MEMBERSHIP_POINTS, "club_membership", club_id, "Joined a club")
            record_activity(user_id, "club_joined", club_id, name, CLUB_MEMBERSHIP_POINTS)
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.exception("Membership write failed (club=%s user=%s)", club_id, user_id)
        raise InternalError() from e

    membership = get_club_membership(club_id, user_id)
    if membership is None:
        raise InternalError()
    if created:
        current_app.logger.info("User %s joined club %s (+%s points)", user_id, club_id, CLUB_MEMBERSHIP_POINTS)
    return membership, created
