from __future__ import annotations

from flask import Blueprint, jsonify, request
from flask_login import current_user, login_required

from .. import catalog
from ..errors import NotFound
from ..extensions import db
from ..models import Event
from ..participation import get_event_registration, register_for_event
from ..validation import page_args

bp = Blueprint("events", __name__, url_prefix="/api/events")


def _annotated(events: list[catalog.EventWithCategories]) -> list[dict]:
    registered = catalog.registered_event_ids(current_user.id, (e.id for e in events))
    return [{**e.to_dict(), "isRegistered": e.id in registered} for e in events]


@bp.get("")
@login_required
def list_events():
    limit, offset = page_args(catalog.DEFAULT_PAGE_SIZE)
    events = catalog.list_events(
        category=(request.args.get("category") or "").strip() or None,
        date_filter=(request.args.get("date") or "").strip() or None,
        search=(request.args.get("search") or "").strip() or None,
        limit=limit,
        offset=offset,
    )
    return jsonify(_annotated(events))


@bp.get("/upcoming")
@login_required
def upcoming():
    limit, _ = page_args(3)
    return jsonify(_annotated(catalog.upcoming_events(limit)))


@bp.get("/categories")
@login_required
def categories():
    return jsonify([c.to_dict() for c in catalog.list_categories("event")])


@bp.get("/<int:event_id>")
@login_required
def detail(event_id: int):
    event = catalog.get_event(event_id)
    if not event:
        raise NotFound("Event not found")

    registration = get_event_registration(event_id, current_user.id)
    return jsonify({**event.to_dict(), "isRegistered": registration is not None})


@bp.post("/<int:event_id>/register")
@login_required
def register(event_id: int):
    event = db.session.get(Event, event_id)
    if not event:
        raise NotFound("Event not found")

    registration, created = register_for_event(event, current_user.id)
    return jsonify(registration.to_dict()), (201 if created else 200)
