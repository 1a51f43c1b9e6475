from __future__ import annotations

from flask import Blueprint, current_app, jsonify, request
from flask_login import current_user

from .. import catalog
from ..analytics import build_analytics
from ..errors import Forbidden, NotFound, Unauthorized
from ..extensions import db
from ..models import AdminAuditLog
from ..validation import validate_json
from .forms import ClubForm, EventForm

bp = Blueprint("admin", __name__, url_prefix="/api/admin")


@bp.before_request
def _require_admin():
    if not current_user.is_authenticated:
        raise Unauthorized()
    if not current_user.is_admin:
        raise Forbidden()


def _audit(
    action: str,
    *,
    target_type: str | None = None,
    target_id: int | None = None,
    detail: str | None = None,
) -> None:
    try:
        db.session.add(
            AdminAuditLog(
                admin_user_id=current_user.id,
                action=action,
                target_type=target_type,
                target_id=target_id,
                detail=detail,
                ip_address=request.headers.get("X-Forwarded-For", request.remote_addr),
                user_agent=(request.headers.get("User-Agent") or "")[:255],
            )
        )
        db.session.commit()
    except Exception as e:
        db.session.rollback()
        current_app.logger.warning("Audit write failed for %s: %s", action, e)


@bp.get("/events")
def events():
    return jsonify([e.to_dict() for e in catalog.list_events()])


@bp.post("/events")
def create_event():
    form = validate_json(EventForm)
    event = catalog.create_event(form.event_fields(), form.categories.data, created_by=current_user.id)
    _audit("create_event", target_type="Event", target_id=event.id, detail=event.title)
    return jsonify(event.to_dict()), 201


@bp.put("/events/<int:event_id>")
def update_event(event_id: int):
    if catalog.get_event(event_id) is None:
        raise NotFound("Event not found")

    form = validate_json(EventForm)
    event = catalog.update_event(event_id, form.event_fields(), form.categories.data)
    if event is None:
        raise NotFound("Event not found")
    _audit("update_event", target_type="Event", target_id=event.id, detail=event.title)
    return jsonify(event.to_dict())


@bp.delete("/events/<int:event_id>")
def delete_event(event_id: int):
    if not catalog.delete_event(event_id):
        raise NotFound("Event not found")
    _audit("delete_event", target_type="Event", target_id=event_id)
    return jsonify(message="Event deleted successfully")


@bp.get("/clubs")
def clubs():
    return jsonify([c.to_dict() for c in catalog.list_clubs()])


@bp.post("/clubs")
def create_club():
    form = validate_json(ClubForm)
    club = catalog.create_club(form.club_fields(), created_by=current_user.id)
    _audit("create_club", target_type="Club", target_id=club.id, detail=club.name)
    return jsonify(club.to_dict()), 201


@bp.put("/clubs/<int:club_id>")
def update_club(club_id: int):
    if catalog.get_club(club_id) is None:
        raise NotFound("Club not found")

    form = validate_json(ClubForm)
    club = catalog.update_club(club_id, form.club_fields())
    if club is None:
        raise NotFound("Club not found")
    _audit("update_club", target_type="Club", target_id=club.id, detail=club.name)
    return jsonify(club.to_dict())


@bp.delete("/clubs/<int:club_id>")
def delete_club(club_id: int):
    if not catalog.delete_club(club_id):
        raise NotFound("Club not found")
    _audit("delete_club", target_type="Club", target_id=club_id)
    return jsonify(message="Club deleted successfully")


@bp.get("/analytics")
def analytics():
    return jsonify(build_analytics().to_dict())
