from __future__ import annotations

from flask import Blueprint, jsonify
from flask_login import current_user, login_required

from .. import catalog
from ..engagement import DEFAULT_FEED_LIMIT, get_user_stats, list_activities
from ..validation import page_args

bp = Blueprint("users", __name__, url_prefix="/api/users")


@bp.get("/events")
@login_required
def events():
    return jsonify([e.to_dict() for e in catalog.user_registered_events(current_user.id)])


@bp.get("/clubs")
@login_required
def clubs():
    return jsonify([c.to_dict() for c in catalog.user_clubs(current_user.id)])


@bp.get("/activities")
@login_required
def activities():
    limit, offset = page_args(DEFAULT_FEED_LIMIT)
    rows = list_activities(current_user.id, limit=limit, offset=offset)
    return jsonify([row.to_dict() for row in rows])


@bp.get("/stats")
@login_required
def stats():
    return jsonify(get_user_stats(current_user.id).to_dict())


@bp.get("/calendar")
@login_required
def calendar():
    return jsonify([entry.to_dict() for entry in catalog.user_calendar(current_user.id)])
