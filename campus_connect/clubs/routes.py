from __future__ import annotations

from flask import Blueprint, jsonify, request
from flask_login import current_user, login_required

from .. import catalog
from ..errors import NotFound
from ..extensions import db
from ..models import Club
from ..participation import get_club_membership, join_club
from ..validation import page_args

bp = Blueprint("clubs", __name__, url_prefix="/api/clubs")


@bp.get("")
@login_required
def list_clubs():
    limit, offset = page_args(catalog.DEFAULT_PAGE_SIZE)
    clubs = catalog.list_clubs(
        category=(request.args.get("category") or "").strip() or None,
        search=(request.args.get("search") or "").strip() or None,
        limit=limit,
        offset=offset,
    )
    member_of = catalog.member_club_ids(current_user.id, (c.id for c in clubs))
    return jsonify([{**c.to_dict(), "isMember": c.id in member_of} for c in clubs])


@bp.get("/categories")
@login_required
def categories():
    return jsonify([c.to_dict() for c in catalog.list_categories("club")])


@bp.get("/<int:club_id>")
@login_required
def detail(club_id: int):
    club = catalog.get_club(club_id)
    if not club:
        raise NotFound("Club not found")

    membership = get_club_membership(club_id, current_user.id)
    return jsonify({**club.to_dict(), "isMember": membership is not None})


@bp.post("/<int:club_id>/join")
@login_required
def join(club_id: int):
    club = db.session.get(Club, club_id)
    if not club:
        raise NotFound("Club not found")

    membership, created = join_club(club, current_user.id)
    return jsonify(membership.to_dict()), (201 if created else 200)
