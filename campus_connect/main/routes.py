from __future__ import annotations

from flask import Blueprint, jsonify

from ..extensions import db

bp = Blueprint("main", __name__)


@bp.get("/")
def index():
    return jsonify(name="campus-connect", api="/api")


@bp.get("/healthz")
def healthz():
    db.session.execute(db.text("SELECT 1"))
    return jsonify(ok=True)
