from __future__ import annotations

from flask import Blueprint, current_app, jsonify
from flask_login import current_user, login_required, login_user, logout_user
from flask_wtf.csrf import generate_csrf
from sqlalchemy.exc import IntegrityError

from ..errors import Unauthorized, ValidationError
from ..extensions import db, login_manager
from ..models import ROLE_STUDENT, User
from ..validation import validate_json
from .forms import LoginForm, SignupForm

bp = Blueprint("auth", __name__, url_prefix="/api")


@login_manager.unauthorized_handler
def _unauthorized():
    raise Unauthorized()


@bp.post("/register")
def register():
    form = validate_json(SignupForm)
    username = form.username.data
    if User.query.filter_by(username=username).first():
        raise ValidationError({"username": ["Username already exists"]})

    user = User(username=username, role=ROLE_STUDENT)
    user.set_password(form.password.data)
    db.session.add(user)
    try:
        db.session.commit()
    except IntegrityError as e:
        db.session.rollback()
        raise ValidationError({"username": ["Username already exists"]}) from e

    login_user(user)
    current_app.logger.info("New student account %s (id=%s)", user.username, user.id)
    return jsonify(user.to_dict()), 201


@bp.post("/login")
def login():
    form = validate_json(LoginForm)
    user = User.query.filter_by(username=form.username.data).first()
    if not user or not user.check_password(form.password.data):
        raise Unauthorized("Invalid username or password")

    login_user(user)
    return jsonify(user.to_dict())


@bp.post("/logout")
def logout():
    logout_user()
    return jsonify(message="Logged out")


@bp.get("/user")
@login_required
def me():
    return jsonify(current_user.to_dict())


@bp.get("/csrf")
def csrf_token():
    return jsonify(csrfToken=generate_csrf())
