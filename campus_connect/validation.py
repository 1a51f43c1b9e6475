from __future__ import annotations

from datetime import datetime, timezone
from typing import TypeVar

from flask import request
from flask_wtf import FlaskForm
from wtforms import Field

from .errors import ValidationError


F = TypeVar("F", bound=FlaskForm)


def as_text(value):
    if value is None:
        return None
    return str(value)


def strip_text(value):
    if value is None:
        return None
    return str(value).strip()


class JsonForm(FlaskForm):
    """Form fed from a JSON object instead of posted form data.

    CSRF is checked for the whole request by CSRFProtect, so the per-form
    token is disabled here.
    """

    class Meta:
        csrf = False


class TagListField(Field):
    """Accepts a single string or a list of strings."""

    def process_data(self, value):
        if value is None:
            self.data = []
        elif isinstance(value, str):
            self.data = [v.strip() for v in value.split(",") if v.strip()]
        elif isinstance(value, (list, tuple)):
            self.data = [str(v).strip() for v in value if v is not None and str(v).strip()]
        else:
            self.data = []
            raise ValueError("Expected a string or a list of strings")

    def _value(self):
        return ",".join(self.data or [])


class IsoDateTimeField(Field):
    """ISO 8601 timestamp, stored as naive UTC."""

    def process_data(self, value):
        self.data = None
        if value is None or value == "":
            return
        if isinstance(value, datetime):
            parsed = value
        else:
            try:
                parsed = datetime.fromisoformat(str(value).strip().replace("Z", "+00:00"))
            except ValueError:
                raise ValueError("Please enter a valid date")
        if parsed.tzinfo is not None:
            parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
        self.data = parsed

    def _value(self):
        return self.data.isoformat() if self.data else ""


def validate_json(form_cls: type[F], payload: dict | None = None) -> F:
    """Build form_cls from the request JSON and raise ValidationError on failure."""
    if payload is None:
        payload = request.get_json(silent=True)
    if not isinstance(payload, dict):
        payload = {}

    form = form_cls(formdata=None, data=payload)
    if not form.validate():
        raise ValidationError({name: list(messages) for name, messages in form.errors.items()})
    return form


MAX_PAGE_SIZE = 100


def page_args(default_limit: int) -> tuple[int, int]:
    """Read limit/offset from the query string; bad values fall back to defaults."""
    limit = request.args.get("limit", default=default_limit, type=int)
    offset = request.args.get("offset", default=0, type=int)
    if limit <= 0:
        limit = default_limit
    return min(limit, MAX_PAGE_SIZE), max(offset, 0)
