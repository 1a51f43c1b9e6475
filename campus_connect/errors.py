from __future__ import annotations

from flask import Flask, jsonify, request
from sqlalchemy.exc import SQLAlchemyError
from werkzeug.exceptions import HTTPException

from .extensions import db


class ApiError(Exception):
    code = 500
    message = "Internal server error"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.message)
        if message:
            self.message = message

    def to_dict(self) -> dict:
        return {"message": self.message}


class Unauthorized(ApiError):
    code = 401
    message = "Unauthorized"


class Forbidden(ApiError):
    code = 403
    message = "Forbidden - Admin access required"


class NotFound(ApiError):
    code = 404
    message = "Not found"


class ValidationError(ApiError):
    code = 400
    message = "Validation failed"

    def __init__(self, errors: dict[str, list[str]], message: str | None = None) -> None:
        super().__init__(message)
        self.errors = errors

    def to_dict(self) -> dict:
        return {"message": self.message, "errors": self.errors}


class InternalError(ApiError):
    code = 500
    message = "Internal server error"


def register_error_handlers(app: Flask) -> None:
    @app.errorhandler(ApiError)
    def _api_error(exc: ApiError):
        if isinstance(exc, InternalError):
            app.logger.error("%s %s failed: %s", request.method, request.path, exc.__cause__ or exc)
        return jsonify(exc.to_dict()), exc.code

    @app.errorhandler(SQLAlchemyError)
    def _storage_error(exc: SQLAlchemyError):
        db.session.rollback()
        app.logger.exception("Storage failure on %s %s", request.method, request.path)
        return jsonify(InternalError().to_dict()), 500

    @app.errorhandler(HTTPException)
    def _http_error(exc: HTTPException):
        if not request.path.startswith("/api"):
            return exc
        return jsonify({"message": exc.description}), exc.code
