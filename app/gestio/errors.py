"""
JSON error responses for the API.

Handlers raise an ``ApiError`` subclass; ``register_error_handlers`` turns it
into ``{"error": ..., "details": ...}`` with the matching status code.
"""
from __future__ import annotations

from typing import Any

from flask import Flask, g, jsonify
from pydantic import ValidationError
from werkzeug.exceptions import HTTPException


class ApiError(Exception):
    status_code = 500

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        details: Any = None,
        extra: dict[str, Any] | None = None,
    ):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        self.details = details
        self.extra = extra or {}

    def to_dict(self) -> dict[str, Any]:
        body: dict[str, Any] = {"error": self.message}
        if self.details is not None:
            body["details"] = self.details
        body.update(self.extra)
        return body


class BadRequest(ApiError):
    status_code = 400


class InvalidPayload(BadRequest):
    """Request body failed schema validation; details maps field -> messages."""

    def __init__(self, details: dict[str, list[str]], message: str = "Invalid data"):
        super().__init__(message, details=details)

    @classmethod
    def from_validation_error(cls, exc: ValidationError) -> "InvalidPayload":
        details: dict[str, list[str]] = {}
        for err in exc.errors():
            field = ".".join(str(p) for p in err.get("loc", ())) or "_root"
            details.setdefault(field, []).append(err.get("msg", "Invalid value"))
        return cls(details)


class AuthenticationRequired(ApiError):
    status_code = 401

    def __init__(self, message: str = "Authentication required"):
        super().__init__(message)


class AccessDenied(ApiError):
    status_code = 403

    def __init__(self, message: str = "Access denied", **kwargs: Any):
        super().__init__(message, **kwargs)


class NotFound(ApiError):
    status_code = 404

    def __init__(self, message: str = "Not found", **kwargs: Any):
        super().__init__(message, **kwargs)


class Conflict(ApiError):
    status_code = 409


def _rollback_request_session() -> None:
    s = getattr(g, "db_session", None)
    if s is not None:
        s.rollback()


def register_error_handlers(app: Flask) -> None:
    @app.errorhandler(ApiError)
    def _api_error(e: ApiError):
        _rollback_request_session()
        if e.status_code == 403:
            app.logger.warning(
                "Forbidden: %s missing_permission=%s request_id=%s",
                e.message,
                getattr(g, "missing_permission", None),
                getattr(g, "request_id", None),
            )
        return jsonify(e.to_dict()), e.status_code

    @app.errorhandler(HTTPException)
    def _http_error(e: HTTPException):
        return jsonify({"error": e.description or e.name}), e.code or 500

    @app.errorhandler(Exception)
    def _unhandled(e: Exception):
        _rollback_request_session()
        app.logger.exception("Unhandled 500 (request_id=%s)", getattr(g, "request_id", None))
        return jsonify({"error": "Internal server error"}), 500
