"""Domain errors raised by the flow services and their HTTP rendering."""

from __future__ import annotations

from http import HTTPStatus
from typing import Any

from flask import Flask, jsonify
from flask_limiter.errors import RateLimitExceeded


class FlowError(Exception):
    """Base class for errors that map onto a stable API error code."""

    code = "internal_error"
    status = HTTPStatus.INTERNAL_SERVER_ERROR

    def __init__(self, message: str, *, errors: list[str] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.errors = errors or []


class ValidationError(FlowError):
    """A required field is missing or malformed."""

    code = "validation_error"
    status = HTTPStatus.BAD_REQUEST


class NotFoundError(FlowError):
    code = "not_found"
    status = HTTPStatus.NOT_FOUND


class AuthorizationError(FlowError):
    """The caller's company does not own the target resource."""

    code = "forbidden"
    status = HTTPStatus.FORBIDDEN


class IntegrityError(FlowError):
    """A child resource does not belong to the parent named in the request."""

    code = "integrity_error"
    status = HTTPStatus.BAD_REQUEST


class ConflictError(FlowError):
    code = "conflict"
    status = HTTPStatus.CONFLICT


class InternalError(FlowError):
    """Unexpected persistence failure; the surrounding transaction was rolled back."""


def error_payload(code: str, message: str, **extra: Any) -> dict[str, Any]:
    payload: dict[str, Any] = {"success": False, "error": code, "message": message}
    payload.update({key: value for key, value in extra.items() if value is not None})
    return payload


def register_error_handlers(app: Flask) -> None:
    """Render domain errors and rate limiting with the shared JSON envelope."""

    def _debug_enabled() -> bool:
        return app.config.get("APP_ENV", "production") != "production"

    @app.errorhandler(FlowError)
    def handle_flow_error(exc: FlowError):
        extra: dict[str, Any] = {}
        if exc.errors:
            extra["errors"] = exc.errors
        if isinstance(exc, InternalError) and _debug_enabled() and exc.__cause__ is not None:
            extra["details"] = str(exc.__cause__)
        return jsonify(error_payload(exc.code, exc.message, **extra)), exc.status

    @app.errorhandler(RateLimitExceeded)
    def handle_rate_limit(exc: RateLimitExceeded):
        return (
            jsonify(error_payload("rate_limited", f"rate limit exceeded: {exc.description}")),
            HTTPStatus.TOO_MANY_REQUESTS,
        )

    @app.errorhandler(HTTPStatus.INTERNAL_SERVER_ERROR)
    def handle_unexpected(exc: Exception):
        original = getattr(exc, "original_exception", None) or exc
        app.logger.exception("Unhandled error while processing request", exc_info=original)
        details = str(original) if _debug_enabled() else None
        return (
            jsonify(error_payload("internal_error", "Internal server error", details=details)),
            HTTPStatus.INTERNAL_SERVER_ERROR,
        )
