# Overview: Domain error taxonomy and the JSON error handlers that render it.

"""
Error taxonomy

Every service raises one of these instead of returning status tuples. Each
error knows its HTTP status and a stable machine-readable ``code`` so the
frontend can react to specific causes (auto-refresh on TOKEN_EXPIRED, show
the available balance on INSUFFICIENT_BALANCE, ...).

NOT FOUND vs FOREIGN: resources outside the caller's company raise the same
NotFoundError as absent ones. Existence never leaks across tenants.
"""

from __future__ import annotations

from flask import current_app, jsonify
from werkzeug.exceptions import HTTPException


class ApiError(Exception):
    """Base class for errors rendered as ``{success: false, message, code}``."""

    status_code = 500
    default_code: str | None = None

    def __init__(self, message: str, code: str | None = None, **extra):
        super().__init__(message)
        self.message = message
        self.code = code or self.default_code
        self.extra = extra

    def to_dict(self) -> dict:
        body = {"success": False, "message": self.message}
        if self.code:
            body["code"] = self.code
        body.update(self.extra)
        return body


class ValidationError(ApiError):
    """400-level input problem, with field-level detail."""

    status_code = 400
    default_code = "VALIDATION_ERROR"

    def __init__(self, message: str = "Invalid data", errors: list[dict] | None = None, **extra):
        super().__init__(message, **extra)
        self.errors = errors or []

    def to_dict(self) -> dict:
        body = super().to_dict()
        if self.errors:
            body["errors"] = self.errors
        return body


class UnauthenticatedError(ApiError):
    """401: missing, expired or invalid credential, or a user that cannot hold a session."""

    status_code = 401
    default_code = "UNAUTHENTICATED"


class ForbiddenError(ApiError):
    """403: valid identity, insufficient role."""

    status_code = 403
    default_code = "FORBIDDEN"


class NotFoundError(ApiError):
    status_code = 404
    default_code = "NOT_FOUND"


class ConflictError(ApiError):
    """409-level business rule conflict (e.g., duplicate email, already paid)."""

    status_code = 409
    default_code = "CONFLICT"


class BusinessRuleError(ApiError):
    """400: request is well-formed but breaks a ledger or verification rule."""

    status_code = 400
    default_code = "BUSINESS_RULE"


class InsufficientBalanceError(BusinessRuleError):
    default_code = "INSUFFICIENT_BALANCE"

    def __init__(self, available_balance: int, message: str | None = None):
        super().__init__(
            message or f"Insufficient balance ({available_balance:,} GNF available)",
            available_balance=available_balance,
        )
        self.available_balance = available_balance


class LockedError(ApiError):
    """423: account temporarily locked after repeated login failures."""

    status_code = 423
    default_code = "ACCOUNT_LOCKED"

    def __init__(self, minutes_remaining: int, message: str | None = None):
        super().__init__(
            message or f"Account locked. Try again in {minutes_remaining} minute(s)",
            minutes_remaining=minutes_remaining,
        )
        self.minutes_remaining = minutes_remaining


class ServiceUnavailableError(ApiError):
    status_code = 503
    default_code = "SERVICE_UNAVAILABLE"


def register_error_handlers(app) -> None:
    """Render every error in the JSON envelope; hide internals in production."""

    @app.errorhandler(ApiError)
    def handle_api_error(error: ApiError):
        return jsonify(error.to_dict()), error.status_code

    @app.errorhandler(HTTPException)
    def handle_http_exception(error: HTTPException):
        messages = {
            404: "Route not found",
            405: "Method not allowed",
            429: "Too many requests, try again later",
        }
        body = {
            "success": False,
            "message": messages.get(error.code, error.description or error.name),
        }
        if error.code == 429:
            body["code"] = "RATE_LIMITED"
        return jsonify(body), error.code

    @app.errorhandler(Exception)
    def handle_unexpected(error: Exception):
        current_app.logger.exception("Unhandled error")
        message = (
            "Internal server error"
            if current_app.config.get("IS_PRODUCTION")
            else str(error) or error.__class__.__name__
        )
        return jsonify({"success": False, "message": message}), 500
