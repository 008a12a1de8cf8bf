"""Centralised error handling and custom exceptions.

Service functions signal failures with the exceptions below instead of
building HTTP responses themselves. The handlers registered by
:func:`register_error_handlers` serialise them into JSON. Database
failures are not caught in the services; they surface here and become
500 responses after the session is rolled back.
"""
from __future__ import annotations

import logging

from flask import jsonify, request
from sqlalchemy.exc import SQLAlchemyError

logger = logging.getLogger(__name__)


class ApiError(Exception):
    """Base class for errors that map onto a JSON error response."""

    code = "ERROR"
    status_code = 400

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def payload(self) -> dict:
        return {"code": self.code, "message": self.message}

    def to_response(self, status_code: int | None = None):
        response = jsonify({"error": self.payload()})
        return response, status_code or self.status_code


class ValidationError(ApiError):
    """Raised when input validation fails."""

    code = "VALIDATION_ERROR"
    status_code = 400

    def __init__(self, message: str, fields: dict | None = None) -> None:
        super().__init__(message)
        self.fields = fields or {}

    def payload(self) -> dict:
        return {"code": self.code, "message": self.message, "fields": self.fields}


class UnauthorizedError(ApiError):
    """Raised when a request carries missing or wrong credentials."""

    code = "UNAUTHORIZED"
    status_code = 401


class ForbiddenError(ApiError):
    """Raised when the caller may not perform the operation."""

    code = "FORBIDDEN"
    status_code = 403


class NotFoundError(ApiError):
    """Raised when a requested resource cannot be found."""

    code = "NOT_FOUND"
    status_code = 404


class ConflictError(ApiError):
    """Raised when a uniqueness or resource conflict occurs."""

    code = "CONFLICT"
    status_code = 409


class RateLimitError(ApiError):
    """Raised when a caller exceeds a rate limit."""

    code = "RATE_LIMITED"
    status_code = 429

    def __init__(self, message: str, retry_after: int) -> None:
        super().__init__(message)
        self.retry_after = retry_after

    def to_response(self, status_code: int | None = None):
        response, status = super().to_response(status_code)
        response.headers["Retry-After"] = str(self.retry_after)
        return response, status


class ConfigurationError(ApiError):
    """Raised when a required setting is missing."""

    code = "NOT_CONFIGURED"
    status_code = 500


class EmailError(Exception):
    """Raised when an email cannot be rendered or delivered."""


def register_error_handlers(app) -> None:
    """Register custom error handlers on the given Flask app."""

    @app.errorhandler(ApiError)
    def handle_api_error(err: ApiError):
        return err.to_response()

    @app.errorhandler(SQLAlchemyError)
    def handle_storage_error(err: SQLAlchemyError):
        from .db import db

        logger.error(
            "Storage failure on %s %s args=%s: %s",
            request.method,
            request.path,
            dict(request.args),
            err,
        )
        db.session.rollback()
        return {"error": "Storage is unavailable. Please try again later."}, 500

    @app.errorhandler(EmailError)
    def handle_email_error(err: EmailError):
        logger.error("Email failure on %s: %s", request.path, err)
        return {"error": "Failed to send email."}, 500
