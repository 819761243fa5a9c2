"""API error taxonomy and the Flask handlers that render it.

Every error leaves the API in the standard envelope::

    {"success": false, "message": "...", "errors": [{"field": ..., "message": ...}]}
"""
import logging

from flask import jsonify
from sqlalchemy.exc import IntegrityError
from werkzeug.exceptions import HTTPException

from models import db

logger = logging.getLogger(__name__)


class ApiError(Exception):
    status_code = 400
    default_message = "Request failed"

    def __init__(self, message=None, errors=None, data=None, headers=None):
        super().__init__(message or self.default_message)
        self.message = message or self.default_message
        self.errors = errors or []
        self.data = data
        self.headers = headers or {}


class ValidationError(ApiError):
    status_code = 400
    default_message = "Validation failed"


class AuthenticationError(ApiError):
    status_code = 401
    default_message = "Authentication required"


class ForbiddenError(ApiError):
    status_code = 403
    default_message = "Insufficient permissions"


class NotFoundError(ApiError):
    status_code = 404
    default_message = "Not found"


class ConflictError(ApiError):
    status_code = 409
    default_message = "Resource already exists"


class LockedError(ApiError):
    status_code = 423
    default_message = "Account is temporarily locked"

    def __init__(self, message=None, retry_after_seconds=0):
        retry_after_seconds = max(int(retry_after_seconds), 0)
        super().__init__(
            message,
            data={"retryAfterSeconds": retry_after_seconds},
            headers={"Retry-After": str(retry_after_seconds)},
        )


class RateLimitError(ApiError):
    status_code = 429
    default_message = "Too many requests. Please try again later."

    def __init__(self, message=None, retry_after_seconds=0):
        retry_after_seconds = max(int(retry_after_seconds), 1)
        super().__init__(
            message,
            data={"retryAfterSeconds": retry_after_seconds},
            headers={"Retry-After": str(retry_after_seconds)},
        )


def error_response(status_code: int, message: str, errors=None, data=None, headers=None):
    body = {"success": False, "message": message}
    if errors:
        body["errors"] = errors
    if data is not None:
        body["data"] = data
    resp = jsonify(body)
    resp.status_code = status_code
    for name, value in (headers or {}).items():
        resp.headers[name] = value
    return resp


def register_error_handlers(app):
    @app.errorhandler(ApiError)
    def _handle_api_error(exc):
        return error_response(exc.status_code, exc.message, exc.errors, exc.data, exc.headers)

    @app.errorhandler(IntegrityError)
    def _handle_integrity_error(exc):
        db.session.rollback()
        logger.warning("integrity error: %s", exc.orig)
        return error_response(409, ConflictError.default_message)

    @app.errorhandler(HTTPException)
    def _handle_http_exception(exc):
        if exc.code is not None and exc.code < 400:
            # routing redirects
            return exc
        return error_response(exc.code or 500, exc.description or exc.name)

    @app.errorhandler(Exception)
    def _handle_unexpected(exc):
        db.session.rollback()
        logger.exception("unhandled error")
        return error_response(500, "Internal server error")
