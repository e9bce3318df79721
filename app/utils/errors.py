"""Uniform JSON error bodies for the API.

Every error leaves the service as ``{"error": <message>, "code": <ERR_*>}``
with an optional ``details`` object:

    from app.utils.errors import api_error, error_response, E

    return api_error(E.VALIDATION_REQUIRED, "skill_id is required")
    return error_response(exc)      # any app.core.exceptions type
"""

from __future__ import annotations

from flask import jsonify


class E:
    """Machine-readable error codes, all prefixed ``ERR_``."""

    VALIDATION_REQUIRED = "ERR_VALIDATION_REQUIRED"
    VALIDATION_INVALID = "ERR_VALIDATION_INVALID"
    NOT_FOUND = "ERR_NOT_FOUND"
    CONFLICT_DUPLICATE = "ERR_CONFLICT_DUPLICATE"
    UNAUTHENTICATED = "ERR_UNAUTHENTICATED"
    FORBIDDEN = "ERR_FORBIDDEN"

    # Proposal workflow
    INELIGIBLE_LEVEL = "ERR_INELIGIBLE_LEVEL"
    DUPLICATE_PENDING = "ERR_DUPLICATE_PENDING"
    SELF_REVIEW = "ERR_SELF_REVIEW"
    ALREADY_RESOLVED = "ERR_ALREADY_RESOLVED"
    LEVEL_UNAVAILABLE = "ERR_LEVEL_UNAVAILABLE"

    UNAVAILABLE = "ERR_UNAVAILABLE"
    INTERNAL = "ERR_INTERNAL"


# Used when the raiser gives no explicit status; unknown codes get 400
_STATUS_BY_CODE: dict[str, int] = {
    E.VALIDATION_REQUIRED: 400,
    E.VALIDATION_INVALID: 422,
    E.INELIGIBLE_LEVEL: 422,
    E.UNAUTHENTICATED: 401,
    E.FORBIDDEN: 403,
    E.SELF_REVIEW: 403,
    E.NOT_FOUND: 404,
    E.CONFLICT_DUPLICATE: 409,
    E.DUPLICATE_PENDING: 409,
    E.ALREADY_RESOLVED: 409,
    E.LEVEL_UNAVAILABLE: 409,
    E.INTERNAL: 500,
    E.UNAVAILABLE: 503,
}

RETRY_AFTER_SECONDS = 2


def api_error(code: str, message: str, *, status: int | None = None, details: dict | None = None):
    """Build ``(response, status)`` for a Flask view or error handler.

    ERR_UNAVAILABLE responses also carry a Retry-After header.
    """
    body: dict = {"error": message, "code": code}
    if details:
        body["details"] = details

    response = jsonify(body)
    if code == E.UNAVAILABLE:
        response.headers["Retry-After"] = str(RETRY_AFTER_SECONDS)
    return response, status or _STATUS_BY_CODE.get(code, 400)


def error_response(exc: Exception):
    """Render an exception that carries ``code`` / ``status`` / ``details``."""
    return api_error(
        getattr(exc, "code", E.INTERNAL),
        str(exc),
        status=getattr(exc, "status", None),
        details=getattr(exc, "details", None) or None,
    )
