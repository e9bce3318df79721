"""
Crew Skills Platform
Blueprint registry.
"""

import logging

from flask import Blueprint, jsonify, request
from sqlalchemy.exc import OperationalError

from app.auth import AuthenticationError
from app.core.exceptions import (
    ConflictError,
    NotFoundError,
    SkillWorkflowError,
    UnavailableError,
    ValidationError,
)
from app.models import db
from app.utils.errors import error_response

logger = logging.getLogger(__name__)


def register_error_handlers(bp: Blueprint) -> None:
    """Map service exceptions to JSON responses for every route of ``bp``."""

    @bp.errorhandler(SkillWorkflowError)
    def _handle_workflow(error: SkillWorkflowError):
        return error_response(error)

    @bp.errorhandler(NotFoundError)
    def _handle_not_found(error: NotFoundError):
        return error_response(error)

    @bp.errorhandler(ValidationError)
    def _handle_validation(error: ValidationError):
        return error_response(error)

    @bp.errorhandler(ConflictError)
    def _handle_conflict(error: ConflictError):
        return error_response(error)

    @bp.errorhandler(AuthenticationError)
    def _handle_unauthenticated(error: AuthenticationError):
        return error_response(error)

    @bp.errorhandler(OperationalError)
    def _handle_storage_down(error: OperationalError):
        db.session.rollback()
        logger.warning("Storage unavailable in %s: %s", request.path, error.orig)
        return error_response(UnavailableError())


def json_body() -> dict:
    """Request JSON as a dict; anything else becomes {}."""
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


def bad_request(message: str, field: str):
    return jsonify({"error": message, "code": "ERR_VALIDATION_REQUIRED", "details": {field: "required"}}), 400
