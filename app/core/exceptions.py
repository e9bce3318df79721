"""
Platform-wide exception hierarchy.

Services raise these; blueprints register handlers against them once and
get consistent HTTP status codes and machine-readable codes everywhere.

Every workflow outcome the caller must be able to tell apart has its own
type. ``UnavailableError`` is the only retryable one.

Usage:
    from app.core.exceptions import NotFoundError, ValidationError

    raise NotFoundError(resource="Skill", resource_id=42)
    raise ValidationError("awarded_comment is required", details={"awarded_comment": "..."})
"""


class NotFoundError(Exception):
    """Raised when a requested resource does not exist.

    Args:
        resource: Human-readable model/entity name (e.g. "Skill", "SkillProposal").
        resource_id: The PK that was looked up. Included in logs, not in HTTP response.
    """

    code = "ERR_NOT_FOUND"
    status = 404

    def __init__(self, resource: str, resource_id: int | str | None = None) -> None:
        self.resource = resource
        self.resource_id = resource_id
        msg = f"{resource}"
        if resource_id is not None:
            msg += f" id={resource_id}"
        msg += " not found"
        super().__init__(msg)


class ValidationError(Exception):
    """Raised when input fails business-rule validation in the service layer.

    Maps to HTTP 422 in blueprint error handlers.

    Args:
        message: Human-readable explanation of what failed.
        details: Optional field-level breakdown for structured API responses.
    """

    code = "ERR_VALIDATION_INVALID"
    status = 422

    def __init__(self, message: str, details: dict | None = None) -> None:
        self.details = details or {}
        super().__init__(message)


class ConflictError(Exception):
    """Raised when an operation would create a duplicate unique constraint violation.

    Maps to HTTP 409.
    """

    code = "ERR_CONFLICT_DUPLICATE"
    status = 409

    def __init__(self, resource: str, field: str, value: str | None = None) -> None:
        self.resource = resource
        self.field = field
        self.value = value
        super().__init__(f"{resource} with {field}={value!r} already exists")


# ── Skill proposal workflow ──────────────────────────────────────────────────


class SkillWorkflowError(Exception):
    """Base for the distinguishable outcomes of the proposal workflow."""

    code = "ERR_WORKFLOW"
    status = 422
    default_message = "The request could not be completed"

    def __init__(self, message: str | None = None, details: dict | None = None) -> None:
        self.details = details or {}
        super().__init__(message or self.default_message)


class ForbiddenError(SkillWorkflowError):
    """The acting member lacks the capability for this operation."""

    code = "ERR_FORBIDDEN"
    status = 403
    default_message = "You are not allowed to do that"


class IneligibleLevelError(SkillWorkflowError):
    """The proposed level is not selectable for this member and skill."""

    code = "ERR_INELIGIBLE_LEVEL"
    status = 422
    default_message = "That level is not available to apply for"


class DuplicatePendingError(SkillWorkflowError):
    """The member already has a pending proposal for this skill."""

    code = "ERR_DUPLICATE_PENDING"
    status = 409
    default_message = "You already have a proposal pending for this skill"


class SelfReviewForbiddenError(SkillWorkflowError):
    """A reviewer tried to resolve their own proposal."""

    code = "ERR_SELF_REVIEW"
    status = 403
    default_message = "You can't review your own proposal"


class AlreadyResolvedError(SkillWorkflowError):
    """The proposal has already been resolved; its outcome is final."""

    code = "ERR_ALREADY_RESOLVED"
    status = 409
    default_message = "This proposal has already been processed"


class LevelNoLongerAvailableError(SkillWorkflowError):
    """The level to award has closed since the proposal was submitted."""

    code = "ERR_LEVEL_UNAVAILABLE"
    status = 409
    default_message = "Please select a level that's available"


class UnavailableError(SkillWorkflowError):
    """Transient storage failure. The caller may retry the same request."""

    code = "ERR_UNAVAILABLE"
    status = 503
    default_message = "The service is temporarily unavailable, please try again"
