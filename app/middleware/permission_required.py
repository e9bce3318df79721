"""
Permission Decorators: RBAC guards for administrative routes.

Usage:
    @bp.route("/api/v1/skills", methods=["POST"])
    @require_permission("training.skill.manage")
    def create_skill():
        ...

The acting member is resolved from the X-Member-Id header. The proposal
workflow routes do not use these decorators; their authorization is
decided inside the workflow by its CapabilityPolicy.
"""

import functools
import logging

from app.auth import acting_member
from app.core.exceptions import ForbiddenError
from app.services.permission_service import has_permission

logger = logging.getLogger(__name__)


def require_permission(codename: str):
    """
    Decorator: require the acting member to hold ``codename``.

    Members with a superuser role pass every check.
    """
    def decorator(f):
        @functools.wraps(f)
        def decorated(*args, **kwargs):
            member = acting_member()
            if not has_permission(member.id, codename):
                logger.warning(
                    "Member %d denied: missing permission '%s' on %s",
                    member.id, codename, f.__name__,
                )
                raise ForbiddenError("Permission denied", details={"required": codename})
            return f(*args, **kwargs)
        return decorated
    return decorator
