"""
Member service: members, role assignment and default RBAC seed data.
"""

from __future__ import annotations

import logging

from email_validator import EmailNotValidError, validate_email
from sqlalchemy import select

from app.core.exceptions import ConflictError, NotFoundError, ValidationError
from app.models import db
from app.models.auth import Member, MemberRole, Permission, Role, RolePermission
from app.services import permission_service
from app.utils.helpers import clean_text

logger = logging.getLogger(__name__)

# role name → (label, permission codenames)
DEFAULT_ROLES = {
    "member": ("Member", [permission_service.PERM_PROPOSE]),
    "training_officer": (
        "Training Officer",
        [
            permission_service.PERM_PROPOSE,
            permission_service.PERM_REVIEW,
            permission_service.PERM_VIEW,
            permission_service.PERM_MANAGE_SKILLS,
        ],
    ),
    "admin": ("Administrator", []),
}


def seed_roles() -> dict[str, Role]:
    """Create the default permissions and roles if missing. Idempotent."""
    perms = {}
    for codename in permission_service.ALL_PERMISSIONS:
        perm = Permission.query.filter_by(codename=codename).first()
        if perm is None:
            perm = Permission(codename=codename)
            db.session.add(perm)
        perms[codename] = perm
    db.session.flush()

    roles = {}
    for name, (label, codenames) in DEFAULT_ROLES.items():
        role = Role.query.filter_by(name=name).first()
        if role is None:
            role = Role(name=name, label=label)
            db.session.add(role)
            db.session.flush()
        granted = role.codenames
        for codename in codenames:
            if codename not in granted:
                db.session.add(RolePermission(role_id=role.id, permission_id=perms[codename].id))
        roles[name] = role

    db.session.commit()
    permission_service.invalidate_all_cache()
    return roles


def get_member(member_id: int) -> Member:
    member = db.session.get(Member, member_id)
    if member is None:
        raise NotFoundError(resource="Member", resource_id=member_id)
    return member


def create_member(data: dict, roles: list[str] | None = None) -> Member:
    """Create a member, optionally assigning roles by name."""
    name = clean_text(data.get("name"))
    if not name:
        raise ValidationError("name is required", details={"name": "required"})
    try:
        valid = validate_email(clean_text(data.get("email")), check_deliverability=False)
        email = valid.normalized.lower()
    except EmailNotValidError as e:
        raise ValidationError(f"Invalid email: {e}", details={"email": str(e)})
    if db.session.execute(select(Member.id).where(Member.email == email)).first():
        raise ConflictError(resource="Member", field="email", value=email)

    member = Member(name=name, email=email)
    db.session.add(member)
    db.session.flush()
    for role_name in roles or ():
        _assign(member, role_name)
    db.session.commit()
    logger.info("Member created id=%s", member.id, extra={"member_id": member.id})
    return member


def _assign(member: Member, role_name: str, granted_by_id: int | None = None) -> None:
    role = Role.query.filter_by(name=role_name).first()
    if role is None:
        raise NotFoundError(resource="Role", resource_id=role_name)
    exists = db.session.get(MemberRole, (member.id, role.id))
    if exists is None:
        db.session.add(MemberRole(member_id=member.id, role_id=role.id, granted_by_id=granted_by_id))


def assign_role(member_id: int, role_name: str, assigned_by: int | None = None) -> Member:
    """Grant a role to a member. Assigning a role twice is a no-op."""
    member = get_member(member_id)
    _assign(member, role_name, granted_by_id=assigned_by)
    db.session.commit()
    permission_service.invalidate_cache(member.id)
    logger.info("Role %s assigned to member=%s", role_name, member.id, extra={"member_id": member.id})
    return member
