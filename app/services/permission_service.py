"""
Permission Service: DB-driven RBAC with cache.

Evaluation is deterministic and deny-by-default:
  - a member's permissions are the union of codenames granted by their roles
  - members holding a SUPERUSER_ROLES role pass every check
  - inactive or unknown members hold no permissions
"""

import logging
import threading
import time
from typing import Optional

from sqlalchemy import or_, select

from app.models import db
from app.models.auth import (
    Member,
    MemberRole,
    Permission,
    Role,
    RolePermission,
)

logger = logging.getLogger(__name__)

CACHE_TTL = 300  # 5 minutes

SUPERUSER_ROLES = {"admin"}

# Codenames used by the training workflow
PERM_PROPOSE = "training.proposal.create"
PERM_REVIEW = "training.proposal.review"
PERM_VIEW = "training.proposal.view"
PERM_MANAGE_SKILLS = "training.skill.manage"

ALL_PERMISSIONS = (PERM_PROPOSE, PERM_REVIEW, PERM_VIEW, PERM_MANAGE_SKILLS)

_permission_cache: dict[int, tuple[float, set[str], set[str]]] = {}
_cache_lock = threading.Lock()


def _get_cached(member_id: int) -> Optional[tuple[set[str], set[str]]]:
    with _cache_lock:
        entry = _permission_cache.get(member_id)
        if entry is None:
            return None
        cached_at, roles, perms = entry
        if time.time() - cached_at > CACHE_TTL:
            del _permission_cache[member_id]
            return None
        return roles, perms


def _set_cached(member_id: int, roles: set[str], perms: set[str]) -> None:
    with _cache_lock:
        _permission_cache[member_id] = (time.time(), roles, perms)


def invalidate_cache(member_id: int) -> None:
    with _cache_lock:
        _permission_cache.pop(member_id, None)


def invalidate_all_cache() -> None:
    with _cache_lock:
        _permission_cache.clear()


def _load(member_id: int) -> tuple[set[str], set[str]]:
    cached = _get_cached(member_id)
    if cached is not None:
        return cached

    member = db.session.get(Member, member_id)
    if member is None or not member.is_active:
        _set_cached(member_id, set(), set())
        return set(), set()

    role_rows = (
        db.session.query(Role.id, Role.name)
        .join(MemberRole, MemberRole.role_id == Role.id)
        .filter(MemberRole.member_id == member_id)
        .all()
    )
    roles = {name for _, name in role_rows}
    role_ids = sorted({rid for rid, _ in role_rows})

    perms: set[str] = set()
    if role_ids:
        rows = (
            db.session.query(Permission.codename)
            .join(RolePermission, RolePermission.permission_id == Permission.id)
            .filter(RolePermission.role_id.in_(role_ids))
            .distinct()
            .all()
        )
        perms = {r[0] for r in rows}

    _set_cached(member_id, roles, perms)
    return roles, perms


def get_member_role_names(member_id: int) -> list[str]:
    roles, _ = _load(member_id)
    return sorted(roles)


def get_member_permissions(member_id: int) -> set[str]:
    _, perms = _load(member_id)
    return set(perms)


def has_permission(member_id: int, codename: str) -> bool:
    roles, perms = _load(member_id)
    if roles & SUPERUSER_ROLES:
        return True
    return codename in perms


def members_with_permission(codename: str) -> list[Member]:
    """Active members granted ``codename`` directly or through a superuser role."""
    granted = (
        select(MemberRole.member_id)
        .join(Role, Role.id == MemberRole.role_id)
        .outerjoin(RolePermission, RolePermission.role_id == Role.id)
        .outerjoin(Permission, Permission.id == RolePermission.permission_id)
        .where(or_(Permission.codename == codename, Role.name.in_(SUPERUSER_ROLES)))
        .distinct()
    )
    return (
        Member.query
        .filter(Member.id.in_(granted), Member.is_active.is_(True))
        .order_by(Member.id)
        .all()
    )
