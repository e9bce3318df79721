"""
Skill Level Ledger: the authoritative record of each member's held level.

Rules:
  - A member with no MemberSkill row holds level 0 for that skill.
  - raise_level() is the only writer and is monotonic: it never lowers a level.
  - No commit happens here; writes join the caller's transaction so that a
    proposal resolution and its ledger raise commit or fail together.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from sqlalchemy import func, select, update

from app.models import db
from app.models.skill import MAX_LEVEL, MemberSkill

logger = logging.getLogger(__name__)


def level_of(member_id: int, skill_id: int) -> int:
    """Return the level (0..3) ``member_id`` currently holds for ``skill_id``."""
    level = db.session.execute(
        select(MemberSkill.level).where(
            MemberSkill.member_id == member_id,
            MemberSkill.skill_id == skill_id,
        )
    ).scalar_one_or_none()
    return level or 0


def _conditional_raise(member_id: int, skill_id: int, new_level: int) -> int:
    result = db.session.execute(
        update(MemberSkill)
        .where(
            MemberSkill.member_id == member_id,
            MemberSkill.skill_id == skill_id,
            MemberSkill.level < new_level,
        )
        .values(level=new_level, updated_at=datetime.now(timezone.utc))
        .execution_options(synchronize_session="fetch")
    )
    return result.rowcount


def raise_level(member_id: int, skill_id: int, new_level: int) -> bool:
    """Raise the member's level to ``new_level`` if that is higher than the current one.

    The comparison happens inside the UPDATE statement, so two concurrent
    raises can never leave the lower of the two values behind.

    Returns:
        True when the ledger changed, False for a no-op.
    """
    if not 0 < new_level <= MAX_LEVEL:
        raise ValueError(f"new_level must be within 1..{MAX_LEVEL}, got {new_level}")

    if _conditional_raise(member_id, skill_id, new_level):
        changed = True
    else:
        exists = db.session.execute(
            select(MemberSkill.id).where(
                MemberSkill.member_id == member_id,
                MemberSkill.skill_id == skill_id,
            )
        ).scalar_one_or_none()
        if exists is not None:
            changed = False
        else:
            # Only one pending proposal exists per (member, skill), so no other
            # resolution can be creating this row concurrently.
            db.session.add(MemberSkill(member_id=member_id, skill_id=skill_id, level=new_level))
            db.session.flush()
            changed = True

    if changed:
        logger.info(
            "Ledger raised member=%s skill=%s level=%s",
            member_id, skill_id, new_level,
            extra={"member_id": member_id, "skill_id": skill_id},
        )
    return changed


def has_pending(member_id: int, skill_id: int) -> bool:
    """True when the member has an unresolved proposal for the skill."""
    from app.services import proposal_store

    return proposal_store.pending_for(member_id, skill_id) is not None


def levels_for_member(member_id: int) -> list[MemberSkill]:
    """All ledger rows for a member with a held level above 0."""
    return (
        MemberSkill.query
        .filter(MemberSkill.member_id == member_id, MemberSkill.level > 0)
        .order_by(MemberSkill.skill_id)
        .all()
    )


def holder_count(skill_id: int, level: int) -> int:
    """Number of members currently holding exactly ``level`` of ``skill_id``."""
    return db.session.execute(
        select(func.count(MemberSkill.id)).where(
            MemberSkill.skill_id == skill_id,
            MemberSkill.level == level,
        )
    ).scalar_one()
