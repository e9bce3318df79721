"""
Level Availability: which levels of a skill are open to proposals/awards.

Availability depends on the skill's level policies and on how many members
hold each level right now, so it is recomputed from the database on every
call. Nothing here is cached: capacity can change between a proposal being
submitted and being reviewed.

A level is available when its SkillLevel row:
  - exists and is enabled,
  - has requirements text (a level nobody can describe cannot be applied for),
  - and, if capped, has fewer holders than its capacity.
"""

from __future__ import annotations

import logging

from sqlalchemy import select, update

from app.models import db
from app.models.auth import Member
from app.models.skill import LEVELS, Skill, SkillLevel
from app.services import ledger

logger = logging.getLogger(__name__)


def _level_policies(skill_id: int, lock: bool = False) -> dict[int, SkillLevel]:
    if lock and db.session.get_bind().dialect.name == "sqlite":
        # SQLite has no row locks and pysqlite defers BEGIN until the first
        # write, so take the database write lock before reading
        db.session.execute(
            update(SkillLevel)
            .where(SkillLevel.skill_id == skill_id)
            .values(level=SkillLevel.level)
            .execution_options(synchronize_session=False)
        )
    stmt = (
        select(SkillLevel)
        .where(SkillLevel.skill_id == skill_id)
        .execution_options(populate_existing=True)
    )
    if lock:
        stmt = stmt.with_for_update()
    return {row.level: row for row in db.session.execute(stmt).scalars()}


def _is_open(policy: SkillLevel | None) -> bool:
    if policy is None or not policy.is_enabled:
        return False
    if not (policy.requirements or "").strip():
        return False
    if policy.capacity is not None:
        return ledger.holder_count(policy.skill_id, policy.level) < policy.capacity
    return True


def available_levels(skill: Skill, lock: bool = False) -> set[int]:
    """Return the levels of ``skill`` currently open to proposals and awards.

    Args:
        skill: The skill to evaluate.
        lock:  Take row locks on the level policies (SELECT ... FOR UPDATE) so
               a capacity check and the award that consumes it are serialised.
               On SQLite the whole database write lock is taken instead.
    """
    policies = _level_policies(skill.id, lock=lock)
    return {level for level in LEVELS if _is_open(policies.get(level))}


def is_level_available(skill: Skill, level: int, lock: bool = False) -> bool:
    return level in available_levels(skill, lock=lock)


def selectable_levels(skill: Skill, member: Member) -> set[int]:
    """Levels ``member`` may propose for ``skill``.

    That is every available level strictly above the member's held level
    whose prerequisite the member meets. Each level is judged on its own;
    no ordering between levels is implied.
    """
    held = ledger.level_of(member.id, skill.id)
    policies = _level_policies(skill.id)
    return {
        level
        for level in available_levels(skill)
        if level > held and policies[level].prerequisite_level <= held
    }


def selectable_skills(member: Member) -> list[Skill]:
    """Skills for which ``member`` has at least one selectable level."""
    return [
        skill
        for skill in Skill.query.order_by(Skill.name).all()
        if selectable_levels(skill, member)
    ]
