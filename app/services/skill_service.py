"""
Skill catalogue service: skills and their per-level availability policy.

Rules:
  - Every skill has exactly three SkillLevel rows, created with the skill.
  - db.session.commit() happens only in this file for these entities.
"""

from __future__ import annotations

import logging

from sqlalchemy import select

from app.core.exceptions import ConflictError, NotFoundError, ValidationError
from app.models import db
from app.models.skill import LEVELS, Skill, SkillLevel
from app.services import availability, ledger
from app.utils.helpers import clean_text

logger = logging.getLogger(__name__)


def get_skill(skill_id: int) -> Skill:
    skill = db.session.get(Skill, skill_id)
    if skill is None:
        raise NotFoundError(resource="Skill", resource_id=skill_id)
    return skill


def list_skills(category: str | None = None) -> list[Skill]:
    stmt = select(Skill).order_by(Skill.name)
    if category:
        stmt = stmt.where(Skill.category == category)
    return list(db.session.execute(stmt).scalars())


def _level_payload(data: dict, level: int) -> dict:
    payload = {}
    if "requirements" in data:
        payload["requirements"] = clean_text(data["requirements"]) or None
    if "is_enabled" in data:
        payload["is_enabled"] = bool(data["is_enabled"])
    if "capacity" in data:
        capacity = data["capacity"]
        if capacity is not None and (
            not isinstance(capacity, int) or isinstance(capacity, bool) or capacity < 0
        ):
            raise ValidationError(
                "capacity must be a non-negative integer or null",
                details={"capacity": capacity, "level": level},
            )
        payload["capacity"] = capacity
    if "prerequisite_level" in data:
        prereq = data["prerequisite_level"]
        if not isinstance(prereq, int) or isinstance(prereq, bool) or not 0 <= prereq < level:
            raise ValidationError(
                f"prerequisite_level must be between 0 and {level - 1}",
                details={"prerequisite_level": prereq, "level": level},
            )
        payload["prerequisite_level"] = prereq
    return payload


def create_skill(data: dict) -> Skill:
    """Create a skill with its three level policies.

    Args:
        data: ``name`` (required), ``category``, ``description`` and an
              optional ``levels`` mapping of level → policy fields.

    Raises:
        ValidationError: name missing or a level policy is invalid.
        ConflictError:   a skill with that name already exists.
    """
    name = clean_text(data.get("name"))
    if not name:
        raise ValidationError("name is required", details={"name": "required"})
    if db.session.execute(select(Skill.id).where(Skill.name == name)).first():
        raise ConflictError(resource="Skill", field="name", value=name)

    skill = Skill(
        name=name,
        category=clean_text(data.get("category")) or None,
        description=clean_text(data.get("description")),
    )
    level_data = data.get("levels") or {}
    for level in LEVELS:
        policy_data = level_data.get(str(level)) or level_data.get(level) or {}
        skill.levels.append(SkillLevel(level=level, **_level_payload(policy_data, level)))

    db.session.add(skill)
    db.session.commit()
    logger.info("Skill created id=%s name=%s", skill.id, skill.name, extra={"skill_id": skill.id})
    return skill


def configure_level(skill_id: int, level: int, data: dict) -> SkillLevel:
    """Update one level's availability policy.

    Changes take effect immediately for new submissions and for reviews of
    proposals that are already pending.
    """
    if level not in LEVELS:
        raise NotFoundError(resource="SkillLevel", resource_id=level)
    skill = get_skill(skill_id)
    policy = skill.level_policy(level)
    if policy is None:
        policy = SkillLevel(level=level)
        skill.levels.append(policy)

    for key, value in _level_payload(data, level).items():
        setattr(policy, key, value)
    db.session.commit()
    logger.info(
        "Skill level configured skill=%s level=%s enabled=%s capacity=%s",
        skill.id, level, policy.is_enabled, policy.capacity,
        extra={"skill_id": skill.id},
    )
    return policy


def skill_summary(skill: Skill) -> dict:
    """Skill with live availability and holder counts per level."""
    open_levels = availability.available_levels(skill)
    d = skill.to_dict()
    for lvl in d["levels"]:
        lvl["holders"] = ledger.holder_count(skill.id, lvl["level"])
        lvl["is_available"] = lvl["level"] in open_levels
    return d
