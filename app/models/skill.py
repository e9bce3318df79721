"""
Crew Skills Platform
Skill domain model.

Models:
    - Skill:        a graded competency tracked by the organisation
    - SkillLevel:   per-level availability policy (requirements, capacity, prerequisite)
    - MemberSkill:  ledger row, the level a member currently holds for a skill

Business rules:
    - Levels run 1..3; 0 on the ledger means "not held".
    - A MemberSkill row is created lazily on first award and its level never
      decreases (enforced in app.services.ledger, the only writer).
"""

from datetime import datetime, timezone

from app.models import db

# ── Constants ─────────────────────────────────────────────────────────────────

MAX_LEVEL = 3
LEVELS = (1, 2, 3)

LEVEL_NAMES = {
    0: "Not awarded",
    1: "Level 1",
    2: "Level 2",
    3: "Level 3",
}


class Skill(db.Model):
    """A competency with three graded levels."""

    __tablename__ = "skills"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(200), unique=True, nullable=False)
    category = db.Column(db.String(100), nullable=True, index=True)
    description = db.Column(db.Text, default="")
    created_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    updated_at = db.Column(
        db.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    levels = db.relationship(
        "SkillLevel",
        back_populates="skill",
        order_by="SkillLevel.level",
        cascade="all, delete-orphan",
    )

    def level_policy(self, level):
        """Return the SkillLevel row for ``level`` or None."""
        for row in self.levels:
            if row.level == level:
                return row
        return None

    def to_dict(self, include_levels=True):
        d = {
            "id": self.id,
            "name": self.name,
            "category": self.category,
            "description": self.description,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
        if include_levels:
            d["levels"] = [lvl.to_dict() for lvl in self.levels]
        return d

    def __repr__(self):
        return f"<Skill {self.id}: {self.name}>"


class SkillLevel(db.Model):
    """
    Availability policy for one level of a skill.

    A level is open to proposals/awards when it is enabled, has requirements
    text and, if ``capacity`` is set, fewer than ``capacity`` members hold it.
    ``prerequisite_level`` is the minimum level a member must already hold.
    """

    __tablename__ = "skill_levels"

    id = db.Column(db.Integer, primary_key=True)
    skill_id = db.Column(
        db.Integer, db.ForeignKey("skills.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    level = db.Column(db.Integer, nullable=False)
    requirements = db.Column(db.Text, nullable=True, comment="What a member must show to hold this level")
    is_enabled = db.Column(db.Boolean, nullable=False, default=True)
    capacity = db.Column(db.Integer, nullable=True, comment="Max concurrent holders; NULL = unlimited")
    prerequisite_level = db.Column(db.Integer, nullable=False, default=0)

    skill = db.relationship("Skill", back_populates="levels")

    __table_args__ = (
        db.UniqueConstraint("skill_id", "level", name="uq_skill_level"),
        db.CheckConstraint("level BETWEEN 1 AND 3", name="ck_skill_level_range"),
        db.CheckConstraint("capacity IS NULL OR capacity >= 0", name="ck_skill_level_capacity"),
    )

    def to_dict(self):
        return {
            "level": self.level,
            "name": LEVEL_NAMES[self.level],
            "requirements": self.requirements,
            "is_enabled": self.is_enabled,
            "capacity": self.capacity,
            "prerequisite_level": self.prerequisite_level,
        }


class MemberSkill(db.Model):
    """Ledger entry: the level a member currently holds for a skill."""

    __tablename__ = "member_skills"

    id = db.Column(db.Integer, primary_key=True)
    member_id = db.Column(
        db.Integer, db.ForeignKey("members.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    skill_id = db.Column(
        db.Integer, db.ForeignKey("skills.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    level = db.Column(db.Integer, nullable=False, default=0)
    updated_at = db.Column(
        db.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    member = db.relationship("Member", back_populates="skill_levels")
    skill = db.relationship("Skill")

    __table_args__ = (
        db.UniqueConstraint("member_id", "skill_id", name="uq_member_skill"),
        db.CheckConstraint("level BETWEEN 0 AND 3", name="ck_member_skill_level"),
    )

    def to_dict(self):
        return {
            "member_id": self.member_id,
            "skill_id": self.skill_id,
            "skill_name": self.skill.name if self.skill else None,
            "level": self.level,
            "level_name": LEVEL_NAMES.get(self.level),
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
