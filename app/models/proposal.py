"""
Crew Skills Platform
Skill Level Proposal model.

A proposal is a member's request to be recognised at a level of a skill.
It is pending while ``awarded_level`` is NULL and resolved once a reviewer
sets it (0 = declined, 1..3 = awarded). Resolution is terminal: the award
fields are written once and never edited, so the table doubles as the
audit trail of every decision.

Only one pending proposal may exist per (member, skill). The partial unique
index ``uq_skill_proposal_pending`` enforces this in the database so that two
concurrent submissions cannot both commit.
"""

from datetime import datetime, timezone

from app.models import db
from app.models.skill import LEVEL_NAMES

_PENDING = db.text("awarded_level IS NULL")


class SkillProposal(db.Model):
    """Proposal record with its (write-once) award outcome."""

    __tablename__ = "skill_proposals"

    id = db.Column(db.Integer, primary_key=True)
    skill_id = db.Column(
        db.Integer, db.ForeignKey("skills.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    member_id = db.Column(
        db.Integer, db.ForeignKey("members.id", ondelete="CASCADE"), nullable=False, index=True,
    )

    proposed_level = db.Column(db.Integer, nullable=False)
    reasoning = db.Column(db.Text, nullable=False, default="")
    submitted_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    # Award outcome, all NULL while pending
    awarded_level = db.Column(db.Integer, nullable=True, comment="0 = declined, 1..3 = awarded")
    awarded_by_id = db.Column(
        db.Integer,
        db.ForeignKey("members.id", ondelete="SET NULL"),
        nullable=True,
    )
    awarded_comment = db.Column(db.Text, nullable=True)
    awarded_at = db.Column(db.DateTime(timezone=True), nullable=True)

    skill = db.relationship("Skill")
    member = db.relationship("Member", foreign_keys=[member_id])
    awarded_by = db.relationship("Member", foreign_keys=[awarded_by_id])

    __table_args__ = (
        db.CheckConstraint("proposed_level BETWEEN 1 AND 3", name="ck_proposal_proposed_level"),
        db.CheckConstraint(
            "awarded_level IS NULL OR awarded_level BETWEEN 0 AND 3",
            name="ck_proposal_awarded_level",
        ),
        db.Index(
            "uq_skill_proposal_pending",
            "member_id",
            "skill_id",
            unique=True,
            sqlite_where=_PENDING,
            postgresql_where=_PENDING,
        ),
        db.Index("ix_skill_proposal_submitted", "submitted_at"),
        db.Index("ix_skill_proposal_awarded", "awarded_at"),
    )

    @property
    def is_pending(self) -> bool:
        return self.awarded_level is None

    @property
    def status(self) -> str:
        if self.awarded_level is None:
            return "pending"
        return "declined" if self.awarded_level == 0 else "awarded"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "skill_id": self.skill_id,
            "skill_name": self.skill.name if self.skill else None,
            "member_id": self.member_id,
            "member_name": self.member.name if self.member else None,
            "proposed_level": self.proposed_level,
            "proposed_level_name": LEVEL_NAMES.get(self.proposed_level),
            "reasoning": self.reasoning,
            "submitted_at": self.submitted_at.isoformat() if self.submitted_at else None,
            "status": self.status,
            "awarded_level": self.awarded_level,
            "awarded_level_name": (
                LEVEL_NAMES.get(self.awarded_level) if self.awarded_level is not None else None
            ),
            "awarded_by_id": self.awarded_by_id,
            "awarded_comment": self.awarded_comment,
            "awarded_at": self.awarded_at.isoformat() if self.awarded_at else None,
        }

    def __repr__(self) -> str:
        return f"<SkillProposal #{self.id} member={self.member_id} skill={self.skill_id} {self.status}>"
