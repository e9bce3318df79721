"""
Proposal Store: persistence and queries for SkillProposal records.

Pure storage: no business rules and no commits. The workflow engine owns
the transaction boundary and calls these helpers inside it.

Query shapes:
  pending_for(member, skill)  exclusivity check before a submission
  list_pending()              review queue, oldest first
  list_resolved(page)         decision history, newest first, paginated
"""

from __future__ import annotations

import logging
import math
from datetime import datetime

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError

from app.core.exceptions import DuplicatePendingError, NotFoundError
from app.models import db
from app.models.proposal import SkillProposal

logger = logging.getLogger(__name__)

PENDING_INDEX = "uq_skill_proposal_pending"


def _is_pending_violation(exc: IntegrityError) -> bool:
    msg = str(exc.orig).lower()
    # PostgreSQL names the index; SQLite names the columns
    return PENDING_INDEX in msg or (
        "unique" in msg and "skill_proposals.member_id" in msg
    )


def create(member_id: int, skill_id: int, proposed_level: int, reasoning: str,
           submitted_at: datetime | None = None) -> SkillProposal:
    """Insert a pending proposal and flush it.

    The partial unique index rejects a second pending row for the same
    (member, skill), so the exclusivity check and the insert are atomic even
    when two requests race past pending_for().

    Raises:
        DuplicatePendingError: the index rejected the row. The session has
            been rolled back.
    """
    proposal = SkillProposal(
        member_id=member_id,
        skill_id=skill_id,
        proposed_level=proposed_level,
        reasoning=reasoning,
    )
    if submitted_at is not None:
        proposal.submitted_at = submitted_at
    db.session.add(proposal)
    try:
        db.session.flush()
    except IntegrityError as exc:
        db.session.rollback()
        if _is_pending_violation(exc):
            raise DuplicatePendingError() from exc
        raise
    return proposal


def get(proposal_id: int, lock: bool = False) -> SkillProposal:
    """Load a proposal, optionally with a row lock, or raise NotFoundError."""
    stmt = (
        select(SkillProposal)
        .where(SkillProposal.id == proposal_id)
        .execution_options(populate_existing=True)
    )
    if lock:
        stmt = stmt.with_for_update()
    proposal = db.session.execute(stmt).scalar_one_or_none()
    if proposal is None:
        raise NotFoundError(resource="SkillProposal", resource_id=proposal_id)
    return proposal


def pending_for(member_id: int, skill_id: int) -> SkillProposal | None:
    return db.session.execute(
        select(SkillProposal).where(
            SkillProposal.member_id == member_id,
            SkillProposal.skill_id == skill_id,
            SkillProposal.awarded_level.is_(None),
        )
    ).scalar_one_or_none()


def mark_resolved(proposal_id: int, *, awarded_level: int, awarded_by_id: int,
                  awarded_comment: str | None, awarded_at: datetime) -> bool:
    """Write the award fields if, and only if, the proposal is still pending.

    The ``awarded_level IS NULL`` guard lives in the UPDATE itself, so of two
    concurrent resolutions exactly one wins.

    Returns:
        True when this call resolved the proposal.
    """
    result = db.session.execute(
        update(SkillProposal)
        .where(
            SkillProposal.id == proposal_id,
            SkillProposal.awarded_level.is_(None),
        )
        .values(
            awarded_level=awarded_level,
            awarded_by_id=awarded_by_id,
            awarded_comment=awarded_comment,
            awarded_at=awarded_at,
        )
        .execution_options(synchronize_session="fetch")
    )
    return result.rowcount == 1


def list_pending() -> list[SkillProposal]:
    """Unresolved proposals, oldest submission first."""
    return (
        SkillProposal.query
        .filter(SkillProposal.awarded_level.is_(None))
        .order_by(SkillProposal.submitted_at.asc(), SkillProposal.id.asc())
        .all()
    )


def list_resolved(page: int = 1, per_page: int = 30) -> dict:
    """One page of resolved proposals, most recent decision first.

    Raises:
        NotFoundError: ``page`` is past the last page (page 1 always exists).
    """
    query = (
        SkillProposal.query
        .filter(SkillProposal.awarded_level.isnot(None))
        .order_by(SkillProposal.awarded_at.desc(), SkillProposal.id.desc())
    )
    total = query.count()
    pages = max(1, math.ceil(total / per_page))
    if page < 1 or page > pages:
        raise NotFoundError(resource="Page", resource_id=page)
    items = query.limit(per_page).offset((page - 1) * per_page).all()
    return {"items": items, "total": total, "page": page, "pages": pages, "per_page": per_page}


def list_for_member(member_id: int) -> list[SkillProposal]:
    """Every proposal a member has submitted, newest first."""
    return (
        SkillProposal.query
        .filter(SkillProposal.member_id == member_id)
        .order_by(SkillProposal.submitted_at.desc(), SkillProposal.id.desc())
        .all()
    )
