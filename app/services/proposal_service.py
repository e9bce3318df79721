"""
Skill Level Proposal Workflow: submission, review and award.

Design decisions:
    - The acting member/reviewer is always an explicit argument; nothing here
      reads the current request or ``g``.
    - Authorization is delegated to an injected CapabilityPolicy.
    - Each submit/resolve is one transaction. db.session.commit() happens in
      this module only; the store and ledger helpers never commit.
    - Exclusivity of pending proposals is enforced by a partial unique index
      (see proposal_store.create), not by the pre-check alone.
    - Resolution is a guarded UPDATE (``WHERE awarded_level IS NULL``) plus
      the conditional ledger raise, committed together. A retried resolve on
      a resolved proposal reports AlreadyResolvedError and changes nothing.
    - Events are published after commit and never roll anything back.
    - Level availability is recomputed at review time, never carried over
      from submission.

Preconditions are checked in a fixed order; the first failure wins.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Callable

from flask import current_app
from sqlalchemy.exc import OperationalError

from app.core.exceptions import (
    AlreadyResolvedError,
    DuplicatePendingError,
    ForbiddenError,
    IneligibleLevelError,
    LevelNoLongerAvailableError,
    SelfReviewForbiddenError,
    UnavailableError,
    ValidationError,
)
from app.models import db
from app.models.auth import Member
from app.models.proposal import SkillProposal
from app.models.skill import LEVEL_NAMES, MAX_LEVEL, Skill
from app.services import availability, ledger, proposal_store
from app.services.events import EventBus, ProposalResolved, ProposalSubmitted
from app.services.policy import CapabilityPolicy, PermissionPolicy
from app.utils.helpers import clean_text

logger = logging.getLogger(__name__)

AWARD_CHOICES = (0, 1, 2, 3)
DECLINE_LABEL = "Do not award"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _is_int(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


@contextmanager
def _storage_errors():
    """Roll back and report a transient storage failure as UnavailableError."""
    try:
        yield
    except OperationalError as exc:
        db.session.rollback()
        logger.warning("Storage unavailable during proposal workflow: %s", exc.orig)
        raise UnavailableError() from exc


@contextmanager
def _transaction():
    """Commit on success; roll back and translate storage failures otherwise."""
    with _storage_errors():
        try:
            yield
            db.session.commit()
        except Exception:
            db.session.rollback()
            raise


class ProposalWorkflow:
    """
    Orchestrates the skill proposal lifecycle.

    Args:
        policy: capability checks (defaults to PermissionPolicy).
        events: bus that receives ProposalSubmitted / ProposalResolved.
        clock:  returns "now"; injectable for tests.
    """

    def __init__(
        self,
        policy: CapabilityPolicy | None = None,
        events: EventBus | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.policy = policy or PermissionPolicy()
        self.events = events if events is not None else EventBus()
        self.clock = clock or _utcnow

    # ── Submission ────────────────────────────────────────────────────────

    def submit(self, member: Member, skill: Skill, proposed_level, reasoning) -> SkillProposal:
        """Create a pending proposal for ``member`` at ``proposed_level`` of ``skill``.

        Raises:
            ForbiddenError:         member may not propose.
            ValidationError:        malformed level or empty reasoning.
            IneligibleLevelError:   level not selectable for this member.
            DuplicatePendingError:  a proposal for this skill is already pending.
            UnavailableError:       transient storage failure; safe to retry.
        """
        with _transaction():
            if not self.policy.can_propose(member, skill):
                raise ForbiddenError("You are not allowed to propose skill levels")

            if not _is_int(proposed_level):
                raise ValidationError(
                    "Please select the level to apply for",
                    details={"level": "must be an integer between 1 and 3"},
                )
            reasoning = clean_text(reasoning)
            if not reasoning:
                raise ValidationError(
                    "Please explain why you should be awarded this level",
                    details={"reasoning": "required"},
                )

            selectable = availability.selectable_levels(skill, member)
            if proposed_level not in selectable:
                logger.info(
                    "Proposal rejected: ineligible level member=%s skill=%s level=%s",
                    member.id, skill.id, proposed_level,
                    extra={"member_id": member.id, "skill_id": skill.id},
                )
                raise IneligibleLevelError(details={"selectable_levels": sorted(selectable)})

            if proposal_store.pending_for(member.id, skill.id) is not None:
                raise DuplicatePendingError()

            proposal = proposal_store.create(
                member_id=member.id,
                skill_id=skill.id,
                proposed_level=proposed_level,
                reasoning=reasoning,
                submitted_at=self.clock(),
            )

        logger.info(
            "Proposal submitted id=%s member=%s skill=%s level=%s",
            proposal.id, member.id, skill.id, proposed_level,
            extra={"proposal_id": proposal.id, "member_id": member.id, "skill_id": skill.id},
        )
        self.events.publish(
            ProposalSubmitted(skill_id=skill.id, proposal_id=proposal.id, member_id=member.id)
        )
        return proposal

    # ── Resolution ────────────────────────────────────────────────────────

    def resolve(self, reviewer: Member, proposal: SkillProposal | int,
                awarded_level, awarded_comment=None) -> SkillProposal:
        """Record the reviewer's decision and apply a positive award to the ledger.

        Raises:
            NotFoundError:                proposal does not exist.
            AlreadyResolvedError:         proposal is already resolved.
            SelfReviewForbiddenError:     reviewer is the proposer.
            ForbiddenError:               reviewer may not review.
            ValidationError:              bad level, or a decline without a comment.
            LevelNoLongerAvailableError:  the level closed since submission.
            UnavailableError:             transient storage failure; safe to retry.
        """
        proposal_id = proposal if _is_int(proposal) else proposal.id
        comment = clean_text(awarded_comment)

        with _transaction():
            current = proposal_store.get(proposal_id, lock=True)

            if not current.is_pending:
                raise AlreadyResolvedError()

            if reviewer.id == current.member_id:
                logger.warning(
                    "Self-review blocked proposal=%s member=%s", current.id, reviewer.id,
                    extra={"proposal_id": current.id, "member_id": reviewer.id},
                )
                raise SelfReviewForbiddenError()
            if not self.policy.can_review(reviewer, current):
                raise ForbiddenError("You are not allowed to review proposals")

            if not _is_int(awarded_level) or awarded_level not in AWARD_CHOICES:
                raise ValidationError(
                    "Please select the level to award",
                    details={"awarded_level": f"must be one of {list(AWARD_CHOICES)}"},
                )
            if awarded_level == 0 and not comment:
                raise ValidationError(
                    "Please provide a reason why you haven't awarded the requested level",
                    details={"awarded_comment": "required when declining"},
                )

            if awarded_level > 0 and not availability.is_level_available(
                current.skill, awarded_level, lock=True,
            ):
                raise LevelNoLongerAvailableError(
                    details={"available_levels": sorted(availability.available_levels(current.skill))},
                )

            resolved = proposal_store.mark_resolved(
                current.id,
                awarded_level=awarded_level,
                awarded_by_id=reviewer.id,
                awarded_comment=comment or None,
                awarded_at=self.clock(),
            )
            if not resolved:
                # Lost a race with a concurrent resolution that committed first
                raise AlreadyResolvedError()

            if awarded_level > 0:
                ledger.raise_level(current.member_id, current.skill_id, awarded_level)

        logger.info(
            "Proposal resolved id=%s reviewer=%s awarded_level=%s",
            current.id, reviewer.id, awarded_level,
            extra={"proposal_id": current.id, "member_id": current.member_id},
        )
        self.events.publish(ProposalResolved(proposal_id=current.id))
        with _storage_errors():
            return proposal_store.get(current.id)

    # ── Read models ───────────────────────────────────────────────────────

    def proposal_form(self, member: Member, skill: Skill | None = None) -> dict:
        """Data for the "propose a level" form, or the reason it can't be shown.

        Refusals are checked in order: no levels left, already at the top
        level, proposal already pending.
        """
        with _storage_errors():
            if not self.policy.can_propose(member, skill):
                raise ForbiddenError("You are not allowed to propose skill levels")

            if skill is None:
                options = [
                    {
                        "skill": s.to_dict(include_levels=False),
                        "levels": sorted(availability.selectable_levels(s, member)),
                    }
                    for s in availability.selectable_skills(member)
                ]
                if not options:
                    raise IneligibleLevelError("There are no levels left to apply for")
                return {"skill": None, "skills": options}

            levels = availability.selectable_levels(skill, member)
            if not levels:
                raise IneligibleLevelError("There are no levels left to apply for")
            held = ledger.level_of(member.id, skill.id)
            if held == MAX_LEVEL:
                raise IneligibleLevelError(f"You are already {LEVEL_NAMES[MAX_LEVEL]} for this skill")
            if ledger.has_pending(member.id, skill.id):
                raise DuplicatePendingError()

            return {
                "skill": skill.to_dict(),
                "current_level": held,
                "available_levels": [
                    {"level": lvl, "name": LEVEL_NAMES[lvl]} for lvl in sorted(levels)
                ],
            }

    def review_options(self, viewer: Member, proposal_id: int) -> dict:
        """The proposal plus the award choices a reviewer may pick right now."""
        with _storage_errors():
            proposal = proposal_store.get(proposal_id)
            if not self.policy.can_view(viewer, proposal):
                raise ForbiddenError("You are not allowed to view this proposal")

            choices = [{"level": 0, "name": DECLINE_LABEL}]
            choices += [
                {"level": lvl, "name": LEVEL_NAMES[lvl]}
                for lvl in sorted(availability.available_levels(proposal.skill))
            ]
            can_review = (
                proposal.is_pending
                and viewer.id != proposal.member_id
                and self.policy.can_review(viewer, proposal)
            )
            return {
                "proposal": proposal.to_dict(),
                "levels": choices if proposal.is_pending else [],
                "can_review": can_review,
            }

    def review_queues(self, viewer: Member, page: int = 1, per_page: int | None = None) -> dict:
        """Pending queue (oldest first) and one page of decisions (newest first)."""
        per_page = per_page or current_app.config.get("PROPOSALS_PER_PAGE", 30)
        with _storage_errors():
            if not self.policy.can_list(viewer):
                raise ForbiddenError("You are not allowed to view the proposal queues")
            resolved = proposal_store.list_resolved(page=page, per_page=per_page)
            return {
                "pending": [p.to_dict() for p in proposal_store.list_pending()],
                "resolved": [p.to_dict() for p in resolved["items"]],
                "pagination": {
                    "page": resolved["page"],
                    "pages": resolved["pages"],
                    "per_page": resolved["per_page"],
                    "total": resolved["total"],
                },
            }

    def history_for(self, member: Member) -> list[dict]:
        """A member's own proposals, newest first."""
        with _storage_errors():
            return [p.to_dict() for p in proposal_store.list_for_member(member.id)]


def get_workflow() -> ProposalWorkflow:
    """The workflow bound to the current app (see create_app)."""
    workflow = current_app.extensions.get("proposal_workflow")
    if workflow is None:
        workflow = ProposalWorkflow()
        current_app.extensions["proposal_workflow"] = workflow
    return workflow
