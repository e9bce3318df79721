"""
Notification Dispatcher: turns workflow events into emails and in-app notices.

ProposalSubmitted → email to TRAINING_OFFICER_EMAIL
                    + in-app notice for every member who can review
ProposalResolved  → email to the proposing member
                    + in-app notice for the proposing member

Handlers reload the records they need by id, so they work the same whether
the bus delivers inline or on a worker thread.
"""

import logging

from flask import current_app

from app.models import db
from app.models.proposal import SkillProposal
from app.models.skill import LEVEL_NAMES
from app.services import permission_service
from app.services.email_service import EmailService
from app.services.events import EventBus, ProposalResolved, ProposalSubmitted
from app.services.notification import NotificationService

logger = logging.getLogger(__name__)


def _proposal_url(proposal_id: int) -> str:
    base = current_app.config.get("APP_BASE_URL", "").rstrip("/")
    return f"{base}/training/skills/proposals/{proposal_id}"


def _load(proposal_id: int) -> SkillProposal | None:
    proposal = db.session.get(SkillProposal, proposal_id)
    if proposal is None:
        logger.warning("Proposal %s vanished before notification", proposal_id)
    return proposal


def on_proposal_submitted(event: ProposalSubmitted) -> None:
    proposal = _load(event.proposal_id)
    if proposal is None:
        return

    member, skill = proposal.member, proposal.skill
    level_name = LEVEL_NAMES[proposal.proposed_level]

    EmailService.send_from_template(
        to_email=current_app.config["TRAINING_OFFICER_EMAIL"],
        template_name="proposal_submitted",
        context={
            "member_name": member.name,
            "level_name": level_name,
            "skill_name": skill.name,
            "reasoning": proposal.reasoning,
            "url": _proposal_url(proposal.id),
        },
        category="proposal",
        entity_type="skill_proposal",
        entity_id=proposal.id,
    )

    reviewers = [
        m.id for m in permission_service.members_with_permission(permission_service.PERM_REVIEW)
        if m.id != member.id
    ]
    if reviewers:
        NotificationService.broadcast(
            recipient_ids=reviewers,
            title=f"New skill proposal: {skill.name}",
            message=f"{member.name} has applied for {level_name}.",
            category="proposal",
            entity_type="skill_proposal",
            entity_id=proposal.id,
        )


def on_proposal_resolved(event: ProposalResolved) -> None:
    proposal = _load(event.proposal_id)
    if proposal is None:
        return

    member, skill = proposal.member, proposal.skill
    awarded = proposal.awarded_level > 0
    outcome = "approved" if awarded else "declined"

    EmailService.send_from_template(
        to_email=member.email,
        to_name=member.name,
        template_name="proposal_processed",
        context={
            "member_name": member.name,
            "skill_name": skill.name,
            "outcome": outcome,
            "proposed_level_name": LEVEL_NAMES[proposal.proposed_level],
            "awarded_level_name": LEVEL_NAMES[proposal.awarded_level],
            "comment": proposal.awarded_comment or "",
            "url": _proposal_url(proposal.id),
        },
        category="award",
        entity_type="skill_proposal",
        entity_id=proposal.id,
    )

    NotificationService.create(
        recipient_id=member.id,
        title=f"Proposal for {skill.name} {outcome}",
        message=(
            f"You have been awarded {LEVEL_NAMES[proposal.awarded_level]}."
            if awarded else (proposal.awarded_comment or "")
        ),
        category="award",
        severity="success" if awarded else "warning",
        entity_type="skill_proposal",
        entity_id=proposal.id,
    )


def register(bus: EventBus) -> None:
    """Subscribe the notification handlers to ``bus``."""
    bus.subscribe(ProposalSubmitted, on_proposal_submitted)
    bus.subscribe(ProposalResolved, on_proposal_resolved)
