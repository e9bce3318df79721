"""
Capability checks for the skill proposal workflow.

The workflow engine only asks yes/no questions through ``CapabilityPolicy``;
how the answer is reached is up to the implementation. ``PermissionPolicy``
answers from the RBAC tables via permission_service.
"""

from __future__ import annotations

from typing import Protocol

from app.models.auth import Member
from app.models.proposal import SkillProposal
from app.models.skill import Skill
from app.services import permission_service


class CapabilityPolicy(Protocol):
    def can_propose(self, member: Member, skill: Skill | None) -> bool: ...

    def can_review(self, member: Member, proposal: SkillProposal) -> bool: ...

    def can_view(self, member: Member, proposal: SkillProposal) -> bool: ...

    def can_list(self, member: Member) -> bool: ...


class PermissionPolicy:
    """Default policy backed by role permissions."""

    def can_propose(self, member: Member, skill: Skill | None) -> bool:
        return member.is_active and permission_service.has_permission(
            member.id, permission_service.PERM_PROPOSE,
        )

    def can_review(self, member: Member, proposal: SkillProposal) -> bool:
        return member.is_active and permission_service.has_permission(
            member.id, permission_service.PERM_REVIEW,
        )

    def can_view(self, member: Member, proposal: SkillProposal) -> bool:
        # Proposers may always look at their own proposal
        if proposal.member_id == member.id:
            return True
        return permission_service.has_permission(member.id, permission_service.PERM_VIEW) or \
            self.can_review(member, proposal)

    def can_list(self, member: Member) -> bool:
        """Access to the operator review queues."""
        return permission_service.has_permission(member.id, permission_service.PERM_VIEW) or \
            permission_service.has_permission(member.id, permission_service.PERM_REVIEW)
