"""
Skill Proposal Blueprint.

HTTP surface of the skill level proposal workflow.

Endpoints:
    GET    /api/v1/skills/proposals/form?skill_id=<id>
           Selectable levels for the acting member (or selectable skills
           when skill_id is omitted).
    POST   /api/v1/skills/proposals
           Body: { "skill_id": <int>, "level": <int>, "reasoning": "..." }
           Returns: 201 with the pending proposal.
    GET    /api/v1/skills/proposals?tab=pending|reviewed&page=<n>
           Review queues: all pending + one page of resolved proposals.
    GET    /api/v1/skills/proposals/mine
           The acting member's own proposals.
    GET    /api/v1/skills/proposals/<id>
           Proposal detail with the award choices available right now.
    POST   /api/v1/skills/proposals/<id>/resolve
           Body: { "awarded_level": 0..3, "awarded_comment": "..." }
           Returns: 200 with the resolved proposal.

The acting member comes from the X-Member-Id header (see app.auth).

Layer contract:
    - Blueprint: parse input, resolve acting member, call the workflow.
    - NO db.session writes here; the workflow owns the transaction.
    - NO permission checks here; the workflow policy decides.
"""

import logging

from flask import Blueprint, jsonify, request

from app.auth import acting_member, load_or_404
from app.blueprints import bad_request, json_body, register_error_handlers
from app.models.skill import Skill
from app.services.proposal_service import get_workflow
from app.utils.helpers import parse_int_arg

logger = logging.getLogger(__name__)

proposal_bp = Blueprint("proposals", __name__, url_prefix="/api/v1/skills/proposals")
register_error_handlers(proposal_bp)


def _int_field(data: dict, name: str):
    """Accept ints and digit strings (form posts); leave anything else for the service to reject."""
    value = data.get(name)
    if isinstance(value, str) and value.strip().lstrip("-").isdigit():
        return int(value)
    return value


@proposal_bp.route("/form", methods=["GET"])
def proposal_form():
    """Data for the propose form, or the specific reason it's unavailable."""
    member = acting_member()
    skill_id = request.args.get("skill_id", type=int)
    skill = load_or_404(Skill, skill_id) if skill_id is not None else None
    return jsonify(get_workflow().proposal_form(member, skill)), 200


@proposal_bp.route("", methods=["POST"])
def submit_proposal():
    """Submit a proposal for the acting member."""
    member = acting_member()
    data = json_body()

    skill_id = _int_field(data, "skill_id")
    if skill_id is None:
        return bad_request("Field 'skill_id' is required.", "skill_id")
    if "level" not in data:
        return bad_request("Please select the level to apply for", "level")
    skill = load_or_404(Skill, skill_id)

    proposal = get_workflow().submit(
        member,
        skill,
        _int_field(data, "level"),
        data.get("reasoning"),
    )
    return jsonify(proposal.to_dict()), 201


@proposal_bp.route("", methods=["GET"])
def list_proposals():
    """Operator index: pending queue + a page of reviewed proposals."""
    viewer = acting_member()
    page = parse_int_arg("page", default=1, minimum=1)
    body = get_workflow().review_queues(viewer, page=page)
    body["tab"] = "reviewed" if request.args.get("tab") == "reviewed" else "pending"
    return jsonify(body), 200


@proposal_bp.route("/mine", methods=["GET"])
def my_proposals():
    member = acting_member()
    items = get_workflow().history_for(member)
    return jsonify({"items": items, "total": len(items)}), 200


@proposal_bp.route("/<int:proposal_id>", methods=["GET"])
def view_proposal(proposal_id: int):
    viewer = acting_member()
    return jsonify(get_workflow().review_options(viewer, proposal_id)), 200


@proposal_bp.route("/<int:proposal_id>/resolve", methods=["POST"])
def resolve_proposal(proposal_id: int):
    """Award or decline a pending proposal.

    Re-posting a decision for a resolved proposal returns 409
    ERR_ALREADY_RESOLVED and changes nothing, so clients may retry safely.
    """
    reviewer = acting_member()
    data = json_body()
    if "awarded_level" not in data:
        return bad_request("Please select the level to award", "awarded_level")

    proposal = get_workflow().resolve(
        reviewer,
        proposal_id,
        _int_field(data, "awarded_level"),
        data.get("awarded_comment"),
    )
    return jsonify(proposal.to_dict()), 200
