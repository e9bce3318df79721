"""
Skills & Members Blueprint.

Skill catalogue, level policy configuration and the member ledger.

Endpoints:
    GET    /api/v1/skills                          list (with live availability)
    POST   /api/v1/skills                          create          [training.skill.manage]
    GET    /api/v1/skills/<id>                     detail
    PUT    /api/v1/skills/<id>/levels/<level>      level policy    [training.skill.manage]
    POST   /api/v1/members                         create member   [training.skill.manage]
    POST   /api/v1/members/<id>/roles              assign role     [training.skill.manage]
    GET    /api/v1/members/<id>/skills             member's held levels
"""

import logging

from flask import Blueprint, jsonify, request

from app.auth import acting_member
from app.blueprints import bad_request, json_body, register_error_handlers
from app.middleware.permission_required import require_permission
from app.services import ledger, member_service, skill_service
from app.services.permission_service import PERM_MANAGE_SKILLS

logger = logging.getLogger(__name__)

skill_bp = Blueprint("skills", __name__, url_prefix="/api/v1")
register_error_handlers(skill_bp)


# ── Skills ────────────────────────────────────────────────────────────────────


@skill_bp.route("/skills", methods=["GET"])
def list_skills():
    acting_member()
    skills = skill_service.list_skills(category=request.args.get("category") or None)
    items = [skill_service.skill_summary(s) for s in skills]
    return jsonify({"items": items, "total": len(items)}), 200


@skill_bp.route("/skills", methods=["POST"])
@require_permission(PERM_MANAGE_SKILLS)
def create_skill():
    skill = skill_service.create_skill(json_body())
    return jsonify(skill_service.skill_summary(skill)), 201


@skill_bp.route("/skills/<int:skill_id>", methods=["GET"])
def get_skill(skill_id: int):
    acting_member()
    skill = skill_service.get_skill(skill_id)
    return jsonify(skill_service.skill_summary(skill)), 200


@skill_bp.route("/skills/<int:skill_id>/levels/<int:level>", methods=["PUT"])
@require_permission(PERM_MANAGE_SKILLS)
def configure_level(skill_id: int, level: int):
    policy = skill_service.configure_level(skill_id, level, json_body())
    return jsonify(policy.to_dict()), 200


# ── Members ───────────────────────────────────────────────────────────────────


@skill_bp.route("/members", methods=["POST"])
@require_permission(PERM_MANAGE_SKILLS)
def create_member():
    data = json_body()
    roles = data.get("roles") or ["member"]
    member = member_service.create_member(data, roles=roles)
    return jsonify(member.to_dict(include_roles=True)), 201


@skill_bp.route("/members/<int:member_id>/roles", methods=["POST"])
@require_permission(PERM_MANAGE_SKILLS)
def assign_role(member_id: int):
    data = json_body()
    role = (data.get("role") or "").strip()
    if not role:
        return bad_request("Field 'role' is required.", "role")
    member = member_service.assign_role(member_id, role, assigned_by=acting_member().id)
    return jsonify(member.to_dict(include_roles=True)), 200


@skill_bp.route("/members/<int:member_id>/skills", methods=["GET"])
def member_skills(member_id: int):
    acting_member()
    member = member_service.get_member(member_id)
    rows = ledger.levels_for_member(member.id)
    return jsonify({
        "member": member.to_dict(),
        "skills": [r.to_dict() for r in rows],
    }), 200
