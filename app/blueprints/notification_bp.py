"""
Crew Skills Platform
Notification Blueprint.

In-app notices produced by the notification dispatcher, plus the outbound
email log for operators.

Endpoints:
    GET    /api/v1/notifications                 acting member's notices
    GET    /api/v1/notifications/unread-count
    POST   /api/v1/notifications/<id>/read
    POST   /api/v1/notifications/read-all
    GET    /api/v1/notifications/email-logs      [training.skill.manage]
"""

from __future__ import annotations

import logging

from flask import Blueprint, jsonify, request

from app.auth import acting_member
from app.blueprints import register_error_handlers
from app.core.exceptions import NotFoundError
from app.middleware.permission_required import require_permission
from app.models.notification import EmailLog
from app.services.notification import NotificationService
from app.services.permission_service import PERM_MANAGE_SKILLS
from app.utils.helpers import parse_int_arg

logger = logging.getLogger(__name__)

notification_bp = Blueprint("notifications", __name__, url_prefix="/api/v1/notifications")
register_error_handlers(notification_bp)


@notification_bp.route("", methods=["GET"])
def list_notifications():
    """List notices for the acting member, newest first.

    Query params: unread_only (bool), limit (default 50, max 200), offset.
    """
    member = acting_member()
    unread_only = request.args.get("unread_only", "false").lower() in ("1", "true", "yes")
    limit = min(parse_int_arg("limit", default=50, minimum=1), 200)
    offset = parse_int_arg("offset", default=0, minimum=0)

    items, total = NotificationService.list_for_recipient(
        member.id, unread_only=unread_only, limit=limit, offset=offset,
    )
    return jsonify({
        "items": [n.to_dict() for n in items],
        "total": total,
        "unread_count": NotificationService.unread_count(member.id),
    }), 200


@notification_bp.route("/unread-count", methods=["GET"])
def unread_count():
    member = acting_member()
    return jsonify({"unread_count": NotificationService.unread_count(member.id)}), 200


@notification_bp.route("/<int:notification_id>/read", methods=["POST"])
def mark_read(notification_id: int):
    member = acting_member()
    notif = NotificationService.mark_read(notification_id, member.id)
    if notif is None:
        raise NotFoundError(resource="Notification", resource_id=notification_id)
    return jsonify(notif.to_dict()), 200


@notification_bp.route("/read-all", methods=["POST"])
def mark_all_read():
    member = acting_member()
    count = NotificationService.mark_all_read(member.id)
    return jsonify({"marked_read": count}), 200


@notification_bp.route("/email-logs", methods=["GET"])
@require_permission(PERM_MANAGE_SKILLS)
def list_email_logs():
    """Outbound email audit log, newest first."""
    limit = min(parse_int_arg("limit", default=50, minimum=1), 200)
    q = EmailLog.query
    template = request.args.get("template")
    if template:
        q = q.filter_by(template_name=template)
    total = q.count()
    items = q.order_by(EmailLog.created_at.desc(), EmailLog.id.desc()).limit(limit).all()
    return jsonify({"items": [e.to_dict() for e in items], "total": total}), 200
