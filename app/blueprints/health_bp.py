"""
Health check blueprint.

    GET /api/v1/health/ready   process is up (load balancer probe)
    GET /api/v1/health/live    database, mail, event bus and review queue
"""

import logging
import time

from flask import Blueprint, current_app, jsonify
from sqlalchemy import func, select, text
from sqlalchemy.exc import SQLAlchemyError

from app.models import db
from app.models.proposal import SkillProposal

logger = logging.getLogger(__name__)

health_bp = Blueprint("health", __name__, url_prefix="/api/v1/health")


@health_bp.route("/ready", methods=["GET"])
def ready():
    return jsonify({"status": "ok"}), 200


def _check_database():
    started = time.perf_counter()
    db.session.execute(text("SELECT 1"))
    pending = db.session.execute(
        select(func.count(SkillProposal.id)).where(SkillProposal.awarded_level.is_(None))
    ).scalar_one()
    return {
        "status": "ok",
        "latency_ms": round((time.perf_counter() - started) * 1000, 1),
        "pending_proposals": pending,
    }


@health_bp.route("/live", methods=["GET"])
def live():
    """Dependency status; 503 when the database is unreachable."""
    cfg = current_app.config
    checks = {}

    try:
        checks["database"] = _check_database()
    except SQLAlchemyError as exc:
        db.session.rollback()
        logger.error("Health check: database unavailable: %s", exc)
        checks["database"] = {"status": "error", "detail": str(exc)}

    checks["mail"] = (
        {"status": "configured", "server": cfg["MAIL_SERVER"]}
        if cfg.get("MAIL_SERVER") else {"status": "log_only"}
    )
    checks["events"] = {
        "status": "ok" if "event_bus" in current_app.extensions else "missing",
        "async": bool(cfg.get("EVENTS_ASYNC")),
    }

    healthy = checks["database"]["status"] == "ok"
    return jsonify({
        "status": "healthy" if healthy else "degraded",
        "checks": checks,
    }), 200 if healthy else 503
