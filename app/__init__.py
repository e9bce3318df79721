"""
Crew Skills Platform
Flask Application Factory.

Usage:
    from app import create_app
    app = create_app()           # APP_ENV or "development"
    app = create_app("testing")
"""

import logging
import os

from flask import Flask, request
from flask_cors import CORS
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from flask_migrate import Migrate
from sqlalchemy import engine as sa_engine
from sqlalchemy import event as sa_event

from app.auth import init_auth
from app.config import config
from app.middleware.logging_config import configure_logging
from app.middleware.rate_limiter import init_rate_limits
from app.middleware.timing import init_request_timing
from app.models import db

logger = logging.getLogger(__name__)

migrate = Migrate()
# Limits are attached per blueprint in init_rate_limits
limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[],
    storage_uri=os.getenv("REDIS_URL", "memory://"),
)


@sa_event.listens_for(sa_engine.Engine, "connect")
def _sqlite_foreign_keys(dbapi_conn, _record):
    if "sqlite" not in type(dbapi_conn).__module__:
        return
    cursor = dbapi_conn.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def create_app(config_name=None):
    """Build an application for ``config_name`` (default: $APP_ENV or development)."""
    config_name = config_name or os.getenv("APP_ENV", "development")
    config_cls = config[config_name]

    app = Flask(__name__, instance_relative_config=True)
    # ProductionConfig validates its environment on instantiation
    app.config.from_object(config_cls() if config_name == "production" else config_cls)

    configure_logging(app)
    _init_extensions(app)
    init_auth(app)
    init_request_timing(app)
    _init_workflow(app)
    _create_tables(app)
    _register_blueprints(app)
    _register_cli(app)
    _register_error_handlers(app)
    init_rate_limits(app, limiter)
    return app


def _init_extensions(app):
    db.init_app(app)
    migrate.init_app(app, db)
    limiter.init_app(app)

    origins = app.config.get("CORS_ORIGINS", "*")
    if origins and origins != "*":
        CORS(app, origins=[o.strip() for o in origins.split(",") if o.strip()])
    else:
        CORS(app)


def _init_workflow(app):
    """One event bus per app; the dispatcher turns events into emails and notices."""
    from app.services import notification_dispatcher
    from app.services.events import EventBus
    from app.services.proposal_service import ProposalWorkflow

    bus = EventBus(app)
    notification_dispatcher.register(bus)
    app.extensions["proposal_workflow"] = ProposalWorkflow(events=bus)


def _create_tables(app):
    # Models must be imported before create_all / autogenerate can see them
    from app.models import auth, notification, proposal, skill  # noqa: F401

    with app.app_context():
        try:
            db.create_all()
        except Exception as exc:
            app.logger.warning("db.create_all() failed: %s", exc)
        else:
            app.logger.info("Database tables ready")


def _register_blueprints(app):
    from app.blueprints.health_bp import health_bp
    from app.blueprints.notification_bp import notification_bp
    from app.blueprints.proposal_bp import proposal_bp
    from app.blueprints.skill_bp import skill_bp

    for bp in (health_bp, skill_bp, proposal_bp, notification_bp):
        app.register_blueprint(bp)


def _register_cli(app):
    @app.cli.command("seed-roles")
    def seed_roles_cmd():
        """Create the default roles and training permissions."""
        from app.services.member_service import seed_roles

        logger.info("Seeded roles: %s", ", ".join(sorted(seed_roles())))


def _register_error_handlers(app):
    @app.errorhandler(404)
    def not_found(e):
        return {"error": "Not found", "code": "ERR_NOT_FOUND", "path": request.path}, 404

    @app.errorhandler(405)
    def method_not_allowed(e):
        return {"error": "Method not allowed", "code": "ERR_METHOD_NOT_ALLOWED"}, 405

    @app.errorhandler(429)
    def rate_limited(e):
        return {"error": "Too many requests", "code": "ERR_RATE_LIMITED",
                "retry_after": e.description}, 429

    @app.errorhandler(500)
    def server_error(e):
        logger.error("Unhandled server error: %s", e, exc_info=True)
        return {"error": "Internal server error", "code": "ERR_INTERNAL"}, 500
