"""
Crew Skills Platform
Configuration classes for the application factory.

APP_ENV picks the class (development, testing, production). Every value can
be overridden through the environment.
"""

import os
import secrets

PROJECT_ROOT = os.path.abspath(os.path.dirname(os.path.dirname(__file__)))
LOCAL_SQLITE_URL = "sqlite:///" + os.path.join(PROJECT_ROOT, "instance", "crew_skills_dev.db")


def _env_flag(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() in ("1", "true", "yes", "on")


def _env_int(name: str, default: int) -> int:
    return int(os.getenv(name, str(default)))


def _database_url(fallback=None):
    """DATABASE_URL normalised for SQLAlchemy 2 (which rejects ``postgres://``)."""
    url = os.getenv("DATABASE_URL", "")
    if not url:
        return fallback
    if url.startswith("postgres://"):
        url = "postgresql://" + url[len("postgres://"):]
    return url


class Config:
    """Settings shared by every environment."""

    # A per-process key is fine locally; production refuses to start without one
    SECRET_KEY = os.getenv("SECRET_KEY") or secrets.token_hex(32)
    DEBUG = False
    TESTING = False

    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ENGINE_OPTIONS = {"pool_pre_ping": True, "pool_recycle": 300}

    CORS_ORIGINS = os.getenv("CORS_ORIGINS", "*")
    API_AUTH_ENABLED = os.getenv("API_AUTH_ENABLED", "false")

    # SMTP; leave MAIL_SERVER unset to only record emails in EmailLog
    MAIL_SERVER = os.getenv("MAIL_SERVER")
    MAIL_PORT = _env_int("MAIL_PORT", 587)
    MAIL_USE_TLS = _env_flag("MAIL_USE_TLS", "true")
    MAIL_USERNAME = os.getenv("MAIL_USERNAME")
    MAIL_PASSWORD = os.getenv("MAIL_PASSWORD")
    MAIL_DEFAULT_SENDER = os.getenv("MAIL_DEFAULT_SENDER", "noreply@bts-crew.com")

    # Skill proposals
    TRAINING_OFFICER_EMAIL = os.getenv("TRAINING_OFFICER_EMAIL", "training@bts-crew.com")
    PROPOSALS_PER_PAGE = _env_int("PROPOSALS_PER_PAGE", 30)
    APP_BASE_URL = os.getenv("APP_BASE_URL", "http://localhost:5000")

    # Run event handlers on a background pool once the workflow has committed
    EVENTS_ASYNC = _env_flag("EVENTS_ASYNC", "true")


class DevelopmentConfig(Config):
    DEBUG = True
    SQLALCHEMY_DATABASE_URI = _database_url(LOCAL_SQLITE_URL)


class TestingConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = os.getenv("TEST_DATABASE_URL", "sqlite:///:memory:")
    SQLALCHEMY_ENGINE_OPTIONS = {}
    API_AUTH_ENABLED = "false"
    RATELIMIT_ENABLED = False
    EVENTS_ASYNC = False
    MAIL_SERVER = None


class ProductionConfig(Config):
    """PostgreSQL only. Instantiated by create_app so the checks below run."""

    SQLALCHEMY_DATABASE_URI = _database_url()
    CORS_ORIGINS = os.getenv("CORS_ORIGINS", "")
    API_AUTH_ENABLED = os.getenv("API_AUTH_ENABLED", "true")
    SQLALCHEMY_ENGINE_OPTIONS = {
        "pool_pre_ping": True,
        "pool_recycle": 300,
        "pool_size": _env_int("DB_POOL_SIZE", 5),
        "max_overflow": _env_int("DB_MAX_OVERFLOW", 10),
        "pool_timeout": 20,
        # Abort statements running longer than 30s
        "connect_args": {"options": "-c statement_timeout=30000"},
    }

    def __init__(self):
        missing = [
            name for name, value in (
                ("DATABASE_URL", self.SQLALCHEMY_DATABASE_URI),
                ("SECRET_KEY", os.getenv("SECRET_KEY")),
            ) if not value
        ]
        if missing:
            raise RuntimeError(f"Missing required environment variables: {', '.join(missing)}")


config = {
    "development": DevelopmentConfig,
    "testing": TestingConfig,
    "production": ProductionConfig,
    "default": DevelopmentConfig,
}
