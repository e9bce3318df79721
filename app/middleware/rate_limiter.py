"""
Per-blueprint request limits (Flask-Limiter).

The Limiter in app/__init__.py has no default limits; the quotas below are
attached to each API blueprint once it is registered. Limits are keyed on
the remote address.
"""

import logging

logger = logging.getLogger(__name__)

BLUEPRINT_LIMITS = {
    "proposals": "60/minute",
    "skills": "120/minute",
    # The notification bell polls
    "notifications": "200/minute",
}

EXEMPT_BLUEPRINTS = ("health",)


def init_rate_limits(app, limiter):
    """Attach BLUEPRINT_LIMITS to registered blueprints. No-op under TESTING."""
    if app.config.get("TESTING"):
        logger.info("Rate limits skipped in testing")
        return

    applied = []
    for name, limit in BLUEPRINT_LIMITS.items():
        blueprint = app.blueprints.get(name)
        if blueprint is not None:
            limiter.limit(limit)(blueprint)
            applied.append(f"{name}={limit}")

    for name in EXEMPT_BLUEPRINTS:
        if name in app.blueprints:
            limiter.exempt(app.blueprints[name])

    logger.info("Rate limits applied: %s", ", ".join(applied) or "none")
