"""
Logging setup for the application.

Two output styles share one root handler:

* JSON lines in production (or anywhere with LOG_FORMAT=json)
* a short coloured line for local development

Workflow code passes identifiers through ``extra`` and both formatters pick
them up:

    logger.info("Proposal submitted id=%s", p.id,
                extra={"proposal_id": p.id, "member_id": m.id, "skill_id": s.id})
"""

import json
import logging
import os
import sys
from datetime import datetime, timezone

# Filled in by app.middleware.timing
REQUEST_KEYS = ("method", "path", "status", "duration_ms", "remote_addr", "request_id")

# Filled in by the proposal workflow and the event bus
CONTEXT_KEYS = ("member_id", "skill_id", "proposal_id", "event_type")

_QUIET_LOGGERS = ("werkzeug", "sqlalchemy.engine", "alembic")


def _present(record, keys):
    """(key, value) pairs for the ``extra`` keys actually set on ``record``."""
    for key in keys:
        value = getattr(record, key, None)
        if value is not None:
            yield key, value


class JSONFormatter(logging.Formatter):
    """One JSON object per line."""

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "location": f"{record.module}.{record.funcName}:{record.lineno}",
        }
        payload.update(_present(record, REQUEST_KEYS + CONTEXT_KEYS))
        if record.exc_info and record.exc_info[0] is not None:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False, default=str)


class ReadableFormatter(logging.Formatter):
    """``12:04:31 INFO     app.services.ledger: Level raised (member=3 skill=2)``"""

    LEVEL_COLOURS = {
        logging.DEBUG: "\033[36m",
        logging.INFO: "\033[32m",
        logging.WARNING: "\033[33m",
        logging.ERROR: "\033[31m",
        logging.CRITICAL: "\033[35m",
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        colour = self.LEVEL_COLOURS.get(record.levelno, "")
        clock = datetime.fromtimestamp(record.created).strftime("%H:%M:%S")
        line = f"{colour}{clock} {record.levelname:<8}{self.RESET} {record.name}: {record.getMessage()}"

        duration = getattr(record, "duration_ms", None)
        if duration is not None:
            line += f" [{duration:.0f}ms]"
        tags = [f"{key.removesuffix('_id')}={value}" for key, value in _present(record, CONTEXT_KEYS)]
        if tags:
            line += f" ({' '.join(tags)})"

        if record.exc_info and record.exc_info[0] is not None:
            line += "\n" + self.formatException(record.exc_info)
        return line


def configure_logging(app):
    """Install the root handler for ``app``.

    LOG_LEVEL overrides the level (DEBUG outside production, INFO in it).
    """
    testing = bool(app.config.get("TESTING"))
    production = not testing and not app.config.get("DEBUG")

    level_name = os.getenv("LOG_LEVEL") or ("INFO" if production else "DEBUG")
    level = logging.getLevelName(level_name.upper())
    if not isinstance(level, int):
        level = logging.INFO

    as_json = production or os.getenv("LOG_FORMAT", "").lower() == "json"

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(JSONFormatter() if as_json else ReadableFormatter())
    handler.setLevel(level)

    root = logging.getLogger()
    # create_app runs once per test; replace rather than stack handlers
    root.handlers[:] = [handler]
    root.setLevel(level)
    app.logger.setLevel(level)

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    if not testing:
        app.logger.info("Logging ready: level=%s format=%s",
                        logging.getLevelName(level), "json" if as_json else "readable")
