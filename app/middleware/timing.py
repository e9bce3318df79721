"""
Request timing and correlation ids.

Every response carries X-Request-ID (echoed from the client or generated)
and X-Request-Duration-Ms. Requests are logged at DEBUG, or at WARNING /
ERROR when slow or failing, tagged with the acting member.
"""

import logging
import time
import uuid

from flask import Flask, g, request

logger = logging.getLogger(__name__)

SLOW_THRESHOLD_MS = 1000

# Probes are hit constantly; time them but don't log them
_UNLOGGED_PREFIXES = ("/api/v1/health/", "/static")


def init_request_timing(app: Flask):
    app.before_request(_start_clock)
    app.after_request(_finish_clock)


def _start_clock():
    g.request_start = time.perf_counter()
    g.request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex[:12]


def _finish_clock(response):
    started = getattr(g, "request_start", None)
    if started is None:
        return response

    elapsed_ms = (time.perf_counter() - started) * 1000
    response.headers["X-Request-ID"] = g.request_id
    response.headers["X-Request-Duration-Ms"] = f"{elapsed_ms:.1f}"

    if not request.path.startswith(_UNLOGGED_PREFIXES):
        _log(response.status_code, elapsed_ms)
    return response


def _log(status: int, elapsed_ms: float) -> None:
    if elapsed_ms > SLOW_THRESHOLD_MS:
        log, label = logger.warning, "Slow request"
    elif status >= 500:
        log, label = logger.error, "Server error"
    else:
        log, label = logger.debug, "Request"

    log(
        "%s: %s %s %d (%.0fms)", label, request.method, request.path, status, elapsed_ms,
        extra={
            "method": request.method,
            "path": request.path,
            "status": status,
            "duration_ms": elapsed_ms,
            "remote_addr": request.remote_addr,
            "request_id": g.request_id,
            "member_id": _acting_member_id(),
        },
    )


def _acting_member_id() -> int | None:
    """Member resolved by app.auth.acting_member, else the raw header."""
    member_id = getattr(g, "acting_member_id", None)
    if member_id is not None:
        return member_id
    raw = request.headers.get("X-Member-Id", "")
    return int(raw) if raw.isdigit() else None
