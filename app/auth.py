"""
Crew Skills Platform
Request authentication.

Two separate questions are answered per /api/v1 request:

1. Which client is calling?  Trusted clients (the crew web frontend, admin
   tooling) present an X-API-Key. Keys come from API_KEYS, formatted as
   comma-separated ``<key>:<client>`` pairs, e.g. ``k1:web,k2:admin-cli``.
   API_AUTH_ENABLED=false switches the key check off for local development.
2. Which member is acting?  The client names them in X-Member-Id.
   ``acting_member()`` resolves it; what they may do is decided by
   app.services.policy.

State-changing requests with a body must be JSON, which HTML forms cannot
send.
"""

import logging
import os

from flask import current_app, g, jsonify, request

from app.core.exceptions import NotFoundError
from app.models import db
from app.models.auth import Member

logger = logging.getLogger(__name__)

MEMBER_HEADER = "X-Member-Id"
API_KEY_HEADER = "X-API-Key"

_FALSE_WORDS = ("false", "0", "no", "off")
_WRITE_METHODS = ("POST", "PUT", "PATCH", "DELETE")


class AuthenticationError(Exception):
    """No usable acting member on the request. Maps to HTTP 401."""

    code = "ERR_UNAUTHENTICATED"
    status = 401


def configured_clients() -> dict[str, str]:
    """API_KEYS as {key: client name}. A bare key belongs to client "default"."""
    clients = {}
    for entry in filter(None, (e.strip() for e in os.getenv("API_KEYS", "").split(","))):
        key, _, client = entry.rpartition(":") if ":" in entry else (entry, "", "")
        clients[key.strip()] = client.strip() or "default"
    return clients


def auth_enabled() -> bool:
    """API_AUTH_ENABLED from the environment, falling back to app config."""
    value = os.getenv("API_AUTH_ENABLED") or str(current_app.config.get("API_AUTH_ENABLED", "true"))
    return value.lower() not in _FALSE_WORDS


def acting_member() -> Member:
    """Return the active member named by the X-Member-Id header.

    Raises:
        AuthenticationError: header missing or malformed, or the member is
            unknown or inactive.
    """
    raw = request.headers.get(MEMBER_HEADER, "").strip()
    if not raw.isdigit():
        raise AuthenticationError(f"{MEMBER_HEADER} header is required")

    member = db.session.get(Member, int(raw))
    if member is None or not member.is_active:
        raise AuthenticationError(f"Unknown or inactive member {raw}")
    g.acting_member_id = member.id
    return member


def load_or_404(model, pk):
    """Fetch ``model`` by primary key or raise NotFoundError."""
    obj = db.session.get(model, pk)
    if obj is None:
        raise NotFoundError(resource=model.__name__, resource_id=pk)
    return obj


def _unauthenticated(message, status=401):
    return jsonify({"error": message, "code": AuthenticationError.code}), status


def _authenticate_client():
    """before_request hook for /api/v1 (health probes and CORS pre-flight excepted)."""
    path = request.path
    if not path.startswith("/api/v1/") or path.startswith("/api/v1/health") \
            or request.method == "OPTIONS":
        return None

    if request.method in _WRITE_METHODS and request.content_length \
            and "application/json" not in (request.content_type or ""):
        return jsonify({"error": "Content-Type must be application/json"}), 415

    if not auth_enabled():
        g.api_client = "dev-mode"
        return None

    key = request.headers.get(API_KEY_HEADER, "").strip()
    if not key:
        return _unauthenticated(f"Authentication required. Provide {API_KEY_HEADER} header.")

    clients = configured_clients()
    if not clients:
        logger.error("API_AUTH_ENABLED is on but API_KEYS is empty")
        return jsonify({"error": "Server authentication not configured"}), 500

    if key not in clients:
        logger.warning("Rejected API key %s...", key[:8])
        return _unauthenticated("Invalid API key")

    g.api_client = clients[key]
    return None


def init_auth(app):
    app.before_request(_authenticate_client)
    with app.app_context():
        logger.info("API key auth %s", "enabled" if auth_enabled() else "disabled")
