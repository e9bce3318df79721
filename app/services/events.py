"""
Workflow events and the in-process event bus.

The proposal workflow publishes typed events after its transaction commits.
Subscribers (see notification_dispatcher) turn them into emails and in-app
notices. Delivery is best-effort: a failing handler is logged and skipped,
and it can never undo the state change that produced the event.

With EVENTS_ASYNC enabled, handlers run on a small thread pool inside a
fresh app context; otherwise they run inline after the commit.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Callable

from flask import Flask

logger = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════════════════
#  Event types
# ═══════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True)
class ProposalSubmitted:
    """A member submitted a proposal; routed to the reviewing role."""

    skill_id: int
    proposal_id: int
    member_id: int


@dataclass(frozen=True)
class ProposalResolved:
    """A reviewer resolved a proposal; routed to the proposing member."""

    proposal_id: int


# ═══════════════════════════════════════════════════════════════════════════
#  Event bus
# ═══════════════════════════════════════════════════════════════════════════


class EventBus:
    """Publish/subscribe with isolated, best-effort handlers."""

    def __init__(self, app: Flask | None = None, max_workers: int = 2) -> None:
        self._handlers: dict[type, list[Callable]] = {}
        self._app: Flask | None = None
        self._async = False
        self._max_workers = max_workers
        self._executor: ThreadPoolExecutor | None = None
        if app is not None:
            self.init_app(app)

    def init_app(self, app: Flask) -> None:
        self._app = app
        self._async = bool(app.config.get("EVENTS_ASYNC", False))
        if self._async and self._executor is None:
            self._executor = ThreadPoolExecutor(
                max_workers=self._max_workers, thread_name_prefix="events",
            )
        app.extensions["event_bus"] = self

    def subscribe(self, event_type: type, handler: Callable) -> None:
        self._handlers.setdefault(event_type, []).append(handler)

    def handlers_for(self, event_type: type) -> list[Callable]:
        return list(self._handlers.get(event_type, ()))

    def clear(self) -> None:
        self._handlers.clear()

    def publish(self, event) -> None:
        """Deliver ``event`` to its subscribers. Never raises."""
        handlers = self.handlers_for(type(event))
        if not handlers:
            return
        if self._async and self._executor is not None and self._app is not None:
            self._executor.submit(self._deliver_in_context, event, handlers)
        else:
            self._deliver(event, handlers)

    def _deliver_in_context(self, event, handlers: list[Callable]) -> None:
        with self._app.app_context():
            self._deliver(event, handlers)

    def _deliver(self, event, handlers: list[Callable]) -> None:
        event_type = type(event).__name__
        for handler in handlers:
            try:
                handler(event)
            except Exception:
                logger.exception(
                    "Event handler %s failed for %s",
                    getattr(handler, "__name__", repr(handler)), event_type,
                    extra={"event_type": event_type},
                )
                _rollback_quietly()


def _rollback_quietly() -> None:
    """Leave the session usable after a handler blew up mid-write."""
    from app.models import db

    try:
        db.session.rollback()
    except Exception:
        logger.exception("Session rollback after handler failure also failed")
