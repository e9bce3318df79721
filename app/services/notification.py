"""
Crew Skills Platform
Notification Service.

In-app notices for members. Writers commit immediately; they are called
from event handlers that run after the workflow transaction has committed.
"""

from datetime import datetime, timezone

from sqlalchemy import func, select, update

from app.models import db
from app.models.notification import Notification


def _build(recipient_id, title, message, category, severity, entity_type, entity_id):
    return Notification(
        recipient_id=recipient_id,
        title=title[:300],
        message=message,
        category=category,
        severity=severity,
        entity_type=entity_type,
        entity_id=entity_id,
    )


class NotificationService:
    """Stateless helpers around the Notification model."""

    @staticmethod
    def create(*, recipient_id, title, message="", category="system", severity="info",
               entity_type="", entity_id=None):
        """Create and commit one notice."""
        notif = _build(recipient_id, title, message, category, severity, entity_type, entity_id)
        db.session.add(notif)
        db.session.commit()
        return notif

    @staticmethod
    def broadcast(*, recipient_ids, title, message="", category="system", severity="info",
                  entity_type="", entity_id=None):
        """Create the same notice for each of ``recipient_ids`` in one commit."""
        notices = [
            _build(rid, title, message, category, severity, entity_type, entity_id)
            for rid in dict.fromkeys(recipient_ids)
        ]
        db.session.add_all(notices)
        db.session.commit()
        return notices

    @staticmethod
    def list_for_recipient(recipient_id, unread_only=False, limit=50, offset=0):
        """One page of a member's notices, newest first, plus the unpaged total."""
        stmt = select(Notification).where(Notification.recipient_id == recipient_id)
        if unread_only:
            stmt = stmt.where(Notification.is_read.is_(False))
        total = db.session.execute(
            select(func.count()).select_from(stmt.subquery())
        ).scalar_one()
        items = db.session.execute(
            stmt.order_by(Notification.created_at.desc(), Notification.id.desc())
            .offset(offset).limit(limit)
        ).scalars().all()
        return items, total

    @staticmethod
    def unread_count(recipient_id):
        return db.session.execute(
            select(func.count(Notification.id)).where(
                Notification.recipient_id == recipient_id,
                Notification.is_read.is_(False),
            )
        ).scalar_one()

    @staticmethod
    def mark_read(notification_id, recipient_id):
        """Mark one notice read. Returns None when it isn't the recipient's."""
        notif = db.session.get(Notification, notification_id)
        if notif is None or notif.recipient_id != recipient_id:
            return None
        notif.mark_read()
        db.session.commit()
        return notif

    @staticmethod
    def mark_all_read(recipient_id):
        """Mark every unread notice of a member read; returns how many changed."""
        result = db.session.execute(
            update(Notification)
            .where(Notification.recipient_id == recipient_id, Notification.is_read.is_(False))
            .values(is_read=True, read_at=datetime.now(timezone.utc))
            .execution_options(synchronize_session="fetch")
        )
        db.session.commit()
        return result.rowcount
