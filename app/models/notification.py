"""
Crew Skills Platform
Notices and outbound email records produced by the workflow events.
"""

from datetime import datetime, timezone

from app.models import db


def _utcnow():
    return datetime.now(timezone.utc)


def _iso(value):
    return value.isoformat() if value else None


class _EntityLinkMixin:
    """Points a row back at the record it is about, e.g. ("skill_proposal", 12)."""

    category = db.Column(db.String(30), default="system")
    entity_type = db.Column(db.String(30), default="")
    entity_id = db.Column(db.Integer, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow)

    _SERIALISED = ()
    _TIMESTAMPS = ("created_at",)

    def to_dict(self):
        d = {name: getattr(self, name) for name in ("id", *self._SERIALISED,
                                                    "category", "entity_type", "entity_id")}
        d.update((name, _iso(getattr(self, name))) for name in self._TIMESTAMPS)
        return d


class Notification(_EntityLinkMixin, db.Model):
    """An in-app notice; one row per recipient per event."""

    __tablename__ = "notifications"

    id = db.Column(db.Integer, primary_key=True)
    recipient_id = db.Column(
        db.Integer, db.ForeignKey("members.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    title = db.Column(db.String(300), nullable=False)
    message = db.Column(db.Text, default="")
    severity = db.Column(db.String(20), default="info")
    is_read = db.Column(db.Boolean, default=False)
    read_at = db.Column(db.DateTime(timezone=True), nullable=True)

    _SERIALISED = ("recipient_id", "title", "message", "severity", "is_read")
    _TIMESTAMPS = ("read_at", "created_at")

    def mark_read(self):
        self.is_read = True
        self.read_at = _utcnow()

    def __repr__(self):
        return f"<Notification {self.id} to={self.recipient_id}>"


class EmailLog(_EntityLinkMixin, db.Model):
    """One row per outbound email, delivered or not."""

    __tablename__ = "email_logs"

    id = db.Column(db.Integer, primary_key=True)
    recipient_email = db.Column(db.String(255), nullable=False, index=True)
    recipient_name = db.Column(db.String(150), nullable=True)
    subject = db.Column(db.String(500), nullable=False)
    template_name = db.Column(db.String(100), nullable=True)
    # queued -> sent | failed
    status = db.Column(db.String(20), default="queued")
    error_message = db.Column(db.Text, nullable=True)
    sent_at = db.Column(db.DateTime(timezone=True), nullable=True)

    _SERIALISED = ("recipient_email", "recipient_name", "subject", "template_name",
                   "status", "error_message")
    _TIMESTAMPS = ("sent_at", "created_at")
