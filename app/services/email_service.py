"""
Crew Skills Platform
Email Service.

Renders the workflow's email templates and delivers them over SMTP.
Every message is recorded in EmailLog whether or not it was delivered.

Without MAIL_SERVER the service runs in log-only mode: the EmailLog row is
written with status "sent" and nothing leaves the process. Tests and local
development rely on this.

Configuration (env vars):
    MAIL_SERVER          SMTP host (unset = log-only)
    MAIL_PORT            SMTP port (default: 587)
    MAIL_USE_TLS         STARTTLS before login (default: true)
    MAIL_USERNAME        SMTP username
    MAIL_PASSWORD        SMTP password
    MAIL_DEFAULT_SENDER  From address
"""

from __future__ import annotations

import html
import logging
import smtplib
from dataclasses import dataclass
from datetime import datetime, timezone
from email.message import EmailMessage
from typing import Any

from flask import current_app

from app.models import db
from app.models.notification import EmailLog

logger = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════════════════
#  Templates
# ═══════════════════════════════════════════════════════════════════════════

# name -> (subject, plain-text body, html body)
_TEMPLATES: dict[str, tuple[str, str, str]] = {
    "proposal_submitted": (
        "Skill proposal: {member_name} for {skill_name}",
        (
            "Hi,\n\n"
            "{member_name} has applied for {level_name} in the skill {skill_name}, "
            "with the reasoning:\n\n{reasoning}\n\n"
            "View the proposal: {url}\n\n"
            "If you need more information, reply to this email to contact the member.\n"
        ),
        (
            "<p>Hi,</p>"
            "<p>{member_name} has applied for <strong>{level_name}</strong> in the skill "
            "<strong>{skill_name}</strong>, with the reasoning:</p>"
            "<blockquote>{reasoning}</blockquote>"
            "<p><a href=\"{url}\">View Proposal</a></p>"
            "<p>If you need more information, reply to this email to contact the member.</p>"
        ),
    ),
    "proposal_processed": (
        "Your proposal for {skill_name} has been {outcome}",
        (
            "Hi {member_name},\n\n"
            "Your proposal for {proposed_level_name} in the skill {skill_name} "
            "has been reviewed.\n\n"
            "Outcome: {awarded_level_name}\n"
            "{comment}\n\n"
            "View the proposal: {url}\n"
        ),
        (
            "<p>Hi {member_name},</p>"
            "<p>Your proposal for <strong>{proposed_level_name}</strong> in the skill "
            "<strong>{skill_name}</strong> has been reviewed.</p>"
            "<p>Outcome: <strong>{awarded_level_name}</strong></p>"
            "<blockquote>{comment}</blockquote>"
            "<p><a href=\"{url}\">View Proposal</a></p>"
        ),
    ),
}


class _Blank(dict):
    """format_map mapping that renders unknown placeholders as empty text."""

    def __missing__(self, key):
        logger.warning("Email template placeholder missing: %s", key)
        return ""


@dataclass(frozen=True)
class RenderedEmail:
    template_name: str
    subject: str
    text_body: str
    html_body: str


def render(template_name: str, context: dict[str, Any]) -> RenderedEmail:
    """Fill a template. Values are HTML-escaped for the HTML part only.

    Raises:
        KeyError: unknown template name.
    """
    subject, text_body, html_body = _TEMPLATES[template_name]
    plain = _Blank({k: str(v) for k, v in context.items()})
    escaped = _Blank({k: html.escape(str(v)) for k, v in context.items()})
    return RenderedEmail(
        template_name=template_name,
        subject=subject.format_map(plain),
        text_body=text_body.format_map(plain),
        html_body=html_body.format_map(escaped),
    )


class EmailService:
    """Template rendering + delivery + EmailLog bookkeeping."""

    @staticmethod
    def is_configured() -> bool:
        return bool(current_app.config.get("MAIL_SERVER"))

    @classmethod
    def send_from_template(
        cls,
        *,
        to_email: str,
        template_name: str,
        context: dict[str, Any],
        to_name: str | None = None,
        category: str = "system",
        entity_type: str = "",
        entity_id: int | None = None,
    ) -> EmailLog:
        """Render ``template_name`` with ``context`` and send it to one recipient."""
        message = render(template_name, context)
        return cls.send(
            message,
            to_email=to_email,
            to_name=to_name,
            category=category,
            entity_type=entity_type,
            entity_id=entity_id,
        )

    @classmethod
    def send(
        cls,
        message: RenderedEmail,
        *,
        to_email: str,
        to_name: str | None = None,
        category: str = "system",
        entity_type: str = "",
        entity_id: int | None = None,
    ) -> EmailLog:
        """Deliver ``message`` and commit its EmailLog row.

        SMTP failures are recorded on the log row (status "failed") and do
        not raise.
        """
        log = EmailLog(
            recipient_email=to_email,
            recipient_name=to_name,
            subject=message.subject,
            template_name=message.template_name,
            category=category,
            status="queued",
            entity_type=entity_type,
            entity_id=entity_id,
        )
        db.session.add(log)

        if not cls.is_configured():
            log.status = "sent"
            log.sent_at = datetime.now(timezone.utc)
            logger.info("Email (log-only): to=%s template=%s", to_email, message.template_name)
        else:
            try:
                _deliver(message, to_email=to_email, to_name=to_name)
            except (smtplib.SMTPException, OSError) as exc:
                log.status = "failed"
                log.error_message = str(exc)[:1000]
                logger.error("Email failed: to=%s template=%s error=%s",
                             to_email, message.template_name, exc)
            else:
                log.status = "sent"
                log.sent_at = datetime.now(timezone.utc)
                logger.info("Email sent: to=%s template=%s", to_email, message.template_name)

        db.session.commit()
        return log


def _deliver(message: RenderedEmail, *, to_email: str, to_name: str | None) -> None:
    cfg = current_app.config
    server = cfg["MAIL_SERVER"]

    msg = EmailMessage()
    msg["Subject"] = message.subject
    msg["From"] = cfg.get("MAIL_DEFAULT_SENDER") or f"noreply@{server}"
    msg["To"] = f"{to_name} <{to_email}>" if to_name else to_email
    msg.set_content(message.text_body)
    msg.add_alternative(message.html_body, subtype="html")

    with smtplib.SMTP(server, cfg.get("MAIL_PORT", 587), timeout=30) as smtp:
        if cfg.get("MAIL_USE_TLS", True):
            smtp.starttls()
        if cfg.get("MAIL_USERNAME") and cfg.get("MAIL_PASSWORD"):
            smtp.login(cfg["MAIL_USERNAME"], cfg["MAIL_PASSWORD"])
        smtp.send_message(msg)
