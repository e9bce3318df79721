"""
Notification dispatch tests.

Tests cover:
  - ProposalSubmitted → training officer email + reviewer notices
  - ProposalResolved  → member email + member notice
  - a failing handler never undoes the workflow change
  - notification API (list, unread count, mark read)
"""
import pytest

from app.models.notification import EmailLog, Notification
from app.services import ledger
from app.services.events import EventBus, ProposalResolved, ProposalSubmitted
from app.services.proposal_service import ProposalWorkflow


def test_submission_emails_training_officer(app, workflow, member, officer, skill):
    p = workflow.submit(member, skill, 2, "Ran <the> desk")

    log = EmailLog.query.filter_by(template_name="proposal_submitted").one()
    assert log.recipient_email == app.config["TRAINING_OFFICER_EMAIL"]
    assert log.status == "sent"
    assert log.entity_id == p.id
    assert member.name in log.subject


def test_submission_notifies_reviewers_except_proposer(workflow, officer, other_officer, skill):
    p = workflow.submit(officer, skill, 1, "me too")

    notices = Notification.query.filter_by(entity_id=p.id).all()
    assert [n.recipient_id for n in notices] == [other_officer.id]
    assert notices[0].category == "proposal"


def test_resolution_emails_member(workflow, member, officer, skill):
    p = workflow.submit(member, skill, 1, "ready")
    workflow.resolve(officer, p.id, 1, "")

    log = EmailLog.query.filter_by(template_name="proposal_processed").one()
    assert log.recipient_email == member.email
    assert "approved" in log.subject

    notice = Notification.query.filter_by(recipient_id=member.id).one()
    assert notice.severity == "success"
    assert "Level 1" in notice.message


def test_decline_notice_carries_comment(workflow, member, officer, skill):
    p = workflow.submit(member, skill, 1, "ready")
    workflow.resolve(officer, p.id, 0, "Needs more hours")

    log = EmailLog.query.filter_by(template_name="proposal_processed").one()
    assert "declined" in log.subject
    notice = Notification.query.filter_by(recipient_id=member.id).one()
    assert notice.severity == "warning"
    assert notice.message == "Needs more hours"


def test_failing_handler_does_not_roll_back(member, officer, skill):
    seen = []

    def _boom(event):
        raise RuntimeError("mail relay down")

    bus = EventBus()
    bus.subscribe(ProposalSubmitted, _boom)
    bus.subscribe(ProposalSubmitted, seen.append)
    bus.subscribe(ProposalResolved, _boom)
    wf = ProposalWorkflow(events=bus)

    p = wf.submit(member, skill, 2, "ready")
    resolved = wf.resolve(officer, p.id, 2, "")

    assert resolved.awarded_level == 2
    assert ledger.level_of(member.id, skill.id) == 2
    # Later handlers still run after an earlier one fails
    assert len(seen) == 1


def test_bus_without_subscribers_is_silent():
    EventBus().publish(ProposalResolved(proposal_id=1))


def test_app_bus_is_registered(app):
    bus = app.extensions["event_bus"]
    assert len(bus.handlers_for(ProposalSubmitted)) == 1
    assert len(bus.handlers_for(ProposalResolved)) == 1


# ═════════════════════════════════════════════════════════════════════════
# NOTIFICATION API
# ═════════════════════════════════════════════════════════════════════════


class TestNotificationAPI:
    @pytest.fixture()
    def notified(self, workflow, make_proposal, member, officer, skill):
        p = make_proposal(member, skill)
        workflow.resolve(officer, p.id, 1, "")
        return member

    def test_list_and_unread(self, client, headers, notified):
        res = client.get("/api/v1/notifications", headers=headers(notified))
        assert res.status_code == 200
        data = res.get_json()
        assert data["total"] == 1
        assert data["unread_count"] == 1

    def test_mark_read(self, client, headers, notified):
        nid = client.get("/api/v1/notifications", headers=headers(notified)).get_json()["items"][0]["id"]
        res = client.post(f"/api/v1/notifications/{nid}/read", headers=headers(notified))
        assert res.status_code == 200
        assert res.get_json()["is_read"] is True
        count = client.get("/api/v1/notifications/unread-count", headers=headers(notified))
        assert count.get_json()["unread_count"] == 0

    def test_cannot_read_others_notice(self, client, headers, notified, officer):
        nid = client.get("/api/v1/notifications", headers=headers(notified)).get_json()["items"][0]["id"]
        res = client.post(f"/api/v1/notifications/{nid}/read", headers=headers(officer))
        assert res.status_code == 404

    def test_mark_all_read(self, client, headers, notified):
        res = client.post("/api/v1/notifications/read-all", headers=headers(notified))
        assert res.get_json()["marked_read"] == 1

    def test_email_logs_need_manage_permission(self, client, headers, notified, officer):
        assert client.get("/api/v1/notifications/email-logs", headers=headers(notified)).status_code == 403
        res = client.get("/api/v1/notifications/email-logs?template=proposal_processed",
                         headers=headers(officer))
        assert res.status_code == 200
        assert res.get_json()["total"] == 1
