"""
Skill proposal API tests.

Tests cover:
  - form, submit, resolve round trips through /api/v1/skills/proposals
  - error codes and statuses for every workflow outcome
  - operator index (queues + pagination) and member history
"""
import pytest
from sqlalchemy.exc import OperationalError

from app.blueprints import proposal_bp as proposal_bp_module
from app.services import permission_service

BASE = "/api/v1/skills/proposals"


def _submit(client, headers, member, skill, level=1, reasoning="ready"):
    return client.post(
        BASE,
        json={"skill_id": skill.id, "level": level, "reasoning": reasoning},
        headers=headers(member),
    )


# ═════════════════════════════════════════════════════════════════════════
# FORM + SUBMIT
# ═════════════════════════════════════════════════════════════════════════


class TestSubmitAPI:
    def test_form_for_skill(self, client, headers, member, skill):
        res = client.get(f"{BASE}/form?skill_id={skill.id}", headers=headers(member))
        assert res.status_code == 200
        data = res.get_json()
        assert data["current_level"] == 0
        assert [lvl["level"] for lvl in data["available_levels"]] == [1, 2, 3]

    def test_form_without_skill(self, client, headers, member, skill):
        res = client.get(f"{BASE}/form", headers=headers(member))
        assert res.status_code == 200
        assert res.get_json()["skills"][0]["skill"]["id"] == skill.id

    def test_form_unknown_skill(self, client, headers, member):
        res = client.get(f"{BASE}/form?skill_id=999", headers=headers(member))
        assert res.status_code == 404
        assert res.get_json()["code"] == "ERR_NOT_FOUND"

    def test_submit_created(self, client, headers, member, skill):
        res = _submit(client, headers, member, skill, level=2, reasoning="Rigged the main stage")
        assert res.status_code == 201
        data = res.get_json()
        assert data["status"] == "pending"
        assert data["proposed_level"] == 2
        assert data["member_id"] == member.id
        assert data["awarded_level"] is None

    def test_submit_accepts_digit_strings(self, client, headers, member, skill):
        res = client.post(
            BASE,
            json={"skill_id": str(skill.id), "level": "1", "reasoning": "form post"},
            headers=headers(member),
        )
        assert res.status_code == 201

    def test_submit_duplicate_pending(self, client, headers, member, skill):
        assert _submit(client, headers, member, skill).status_code == 201
        res = _submit(client, headers, member, skill, level=2)
        assert res.status_code == 409
        assert res.get_json()["code"] == "ERR_DUPLICATE_PENDING"

    def test_submit_ineligible(self, client, headers, member, make_skill):
        s = make_skill(levels={2: {"is_enabled": False}})
        res = _submit(client, headers, member, s, level=2)
        assert res.status_code == 422
        body = res.get_json()
        assert body["code"] == "ERR_INELIGIBLE_LEVEL"
        assert body["details"]["selectable_levels"] == [1, 3]

    def test_submit_missing_reasoning(self, client, headers, member, skill):
        res = _submit(client, headers, member, skill, reasoning="")
        assert res.status_code == 422
        assert res.get_json()["code"] == "ERR_VALIDATION_INVALID"

    @pytest.mark.parametrize("missing", ["skill_id", "level"])
    def test_submit_missing_field(self, client, headers, member, skill, missing):
        body = {"skill_id": skill.id, "level": 1, "reasoning": "x"}
        del body[missing]
        res = client.post(BASE, json=body, headers=headers(member))
        assert res.status_code == 400
        assert res.get_json()["code"] == "ERR_VALIDATION_REQUIRED"

    def test_submit_forbidden_without_role(self, client, headers, make_member, skill):
        outsider = make_member(role_names=())
        res = _submit(client, headers, outsider, skill)
        assert res.status_code == 403
        assert res.get_json()["code"] == "ERR_FORBIDDEN"

    def test_submit_without_member_header(self, client, skill, roles):
        res = client.post(BASE, json={"skill_id": skill.id, "level": 1, "reasoning": "x"})
        assert res.status_code == 401
        assert res.get_json()["code"] == "ERR_UNAUTHENTICATED"

    def test_submit_requires_json_content_type(self, client, headers, member, skill):
        res = client.post(BASE, data="skill_id=1", headers=headers(member),
                          content_type="application/x-www-form-urlencoded")
        assert res.status_code == 415

    def test_submit_during_permission_outage_is_retryable(self, client, headers, member, skill,
                                                          monkeypatch):
        permission_service.invalidate_all_cache()

        def _connection_lost(member_id):
            raise OperationalError("SELECT roles.id", {}, Exception("server closed the connection"))

        monkeypatch.setattr(permission_service, "_load", _connection_lost)
        res = _submit(client, headers, member, skill)
        assert res.status_code == 503
        assert res.get_json()["code"] == "ERR_UNAVAILABLE"
        assert res.headers["Retry-After"] == "2"

    def test_member_lookup_outage_is_retryable(self, client, headers, member, monkeypatch):
        def _connection_lost():
            raise OperationalError("SELECT members", {}, Exception("server closed the connection"))

        monkeypatch.setattr(proposal_bp_module, "acting_member", _connection_lost)
        res = client.get(f"{BASE}/mine", headers=headers(member))
        assert res.status_code == 503
        assert res.get_json()["code"] == "ERR_UNAVAILABLE"


# ═════════════════════════════════════════════════════════════════════════
# RESOLVE
# ═════════════════════════════════════════════════════════════════════════


class TestResolveAPI:
    def test_award(self, client, headers, member, officer, skill):
        pid = _submit(client, headers, member, skill, level=2).get_json()["id"]
        res = client.post(f"{BASE}/{pid}/resolve", json={"awarded_level": 2},
                          headers=headers(officer))
        assert res.status_code == 200
        data = res.get_json()
        assert data["status"] == "awarded"
        assert data["awarded_by_id"] == officer.id

        held = client.get(f"/api/v1/members/{member.id}/skills", headers=headers(member)).get_json()
        assert held["skills"][0]["level"] == 2

    def test_decline_requires_comment(self, client, headers, member, officer, skill):
        pid = _submit(client, headers, member, skill).get_json()["id"]
        res = client.post(f"{BASE}/{pid}/resolve", json={"awarded_level": 0},
                          headers=headers(officer))
        assert res.status_code == 422
        assert "awarded_comment" in res.get_json()["details"]

    def test_decline(self, client, headers, member, officer, skill):
        pid = _submit(client, headers, member, skill).get_json()["id"]
        res = client.post(
            f"{BASE}/{pid}/resolve",
            json={"awarded_level": 0, "awarded_comment": "Shadow two more shows first"},
            headers=headers(officer),
        )
        assert res.status_code == 200
        assert res.get_json()["status"] == "declined"

    def test_self_review(self, client, headers, officer, skill):
        pid = _submit(client, headers, officer, skill).get_json()["id"]
        res = client.post(f"{BASE}/{pid}/resolve", json={"awarded_level": 1},
                          headers=headers(officer))
        assert res.status_code == 403
        assert res.get_json()["code"] == "ERR_SELF_REVIEW"

    def test_retry_reports_already_resolved(self, client, headers, member, officer, skill):
        pid = _submit(client, headers, member, skill).get_json()["id"]
        url = f"{BASE}/{pid}/resolve"
        assert client.post(url, json={"awarded_level": 1}, headers=headers(officer)).status_code == 200
        res = client.post(url, json={"awarded_level": 1}, headers=headers(officer))
        assert res.status_code == 409
        assert res.get_json()["code"] == "ERR_ALREADY_RESOLVED"

    def test_level_no_longer_available(self, client, headers, member, officer, skill):
        pid = _submit(client, headers, member, skill, level=3).get_json()["id"]
        client.put(f"/api/v1/skills/{skill.id}/levels/3", json={"is_enabled": False},
                   headers=headers(officer))
        res = client.post(f"{BASE}/{pid}/resolve", json={"awarded_level": 3},
                          headers=headers(officer))
        assert res.status_code == 409
        assert res.get_json()["code"] == "ERR_LEVEL_UNAVAILABLE"

    def test_missing_awarded_level(self, client, headers, member, officer, skill):
        pid = _submit(client, headers, member, skill).get_json()["id"]
        res = client.post(f"{BASE}/{pid}/resolve", json={}, headers=headers(officer))
        assert res.status_code == 400

    def test_unknown_proposal(self, client, headers, officer):
        res = client.post(f"{BASE}/404/resolve", json={"awarded_level": 1}, headers=headers(officer))
        assert res.status_code == 404


# ═════════════════════════════════════════════════════════════════════════
# QUEUES + DETAIL + HISTORY
# ═════════════════════════════════════════════════════════════════════════


class TestListingAPI:
    def test_operator_index(self, client, headers, make_member, officer, skill):
        a, b = make_member(), make_member()
        pa = _submit(client, headers, a, skill).get_json()["id"]
        _submit(client, headers, b, skill)
        client.post(f"{BASE}/{pa}/resolve", json={"awarded_level": 1}, headers=headers(officer))

        res = client.get(f"{BASE}?tab=reviewed", headers=headers(officer))
        assert res.status_code == 200
        data = res.get_json()
        assert data["tab"] == "reviewed"
        assert len(data["pending"]) == 1
        assert [p["id"] for p in data["resolved"]] == [pa]

    def test_operator_index_page_out_of_range(self, client, headers, officer):
        res = client.get(f"{BASE}?page=5", headers=headers(officer))
        assert res.status_code == 404

    def test_operator_index_forbidden_for_member(self, client, headers, member):
        res = client.get(BASE, headers=headers(member))
        assert res.status_code == 403

    def test_detail_with_choices(self, client, headers, member, officer, skill):
        pid = _submit(client, headers, member, skill).get_json()["id"]
        res = client.get(f"{BASE}/{pid}", headers=headers(officer))
        assert res.status_code == 200
        data = res.get_json()
        assert data["can_review"] is True
        assert data["levels"][0] == {"level": 0, "name": "Do not award"}

    def test_mine(self, client, headers, member, skill):
        _submit(client, headers, member, skill)
        res = client.get(f"{BASE}/mine", headers=headers(member))
        assert res.status_code == 200
        assert res.get_json()["total"] == 1
