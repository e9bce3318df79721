"""
Skill catalogue & member admin API tests.

Tests cover:
  - skill create / list / detail with live availability
  - level policy configuration and validation
  - member creation, role assignment, held levels
  - RBAC on admin routes
"""
import pytest

from app.services import ledger
from app.models import db


class TestSkillsAPI:
    def test_create_skill(self, client, headers, officer):
        res = client.post(
            "/api/v1/skills",
            json={
                "name": "Follow Spot",
                "category": "Lighting",
                "levels": {"1": {"requirements": "Operate a follow spot"}, "3": {"capacity": 2}},
            },
            headers=headers(officer),
        )
        assert res.status_code == 201
        data = res.get_json()
        assert [lvl["level"] for lvl in data["levels"]] == [1, 2, 3]
        assert data["levels"][0]["is_available"] is True
        # Levels without requirements are not open yet
        assert data["levels"][1]["is_available"] is False
        assert data["levels"][2]["capacity"] == 2

    def test_create_skill_duplicate_name(self, client, headers, officer, skill):
        res = client.post("/api/v1/skills", json={"name": skill.name}, headers=headers(officer))
        assert res.status_code == 409
        assert res.get_json()["code"] == "ERR_CONFLICT_DUPLICATE"

    def test_create_skill_requires_name(self, client, headers, officer):
        res = client.post("/api/v1/skills", json={"name": "  "}, headers=headers(officer))
        assert res.status_code == 422

    def test_create_skill_forbidden_for_member(self, client, headers, member):
        res = client.post("/api/v1/skills", json={"name": "Pyro"}, headers=headers(member))
        assert res.status_code == 403

    def test_list_skills_with_holders(self, client, headers, member, make_skill):
        s = make_skill("Sound", levels={1: {"capacity": 1}})
        make_skill("Video")
        ledger.raise_level(member.id, s.id, 1)
        db.session.commit()

        res = client.get("/api/v1/skills", headers=headers(member))
        assert res.status_code == 200
        items = {i["name"]: i for i in res.get_json()["items"]}
        assert set(items) == {"Sound", "Video"}
        level1 = items["Sound"]["levels"][0]
        assert level1["holders"] == 1
        assert level1["is_available"] is False

    def test_filter_by_category(self, client, headers, member, make_skill):
        make_skill("Rigging")
        res = client.get("/api/v1/skills?category=Lighting", headers=headers(member))
        assert res.get_json()["total"] == 0

    def test_get_skill_not_found(self, client, headers, member):
        assert client.get("/api/v1/skills/77", headers=headers(member)).status_code == 404

    def test_configure_level(self, client, headers, officer, skill):
        res = client.put(
            f"/api/v1/skills/{skill.id}/levels/3",
            json={"capacity": 1, "prerequisite_level": 2},
            headers=headers(officer),
        )
        assert res.status_code == 200
        assert res.get_json()["capacity"] == 1
        assert res.get_json()["prerequisite_level"] == 2

    @pytest.mark.parametrize("payload", [
        {"capacity": -1},
        {"capacity": "many"},
        {"prerequisite_level": 3},
        {"prerequisite_level": -1},
    ])
    def test_configure_level_validation(self, client, headers, officer, skill, payload):
        res = client.put(f"/api/v1/skills/{skill.id}/levels/3", json=payload, headers=headers(officer))
        assert res.status_code == 422

    def test_configure_unknown_level(self, client, headers, officer, skill):
        res = client.put(f"/api/v1/skills/{skill.id}/levels/4", json={}, headers=headers(officer))
        assert res.status_code == 404


class TestMembersAPI:
    def test_create_member_defaults_to_member_role(self, client, headers, officer):
        res = client.post(
            "/api/v1/members",
            json={"name": "Jo Sound", "email": "Jo@BTS-Crew.com"},
            headers=headers(officer),
        )
        assert res.status_code == 201
        data = res.get_json()
        assert data["email"] == "jo@bts-crew.com"
        assert data["roles"] == ["member"]

    def test_create_member_invalid_email(self, client, headers, officer):
        res = client.post("/api/v1/members", json={"name": "Jo", "email": "not-an-email"},
                          headers=headers(officer))
        assert res.status_code == 422

    def test_create_member_duplicate_email(self, client, headers, officer, member):
        res = client.post("/api/v1/members", json={"name": "Again", "email": member.email},
                          headers=headers(officer))
        assert res.status_code == 409

    def test_assign_role_grants_review(self, client, headers, officer, member, workflow, make_member, skill):
        other = make_member()
        p = workflow.submit(other, skill, 1, "ready")
        res = client.post(f"/api/v1/members/{member.id}/roles", json={"role": "training_officer"},
                          headers=headers(officer))
        assert res.status_code == 200
        assert "training_officer" in res.get_json()["roles"]

        # Cache was invalidated, so the new role takes effect immediately
        assert workflow.resolve(member, p.id, 1, "").awarded_level == 1

    def test_assign_unknown_role(self, client, headers, officer, member):
        res = client.post(f"/api/v1/members/{member.id}/roles", json={"role": "wizard"},
                          headers=headers(officer))
        assert res.status_code == 404

    def test_assign_role_requires_role(self, client, headers, officer, member):
        res = client.post(f"/api/v1/members/{member.id}/roles", json={}, headers=headers(officer))
        assert res.status_code == 400

    def test_member_skills(self, client, headers, member, skill):
        ledger.raise_level(member.id, skill.id, 2)
        db.session.commit()
        res = client.get(f"/api/v1/members/{member.id}/skills", headers=headers(member))
        assert res.status_code == 200
        assert res.get_json()["skills"][0]["level_name"] == "Level 2"
