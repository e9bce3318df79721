"""
Auth, RBAC and health tests.

Tests cover:
  - API key middleware when enabled
  - acting member resolution
  - permission_service evaluation and caching
  - health endpoints and JSON error handlers
"""
import pytest

from app.models import db
from app.services import member_service, permission_service


# ═════════════════════════════════════════════════════════════════════════
# API KEYS
# ═════════════════════════════════════════════════════════════════════════


class TestApiKeys:
    @pytest.fixture(autouse=True)
    def _enable_auth(self, monkeypatch):
        monkeypatch.setenv("API_AUTH_ENABLED", "true")
        monkeypatch.setenv("API_KEYS", "web-key:web,cli-key:admin-cli")

    def test_missing_key(self, client, headers, member):
        res = client.get("/api/v1/skills", headers=headers(member))
        assert res.status_code == 401

    def test_invalid_key(self, client, headers, member):
        res = client.get("/api/v1/skills", headers={**headers(member), "X-API-Key": "nope"})
        assert res.status_code == 401

    def test_valid_key(self, client, headers, member):
        res = client.get("/api/v1/skills", headers={**headers(member), "X-API-Key": "web-key"})
        assert res.status_code == 200

    def test_health_is_public(self, client):
        assert client.get("/api/v1/health/ready").status_code == 200


def test_unknown_member_header(client, roles):
    res = client.get("/api/v1/skills", headers={"X-Member-Id": "42"})
    assert res.status_code == 401


def test_inactive_member_rejected(client, headers, member):
    member.is_active = False
    db.session.commit()
    assert client.get("/api/v1/skills", headers=headers(member)).status_code == 401


# ═════════════════════════════════════════════════════════════════════════
# PERMISSIONS
# ═════════════════════════════════════════════════════════════════════════


class TestPermissionService:
    def test_seed_roles_idempotent(self, roles):
        again = member_service.seed_roles()
        assert set(again) == {"member", "training_officer", "admin"}

    def test_member_permissions(self, member):
        assert permission_service.get_member_permissions(member.id) == {permission_service.PERM_PROPOSE}
        assert permission_service.get_member_role_names(member.id) == ["member"]

    def test_admin_passes_everything(self, make_member):
        admin = make_member(role_names=("admin",))
        for codename in permission_service.ALL_PERMISSIONS:
            assert permission_service.has_permission(admin.id, codename)

    def test_unknown_member_has_nothing(self, roles):
        assert permission_service.has_permission(999, permission_service.PERM_PROPOSE) is False

    def test_members_with_permission(self, member, officer, make_member):
        admin = make_member(role_names=("admin",))
        reviewers = permission_service.members_with_permission(permission_service.PERM_REVIEW)
        assert [m.id for m in reviewers] == [officer.id, admin.id]

    def test_cache_invalidated_on_role_change(self, member):
        assert not permission_service.has_permission(member.id, permission_service.PERM_REVIEW)
        member_service.assign_role(member.id, "training_officer")
        assert permission_service.has_permission(member.id, permission_service.PERM_REVIEW)


# ═════════════════════════════════════════════════════════════════════════
# HEALTH + ERROR HANDLERS
# ═════════════════════════════════════════════════════════════════════════


def test_health_live(client):
    res = client.get("/api/v1/health/live")
    assert res.status_code == 200
    data = res.get_json()
    assert data["checks"]["database"]["status"] == "ok"
    assert data["checks"]["mail"]["status"] == "log_only"
    assert data["checks"]["events"] == {"status": "ok", "async": False}


def test_unknown_route_is_json(client):
    res = client.get("/api/v1/nothing-here")
    assert res.status_code == 404
    assert res.get_json()["code"] == "ERR_NOT_FOUND"


def test_request_id_header(client):
    res = client.get("/api/v1/health/ready", headers={"X-Request-ID": "abc123"})
    assert res.headers["X-Request-ID"] == "abc123"
    assert "X-Request-Duration-Ms" in res.headers
