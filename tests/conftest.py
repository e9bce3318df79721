"""
Shared pytest fixtures for the Crew Skills Platform test suite.

Provides:
    - app: Flask application (session-scoped)
    - _setup_db: Database table creation/teardown (session-scoped)
    - session: Per-test DB cleanup w/ rollback + recreate (autouse)
    - client: Flask test client (function-scoped)
    - roles: Default roles and permissions
    - make_member / make_skill / make_proposal: entity factories
    - member / officer / other_officer / skill: ready-made entities
    - workflow: the app's ProposalWorkflow
    - headers: X-Member-Id request headers for a member
"""

import pytest

from app import create_app
from app.models import db as _db
from app.services import member_service, skill_service
from app.services.permission_service import invalidate_all_cache


# ── App & DB fixtures ────────────────────────────────────────────────────


@pytest.fixture(scope="session")
def app():
    """Create the Flask application once per test session."""
    application = create_app("testing")
    return application


@pytest.fixture(scope="session")
def _setup_db(app):
    """Create all tables at session start, drop at end."""
    with app.app_context():
        _db.create_all()
    yield
    with app.app_context():
        _db.drop_all()


@pytest.fixture(autouse=True)
def session(app, _setup_db):
    """Per-test: open app context, rollback after test, recreate tables."""
    with app.app_context():
        # DB is recreated per test and ids are reused; clear RBAC cache to
        # avoid stale permission decisions keyed by member_id.
        invalidate_all_cache()
        yield
        invalidate_all_cache()
        _db.session.rollback()
        _db.drop_all()
        _db.create_all()


@pytest.fixture()
def client(app):
    """Flask test client."""
    return app.test_client()


# ── Factories ────────────────────────────────────────────────────────────


@pytest.fixture()
def roles():
    """Seed the default roles (member, training_officer, admin)."""
    return member_service.seed_roles()


@pytest.fixture()
def make_member(roles):
    """Factory: create a member with the given role names."""
    counter = {"n": 0}

    def _make(name=None, role_names=("member",)):
        counter["n"] += 1
        n = counter["n"]
        return member_service.create_member(
            {"name": name or f"Crew Member {n}", "email": f"crew{n}@bts-crew.com"},
            roles=list(role_names),
        )

    return _make


_OPEN = "Demonstrate competence to a training officer"


@pytest.fixture()
def make_skill():
    """Factory: create a skill; every level is open unless overridden.

    ``levels`` maps level -> policy fields, e.g. {3: {"capacity": 1}}.
    """
    counter = {"n": 0}

    def _make(name=None, levels=None):
        counter["n"] += 1
        policies = {lvl: {"requirements": f"{_OPEN} (level {lvl})"} for lvl in (1, 2, 3)}
        for lvl, overrides in (levels or {}).items():
            policies[lvl].update(overrides)
        return skill_service.create_skill({
            "name": name or f"Skill {counter['n']}",
            "category": "Stage",
            "levels": policies,
        })

    return _make


# ── Convenience fixtures ─────────────────────────────────────────────────


@pytest.fixture()
def member(make_member):
    return make_member("Alex Rigger")


@pytest.fixture()
def officer(make_member):
    return make_member("Training Officer", role_names=("training_officer",))


@pytest.fixture()
def other_officer(make_member):
    return make_member("Deputy Officer", role_names=("training_officer",))


@pytest.fixture()
def skill(make_skill):
    return make_skill("Rigging")


@pytest.fixture()
def workflow(app):
    return app.extensions["proposal_workflow"]


@pytest.fixture()
def headers():
    """Factory: request headers naming a member as the acting member."""

    def _headers(member):
        return {"X-Member-Id": str(member.id)}

    return _headers


@pytest.fixture()
def make_proposal(workflow):
    """Factory: submit a proposal through the workflow."""

    def _make(member, skill, level=1, reasoning="Ready for the next level"):
        return workflow.submit(member, skill, level, reasoning)

    return _make
