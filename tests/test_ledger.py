"""
Skill ledger unit tests.

Tests cover:
  - level_of defaults to 0 for members with no row
  - raise_level creates the row lazily, raises, and never lowers
  - out-of-range levels are rejected
  - holder_count / levels_for_member / has_pending
"""
import pytest

from app.models import db
from app.models.skill import MemberSkill
from app.services import ledger, proposal_store


def test_level_of_defaults_to_zero(member, skill):
    assert ledger.level_of(member.id, skill.id) == 0


def test_raise_level_creates_row(member, skill):
    assert ledger.raise_level(member.id, skill.id, 2) is True
    db.session.commit()
    assert ledger.level_of(member.id, skill.id) == 2
    assert MemberSkill.query.filter_by(member_id=member.id, skill_id=skill.id).count() == 1


def test_raise_level_is_monotonic(member, skill):
    ledger.raise_level(member.id, skill.id, 3)
    db.session.commit()

    assert ledger.raise_level(member.id, skill.id, 1) is False
    assert ledger.raise_level(member.id, skill.id, 3) is False
    db.session.commit()
    assert ledger.level_of(member.id, skill.id) == 3


def test_raise_level_upgrades_existing_row(member, skill):
    ledger.raise_level(member.id, skill.id, 1)
    db.session.commit()
    assert ledger.raise_level(member.id, skill.id, 2) is True
    db.session.commit()
    assert ledger.level_of(member.id, skill.id) == 2
    assert MemberSkill.query.filter_by(member_id=member.id).count() == 1


@pytest.mark.parametrize("bad", [0, 4, -1])
def test_raise_level_rejects_out_of_range(member, skill, bad):
    with pytest.raises(ValueError):
        ledger.raise_level(member.id, skill.id, bad)


def test_holder_count_counts_exact_level(make_member, skill):
    a, b, c = make_member(), make_member(), make_member()
    ledger.raise_level(a.id, skill.id, 1)
    ledger.raise_level(b.id, skill.id, 1)
    ledger.raise_level(c.id, skill.id, 2)
    db.session.commit()

    assert ledger.holder_count(skill.id, 1) == 2
    assert ledger.holder_count(skill.id, 2) == 1
    assert ledger.holder_count(skill.id, 3) == 0


def test_levels_for_member_skips_unheld(member, make_skill):
    held = make_skill("Sound")
    make_skill("Video")
    ledger.raise_level(member.id, held.id, 1)
    db.session.commit()

    rows = ledger.levels_for_member(member.id)
    assert [r.skill_id for r in rows] == [held.id]
    assert rows[0].to_dict()["level_name"] == "Level 1"


def test_has_pending(member, skill):
    assert ledger.has_pending(member.id, skill.id) is False
    proposal_store.create(member.id, skill.id, 1, "I can do it")
    db.session.commit()
    assert ledger.has_pending(member.id, skill.id) is True
