"""Structured logging formatter tests."""
import json
import logging

from app.middleware.logging_config import JSONFormatter, ReadableFormatter


def _record(**extra):
    record = logging.LogRecord("app.services.proposal_service", logging.INFO, __file__, 1,
                               "Proposal submitted id=%s", (7,), None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_json_formatter_lifts_workflow_ids():
    out = json.loads(JSONFormatter().format(_record(proposal_id=7, member_id=3, skill_id=2)))
    assert out["message"] == "Proposal submitted id=7"
    assert out["proposal_id"] == 7
    assert out["member_id"] == 3
    assert out["skill_id"] == 2
    assert "event_type" not in out


def test_readable_formatter_tags_context():
    line = ReadableFormatter().format(_record(proposal_id=7, member_id=3))
    assert "Proposal submitted id=7" in line
    assert "member=3" in line
    assert "proposal=7" in line
