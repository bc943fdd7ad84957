"""Log formatter and request-context filter tests."""

import json
import logging

from flask import g

from readiness.middleware.logging_config import JSONFormatter, ReadableFormatter, RequestContextFilter
from readiness.services.authority import Actor


def _record(msg="Unit 3 status RED → GREEN", **extra):
    record = logging.LogRecord("readiness.services.unit_service", logging.INFO, __file__, 10,
                               msg, None, None)
    for k, v in extra.items():
        setattr(record, k, v)
    return record


def test_json_formatter_nests_context():
    line = JSONFormatter().format(_record(unit_id=3, event_type="status_computed"))
    entry = json.loads(line)
    assert entry["level"] == "INFO"
    assert entry["msg"].startswith("Unit 3")
    assert entry["ctx"] == {"unit_id": 3, "event_type": "status_computed"}


def test_json_formatter_without_context():
    entry = json.loads(JSONFormatter().format(_record()))
    assert "ctx" not in entry


def test_readable_formatter_tags():
    line = ReadableFormatter().format(_record(unit_id=3, actor_role="WORKSTREAM_LEAD"))
    assert "unit=3" in line
    assert "role=WORKSTREAM_LEAD" in line


def test_filter_stamps_request_id_and_actor(app):
    with app.test_request_context("/api/v1/units/1"):
        g.request_id = "req-42"
        g.actor = Actor("lead-1", "WORKSTREAM_LEAD")
        record = _record()
        assert RequestContextFilter().filter(record) is True
    assert record.request_id == "req-42"
    assert record.actor_id == "lead-1"
    assert record.actor_role == "WORKSTREAM_LEAD"


def test_filter_outside_request_leaves_record():
    record = _record()
    RequestContextFilter().filter(record)
    assert getattr(record, "request_id", None) is None
