import json
import logging
import sys

from app.logger import JsonFormatter


def _record(**extra) -> logging.LogRecord:
    record = logging.LogRecord(
        "app.services.entitlement", logging.INFO, __file__, 1, "usage %s", (3,), None
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_json_formatter_basic_fields():
    data = json.loads(JsonFormatter().format(_record()))
    assert data["level"] == "info"
    assert data["logger"] == "app.services.entitlement"
    assert data["message"] == "usage 3"
    assert "ts" in data


def test_json_formatter_carries_context():
    data = json.loads(
        JsonFormatter().format(_record(user_id="u-1", rows=4, unrelated="skip"))
    )
    assert data["user_id"] == "u-1"
    assert data["rows"] == 4
    assert "unrelated" not in data


def test_json_formatter_exception():
    try:
        raise RuntimeError("boom")
    except RuntimeError:
        record = logging.LogRecord("x", logging.ERROR, __file__, 1, "failed", None, sys.exc_info())
    data = json.loads(JsonFormatter().format(record))
    assert "RuntimeError: boom" in data["exc"]
