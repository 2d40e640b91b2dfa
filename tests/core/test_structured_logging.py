"""Tests for structured (JSON) logging output.

The log pipeline filters on top-level keys (student_id, warning_code), so
the JSON shape is part of the contract.
"""

from __future__ import annotations

import json
import logging
import sys

from learning_analytics.core.logging import _ContainerFormatter, _JsonFormatter


def _record(msg: str = "test message", level: int = logging.INFO, **extra) -> logging.LogRecord:
    record = logging.LogRecord(
        name="test.logger",
        level=level,
        pathname="test.py",
        lineno=42,
        msg=msg,
        args=(),
        exc_info=None,
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_json_formatter_produces_valid_json() -> None:
    formatter = _JsonFormatter()
    record = logging.LogRecord(
        name="test.logger",
        level=logging.INFO,
        pathname="test.py",
        lineno=42,
        msg="Hello %s",
        args=("world",),
        exc_info=None,
    )
    parsed = json.loads(formatter.format(record))
    assert parsed["level"] == "INFO"
    assert parsed["logger"] == "test.logger"
    assert parsed["message"] == "Hello world"
    assert "timestamp" in parsed


def test_json_formatter_includes_request_fields() -> None:
    record = _record(request_id="abc-123", method="GET", path="/health", duration_ms=12.5)
    parsed = json.loads(_JsonFormatter().format(record))
    assert parsed["request_id"] == "abc-123"
    assert parsed["method"] == "GET"
    assert parsed["path"] == "/health"
    assert parsed["duration_ms"] == 12.5


def test_json_formatter_includes_engine_fields() -> None:
    record = _record(
        "lesson not in catalog",
        level=logging.WARNING,
        student_id="s-1",
        lesson_id="ghost",
        warning_code="DANGLING_REFERENCE",
    )
    parsed = json.loads(_JsonFormatter().format(record))
    assert parsed["student_id"] == "s-1"
    assert parsed["lesson_id"] == "ghost"
    assert parsed["warning_code"] == "DANGLING_REFERENCE"
    assert "course_id" not in parsed


def test_json_formatter_ignores_unknown_extras() -> None:
    parsed = json.loads(_JsonFormatter().format(_record(password="hunter2")))
    assert "password" not in parsed


def test_json_formatter_includes_exception_info() -> None:
    formatter = _JsonFormatter()
    try:
        raise ValueError("test error")
    except ValueError:
        record = logging.LogRecord(
            name="test",
            level=logging.ERROR,
            pathname="test.py",
            lineno=1,
            msg="Something failed",
            args=(),
            exc_info=sys.exc_info(),
        )
        output = formatter.format(record)

    parsed = json.loads(output)
    assert "ValueError: test error" in parsed["exception"]


def test_container_formatter_is_not_json() -> None:
    record = logging.LogRecord(
        name="learning_analytics.main",
        level=logging.INFO,
        pathname="main.py",
        lineno=10,
        msg="server started",
        args=(),
        exc_info=None,
    )
    output = _ContainerFormatter().format(record)
    assert "INFO" in output
    assert "learning_analytics.main" in output
    assert "server started" in output
    try:
        json.loads(output)
    except json.JSONDecodeError:
        return
    raise AssertionError("Container format should not be valid JSON")
