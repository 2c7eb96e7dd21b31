"""Tests for log redaction and JSON formatting."""

from __future__ import annotations

import json
import logging
from io import StringIO

from playex.core.logging import (
    JsonFormatter,
    RequestIdFilter,
    SensitiveDataFilter,
    clear_request_id,
    set_request_id,
)


def _capture(name: str) -> tuple[logging.Logger, StringIO]:
    logger = logging.getLogger(name)
    logger.setLevel(logging.INFO)
    logger.handlers.clear()
    logger.propagate = False

    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.addFilter(RequestIdFilter())
    handler.addFilter(SensitiveDataFilter())
    handler.setFormatter(JsonFormatter())
    logger.addHandler(handler)
    return logger, stream


def test_sensitive_filter_redacts_client_identity():
    logger, stream = _capture("test_redaction")

    logger.info(
        "rate_limit.exceeded",
        extra={
            "client_key": "203.0.113.7",
            "authorization": "Bearer abc",
            "key_hash": "9f86d081884c7d65",
        },
    )

    output = stream.getvalue()
    assert "203.0.113.7" not in output
    assert "Bearer abc" not in output
    assert "[REDACTED]" in output
    assert "9f86d081884c7d65" in output


def test_sensitive_filter_redacts_nested_headers():
    logger, stream = _capture("test_nested")

    logger.info(
        "request_headers",
        extra={
            "headers": {
                "Cookie": "session=secret",
                "X-Forwarded-For": "198.51.100.1",
                "user-agent": "pytest",
            },
        },
    )

    output = stream.getvalue()
    assert "session=secret" not in output
    assert "198.51.100.1" not in output
    assert "pytest" in output


def test_json_formatter_emits_one_object_with_extras():
    logger, stream = _capture("test_json")

    logger.warning("rate_limit.exceeded", extra={"limit": 5, "retry_after_s": 8})

    record = json.loads(stream.getvalue())
    assert record["level"] == "warning"
    assert record["logger"] == "test_json"
    assert record["message"] == "rate_limit.exceeded"
    assert record["limit"] == 5
    assert record["retry_after_s"] == 8


def test_request_id_from_context_is_attached():
    logger, stream = _capture("test_request_id")

    set_request_id("req-123")
    try:
        logger.info("with_context")
    finally:
        clear_request_id()

    assert json.loads(stream.getvalue())["request_id"] == "req-123"
