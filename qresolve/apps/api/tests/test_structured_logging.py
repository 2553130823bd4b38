"""Tests for structured logging with request context.

Every log line carries request_id, user_id and org_id when they are known,
and never carries tokens or email addresses in plain text.
"""

import json
import logging
from io import StringIO

import pytest

from qresolve_api.context import org_id_var, request_id_var, user_id_var
from qresolve_api.utils.logging import JSONFormatter, configure_json_logging


@pytest.fixture
def json_stream():
    """Logger writing JSON lines into a StringIO."""
    logger = logging.getLogger("test_qresolve_json")
    logger.setLevel(logging.INFO)
    logger.handlers.clear()
    logger.propagate = False

    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(JSONFormatter())
    logger.addHandler(handler)

    request_id_var.set("")
    user_id_var.set("")
    org_id_var.set("")
    yield logger, stream
    request_id_var.set("")
    user_id_var.set("")
    org_id_var.set("")


def _last(stream: StringIO) -> dict:
    return json.loads(stream.getvalue().strip().split("\n")[-1])


def test_json_formatter_includes_context_vars(json_stream) -> None:
    logger, stream = json_stream
    request_id_var.set("req_123")
    user_id_var.set("user_abc")
    org_id_var.set("org_xyz")

    logger.info("Test message")

    log_data = _last(stream)
    assert log_data["message"] == "Test message"
    assert log_data["request_id"] == "req_123"
    assert log_data["user_id"] == "user_abc"
    assert log_data["org_id"] == "org_xyz"


def test_json_formatter_handles_missing_context(json_stream) -> None:
    logger, stream = json_stream

    logger.info("Background message")

    log_data = _last(stream)
    assert "user_id" not in log_data
    assert "org_id" not in log_data


def test_extra_fields_included(json_stream) -> None:
    logger, stream = json_stream

    logger.info(
        "Organization bootstrap left orphaned rows",
        extra={"event": "bootstrap.partial_failure", "orphaned": {"organization": "org-1"}},
    )

    log_data = _last(stream)
    assert log_data["event"] == "bootstrap.partial_failure"
    assert log_data["orphaned"] == {"organization": "org-1"}


def test_sensitive_extra_fields_redacted(json_stream) -> None:
    logger, stream = json_stream

    logger.info(
        "auth.login.attempt",
        extra={
            "email": "jane@acme.test",
            "payload": {"access_token": "jwt-abc", "name": "Boiler"},
            "header": "Bearer eyJhbGciOi.eyJzdWIi.c2lnbmF0dXJl",
        },
    )

    raw = stream.getvalue()
    assert "jane@acme.test" not in raw
    assert "jwt-abc" not in raw
    assert "eyJhbGciOi" not in raw
    log_data = _last(stream)
    assert log_data["email"] == "[REDACTED]"
    assert log_data["payload"] == {"access_token": "[REDACTED]", "name": "Boiler"}


def test_exception_info_included(json_stream) -> None:
    logger, stream = json_stream

    try:
        raise ValueError("Test exception for logging")
    except ValueError:
        logger.error("Exception occurred", exc_info=True)

    log_data = _last(stream)
    assert "ValueError: Test exception for logging" in log_data["exc_info"]
    assert "Traceback" in log_data["exc_info"]


def test_configure_json_logging_sets_json_formatter() -> None:
    root_logger = logging.getLogger()
    saved_handlers, saved_level = root_logger.handlers[:], root_logger.level
    try:
        configure_json_logging(log_level="INFO")

        assert len(root_logger.handlers) == 1
        assert isinstance(root_logger.handlers[0].formatter, JSONFormatter)
    finally:
        root_logger.handlers[:] = saved_handlers
        root_logger.setLevel(saved_level)


def test_request_completion_logged_with_redacted_query(client, owner, caplog) -> None:
    caplog.set_level(logging.INFO, logger="qresolve_api.main")

    client.get(f"/v1/dashboard?access_token={owner['token']}&page=2", headers=owner["headers"])

    records = [r for r in caplog.records if r.getMessage() == "http.request.completed"]
    assert records, "Every HTTP request must emit http.request.completed"
    record = records[-1]
    assert record.path == "/v1/dashboard"
    assert record.status_code == 200
    assert record.query == {"access_token": "[REDACTED]", "page": "2"}
    assert owner["token"] not in caplog.text
