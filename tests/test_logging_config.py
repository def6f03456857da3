"""Tests for logging configuration and formatters."""

import json
import logging
import sys
from datetime import datetime, timezone

import pytest

from campus2career.logging import ComponentLoggerAdapter, get_logger
from campus2career.logging.config import (
    ContextualFilter,
    JSONFormatter,
    KeyValueFormatter,
    configure_logging,
)
from campus2career.logging.context import clear_log_context, log_context


@pytest.fixture(autouse=True)
def clean_context():
    """Clear logging context before and after each test."""
    clear_log_context()
    yield
    clear_log_context()


@pytest.fixture
def logger():
    test_logger = logging.getLogger("test_logger")
    test_logger.setLevel(logging.DEBUG)
    test_logger.handlers.clear()
    yield test_logger
    test_logger.handlers.clear()


@pytest.fixture
def restore_root_logger():
    """configure_logging replaces root handlers; put pytest's back afterwards."""
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield root
    root.handlers[:] = handlers
    root.setLevel(level)


def make_record(logger, message="Test message", extra=None, level=logging.INFO):
    return logger.makeRecord("campus2career.test", level, "test.py", 1, message, (), None, extra=extra)


def test_json_formatter_basic(logger):
    log_obj = json.loads(JSONFormatter().format(make_record(logger)))

    assert log_obj["level"] == "INFO"
    assert log_obj["message"] == "Test message"
    assert log_obj["logger"] == "campus2career.test"
    assert log_obj["timestamp"].endswith("Z")


def test_json_formatter_with_extra_fields(logger):
    record = make_record(
        logger,
        extra={
            "event": "reconciler.submit.completed",
            "count": 42,
            "flag": True,
            "reviewed_at": datetime(2026, 3, 1, 10, 30, tzinfo=timezone.utc),
            "error": ValueError("boom"),
        },
    )

    log_obj = json.loads(JSONFormatter().format(record))

    assert log_obj["event"] == "reconciler.submit.completed"
    assert log_obj["count"] == 42
    assert log_obj["flag"] is True
    assert log_obj["reviewed_at"] == "2026-03-01T10:30:00+00:00"
    assert log_obj["error"] == "boom"


def test_json_formatter_includes_exception(logger):
    try:
        raise RuntimeError("marketplace down")
    except RuntimeError:
        record = logger.makeRecord("test", logging.ERROR, "test.py", 1, "Failed", (), sys.exc_info())

    log_obj = json.loads(JSONFormatter().format(record))

    assert "RuntimeError: marketplace down" in log_obj["exc_info"]


def test_json_timestamp_has_millisecond_precision(logger):
    record = make_record(logger)
    record.created = datetime(2026, 3, 1, 10, 30, 0, 123456, tzinfo=timezone.utc).timestamp()

    log_obj = json.loads(JSONFormatter().format(record))

    assert log_obj["timestamp"] == "2026-03-01T10:30:00.123Z"


def test_contextual_filter_adds_static_fields(logger):
    record = make_record(logger)

    assert ContextualFilter(service="campus2career", environment="test").filter(record) is True
    assert record.service == "campus2career"
    assert record.environment == "test"


def test_contextual_filter_adds_context_fields(logger):
    with log_context(application_id="app_1", transaction_id="tx-1"):
        record = make_record(logger)
        ContextualFilter().filter(record)

    assert record.application_id == "app_1"
    assert record.transaction_id == "tx-1"


def test_contextual_filter_explicit_extra_wins(logger):
    with log_context(application_id="from-context"):
        record = make_record(logger, extra={"application_id": "explicit"})
        ContextualFilter().filter(record)

    assert record.application_id == "explicit"


def test_key_value_formatter_appends_sorted_fields(logger):
    formatter = KeyValueFormatter("%(levelname)s %(message)s")
    record = make_record(
        logger,
        extra={"event": "mail.send.failed", "reason": "timed out", "retryable": True, "smtp_code": None},
    )
    record.service = "campus2career"
    record.environment = "test"

    output = formatter.format(record)

    assert output == 'INFO Test message event=mail.send.failed reason="timed out" retryable=true smtp_code=null'


def test_key_value_formatter_without_fields(logger):
    assert KeyValueFormatter("%(message)s").format(make_record(logger)) == "Test message"


def test_component_logger_adapter_merges_extra(caplog):
    adapter = get_logger("campus2career.test.component", component="reconciler")
    assert isinstance(adapter, ComponentLoggerAdapter)

    with caplog.at_level(logging.INFO, logger="campus2career.test.component"):
        adapter.info("Submitted", extra={"event": "reconciler.submit.completed"})
        adapter.info("Overridden", extra={"component": "tasks"})

    first, second = caplog.records
    assert first.component == "reconciler"
    assert first.event == "reconciler.submit.completed"
    assert second.component == "tasks"


def test_get_logger_without_component_returns_plain_logger():
    assert isinstance(get_logger("campus2career.test.plain"), logging.Logger)


def test_configure_logging_invalid_level():
    with pytest.raises(ValueError, match="Invalid log level"):
        configure_logging(level="INVALID")


def test_configure_logging_invalid_format():
    with pytest.raises(ValueError, match="Invalid log format"):
        configure_logging(format_type="xml")


@pytest.mark.parametrize("format_type,formatter_cls", [("json", JSONFormatter), ("key-value", KeyValueFormatter)])
def test_configure_logging_installs_single_handler(restore_root_logger, format_type, formatter_cls):
    configure_logging(level="debug", format_type=format_type, environment="test")

    root = restore_root_logger
    assert root.level == logging.DEBUG
    assert len(root.handlers) == 1
    handler = root.handlers[0]
    assert isinstance(handler.formatter, formatter_cls)
    [contextual] = [f for f in handler.filters if isinstance(f, ContextualFilter)]
    assert contextual.environment == "test"


def test_configure_logging_routes_uvicorn_through_root(restore_root_logger):
    uvicorn_logger = logging.getLogger("uvicorn.error")
    uvicorn_logger.addHandler(logging.NullHandler())
    uvicorn_logger.propagate = False

    configure_logging(level="INFO")

    assert uvicorn_logger.handlers == []
    assert uvicorn_logger.propagate is True
