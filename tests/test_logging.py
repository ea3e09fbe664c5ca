"""Tests for logging configuration and the events emitted by core components."""

from __future__ import annotations

import json
import logging
from io import StringIO

import pytest
import structlog
from structlog.testing import capture_logs

from pagecore.logging import configure_logging
from pagecore.registry import ResourceRegistry


@pytest.fixture
def restore_logging():
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    structlog.reset_defaults()
    root.handlers[:] = handlers
    root.setLevel(level)


def test_configure_logging_renders_json(restore_logging) -> None:
    stream = StringIO()
    logging.getLogger().handlers.clear()
    configure_logging([logging.StreamHandler(stream)])

    structlog.get_logger("pagecore.test").info("load.resolved", key="ru", source="primary")

    record = json.loads(stream.getvalue().strip().splitlines()[-1])
    assert record["event"] == "load.resolved"
    assert record["key"] == "ru"
    assert record["level"] == "info"
    assert "timestamp" in record


def test_dispose_failure_is_logged() -> None:
    registry = ResourceRegistry()

    def broken() -> None:
        raise OSError("handle closed")

    registry.register(broken, "timeout")

    with capture_logs() as logs:
        report = registry.cleanup()

    assert not report.ok
    events = [entry["event"] for entry in logs]
    assert "registry.dispose_failed" in events
    failed = next(entry for entry in logs if entry["event"] == "registry.dispose_failed")
    assert failed["kind"] == "timeout"
    assert failed["error_type"] == "OSError"


def test_configure_logging_is_exported() -> None:
    import pagecore

    assert pagecore.configure_logging is configure_logging
    assert "configure_logging" in pagecore.__all__
