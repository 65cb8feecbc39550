"""Test structured logging configuration."""

import io
import json
import logging

import pytest
import structlog

from frcore_bridge.utils.logging import (
    build_formatter,
    get_logger,
    render_processor,
    setup_logging,
)


@pytest.fixture
def restore_logging():
    """Put structlog and the root logger back after the test."""
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    structlog.reset_defaults()
    root.handlers = handlers
    root.setLevel(level)


@pytest.fixture
def json_stream(monkeypatch, restore_logging):
    """Configure JSON logging and capture one logger tree into a buffer."""
    monkeypatch.setenv("FRCORE_LOG_FORMAT", "json")
    setup_logging()

    stream = io.StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(build_formatter())
    target = logging.getLogger("frcore_bridge.test")
    target.setLevel(logging.DEBUG)
    target.propagate = False
    target.addHandler(handler)
    yield stream
    target.removeHandler(handler)
    target.propagate = True


def last_event(stream):
    """Decode the last JSON line written."""
    return json.loads(stream.getvalue().splitlines()[-1])


class TestLoggingSetup:
    """Test logging configuration."""

    def test_console_renderer_by_default(self, monkeypatch):
        """Test the default renderer."""
        monkeypatch.delenv("FRCORE_LOG_FORMAT", raising=False)
        assert isinstance(render_processor(), structlog.dev.ConsoleRenderer)

    def test_json_renderer(self, monkeypatch):
        """Test the JSON renderer."""
        monkeypatch.setenv("FRCORE_LOG_FORMAT", "json")
        assert isinstance(render_processor(), structlog.processors.JSONRenderer)

    def test_root_handler_installed(self, monkeypatch, restore_logging):
        """Test that setup_logging installs one formatted root handler."""
        monkeypatch.setenv("FRCORE_LOG_LEVEL", "warning")
        setup_logging()
        root = logging.getLogger()
        assert len(root.handlers) == 1
        assert isinstance(root.handlers[0].formatter, structlog.stdlib.ProcessorFormatter)
        assert root.level == logging.WARNING

    def test_json_events(self, json_stream):
        """Test that structlog events are rendered as JSON lines."""
        get_logger("frcore_bridge.test").info(
            "conversion_completed", message_type="ADT^A01", entries=9
        )

        event = last_event(json_stream)
        assert event["event"] == "conversion_completed"
        assert event["message_type"] == "ADT^A01"
        assert event["entries"] == 9
        assert event["level"] == "info"
        assert event["logger"] == "frcore_bridge.test"

    def test_stdlib_records_share_the_format(self, json_stream):
        """Test that module loggers render like structlog events."""
        logging.getLogger("frcore_bridge.test.builders").info(
            "Built Patient with %d identifier(s)", 2
        )

        event = last_event(json_stream)
        assert event["event"] == "Built Patient with 2 identifier(s)"
        assert event["level"] == "info"
        assert event["logger"] == "frcore_bridge.test.builders"
        assert "timestamp" in event
