"""Unit tests for logging setup."""

import json
import logging

from compsync.logging_config import build_json_formatter, configure_logging


def _record(message, *args, level=logging.INFO):
    return logging.LogRecord(
        name="compsync.sync.stages",
        level=level,
        pathname=__file__,
        lineno=1,
        msg=message,
        args=args,
        exc_info=None,
    )


class TestJsonFormatter:
    """Tests for the structlog JSON formatter."""

    def test_renders_one_json_object(self):
        line = build_json_formatter().format(_record("Synced %d players", 12))

        payload = json.loads(line)
        assert payload["event"] == "Synced 12 players"
        assert payload["level"] == "info"
        assert payload["logger"] == "compsync.sync.stages"
        assert payload["timestamp"].startswith("20")

    def test_level_names(self):
        line = build_json_formatter().format(_record("boom", level=logging.ERROR))

        assert json.loads(line)["level"] == "error"


class TestConfigureLogging:
    """Tests for configure_logging."""

    def teardown_method(self):
        logging.basicConfig(level=logging.WARNING, force=True)

    def test_json_format_installs_json_formatter(self):
        configure_logging(level="debug", log_format="json")

        root = logging.getLogger()
        (handler,) = root.handlers
        assert root.level == logging.DEBUG
        payload = json.loads(handler.formatter.format(_record("hello")))
        assert payload["event"] == "hello"

    def test_console_format(self):
        configure_logging(level="INFO", log_format="console")

        (handler,) = logging.getLogger().handlers
        line = handler.formatter.format(_record("hello"))
        assert "[INFO] compsync.sync.stages: hello" in line
