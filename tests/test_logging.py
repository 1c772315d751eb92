"""Tests for logging configuration."""

import json
import logging
import sys
from unittest.mock import patch

from agrisearch.config import Environment, Settings
from agrisearch.logging_config import (
    DevFormatter,
    JSONFormatter,
    get_logger,
    setup_logging,
)


def _record(
    msg: str = "Test message",
    level: int = logging.INFO,
    name: str = "test",
    **extra: object,
) -> logging.LogRecord:
    record = logging.LogRecord(
        name=name,
        level=level,
        pathname="/app/module.py",
        lineno=42,
        msg=msg,
        args=(),
        exc_info=None,
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestJSONFormatter:
    """Tests for JSON log formatter."""

    def test_format_basic_message(self) -> None:
        """Basic log message is formatted as JSON."""
        data = json.loads(JSONFormatter().format(_record()))

        assert data["level"] == "INFO"
        assert data["logger"] == "test"
        assert data["message"] == "Test message"
        assert data["file"] == "/app/module.py:42"
        assert "timestamp" in data
        assert "context" not in data

    def test_extra_fields_become_context(self) -> None:
        """Fields passed via extra= are grouped under context."""
        record = _record(user_id="user-1", dimensions=384)
        data = json.loads(JSONFormatter().format(record))

        assert data["context"] == {"user_id": "user-1", "dimensions": 384}

    def test_format_with_exception(self) -> None:
        """Exception info is included in output."""
        try:
            raise ValueError("test error")
        except ValueError:
            exc_info = sys.exc_info()

        record = _record(level=logging.ERROR)
        record.exc_info = exc_info
        data = json.loads(JSONFormatter().format(record))

        assert "ValueError" in data["exception"]


class TestDevFormatter:
    """Tests for development formatter."""

    def test_format_includes_level(self) -> None:
        """Development format includes level, logger and message."""
        output = DevFormatter().format(
            _record("Warning message", level=logging.WARNING, name="test.module")
        )

        assert "WARNING" in output
        assert "test.module" in output
        assert "Warning message" in output

    def test_context_appended(self) -> None:
        """Extra fields are appended as sorted key=value pairs."""
        output = DevFormatter().format(_record(backend="local", state="ready"))

        assert output.endswith("| backend=local state=ready")


class TestSetupLogging:
    """Tests for logging setup."""

    def test_returns_root_logger(self) -> None:
        """setup_logging returns root logger."""
        logger = setup_logging(level="INFO", json_output=False)
        assert logger is logging.getLogger()

    def test_uses_json_in_production(self) -> None:
        """JSON output is used in production environment."""
        mock_settings = Settings(environment=Environment.PRODUCTION)

        with patch("agrisearch.logging_config.get_settings", return_value=mock_settings):
            setup_logging()

        root = logging.getLogger()
        assert len(root.handlers) == 1
        assert isinstance(root.handlers[0].formatter, JSONFormatter)

    def test_uses_dev_formatter_in_development(self) -> None:
        """Dev formatter is used in development environment."""
        mock_settings = Settings(environment=Environment.DEVELOPMENT)

        with patch("agrisearch.logging_config.get_settings", return_value=mock_settings):
            setup_logging()

        root = logging.getLogger()
        assert isinstance(root.handlers[0].formatter, DevFormatter)

    def test_level_override(self) -> None:
        """Log level can be overridden."""
        setup_logging(level="DEBUG", json_output=False)
        assert logging.getLogger().level == logging.DEBUG

    def test_noisy_loggers_quieted(self) -> None:
        """Third-party loggers are capped at WARNING."""
        setup_logging(level="DEBUG", json_output=False)
        assert logging.getLogger("httpx").level == logging.WARNING
        assert logging.getLogger("qdrant_client").level == logging.WARNING


class TestGetLogger:
    """Tests for named logger retrieval."""

    def test_returns_named_logger(self) -> None:
        """get_logger returns a logger with the given name."""
        logger = get_logger("agrisearch.module")
        assert logger.name == "agrisearch.module"
