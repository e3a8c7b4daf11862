"""Tests for structured logging."""

import json
import logging

from applytrack.observability.logging import (
    ConsoleFormatter,
    JsonFormatter,
    LogContext,
    configure_logging,
    owner_id_var,
)


def _record(message: str = "Cache hit", **extra: object) -> logging.LogRecord:
    record = logging.LogRecord(
        name="applytrack.cache.fetcher",
        level=logging.INFO,
        pathname=__file__,
        lineno=10,
        msg=message,
        args=(),
        exc_info=None,
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestJsonFormatter:
    """Test JSON output."""

    def test_basic_fields(self) -> None:
        """Output is JSON with the standard fields."""
        data = json.loads(JsonFormatter().format(_record()))
        assert data["level"] == "INFO"
        assert data["logger"] == "applytrack.cache.fetcher"
        assert data["message"] == "Cache hit"

    def test_context_included(self) -> None:
        """Owner and cache key context are added."""
        with LogContext(owner_id="u1", cache_key="user_u1_resumes"):
            data = json.loads(JsonFormatter().format(_record()))
        assert data["owner_id"] == "u1"
        assert data["cache_key"] == "user_u1_resumes"

    def test_extra_fields(self) -> None:
        """Extra record attributes are copied."""
        data = json.loads(JsonFormatter().format(_record(entity="applications")))
        assert data["entity"] == "applications"


class TestConsoleFormatter:
    """Test console output."""

    def test_owner_suffix(self) -> None:
        """Owner context is appended."""
        formatter = ConsoleFormatter(use_colors=False)
        with LogContext(owner_id="u1"):
            line = formatter.format(_record())
        assert "Cache hit" in line
        assert line.endswith("owner=u1")


class TestLogContext:
    """Test context propagation."""

    def test_restores_previous_value(self) -> None:
        """Leaving the context resets the variable."""
        with LogContext(owner_id="u1"):
            with LogContext(owner_id="u2"):
                assert owner_id_var.get() == "u2"
            assert owner_id_var.get() == "u1"
        assert owner_id_var.get() == ""

    def test_unknown_keys_ignored(self) -> None:
        """Names without a context variable are skipped."""
        with LogContext(tenant="t1"):
            pass


class TestConfigureLogging:
    """Test root logger setup."""

    def test_json_handler_installed(self) -> None:
        """configure_logging installs one handler with the chosen formatter."""
        root = logging.getLogger()
        saved_handlers, saved_level = root.handlers[:], root.level
        try:
            configure_logging(json_format=True, level="DEBUG")
            assert root.level == logging.DEBUG
            assert len(root.handlers) == 1
            assert isinstance(root.handlers[0].formatter, JsonFormatter)
        finally:
            root.handlers[:] = saved_handlers
            root.setLevel(saved_level)
