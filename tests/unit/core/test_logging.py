"""Tests for logging configuration."""

from __future__ import annotations

import logging
import tempfile
from pathlib import Path

import structlog

from inbox_automation.core.logging import configure_logging


class TestConfigureLogging:
    """Tests for configure_logging function."""

    def teardown_method(self) -> None:
        structlog.reset_defaults()
        logging.getLogger("inbox_automation").handlers.clear()

    def test_sets_level_and_console_handler(self) -> None:
        """Test package logger level and console handler."""
        configure_logging(log_level="DEBUG")

        logger = logging.getLogger("inbox_automation")
        assert logger.level == logging.DEBUG
        assert len(logger.handlers) == 1
        assert isinstance(logger.handlers[0], logging.StreamHandler)

    def test_unknown_level_defaults_to_info(self) -> None:
        """Test unknown level names fall back to INFO."""
        configure_logging(log_level="CHATTY")

        assert logging.getLogger("inbox_automation").level == logging.INFO

    def test_file_logging(self) -> None:
        """Test rotating file handler writes to the log directory."""
        with tempfile.TemporaryDirectory() as tmpdir:
            log_dir = Path(tmpdir)
            configure_logging(file_logging=True, log_dir=log_dir, log_file="test.log")

            logger = logging.getLogger("inbox_automation")
            assert len(logger.handlers) == 2

            logger.info("Test message")
            assert (log_dir / "test.log").exists()

            for handler in logger.handlers:
                handler.close()

    def test_reconfigure_does_not_duplicate_handlers(self) -> None:
        """Test calling twice keeps one console handler."""
        configure_logging()
        configure_logging()

        assert len(logging.getLogger("inbox_automation").handlers) == 1

    def test_quiets_http_loggers(self) -> None:
        """Test third-party HTTP loggers are raised to WARNING."""
        configure_logging()

        assert logging.getLogger("httpx").level == logging.WARNING
        assert logging.getLogger("httpcore").level == logging.WARNING

    def test_console_renderer(self) -> None:
        """Test non-JSON configuration still yields a usable logger."""
        configure_logging(json_format=False)

        log = structlog.get_logger("inbox_automation.test")
        log.info("console_event", key="value")
