"""
Tests for logging configuration module.

Tests cover:
- Log directory and file creation
- Log level configuration via environment variables
- Per-module logger naming
- Log rotation settings
- Optional rich console handler
"""

import logging
from logging.handlers import RotatingFileHandler

import pytest
from rich.logging import RichHandler

from fractaltask.logging_config import (
    BACKUP_COUNT,
    MAX_BYTES,
    get_logger,
    setup_logging,
)


@pytest.fixture
def mock_log_dir(tmp_path, monkeypatch):
    """Point LOG_DIR and LOG_FILE at a temporary directory."""
    log_dir = tmp_path / ".fractaltask" / "logs"
    log_file = log_dir / "fractaltask.log"

    monkeypatch.setattr("fractaltask.logging_config.LOG_DIR", log_dir)
    monkeypatch.setattr("fractaltask.logging_config.LOG_FILE", log_file)
    monkeypatch.delenv("FRACTALTASK_LOG_LEVEL", raising=False)

    return log_dir, log_file


@pytest.fixture(autouse=True)
def reset_logging():
    """Reset logging handlers before and after each test."""
    root_logger = logging.getLogger()
    saved_handlers = root_logger.handlers[:]
    saved_level = root_logger.level
    root_logger.handlers.clear()

    yield

    for handler in root_logger.handlers:
        handler.close()
    root_logger.handlers[:] = saved_handlers
    root_logger.setLevel(saved_level)


def _flush():
    for handler in logging.getLogger().handlers:
        handler.flush()


class TestLogFileSetup:
    """Test suite for log directory and file creation."""

    def test_log_directory_created_automatically(self, mock_log_dir):
        """Test that log directory is created if it doesn't exist."""
        log_dir, _ = mock_log_dir
        assert not log_dir.exists()

        setup_logging()

        assert log_dir.is_dir()

    def test_log_messages_written_to_file(self, mock_log_dir):
        """Test that log records end up in the file with the expected format."""
        _, log_file = mock_log_dir
        setup_logging()

        get_logger("fractaltask.test_module").info("hello from the test")
        _flush()

        content = log_file.read_text(encoding="utf-8")
        assert "fractaltask.test_module - INFO - hello from the test" in content

    def test_setup_twice_does_not_duplicate_handlers(self, mock_log_dir):
        """Test that repeated setup replaces handlers."""
        setup_logging()
        setup_logging()

        assert len(logging.getLogger().handlers) == 1


class TestPerModuleLogger:
    """Test suite for get_logger."""

    def test_logger_name_matches_provided_name(self):
        """Test that logger name matches the name passed in."""
        assert get_logger("fractaltask.services.task_engine").name == "fractaltask.services.task_engine"

    def test_same_module_gets_same_logger(self):
        """Test that the same name returns the same logger."""
        assert get_logger("fractaltask.x") is get_logger("fractaltask.x")


class TestLogLevelConfiguration:
    """Test suite for log level configuration."""

    def test_default_log_level_is_info(self, mock_log_dir):
        """Test INFO is the default level."""
        setup_logging()
        assert logging.getLogger().level == logging.INFO

    def test_env_var_sets_level(self, mock_log_dir, monkeypatch):
        """Test FRACTALTASK_LOG_LEVEL, case-insensitive."""
        monkeypatch.setenv("FRACTALTASK_LOG_LEVEL", "debug")
        setup_logging()
        assert logging.getLogger().level == logging.DEBUG

    def test_invalid_log_level_defaults_to_info(self, mock_log_dir, monkeypatch):
        """Test that an unknown level falls back to INFO."""
        monkeypatch.setenv("FRACTALTASK_LOG_LEVEL", "CHATTY")
        setup_logging()
        assert logging.getLogger().level == logging.INFO

    def test_parameter_overrides_env_var(self, mock_log_dir, monkeypatch):
        """Test that an explicit level wins over the environment."""
        monkeypatch.setenv("FRACTALTASK_LOG_LEVEL", "DEBUG")
        setup_logging(log_level="error")
        assert logging.getLogger().level == logging.ERROR

    def test_info_level_filters_debug_messages(self, mock_log_dir):
        """Test that DEBUG records are dropped at INFO."""
        _, log_file = mock_log_dir
        setup_logging(log_level="INFO")

        get_logger("fractaltask.quiet").debug("should not appear")
        _flush()

        assert "should not appear" not in log_file.read_text(encoding="utf-8")


class TestHandlers:
    """Test suite for handler configuration."""

    def test_rotating_file_handler_configured(self, mock_log_dir):
        """Test rotation limits on the file handler."""
        setup_logging()

        handlers = [h for h in logging.getLogger().handlers if isinstance(h, RotatingFileHandler)]
        assert len(handlers) == 1
        assert handlers[0].maxBytes == MAX_BYTES
        assert handlers[0].backupCount == BACKUP_COUNT

    def test_console_handler_is_optional(self, mock_log_dir):
        """Test the rich console handler for verbose mode."""
        setup_logging()
        assert not any(isinstance(h, RichHandler) for h in logging.getLogger().handlers)

        setup_logging(use_console_handler=True)
        assert any(isinstance(h, RichHandler) for h in logging.getLogger().handlers)
