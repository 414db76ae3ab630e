"""
Tests for logging configuration module.

Tests cover:
- Log directory and file creation
- Log level selection via argument and environment variable
- Rotation settings
- Console output
"""

import logging
import sys
from logging.handlers import RotatingFileHandler

import pytest

from tasktree.logging_config import BACKUP_COUNT, MAX_BYTES, get_logger, setup_logging


@pytest.fixture
def log_paths(tmp_path, monkeypatch):
    """Point LOG_DIR and LOG_FILE at a temporary directory."""
    log_dir = tmp_path / ".tasktree" / "logs"
    log_file = log_dir / "tasktree.log"
    monkeypatch.setattr("tasktree.logging_config.LOG_DIR", log_dir)
    monkeypatch.setattr("tasktree.logging_config.LOG_FILE", log_file)
    monkeypatch.delenv("TASKTREE_LOG_LEVEL", raising=False)
    return log_dir, log_file


@pytest.fixture(autouse=True)
def reset_logging():
    """Reset root handlers before and after each test."""
    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.setLevel(logging.WARNING)

    yield

    for handler in root_logger.handlers:
        handler.close()
    root_logger.handlers.clear()
    root_logger.setLevel(logging.WARNING)


def flush():
    for handler in logging.getLogger().handlers:
        handler.flush()


class TestLogFile:
    """Tests for log directory and file handling."""

    def test_directory_created(self, log_paths):
        log_dir, _ = log_paths
        assert not log_dir.exists()

        setup_logging()

        assert log_dir.is_dir()

    def test_messages_written_with_format(self, log_paths):
        _, log_file = log_paths
        setup_logging()

        get_logger("tasktree.services.task_service").warning("Nesting limit reached")
        flush()

        content = log_file.read_text(encoding="utf-8")
        assert "tasktree.services.task_service - WARNING - Nesting limit reached" in content
        assert "Logging initialized: level=INFO" in content

    def test_rotation_settings(self, log_paths):
        setup_logging()

        handlers = [h for h in logging.getLogger().handlers if isinstance(h, RotatingFileHandler)]
        assert len(handlers) == 1
        assert handlers[0].maxBytes == MAX_BYTES == 10 * 1024 * 1024
        assert handlers[0].backupCount == BACKUP_COUNT == 5

    def test_no_duplicate_handlers(self, log_paths):
        setup_logging()
        setup_logging()

        assert len(logging.getLogger().handlers) == 1

    def test_exception_traceback_logged(self, log_paths):
        _, log_file = log_paths
        setup_logging()

        try:
            raise RuntimeError("commit failed")
        except RuntimeError:
            get_logger("tasktree.services.store").error("Batch commit failed", exc_info=True)
        flush()

        content = log_file.read_text(encoding="utf-8")
        assert "Traceback" in content
        assert "RuntimeError: commit failed" in content


class TestLogLevel:
    """Tests for log level selection."""

    def test_default_is_info(self, log_paths):
        setup_logging()
        assert logging.getLogger().level == logging.INFO

    def test_env_var(self, log_paths, monkeypatch):
        monkeypatch.setenv("TASKTREE_LOG_LEVEL", "debug")
        setup_logging()
        assert logging.getLogger().level == logging.DEBUG

    def test_argument_overrides_env_var(self, log_paths, monkeypatch):
        monkeypatch.setenv("TASKTREE_LOG_LEVEL", "DEBUG")
        setup_logging(log_level="ERROR")
        assert logging.getLogger().level == logging.ERROR

    def test_invalid_level_falls_back_to_info(self, log_paths):
        setup_logging(log_level="LOUD")
        assert logging.getLogger().level == logging.INFO

    def test_debug_filtered_at_info(self, log_paths):
        _, log_file = log_paths
        setup_logging()

        logger = get_logger("tasktree.board")
        logger.debug("hidden detail")
        logger.info("visible summary")
        flush()

        content = log_file.read_text(encoding="utf-8")
        assert "hidden detail" not in content
        assert "visible summary" in content


class TestConsole:
    def test_console_handler_added(self, log_paths):
        setup_logging(log_to_console=True)

        stream_handlers = [
            h for h in logging.getLogger().handlers
            if type(h) is logging.StreamHandler
        ]
        assert len(stream_handlers) == 1
        assert stream_handlers[0].stream is sys.stderr


class TestGetLogger:
    def test_named_logger(self):
        logger = get_logger("tasktree.database")
        assert isinstance(logger, logging.Logger)
        assert logger.name == "tasktree.database"
        assert get_logger("tasktree.database") is logger
