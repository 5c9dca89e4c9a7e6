"""Tests for logging configuration."""

import logging

import pytest
import structlog
from orchestration.utils.logging import ERROR_LOG_FILE, LOG_FILE, configure_logging, get_log_level


@pytest.fixture()
def restore_logging(monkeypatch):
    monkeypatch.delenv("LOG_LEVEL", raising=False)
    monkeypatch.delenv("ENV", raising=False)
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers = handlers
    root.setLevel(level)
    structlog.reset_defaults()


class TestLogLevel:
    def test_level_follows_environment(self, restore_logging):
        assert get_log_level("production") == "INFO"
        assert get_log_level("development") == "DEBUG"
        assert get_log_level("test") == "WARNING"

    def test_unknown_environment_defaults_to_info(self, restore_logging):
        assert get_log_level("qa") == "INFO"

    def test_log_level_override(self, restore_logging, monkeypatch):
        monkeypatch.setenv("LOG_LEVEL", "debug")
        assert get_log_level("production") == "DEBUG"


class TestConfigureLogging:
    def test_installs_console_and_rotating_files(self, restore_logging, tmp_path):
        level = configure_logging("test", log_dir=tmp_path / "logs")

        assert level == "WARNING"
        root = logging.getLogger()
        assert root.level == logging.WARNING
        assert len(root.handlers) == 3
        assert (tmp_path / "logs" / LOG_FILE).exists()
        assert (tmp_path / "logs" / ERROR_LOG_FILE).exists()
        assert logging.getLogger("httpx").level == logging.WARNING

    def test_production_renders_json(self, restore_logging, tmp_path):
        configure_logging("production", log_dir=tmp_path)

        processors = structlog.get_config()["processors"]
        assert isinstance(processors[-1], structlog.processors.JSONRenderer)
        assert structlog.contextvars.merge_contextvars in processors

    def test_development_renders_for_the_console(self, restore_logging, tmp_path):
        configure_logging("development", log_dir=tmp_path)

        assert isinstance(structlog.get_config()["processors"][-1], structlog.dev.ConsoleRenderer)
