"""Tests for mystic logging setup."""
import logging

import pytest

from mystic.core import logger as mystic_logging


@pytest.fixture
def mystic_logger(monkeypatch):
    """The mystic logger, restored to its previous handlers and level afterwards."""
    monkeypatch.setattr(mystic_logging, "_file_logging_configured", False)
    log = logging.getLogger("mystic")
    handlers, level = list(log.handlers), log.level
    yield log
    for handler in log.handlers:
        if handler not in handlers:
            handler.close()
    log.handlers = handlers
    log.setLevel(level)


class TestFileLogging:
    """Test the file handler attached by setup_file_logging."""

    def test_module_loggers_reach_file(self, mystic_logger, tmp_path):
        log_file = tmp_path / "logs" / "mystic.log"

        mystic_logging.setup_file_logging(log_file=str(log_file))
        mystic_logging.get_logger("mystic.core.volumes").info("Exported jenkins")
        for handler in mystic_logger.handlers:
            handler.flush()

        text = log_file.read_text()
        assert "Exported jenkins" in text
        assert "mystic.core.volumes | INFO" in text

    def test_verbose_records_debug(self, mystic_logger, tmp_path):
        log_file = tmp_path / "mystic.log"

        mystic_logging.setup_file_logging(log_file=str(log_file), verbose=True)

        assert mystic_logger.level == logging.DEBUG

    def test_configured_once(self, mystic_logger, tmp_path):
        mystic_logging.setup_file_logging(log_file=str(tmp_path / "first.log"))
        mystic_logging.setup_file_logging(log_file=str(tmp_path / "second.log"))

        assert not (tmp_path / "second.log").exists()


class TestGetLogger:
    def test_console_handler_added_once(self):
        first = mystic_logging.get_logger("mystic.test.handlers")
        second = mystic_logging.get_logger("mystic.test.handlers")

        assert first is second
        assert len(first.handlers) == 1
        assert first.handlers[0].level == logging.WARNING
