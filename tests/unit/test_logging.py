"""Tests for structured logging setup."""

import logging

import pytest
import structlog

from sitestress.shared.logging import setup_logging


@pytest.fixture(autouse=True)
def restore_logging():
    yield
    structlog.reset_defaults()
    logging.basicConfig(level=logging.WARNING, force=True)


class TestSetupLogging:
    def test_sets_root_level(self):
        setup_logging("DEBUG")
        assert logging.getLogger().level == logging.DEBUG

    def test_unknown_level_falls_back_to_info(self):
        setup_logging("chatty")
        assert logging.getLogger().level == logging.INFO

    def test_json_logs(self, capsys):
        setup_logging("INFO", json_logs=True)
        structlog.get_logger("sitestress.test").info("step_started", user_count=20)
        out = capsys.readouterr().out
        assert '"event": "step_started"' in out
        assert '"user_count": 20' in out
