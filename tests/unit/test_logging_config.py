"""Unit tests for logging configuration."""

import logging

import pytest

from folio.config.logging_config import TRACE_LOGGERS, setup_logging
from folio.config.settings import Settings, set_settings


@pytest.fixture(autouse=True)
def restore_levels():
    names = ("folio",) + TRACE_LOGGERS
    saved = {name: logging.getLogger(name).level for name in names}
    yield
    for name, level in saved.items():
        logging.getLogger(name).setLevel(level)


class TestSetupLogging:
    """Tests for setup_logging."""

    def test_engine_follows_log_level(self):
        set_settings(Settings(log_level="warning"))

        setup_logging()

        assert logging.getLogger("folio").level == logging.WARNING
        for name in TRACE_LOGGERS:
            assert logging.getLogger(name).level == logging.WARNING

    def test_tracing_is_quiet_by_default(self):
        """
        GIVEN log_level DEBUG without trace_actions
        WHEN logging is set up
        THEN reducer and cache loggers stay at INFO
        """
        set_settings(Settings(log_level="DEBUG"))

        setup_logging()

        assert logging.getLogger("folio").level == logging.DEBUG
        for name in TRACE_LOGGERS:
            assert logging.getLogger(name).level == logging.INFO

    def test_tracing_enabled(self):
        set_settings(Settings(log_level="DEBUG", trace_actions=True))

        setup_logging()

        for name in TRACE_LOGGERS:
            assert logging.getLogger(name).level == logging.DEBUG
