"""Tests for loguru configuration helpers."""

import io

import pytest
from loguru import logger

from demandcast.config import LoggingSettings
from demandcast.utils.log_config import configure_from_settings, configure_logging


@pytest.fixture
def restore_logging():
    """Reinstate the default stderr sink after each test."""
    yield
    configure_logging(level="INFO")


class TestConfigureLogging:
    """Tests for configure_logging."""

    def test_level_filters_messages(self, restore_logging):
        """Messages below the configured level are dropped."""
        sink = io.StringIO()
        configure_logging(level="WARNING", sink=sink)

        logger.info("hidden")
        logger.warning("shown")

        output = sink.getvalue()
        assert "hidden" not in output
        assert "WARNING  | shown" in output

    def test_replaces_previous_sink(self, restore_logging):
        """Reconfiguring removes the earlier sink."""
        first = io.StringIO()
        second = io.StringIO()
        configure_logging(sink=first)
        configure_logging(sink=second)

        logger.info("message")

        assert first.getvalue() == ""
        assert "message" in second.getvalue()

    def test_configure_from_settings(self, restore_logging):
        """The logging settings section drives the sink level."""
        handler_id = configure_from_settings(LoggingSettings(level="error"))
        assert isinstance(handler_id, int)

    def test_invalid_level_setting(self):
        """Unknown levels are rejected by the settings model."""
        with pytest.raises(ValueError, match="level must be one of"):
            LoggingSettings(level="LOUD")
