"""
Unit tests for structured logging setup.
"""
import sys

import pytest
from loguru import logger

from chromasift.utils import logging as chromasift_logging
from chromasift.utils.logging import StructuredLogger, configure_logging, get_logger


@pytest.fixture(autouse=True)
def restore_logging(monkeypatch):
    """Start unconfigured and put loguru's default stderr handler back afterwards."""
    monkeypatch.setattr(chromasift_logging, "_logger", None)
    yield
    logger.remove()
    logger.add(sys.stderr)


class TestStructuredLogger:
    """Test loguru sink configuration"""

    def test_get_logger_is_singleton(self):
        assert get_logger() is get_logger()

    def test_get_logger_keeps_host_sinks(self):
        """A host's own handlers survive the first get_logger call"""
        seen = []
        sink_id = logger.add(seen.append, format="{message}")
        try:
            log = get_logger()
            log.info("host sink kept", extra={"run_id": "run-2"})
        finally:
            logger.remove(sink_id)
        assert log.sink_id is None
        assert any("host sink kept" in str(message) for message in seen)

    def test_configure_replaces_logger(self):
        first = configure_logging("DEBUG")
        assert isinstance(first, StructuredLogger)
        assert first.level == "DEBUG"
        assert first.sink_id is not None
        assert get_logger() is first

    def test_extra_fields_rendered(self, capsys):
        log = configure_logging("INFO")
        log.info("pass finished", extra={"run_id": "run-1"})
        out = capsys.readouterr().out
        assert "pass finished" in out
        assert "run-1" in out

    def test_level_filters(self, capsys):
        log = configure_logging("WARNING")
        log.debug("hidden")
        log.warning("shown")
        out = capsys.readouterr().out
        assert "hidden" not in out
        assert "shown" in out
