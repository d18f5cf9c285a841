"""
ChromaSift Structured Logging
Structured logging helpers on top of loguru.

Importing or logging through chromasift never touches the handlers a host
application has installed. ``configure_logging`` is the only call that
replaces them with ChromaSift's stdout sink.
"""
import sys
from typing import Dict, Any, Optional

from loguru import logger

from chromasift.config import config

LOG_FORMAT = "{time:YYYY-MM-DD HH:mm:ss} | {level} | {message} | {extra}"


class StructuredLogger:
    """Structured logger for ChromaSift services."""

    def __init__(self, level: Optional[str] = None, install_sink: bool = False):
        self.level = level or config.LOG_LEVEL
        self.sink_id: Optional[int] = None
        if install_sink:
            self._install_sink()

    def _install_sink(self):
        """Swap every existing handler for one stdout sink at ``self.level``."""
        logger.remove()
        self.sink_id = logger.add(
            sys.stdout,
            format=LOG_FORMAT,
            level=self.level,
            serialize=False  # Set to True for JSON output
        )

    def _log(self, level: str, message: str, extra: Optional[Dict[str, Any]]):
        target = logger.bind(**extra) if extra else logger
        target.log(level, message)

    def info(self, message: str, extra: Optional[Dict[str, Any]] = None):
        self._log("INFO", message, extra)

    def warning(self, message: str, extra: Optional[Dict[str, Any]] = None):
        self._log("WARNING", message, extra)

    def error(self, message: str, extra: Optional[Dict[str, Any]] = None):
        self._log("ERROR", message, extra)

    def debug(self, message: str, extra: Optional[Dict[str, Any]] = None):
        self._log("DEBUG", message, extra)


# Global logger instance
_logger: Optional[StructuredLogger] = None


def configure_logging(level: Optional[str] = None) -> StructuredLogger:
    """Install the stdout sink, replacing any previous configuration."""
    global _logger
    _logger = StructuredLogger(level, install_sink=True)
    return _logger


def get_logger() -> StructuredLogger:
    """Get the global logger; never installs or removes handlers."""
    global _logger
    if _logger is None:
        _logger = StructuredLogger()
    return _logger
