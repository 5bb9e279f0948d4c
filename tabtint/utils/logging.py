"""
TabTint Structured Logging
Loguru helpers for the color pipeline.

TabTint is embedded in a host application, so importing it never touches the
host's loguru sinks. Hosts that want TabTint's own stdout format call
``configure_logging()`` explicitly.
"""
import sys
from typing import Any, Dict, Optional, TextIO

from loguru import logger

from tabtint.config import config

LOG_FORMAT = "{time:YYYY-MM-DD HH:mm:ss} | {level} | {message} | {extra}"


def configure_logging(level: Optional[str] = None, sink: TextIO = sys.stdout) -> int:
    """
    Replace all loguru sinks with a single structured sink.

    Only call this from an application entry point; it removes any sinks
    configured before it.

    Returns:
        Handler id of the new sink
    """
    logger.remove()
    return logger.add(
        sink,
        format=LOG_FORMAT,
        level=level or config.LOG_LEVEL,
        serialize=False  # Set to True for JSON output
    )


class StructuredLogger:
    """Binds structured fields onto loguru records without owning any sinks."""

    def info(self, message: str, extra: Optional[Dict[str, Any]] = None):
        """Log info message with optional extra data."""
        if extra:
            logger.bind(**extra).info(message)
        else:
            logger.info(message)


# Global logger instance
_logger: Optional[StructuredLogger] = None


def get_logger() -> StructuredLogger:
    """Get or create global logger instance."""
    global _logger
    if _logger is None:
        _logger = StructuredLogger()
    return _logger
