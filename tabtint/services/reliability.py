"""
TabTint Reliability & Timeout Management
Error taxonomy for extraction steps and per-step timeouts.
"""
import asyncio
from contextlib import asynccontextmanager
from typing import Dict, Optional

from loguru import logger

from tabtint.config import config


class ExtractionError(Exception):
    """Base class for locally recovered extraction failures."""
    pass


class SourceUnavailable(ExtractionError):
    """The content snapshot could not be reached."""
    pass


class ExtractionTimeout(ExtractionError):
    """A probe step exceeded its time bound."""
    pass


class DecodeFailure(ExtractionError):
    """An icon image could not be decoded."""
    pass


class InvalidColor(ExtractionError):
    """A color was parsed but rejected by the validity filter."""
    pass


class TimeoutManager:
    """Manages timeouts for asynchronous probe steps."""

    def __init__(self, default_timeout: Optional[float] = None):
        self.default_timeout = (
            default_timeout if default_timeout is not None else config.STEP_TIMEOUT_MS / 1000.0
        )
        self.timeouts: Dict[str, float] = {}

    @asynccontextmanager
    async def timeout(self, operation: str, custom_timeout: Optional[float] = None):
        """Context manager turning step expiry into ExtractionTimeout."""
        timeout_value = custom_timeout or self.timeouts.get(operation, self.default_timeout)

        try:
            async with asyncio.timeout(timeout_value):
                yield
        except TimeoutError:
            logger.warning(f"Timeout in {operation} after {timeout_value}s")
            raise ExtractionTimeout(f"Operation {operation} timed out after {timeout_value}s")

    def configure_timeouts(self, timeout_config: Dict[str, float]) -> None:
        """Update per-operation timeouts (seconds)."""
        self.timeouts.update(timeout_config)
        logger.info(f"Updated timeouts: {timeout_config}")
