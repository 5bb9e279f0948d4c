"""
Test configuration and fixtures for the TabTint color pipeline tests.
"""
import asyncio
from io import BytesIO, StringIO

import pytest
from loguru import logger
from PIL import Image

from tabtint.schemas import Settings
from tabtint.services.probe import BoundingBox, ElementInfo, SourceProbe, StaticSnapshot


class CountingProbe(SourceProbe):
    """Source probe that counts invocations and can simulate slow content access."""

    def __init__(self, delay: float = 0.0, **kwargs):
        super().__init__(**kwargs)
        self.delay = delay
        self.calls = 0
        self.active = 0
        self.max_active = 0

    async def probe(self, snapshot, key=None):
        self.calls += 1
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
            return await super().probe(snapshot, key=key)
        finally:
            self.active -= 1


def png_bytes(color, size=(32, 32), mode="RGBA") -> bytes:
    """Encode a solid-color PNG."""
    img = Image.new(mode, size, color)
    buf = BytesIO()
    img.save(buf, format="PNG")
    return buf.getvalue()


def header(background, top=0, width=1200, height=60) -> ElementInfo:
    return ElementInfo(rect=BoundingBox(top=top, left=0, width=width, height=height), background=background)


@pytest.fixture(autouse=True)
def reset_metrics():
    """Reset metrics before each test."""
    from tabtint.services.observability import reset_metrics
    reset_metrics()


@pytest.fixture
def log_sink():
    """Capture loguru output as `LEVEL | message` lines."""
    buf = StringIO()
    handler_id = logger.add(buf, format="{level} | {message}", level="DEBUG")
    yield buf
    logger.remove(handler_id)


@pytest.fixture
def settings():
    """Fast-debounce settings with the stock remap targets."""
    return Settings(saturation_target=70, lightness_target=25, debounce_ms=50)


@pytest.fixture
def hint_snapshot():
    """Snapshot declaring a theme color."""
    return StaticSnapshot(hints={"theme-color": "#336699"})


@pytest.fixture
def body_snapshot():
    """Snapshot with only a dark body background."""
    return StaticSnapshot(backgrounds={"body": "rgb(10, 10, 10)"})


@pytest.fixture
def make_header():
    return header


@pytest.fixture
def make_png():
    return png_bytes


@pytest.fixture
def counting_probe():
    return CountingProbe()


@pytest.fixture
def slow_probe():
    return CountingProbe(delay=0.1)
