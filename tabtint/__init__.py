"""
TabTint: derive a balanced UI palette from a page's visual identity.
"""
from tabtint.schemas import CacheEntry, HSLColor, Palette, RawColor, Settings
from tabtint.services.colors.adjuster import DEFAULT_PALETTE
from tabtint.services.coordinator import KeyState, PaletteCoordinator
from tabtint.services.probe import (
    BoundingBox,
    ContentSnapshot,
    ElementInfo,
    ProbeResult,
    SourceProbe,
    StaticSnapshot,
)
from tabtint.services.reliability import (
    DecodeFailure,
    ExtractionError,
    ExtractionTimeout,
    InvalidColor,
    SourceUnavailable,
)

__version__ = "1.0.0"

__all__ = [
    'BoundingBox',
    'CacheEntry',
    'ContentSnapshot',
    'DEFAULT_PALETTE',
    'DecodeFailure',
    'ElementInfo',
    'ExtractionError',
    'ExtractionTimeout',
    'HSLColor',
    'InvalidColor',
    'KeyState',
    'Palette',
    'PaletteCoordinator',
    'ProbeResult',
    'RawColor',
    'Settings',
    'SourceProbe',
    'SourceUnavailable',
    'StaticSnapshot',
]
