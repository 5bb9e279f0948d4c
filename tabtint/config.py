"""
TabTint Configuration
Manages environment variables and defaults for the color resolution pipeline.
"""
import os
from typing import List, Literal

from dotenv import load_dotenv

load_dotenv()


class Config:
    """Configuration class for TabTint services."""

    # Logging
    LOG_LEVEL: str = os.environ.get("TABTINT_LOG_LEVEL", "INFO")

    # Default settings snapshot
    ENABLED: bool = bool(int(os.environ.get("TABTINT_ENABLED", "1")))
    SATURATION_TARGET: int = int(os.environ.get("TABTINT_SATURATION", "70"))
    LIGHTNESS_TARGET: int = int(os.environ.get("TABTINT_LIGHTNESS", "25"))
    DEBOUNCE_MS: int = int(os.environ.get("TABTINT_DEBOUNCE_MS", "500"))
    DARK_MODE_ONLY: bool = bool(int(os.environ.get("TABTINT_DARK_MODE_ONLY", "0")))
    EXCLUDED_KEYS: str = os.environ.get("TABTINT_EXCLUDED_KEYS", "")
    ADJUST_MODE: Literal["override", "blend"] = os.environ.get("TABTINT_ADJUST_MODE", "override")

    # Timeouts (milliseconds)
    STEP_TIMEOUT_MS: int = int(os.environ.get("TABTINT_STEP_TIMEOUT_MS", "2000"))

    # Quantizer
    QUANTIZER_STRIDE: int = int(os.environ.get("TABTINT_QUANTIZER_STRIDE", "1"))
    QUANTIZER_GRANULARITY: int = int(os.environ.get("TABTINT_QUANTIZER_GRANULARITY", "16"))
    ICON_MAX_EDGE: int = int(os.environ.get("TABTINT_ICON_MAX_EDGE", "64"))
    ALPHA_THRESHOLD: int = 128

    # Validity and contrast
    MAX_SATURATION: float = 0.9
    CONTRAST_MIDPOINT: float = 128.0
    BORDER_OPACITY: float = 0.8
    SECONDARY_OPACITY: float = 0.8
    BLEND_WEIGHT: float = 0.5

    # Header scan geometry (CSS pixels)
    HEADER_MIN_WIDTH: int = 100
    HEADER_MIN_HEIGHT: int = 30
    HEADER_MAX_TOP: int = 200

    # Probe selectors, in priority order
    THEME_HINT_NAMES = ["theme-color", "msapplication-TileColor"]
    HEADER_SELECTORS = [
        '[role="banner"]',
        "header",
        "nav",
        ".navbar",
        ".header",
        ".top-bar",
        ".site-header",
        ".page-header",
        ".masthead",
        ".banner",
        ".hero",
        ".hero-section",
    ]
    PAGE_ROOTS = ["body", "html"]
    CONTAINER_SELECTORS = ["main", "#main", ".main", ".container", ".wrapper", ".page"]

    @classmethod
    def excluded_key_patterns(cls) -> List[str]:
        """Split the comma separated exclusion list."""
        return [p.strip() for p in cls.EXCLUDED_KEYS.split(",") if p.strip()]

    @classmethod
    def validate_granularity(cls, granularity: int) -> bool:
        """Validate quantizer bucket size (must divide 256 evenly)."""
        return 1 <= granularity <= 256 and 256 % granularity == 0

    @classmethod
    def validate_stride(cls, stride: int) -> bool:
        """Validate quantizer sampling stride."""
        return stride >= 1


# Global config instance
config = Config()
