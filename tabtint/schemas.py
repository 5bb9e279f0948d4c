"""
TabTint Schemas
Pydantic models for colors, palettes, settings and cache entries.
"""
import time
from typing import Dict, FrozenSet, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from tabtint.config import Config, config


# ============================================================================
# COLOR SCHEMAS
# ============================================================================

class RawColor(BaseModel):
    """Unadjusted 8-bit RGB sample."""
    model_config = ConfigDict(frozen=True)

    r: int = Field(..., ge=0, le=255, description="Red channel (0-255)")
    g: int = Field(..., ge=0, le=255, description="Green channel (0-255)")
    b: int = Field(..., ge=0, le=255, description="Blue channel (0-255)")

    @property
    def hex(self) -> str:
        return f"#{self.r:02X}{self.g:02X}{self.b:02X}"


class HSLColor(BaseModel):
    """Intermediate HSL representation used for the perceptual remap."""
    model_config = ConfigDict(frozen=True)

    h: float = Field(..., ge=0.0, lt=360.0, description="Hue in degrees [0, 360)")
    s: float = Field(..., ge=0.0, le=100.0, description="Saturation percentage [0, 100]")
    l: float = Field(..., ge=0.0, le=100.0, description="Lightness percentage [0, 100]")


WHITE = RawColor(r=255, g=255, b=255)
BLACK = RawColor(r=0, g=0, b=0)


class Palette(BaseModel):
    """Four-color theme derived from a single hue."""
    model_config = ConfigDict(frozen=True)

    background: RawColor = Field(..., description="Remapped color used as surface background")
    text: RawColor = Field(..., description="Pure black or pure white, whichever contrasts the background")
    border: RawColor = Field(..., description="Background blended toward the text polarity")
    accent: RawColor = Field(..., description="Remapped color used for highlights")

    def to_hex_dict(self) -> Dict[str, str]:
        """Stable identifiers mapped to #RRGGBB strings."""
        return {
            "background": self.background.hex,
            "text": self.text.hex,
            "border": self.border.hex,
            "accent": self.accent.hex,
        }

    def to_css_variables(self, secondary_opacity: float = Config.SECONDARY_OPACITY) -> Dict[str, str]:
        """
        Render the palette as CSS custom properties.

        Binding the variables to concrete elements is up to the host.
        """
        a = self.accent
        return {
            "--adaptive-primary-color": f"rgb({a.r}, {a.g}, {a.b})",
            "--adaptive-secondary-color": f"rgba({a.r}, {a.g}, {a.b}, {secondary_opacity})",
            "--adaptive-bg-color": self.background.hex,
            "--adaptive-text-color": self.text.hex,
            "--adaptive-border-color": self.border.hex,
        }


# ============================================================================
# SETTINGS & CACHE SCHEMAS
# ============================================================================

class Settings(BaseModel):
    """
    Immutable configuration snapshot handed to the coordinator.

    A new snapshot replaces the previous one wholesale.
    """
    model_config = ConfigDict(frozen=True)

    saturation_target: float = Field(70, ge=0, le=100, description="HSL saturation applied to every palette")
    lightness_target: float = Field(25, ge=0, le=100, description="HSL lightness applied to every palette")
    debounce_ms: int = Field(500, ge=0, description="Quiet window for trailing-edge debounce")
    excluded_keys: FrozenSet[str] = Field(
        default_factory=frozenset,
        description="Substring or glob patterns of content keys to leave untouched"
    )
    enabled: bool = Field(True, description="Master switch")
    dark_mode_only: bool = Field(False, description="Only theme while the host reports dark mode")
    adjust_mode: Literal["override", "blend"] = Field(
        "override",
        description="Replace sampled saturation/lightness, or average them with the targets"
    )

    @field_validator("excluded_keys", mode="before")
    @classmethod
    def _normalize_patterns(cls, value):
        if isinstance(value, str):
            value = value.split(",")
        return frozenset(p.strip() for p in value if p and p.strip())

    @classmethod
    def from_config(cls, cfg: Optional[Config] = None) -> "Settings":
        """Build the default snapshot from environment configuration."""
        cfg = cfg or config
        return cls(
            saturation_target=cfg.SATURATION_TARGET,
            lightness_target=cfg.LIGHTNESS_TARGET,
            debounce_ms=cfg.DEBOUNCE_MS,
            excluded_keys=cfg.excluded_key_patterns(),
            enabled=cfg.ENABLED,
            dark_mode_only=cfg.DARK_MODE_ONLY,
            adjust_mode=cfg.ADJUST_MODE,
        )

    def same_adjustment(self, other: "Settings") -> bool:
        """True when both snapshots would remap a color identically."""
        return (
            self.saturation_target == other.saturation_target
            and self.lightness_target == other.lightness_target
            and self.adjust_mode == other.adjust_mode
        )


class CacheEntry(BaseModel):
    """Resolved palette for one content key."""
    model_config = ConfigDict(frozen=True)

    key: str = Field(..., description="Opaque content key")
    palette: Palette = Field(..., description="Resolved palette")
    resolved_at: float = Field(default_factory=time.time, description="Unix timestamp of resolution")
    source: Optional[str] = Field(None, description="Probe strategy that produced the raw color")
