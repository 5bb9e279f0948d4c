"""
Color math utilities.

Pure conversions between RGB, HSL and hex, plus the luminance and saturation
measures shared by quantization, validity filtering and contrast selection.
"""

import colorsys
import re
from typing import Optional, Tuple

from tabtint.schemas import HSLColor, RawColor

_HEX_RE = re.compile(r"^#?([0-9a-fA-F]{3}|[0-9a-fA-F]{6})$")
_RGB_FUNC_RE = re.compile(
    r"^rgba?\(\s*(\d{1,3})\s*,\s*(\d{1,3})\s*,\s*(\d{1,3})\s*(?:,\s*([0-9]*\.?[0-9]+)\s*)?\)$",
    re.IGNORECASE,
)
TRANSPARENT_KEYWORDS = {"transparent", "none", ""}


def luminance(color: RawColor) -> float:
    """
    Brightness of a color on the 0-255 scale.

    0.299r + 0.587g + 0.114b is the only light/dark measure in the pipeline;
    quantizer scoring and contrast text selection both use it.
    """
    return 0.299 * color.r + 0.587 * color.g + 0.114 * color.b


def saturation(color: RawColor) -> float:
    """HSV-style saturation (max - min) / max over 0-255 channels, 0.0 for black."""
    cmax = max(color.r, color.g, color.b)
    cmin = min(color.r, color.g, color.b)
    if cmax == 0:
        return 0.0
    return (cmax - cmin) / cmax


def rgb_to_hsl(color: RawColor) -> HSLColor:
    """Convert 8-bit RGB to HSL (h in degrees, s and l in percent)."""
    # colorsys works in HLS order on [0, 1] channels
    h, l, s = colorsys.rgb_to_hls(color.r / 255.0, color.g / 255.0, color.b / 255.0)
    return HSLColor(h=(h * 360.0) % 360.0, s=min(s * 100, 100.0), l=l * 100)


def _to_byte(value: float) -> int:
    # Round half up so results do not depend on banker's rounding
    return max(0, min(255, int(value * 255 + 0.5)))


def hsl_to_rgb(hsl: HSLColor) -> RawColor:
    """Convert HSL back to 8-bit RGB."""
    r, g, b = colorsys.hls_to_rgb(hsl.h / 360.0, hsl.l / 100.0, hsl.s / 100.0)
    return RawColor(r=_to_byte(r), g=_to_byte(g), b=_to_byte(b))


def hex_to_rgb(hex_color: str) -> Optional[RawColor]:
    """
    Parse a 3- or 6-digit hex color with optional leading '#'.

    Returns None for anything malformed instead of guessing.
    """
    if not isinstance(hex_color, str):
        return None
    match = _HEX_RE.match(hex_color.strip())
    if not match:
        return None
    digits = match.group(1)
    if len(digits) == 3:
        digits = "".join(ch * 2 for ch in digits)
    return RawColor(r=int(digits[0:2], 16), g=int(digits[2:4], 16), b=int(digits[4:6], 16))


def rgb_to_hex(color: RawColor) -> str:
    """Format as #RRGGBB."""
    return f"#{color.r:02X}{color.g:02X}{color.b:02X}"


def parse_css_color(value: Optional[str]) -> Optional[Tuple[RawColor, float]]:
    """
    Parse a resolved CSS color string into (color, alpha).

    Understands hex, rgb(), rgba() and the 'transparent' keyword. Transparent
    values come back with alpha 0.0 so callers can gate on them; anything else
    that cannot be read returns None.
    """
    if value is None:
        return None
    text = value.strip()
    if text.lower() in TRANSPARENT_KEYWORDS:
        return RawColor(r=0, g=0, b=0), 0.0

    rgb = hex_to_rgb(text)
    if rgb is not None:
        return rgb, 1.0

    match = _RGB_FUNC_RE.match(text)
    if not match:
        return None
    channels = [int(match.group(i)) for i in (1, 2, 3)]
    if any(c > 255 for c in channels):
        return None
    alpha = float(match.group(4)) if match.group(4) is not None else 1.0
    return RawColor(r=channels[0], g=channels[1], b=channels[2]), max(0.0, min(1.0, alpha))


def is_transparent(value: Optional[str]) -> bool:
    """True when a CSS color is absent, unparseable or fully transparent."""
    parsed = parse_css_color(value)
    return parsed is None or parsed[1] <= 0.0


def composite(foreground: RawColor, opacity: float, backdrop: RawColor) -> RawColor:
    """Alpha-composite ``foreground`` at ``opacity`` over an opaque backdrop."""
    def mix(f: int, b: int) -> int:
        return int(f * opacity + b * (1 - opacity) + 0.5)

    return RawColor(
        r=mix(foreground.r, backdrop.r),
        g=mix(foreground.g, backdrop.g),
        b=mix(foreground.b, backdrop.b),
    )
