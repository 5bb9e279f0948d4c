"""
Validity filter for raw probe colors.

Rejects absent or transparent colors and neon extraction artifacts whose
saturation exceeds the configured ceiling. Near-white, near-black and other
low-saturation colors pass.
"""

from typing import Optional

from loguru import logger

from tabtint.config import config
from tabtint.schemas import RawColor
from tabtint.services.reliability import InvalidColor
from .color_math import saturation


def check_color(color: Optional[RawColor],
                alpha: float = 1.0,
                max_saturation: Optional[float] = None) -> RawColor:
    """
    Validate a raw color, returning it unchanged when acceptable.

    Raises:
        InvalidColor: If the color is missing, transparent or oversaturated
    """
    max_saturation = config.MAX_SATURATION if max_saturation is None else max_saturation

    if color is None:
        raise InvalidColor("No color")
    if alpha <= 0.0:
        raise InvalidColor(f"Transparent color {color.hex}")

    sat = saturation(color)
    if sat > max_saturation:
        raise InvalidColor(f"Color {color.hex} saturation {sat:.3f} exceeds {max_saturation}")

    return color


def is_valid_color(color: Optional[RawColor],
                   alpha: float = 1.0,
                   max_saturation: Optional[float] = None) -> bool:
    """Boolean form of ``check_color``."""
    try:
        check_color(color, alpha, max_saturation)
    except InvalidColor as e:
        logger.debug(f"Validity filter rejected color: {e}")
        return False
    return True
