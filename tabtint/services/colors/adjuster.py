"""
Perceptual adjuster.

Remaps a raw color onto the configured saturation/lightness targets while
keeping its hue, then derives the contrast text and border colors. Every
palette member comes from that single remapped color.
"""

from loguru import logger

from tabtint.config import config
from tabtint.schemas import BLACK, WHITE, HSLColor, Palette, RawColor, Settings
from .color_math import composite, hsl_to_rgb, luminance, rgb_to_hsl, rgb_to_hex

DEFAULT_PALETTE = Palette(
    background=WHITE,
    text=BLACK,
    border=RawColor(r=0xE6, g=0xE6, b=0xE6),
    accent=RawColor(r=0x80, g=0x80, b=0x80),
)


def remap_color(color: RawColor, settings: Settings) -> RawColor:
    """
    Move a color to the target saturation and lightness, hue preserved.

    ``override`` replaces both values outright; ``blend`` averages the
    sampled value with the target.
    """
    hsl = rgb_to_hsl(color)

    if settings.adjust_mode == "blend":
        w = config.BLEND_WEIGHT
        s = hsl.s * (1 - w) + settings.saturation_target * w
        l = hsl.l * (1 - w) + settings.lightness_target * w
    else:
        s = settings.saturation_target
        l = settings.lightness_target

    return hsl_to_rgb(HSLColor(h=hsl.h, s=s, l=l))


def contrast_text(color: RawColor) -> RawColor:
    """White on dark (luminance <= 128), black on light."""
    return WHITE if luminance(color) <= config.CONTRAST_MIDPOINT else BLACK


def border_for(color: RawColor, text: RawColor) -> RawColor:
    """
    Composite the color at reduced opacity over the backdrop of its polarity.

    Black text means a light surface, so the border lightens toward white;
    white text darkens it toward black.
    """
    backdrop = WHITE if text == BLACK else BLACK
    return composite(color, config.BORDER_OPACITY, backdrop)


def build_palette(color: RawColor, settings: Settings) -> Palette:
    """Turn a validated raw color into a four-color palette."""
    adjusted = remap_color(color, settings)
    text = contrast_text(adjusted)
    palette = Palette(
        background=adjusted,
        text=text,
        border=border_for(adjusted, text),
        accent=adjusted,
    )

    logger.debug(f"Adjusted {rgb_to_hex(color)} -> {adjusted.hex} "
                 f"(s={settings.saturation_target}, l={settings.lightness_target}, "
                 f"mode={settings.adjust_mode}, text={text.hex})")

    return palette
