"""
Dominant color quantizer.

Samples an RGBA pixel buffer at a fixed stride, drops translucent pixels,
floors each channel into buckets and returns the bucket with the most votes.
Ties go to the bucket seen first in scan order, so a given buffer and stride
always produce the same answer.
"""

from dataclasses import dataclass
from io import BytesIO
from typing import Optional, Union

import numpy as np
from loguru import logger
from PIL import Image, UnidentifiedImageError

from tabtint.config import config
from tabtint.schemas import RawColor
from tabtint.services.reliability import DecodeFailure
from .color_math import luminance

PixelBuffer = Union[bytes, bytearray, memoryview, np.ndarray]


@dataclass(frozen=True)
class QuantizedColor:
    """Winning bucket of a quantization pass."""
    color: RawColor
    luminance: float
    votes: int
    sampled: int


def as_rgba_array(pixels: PixelBuffer) -> np.ndarray:
    """
    Normalize a pixel buffer to an (N, 4) uint8 array in row-major order.

    Accepts flat RGBA bytes, a flat array, or arrays shaped (N, 3|4) or
    (H, W, 3|4). RGB input is treated as fully opaque.

    Raises:
        ValueError: If the buffer cannot be read as whole RGBA pixels
    """
    if isinstance(pixels, (bytes, bytearray, memoryview)):
        arr = np.frombuffer(pixels, dtype=np.uint8)
    else:
        arr = np.asarray(pixels)
        if arr.dtype != np.uint8:
            arr = np.clip(arr, 0, 255).astype(np.uint8)

    if arr.ndim == 1:
        if arr.size % 4 != 0:
            raise ValueError(f"Flat RGBA buffer length {arr.size} is not a multiple of 4")
        return arr.reshape(-1, 4)

    channels = arr.shape[-1]
    if arr.ndim not in (2, 3) or channels not in (3, 4):
        raise ValueError(f"Unsupported pixel buffer shape {arr.shape}")

    flat = arr.reshape(-1, channels)
    if channels == 3:
        alpha = np.full((flat.shape[0], 1), 255, dtype=np.uint8)
        flat = np.concatenate([flat, alpha], axis=1)
    return flat


def quantize_dominant(pixels: PixelBuffer,
                      stride: Optional[int] = None,
                      bucket_size: Optional[int] = None,
                      alpha_threshold: Optional[int] = None) -> Optional[QuantizedColor]:
    """
    Vote for the dominant color bucket of a pixel buffer.

    Args:
        pixels: RGBA pixel data, row-major
        stride: Sample every ``stride``-th pixel (1 = every pixel)
        bucket_size: Channel bucket width; 16 gives 16 levels per channel
        alpha_threshold: Pixels with alpha below this are skipped

    Returns:
        The winning bucket floor color, or None if no opaque pixel was sampled
    """
    stride = config.QUANTIZER_STRIDE if stride is None else stride
    bucket_size = config.QUANTIZER_GRANULARITY if bucket_size is None else bucket_size
    alpha_threshold = config.ALPHA_THRESHOLD if alpha_threshold is None else alpha_threshold

    if not config.validate_stride(stride):
        raise ValueError(f"Invalid stride {stride}")
    if not config.validate_granularity(bucket_size):
        raise ValueError(f"Invalid bucket size {bucket_size}")

    rgba = as_rgba_array(pixels)
    sampled = rgba[::stride]
    opaque = sampled[sampled[:, 3] >= alpha_threshold]

    if opaque.shape[0] == 0:
        logger.debug(f"Quantizer found no opaque pixels among {sampled.shape[0]} samples")
        return None

    buckets = (opaque[:, :3].astype(np.int32) // bucket_size) * bucket_size
    keys = (buckets[:, 0] << 16) | (buckets[:, 1] << 8) | buckets[:, 2]

    unique_keys, first_seen, counts = np.unique(keys, return_index=True, return_counts=True)
    # Highest count first, earliest scan position breaks ties
    order = np.lexsort((first_seen, -counts))
    winner = order[0]

    key = int(unique_keys[winner])
    color = RawColor(r=(key >> 16) & 0xFF, g=(key >> 8) & 0xFF, b=key & 0xFF)

    logger.debug(f"Quantizer winner {color.hex} with {int(counts[winner])}/{opaque.shape[0]} votes "
                 f"({unique_keys.shape[0]} buckets)")

    return QuantizedColor(
        color=color,
        luminance=luminance(color),
        votes=int(counts[winner]),
        sampled=int(opaque.shape[0]),
    )


def decode_icon(data: bytes, max_edge: Optional[int] = None) -> np.ndarray:
    """
    Decode icon bytes into an (H, W, 4) RGBA array.

    Large icons are shrunk to ``max_edge`` on the longest side with nearest
    neighbour sampling so no blended colors are introduced.

    Raises:
        DecodeFailure: If the bytes are not a readable image
    """
    max_edge = max_edge or config.ICON_MAX_EDGE
    if not data:
        raise DecodeFailure("Empty icon payload")

    try:
        with Image.open(BytesIO(data)) as img:
            img.load()
            working = img.convert("RGBA")
    except (UnidentifiedImageError, OSError, ValueError) as e:
        raise DecodeFailure(f"Failed to decode icon: {e}")

    if max(working.size) > max_edge:
        working.thumbnail((max_edge, max_edge), Image.NEAREST)

    return np.asarray(working, dtype=np.uint8)


def dominant_icon_color(data: bytes,
                        stride: Optional[int] = None,
                        bucket_size: Optional[int] = None,
                        max_edge: Optional[int] = None) -> Optional[QuantizedColor]:
    """Decode an icon and quantize it."""
    return quantize_dominant(decode_icon(data, max_edge), stride=stride, bucket_size=bucket_size)
