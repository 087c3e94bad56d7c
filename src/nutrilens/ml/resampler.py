"""Bilinear resampling of RGBA rasters to an exact target size."""

from __future__ import annotations

from typing import TYPE_CHECKING

import numpy as np

from nutrilens.ml.errors import InvalidArgumentError
from nutrilens.ml.raster import RasterImage

if TYPE_CHECKING:
    from numpy.typing import NDArray


def _sample_axis(src_len: int, dst_len: int) -> tuple[NDArray[np.intp], NDArray[np.intp], NDArray[np.float64]]:
    """Return (lower index, upper index, weight of upper) for each destination position.

    Uses the pixel-center mapping ``src = (dst + 0.5) * src_len / dst_len - 0.5``.
    Both neighbors are clamped to the valid range; the weight is the fractional
    part of the source coordinate.
    """
    coords = (np.arange(dst_len, dtype=np.float64) + 0.5) * (src_len / dst_len) - 0.5
    base = np.floor(coords)
    weight = coords - base
    lower = np.clip(base, 0, src_len - 1).astype(np.intp)
    upper = np.clip(base + 1, 0, src_len - 1).astype(np.intp)
    return lower, upper, weight


def resize_bilinear(image: RasterImage, width: int, height: int) -> RasterImage:
    """Stretch ``image`` to exactly ``width`` x ``height`` with bilinear interpolation.

    Aspect ratio is not preserved. All four channels are interpolated the same
    way. Values are rounded half up and clamped to [0, 255].

    Raises:
        InvalidArgumentError: If the target size is not positive.
    """
    if width <= 0 or height <= 0:
        raise InvalidArgumentError(f"Target size must be positive, got {width}x{height}")

    x0, x1, wx = _sample_axis(image.width, width)
    y0, y1, wy = _sample_axis(image.height, height)

    src = image.pixels.astype(np.float64)
    wx = wx[np.newaxis, :, np.newaxis]
    wy = wy[:, np.newaxis, np.newaxis]

    top_rows = src[y0]
    bottom_rows = src[y1]
    # Horizontal pass on the two sampled rows, then vertical blend.
    top = top_rows[:, x0] * (1.0 - wx) + top_rows[:, x1] * wx
    bottom = bottom_rows[:, x0] * (1.0 - wx) + bottom_rows[:, x1] * wx
    blended = top * (1.0 - wy) + bottom * wy

    pixels = np.clip(np.floor(blended + 0.5), 0, 255).astype(np.uint8)
    return RasterImage(width=width, height=height, pixels=pixels)
