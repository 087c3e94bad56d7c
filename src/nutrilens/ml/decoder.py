"""JPEG decoding into RGBA rasters.

Only JPEG is decoded directly. Other formats go through
:func:`transcode_to_jpeg` first so that every photo reaches the decoder
in the same form.
"""

from __future__ import annotations

import io
import logging

import numpy as np
from PIL import Image, ImageOps, UnidentifiedImageError

from nutrilens.ml.errors import DecodeError
from nutrilens.ml.raster import RasterImage

logger = logging.getLogger(__name__)

JPEG_FORMAT = "JPEG"


def _open(data: bytes, max_pixels: int | None) -> Image.Image:
    if not data:
        raise DecodeError("Image data is empty")
    try:
        image = Image.open(io.BytesIO(data))
    except (UnidentifiedImageError, Image.DecompressionBombError) as exc:
        raise DecodeError(f"Cannot identify image: {exc}") from exc
    except OSError as exc:
        raise DecodeError(f"Cannot read image: {exc}") from exc

    width, height = image.size
    if max_pixels is not None and width * height > max_pixels:
        raise DecodeError(f"Image has {width * height} pixels, limit is {max_pixels}")
    return image


def decode_jpeg(
    data: bytes,
    *,
    draft_size: tuple[int, int] | None = None,
    max_pixels: int | None = None,
) -> RasterImage:
    """Decode JPEG bytes into an RGBA raster at native (or draft) resolution.

    Args:
        data: JPEG-encoded bytes.
        draft_size: Optional (width, height) hint. The JPEG decoder then scales
            by a power of two in the DCT domain, keeping the result at least
            this large. The output is generally not exactly this size.
        max_pixels: Reject images whose header declares more pixels than this.

    Returns:
        RasterImage with alpha fixed at 255.

    Raises:
        DecodeError: If the bytes are empty, truncated, or not a JPEG.
    """
    image = _open(data, max_pixels)
    if image.format != JPEG_FORMAT:
        raise DecodeError(f"Expected JPEG data, got {image.format or 'unknown format'}")

    try:
        if draft_size is not None:
            image.draft("RGB", draft_size)
        image.load()
        image = ImageOps.exif_transpose(image)
        rgba = image.convert("RGBA")
    except (OSError, SyntaxError, ValueError) as exc:
        raise DecodeError(f"Failed to decode JPEG image: {exc}") from exc

    pixels = np.asarray(rgba, dtype=np.uint8).copy()
    logger.debug("Decoded JPEG %sx%s (mode=%s)", rgba.width, rgba.height, image.mode)
    return RasterImage(width=rgba.width, height=rgba.height, pixels=pixels)


def transcode_to_jpeg(data: bytes, *, quality: int = 100, max_pixels: int | None = None) -> bytes:
    """Re-encode any readable image as RGB JPEG. JPEG input is returned as is.

    Raises:
        DecodeError: If the bytes are not a readable image.
    """
    image = _open(data, max_pixels)
    source_format = image.format
    if source_format == JPEG_FORMAT:
        return data

    try:
        image.load()
        image = ImageOps.exif_transpose(image)
        if image.mode in ("RGBA", "LA", "PA") or (image.mode == "P" and "transparency" in image.info):
            # Flatten onto white so transparent regions do not turn black.
            rgba = image.convert("RGBA")
            background = Image.new("RGB", rgba.size, (255, 255, 255))
            background.paste(rgba, mask=rgba.getchannel("A"))
            rgb = background
        else:
            rgb = image.convert("RGB")
        buffer = io.BytesIO()
        rgb.save(buffer, format=JPEG_FORMAT, quality=quality)
    except (OSError, SyntaxError, ValueError) as exc:
        raise DecodeError(f"Failed to transcode {source_format} image to JPEG: {exc}") from exc

    logger.info("Transcoded %s image (%sx%s) to JPEG", source_format, rgb.width, rgb.height)
    return buffer.getvalue()
