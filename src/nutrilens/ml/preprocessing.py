"""Image preprocessing pipeline.

Photo bytes -> JPEG -> RGBA raster (decoded near the target size) ->
exact target size -> normalized planar tensor.
"""

from __future__ import annotations

import logging

from nutrilens.ml.constants import INPUT_SIZE
from nutrilens.ml.decoder import decode_jpeg, transcode_to_jpeg
from nutrilens.ml.normalizer import to_tensor
from nutrilens.ml.raster import ClassificationTensor, RasterImage
from nutrilens.ml.resampler import resize_bilinear

logger = logging.getLogger(__name__)


class ImagePreprocessor:
    """Prepares uploaded photos for the classification model."""

    def __init__(
        self,
        input_size: int = INPUT_SIZE,
        *,
        jpeg_quality: int = 100,
        max_pixels: int | None = None,
    ) -> None:
        self._input_size = input_size
        self._jpeg_quality = jpeg_quality
        self._max_pixels = max_pixels

    @property
    def input_size(self) -> int:
        return self._input_size

    def decode_image(self, image_bytes: bytes) -> RasterImage:
        """Decode photo bytes of any readable format into an RGBA raster.

        Raises:
            DecodeError: If the image cannot be read or decoded.
        """
        jpeg_bytes = transcode_to_jpeg(image_bytes, quality=self._jpeg_quality, max_pixels=self._max_pixels)
        return decode_jpeg(
            jpeg_bytes,
            draft_size=(self._input_size, self._input_size),
            max_pixels=self._max_pixels,
        )

    def fit(self, image: RasterImage) -> RasterImage:
        """Return ``image`` at exactly the model input size."""
        size = self._input_size
        if image.size == (size, size):
            return image
        logger.debug("Resampling %sx%s raster to %sx%s", image.width, image.height, size, size)
        return resize_bilinear(image, size, size)

    def prepare(self, image_bytes: bytes) -> ClassificationTensor:
        """Run the full preprocessing chain on raw photo bytes.

        Raises:
            DecodeError: If the image cannot be decoded.
            InvalidDimensionsError: If resampling did not produce the input size.
        """
        raster = self.fit(self.decode_image(image_bytes))
        return to_tensor(raster, self._input_size)
