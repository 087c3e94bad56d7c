"""Conversion of RGBA rasters into normalized planar model input."""

from __future__ import annotations

import numpy as np

from nutrilens.ml.constants import INPUT_SIZE, MEAN_CHW, STD_CHW, TENSOR_CHANNELS
from nutrilens.ml.errors import InvalidDimensionsError
from nutrilens.ml.raster import ClassificationTensor, RasterImage


def to_tensor(image: RasterImage, size: int = INPUT_SIZE) -> ClassificationTensor:
    """Convert a ``size`` x ``size`` RGBA raster into a [1, 3, size, size] tensor.

    Alpha is dropped. Each channel is scaled to [0, 1] and then normalized
    with the ImageNet mean and standard deviation. The result is planar:
    index ``c*size*size + h*size + w`` holds channel ``c`` of pixel ``(h, w)``.

    Raises:
        InvalidDimensionsError: If the raster is not exactly ``size`` x ``size``.
    """
    if image.width != size or image.height != size:
        raise InvalidDimensionsError(f"Expected a {size}x{size} raster, got {image.width}x{image.height}")

    rgb = image.pixels[:, :, :TENSOR_CHANNELS].astype(np.float32) / np.float32(255.0)
    planar = rgb.transpose(2, 0, 1)
    normalized = (planar - MEAN_CHW) / STD_CHW
    return ClassificationTensor(data=normalized[np.newaxis, ...])
