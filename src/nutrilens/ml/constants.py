"""Numeric constants shared by the preprocessing and ranking stages."""

from __future__ import annotations

from typing import Final

import numpy as np

# Spatial size of the square input the pretrained network expects.
INPUT_SIZE: Final[int] = 224

# ImageNet per-channel statistics (R, G, B).
IMAGENET_MEAN: Final[tuple[float, float, float]] = (0.485, 0.456, 0.406)
IMAGENET_STD: Final[tuple[float, float, float]] = (0.229, 0.224, 0.225)

RGBA_CHANNELS: Final[int] = 4
TENSOR_CHANNELS: Final[int] = 3

DEFAULT_TOP_K: Final[int] = 3
UNKNOWN_LABEL: Final[str] = "unknown"


def channel_bounds() -> list[tuple[float, float]]:
    """Return the (min, max) normalized value attainable in each channel."""
    return [((0.0 - m) / s, (1.0 - m) / s) for m, s in zip(IMAGENET_MEAN, IMAGENET_STD, strict=True)]


# Broadcastable (C, 1, 1) arrays for planar normalization.
MEAN_CHW = np.asarray(IMAGENET_MEAN, dtype=np.float32).reshape(TENSOR_CHANNELS, 1, 1)
STD_CHW = np.asarray(IMAGENET_STD, dtype=np.float32).reshape(TENSOR_CHANNELS, 1, 1)
