"""Per-request image and tensor containers.

Both types are created by one pipeline stage, handed to the next, and then
discarded. Their arrays are marked read-only on construction.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

import numpy as np

from nutrilens.ml.constants import RGBA_CHANNELS, TENSOR_CHANNELS
from nutrilens.ml.errors import InvalidDimensionsError

if TYPE_CHECKING:
    from numpy.typing import NDArray


@dataclass(frozen=True)
class RasterImage:
    """Interleaved RGBA pixels, row-major, shape (height, width, 4)."""

    width: int
    height: int
    pixels: NDArray[np.uint8]

    def __post_init__(self) -> None:
        if self.width <= 0 or self.height <= 0:
            raise InvalidDimensionsError(f"Raster size must be positive, got {self.width}x{self.height}")
        if self.pixels.dtype != np.uint8:
            raise InvalidDimensionsError(f"Raster pixels must be uint8, got {self.pixels.dtype}")
        expected = self.width * self.height * RGBA_CHANNELS
        if self.pixels.size != expected:
            raise InvalidDimensionsError(
                f"Raster {self.width}x{self.height} needs {expected} samples, got {self.pixels.size}"
            )
        # own the samples so the caller cannot mutate a frozen raster
        pixels = np.array(self.pixels, dtype=np.uint8, copy=True).reshape(self.height, self.width, RGBA_CHANNELS)
        pixels.flags.writeable = False
        object.__setattr__(self, "pixels", pixels)

    @classmethod
    def from_bytes(cls, width: int, height: int, data: bytes) -> RasterImage:
        """Build a raster from a flat RGBA byte string."""
        return cls(width=width, height=height, pixels=np.frombuffer(data, dtype=np.uint8))

    @property
    def size(self) -> tuple[int, int]:
        return (self.width, self.height)

    def tobytes(self) -> bytes:
        return self.pixels.tobytes()


@dataclass(frozen=True)
class ClassificationTensor:
    """Planar (NCHW) normalized float32 tensor with batch size 1."""

    data: NDArray[np.float32]

    def __post_init__(self) -> None:
        if self.data.ndim != 4 or self.data.shape[0] != 1 or self.data.shape[1] != TENSOR_CHANNELS:
            raise InvalidDimensionsError(f"Tensor must be shaped [1, 3, H, W], got {list(self.data.shape)}")
        data = np.array(self.data, dtype=np.float32, order="C", copy=True)
        data.flags.writeable = False
        object.__setattr__(self, "data", data)

    @property
    def dims(self) -> list[int]:
        return [int(d) for d in self.data.shape]
