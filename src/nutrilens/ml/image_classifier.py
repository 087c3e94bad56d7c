"""Image classification: photo bytes in, ranked labels out."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Protocol

from nutrilens.ml.constants import DEFAULT_TOP_K
from nutrilens.ml.errors import InvalidArgumentError
from nutrilens.ml.invoker import InferenceInvoker
from nutrilens.ml.preprocessing import ImagePreprocessor
from nutrilens.ml.ranking import Prediction, rank

if TYPE_CHECKING:
    from nutrilens.config import Settings
    from nutrilens.ml.model_manager import ModelHandle

logger = logging.getLogger(__name__)


class ImageClassifier(Protocol):
    """Protocol for image classification models."""

    @property
    def model_name(self) -> str:
        """Return the model identifier string."""
        ...

    def classify(self, image_bytes: bytes, top_k: int = DEFAULT_TOP_K) -> list[Prediction]:
        """Classify an image and return ranked predictions.

        Args:
            image_bytes: Encoded photo (JPEG, or any format Pillow can read).
            top_k: Number of predictions to return.

        Returns:
            Exactly ``top_k`` predictions sorted by confidence (descending).
        """
        ...


class OnnxImageClassifier:
    """Classifies photos with an opened ONNX model.

    Holds no per-request state, so one instance serves concurrent requests.
    """

    def __init__(self, handle: ModelHandle, preprocessor: ImagePreprocessor) -> None:
        self._invoker = InferenceInvoker(handle)
        self._preprocessor = preprocessor

    @classmethod
    def from_settings(cls, handle: ModelHandle, settings: Settings) -> OnnxImageClassifier:
        preprocessor = ImagePreprocessor(
            settings.input_size,
            jpeg_quality=settings.jpeg_quality,
            max_pixels=settings.max_image_pixels,
        )
        return cls(handle, preprocessor)

    @property
    def model_name(self) -> str:
        return self._invoker.handle.name

    @property
    def labels(self) -> tuple[str, ...]:
        return self._invoker.handle.labels

    def classify(self, image_bytes: bytes, top_k: int = DEFAULT_TOP_K) -> list[Prediction]:
        """Classify an image and return ranked predictions.

        Raises:
            DecodeError: The photo could not be decoded.
            InvalidDimensionsError: Preprocessing produced a tensor of the wrong shape.
            InferenceError: The model failed or returned malformed output.
            InvalidArgumentError: ``top_k`` is outside ``[1, num_classes]``.
        """
        num_classes = self._invoker.handle.num_classes
        if top_k < 1 or top_k > num_classes:
            raise InvalidArgumentError(f"top_k must be between 1 and {num_classes}, got {top_k}")

        tensor = self._preprocessor.prepare(image_bytes)
        scores = self._invoker.invoke(tensor)
        predictions = rank(scores, self.labels, top_k)
        logger.info(
            "Classified image with %s: %s",
            self.model_name,
            ", ".join(f"{p.label} ({p.confidence:.1f}%)" for p in predictions),
        )
        return predictions
