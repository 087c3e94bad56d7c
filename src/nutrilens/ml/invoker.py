"""Running the opened model on a prepared tensor."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import numpy as np

from nutrilens.ml.errors import InferenceError, InvalidDimensionsError

if TYPE_CHECKING:
    from numpy.typing import NDArray

    from nutrilens.ml.model_manager import ModelHandle
    from nutrilens.ml.raster import ClassificationTensor

logger = logging.getLogger(__name__)


class InferenceInvoker:
    """Feeds tensors to a :class:`ModelHandle` and returns raw logits.

    ONNX Runtime allows concurrent ``run`` calls on one session, so a single
    invoker can be shared by all worker threads.
    """

    def __init__(self, handle: ModelHandle) -> None:
        self._handle = handle

    @property
    def handle(self) -> ModelHandle:
        return self._handle

    def invoke(self, tensor: ClassificationTensor) -> NDArray[np.float64]:
        """Run inference and return a 1-D score vector of length ``num_classes``.

        Raises:
            InvalidDimensionsError: If the tensor shape does not match the model input.
            InferenceError: If the runtime fails or returns empty / mis-shaped output.
        """
        handle = self._handle
        if tuple(tensor.dims) != handle.input_shape:
            raise InvalidDimensionsError(f"Tensor dims {tensor.dims} do not match model input {list(handle.input_shape)}")

        try:
            outputs = handle.session.run([handle.output_name], {handle.input_name: tensor.data})
        except Exception as exc:  # noqa: BLE001 - onnxruntime raises pybind11 types outside any common base
            raise InferenceError(f"Inference failed on '{handle.name}': {exc}") from exc

        if not outputs or outputs[0] is None:
            raise InferenceError("Model returned no output data")

        # Quantized models may return integer logits; ranking works on float64.
        scores = np.asarray(outputs[0]).astype(np.float64)
        if scores.size == 0:
            raise InferenceError("Model returned an empty output tensor")
        if scores.ndim == 2 and scores.shape[0] == 1:
            scores = scores[0]
        if scores.ndim != 1 or scores.shape[0] != handle.num_classes:
            raise InferenceError(
                f"Model output shape {list(np.shape(outputs[0]))} does not match {handle.num_classes} classes"
            )
        if not np.all(np.isfinite(scores)):
            raise InferenceError("Model output contains non-finite values")

        logger.debug("Inference on %s returned %s scores", handle.name, scores.shape[0])
        return scores
