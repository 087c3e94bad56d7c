"""Tests for the inference invoker."""

from __future__ import annotations

from typing import TYPE_CHECKING

import numpy as np
import pytest
from conftest import make_handle, make_session

from nutrilens.ml.errors import InferenceError, InvalidDimensionsError
from nutrilens.ml.invoker import InferenceInvoker
from nutrilens.ml.raster import ClassificationTensor

if TYPE_CHECKING:
    from unittest.mock import MagicMock

    from nutrilens.ml.model_manager import ModelHandle


def _tensor(size: int = 224) -> ClassificationTensor:
    return ClassificationTensor(data=np.zeros((1, 3, size, size), dtype=np.float32))


class TestInferenceInvoker:
    def test_returns_flat_float64_scores(self, handle: ModelHandle) -> None:
        scores = InferenceInvoker(handle).invoke(_tensor())
        assert scores.dtype == np.float64
        assert scores.tolist() == pytest.approx([0.5, 3.0, 1.0, -2.0])

    def test_feeds_resolved_names(self, handle: ModelHandle, session: MagicMock) -> None:
        tensor = _tensor()
        InferenceInvoker(handle).invoke(tensor)

        session.run.assert_called_once()
        output_names, feeds = session.run.call_args.args
        assert output_names == ["resnetv17_dense0_fwd"]
        assert list(feeds) == ["data"]
        assert feeds["data"] is tensor.data

    def test_accepts_unbatched_output(self) -> None:
        handle = make_handle(make_session(np.array([1.0, 2.0, 3.0, 4.0])))
        assert InferenceInvoker(handle).invoke(_tensor()).shape == (4,)

    def test_casts_quantized_output(self) -> None:
        handle = make_handle(make_session(np.array([[1, -2, 3, 4]], dtype=np.int8)))
        scores = InferenceInvoker(handle).invoke(_tensor())
        assert scores.dtype == np.float64
        assert scores.tolist() == [1.0, -2.0, 3.0, 4.0]

    def test_wrong_tensor_size(self, handle: ModelHandle, session: MagicMock) -> None:
        with pytest.raises(InvalidDimensionsError):
            InferenceInvoker(handle).invoke(_tensor(size=112))
        session.run.assert_not_called()

    def test_no_output(self, handle: ModelHandle, session: MagicMock) -> None:
        session.run.return_value = []
        with pytest.raises(InferenceError, match="no output"):
            InferenceInvoker(handle).invoke(_tensor())

    def test_none_output(self, handle: ModelHandle, session: MagicMock) -> None:
        session.run.return_value = [None]
        with pytest.raises(InferenceError, match="no output"):
            InferenceInvoker(handle).invoke(_tensor())

    def test_empty_output(self, handle: ModelHandle, session: MagicMock) -> None:
        session.run.return_value = [np.zeros((1, 0), dtype=np.float32)]
        with pytest.raises(InferenceError, match="empty"):
            InferenceInvoker(handle).invoke(_tensor())

    def test_class_count_mismatch(self, handle: ModelHandle, session: MagicMock) -> None:
        session.run.return_value = [np.zeros((1, 1000), dtype=np.float32)]
        with pytest.raises(InferenceError, match="does not match"):
            InferenceInvoker(handle).invoke(_tensor())

    def test_batch_larger_than_one(self, handle: ModelHandle, session: MagicMock) -> None:
        session.run.return_value = [np.zeros((2, 4), dtype=np.float32)]
        with pytest.raises(InferenceError):
            InferenceInvoker(handle).invoke(_tensor())

    def test_non_finite_scores(self, handle: ModelHandle, session: MagicMock) -> None:
        session.run.return_value = [np.array([[0.0, np.nan, 1.0, 2.0]], dtype=np.float32)]
        with pytest.raises(InferenceError, match="non-finite"):
            InferenceInvoker(handle).invoke(_tensor())

    def test_runtime_failure_is_wrapped(self, handle: ModelHandle, session: MagicMock) -> None:
        session.run.side_effect = RuntimeError("[ONNXRuntimeError] : 2 : INVALID_ARGUMENT")
        with pytest.raises(InferenceError, match="INVALID_ARGUMENT") as exc_info:
            InferenceInvoker(handle).invoke(_tensor())
        assert isinstance(exc_info.value.__cause__, RuntimeError)
