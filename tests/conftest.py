"""Shared fixtures: synthetic photos and a fake ONNX session."""

from __future__ import annotations

import io
from types import SimpleNamespace
from unittest.mock import MagicMock

import numpy as np
import pytest
from PIL import Image

from nutrilens.ml.model_manager import ModelHandle

LABELS = ("cat", "dog", "bird", "fish")


def encode_image(
    width: int,
    height: int,
    color: tuple[int, ...] = (200, 30, 40),
    fmt: str = "JPEG",
    mode: str = "RGB",
    **save_kwargs: object,
) -> bytes:
    """Encode a solid-color image in the given format."""
    buffer = io.BytesIO()
    Image.new(mode, (width, height), color).save(buffer, format=fmt, **save_kwargs)
    return buffer.getvalue()


def noise_jpeg(width: int, height: int, seed: int = 0) -> bytes:
    rng = np.random.default_rng(seed)
    pixels = rng.integers(0, 256, size=(height, width, 3), dtype=np.uint8)
    buffer = io.BytesIO()
    Image.fromarray(pixels).save(buffer, format="JPEG", quality=95)
    return buffer.getvalue()


def make_session(
    logits: object = None,
    *,
    input_shape: list[object] | None = None,
    output_shape: list[object] | None = None,
    num_classes: int = len(LABELS),
) -> MagicMock:
    """Build a MagicMock that looks like an onnxruntime InferenceSession."""
    session = MagicMock()
    session.get_inputs.return_value = [SimpleNamespace(name="data", shape=input_shape or ["N", 3, 224, 224])]
    session.get_outputs.return_value = [SimpleNamespace(name="resnetv17_dense0_fwd", shape=output_shape or ["N", num_classes])]
    if logits is None:
        logits = np.zeros((1, num_classes), dtype=np.float32)
    session.run.return_value = [np.asarray(logits)]
    return session


def make_handle(session: MagicMock, labels: tuple[str, ...] = LABELS, input_size: int = 224) -> ModelHandle:
    return ModelHandle(
        name="resnet50_v1_int8",
        session=session,
        input_name="data",
        output_name="resnetv17_dense0_fwd",
        input_shape=(1, 3, input_size, input_size),
        labels=labels,
    )


@pytest.fixture()
def session() -> MagicMock:
    return make_session(np.array([[0.5, 3.0, 1.0, -2.0]], dtype=np.float32))


@pytest.fixture()
def handle(session: MagicMock) -> ModelHandle:
    return make_handle(session)
