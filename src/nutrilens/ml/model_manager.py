"""Model manager: open the classification model once and validate its metadata.

The ONNX session is created a single time per process. Input and output
tensor names and shapes are resolved when the model is opened, so a model
that does not fit the pipeline fails at startup rather than on the first
request.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from enum import StrEnum
from pathlib import Path
from typing import TYPE_CHECKING

from onnxruntime import InferenceSession, SessionOptions
from onnxruntime.capi.onnxruntime_pybind11_state import ExecutionMode

from nutrilens.ml.assets import HubAssetLoader, LocalAssetLoader
from nutrilens.ml.constants import TENSOR_CHANNELS
from nutrilens.ml.errors import ModelUnavailableError

if TYPE_CHECKING:
    from nutrilens.config import Settings
    from nutrilens.ml.assets import AssetLoader

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Model registry
# ---------------------------------------------------------------------------


class ModelTask(StrEnum):
    IMAGE_CLASSIFICATION = "image_classification"


@dataclass(frozen=True)
class ModelSpec:
    """Static metadata for a single ONNX model."""

    name: str
    filename: str
    labels_filename: str
    task: ModelTask
    license: str


MODEL_REGISTRY: dict[str, ModelSpec] = {
    "resnet50_v1_int8": ModelSpec(
        name="resnet50_v1_int8",
        filename="resnet50-v1-12-int8.onnx",
        labels_filename="imagenet-simple-labels.json",
        task=ModelTask.IMAGE_CLASSIFICATION,
        license="Apache-2.0",
    ),
    "resnet50_v1": ModelSpec(
        name="resnet50_v1",
        filename="resnet50-v1-12.onnx",
        labels_filename="imagenet-simple-labels.json",
        task=ModelTask.IMAGE_CLASSIFICATION,
        license="Apache-2.0",
    ),
    "mobilenetv2": ModelSpec(
        name="mobilenetv2",
        filename="mobilenetv2-12.onnx",
        labels_filename="imagenet-simple-labels.json",
        task=ModelTask.IMAGE_CLASSIFICATION,
        license="Apache-2.0",
    ),
}


def get_spec(model_name: str) -> ModelSpec:
    """Look up a registered model.

    Raises:
        ModelUnavailableError: If no model of that name is registered.
    """
    try:
        return MODEL_REGISTRY[model_name]
    except KeyError:
        known = ", ".join(sorted(MODEL_REGISTRY))
        raise ModelUnavailableError(f"Unknown model: {model_name} (known: {known})") from None


# ---------------------------------------------------------------------------
# Opened model
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ModelHandle:
    """An opened model with its resolved I/O contract. Read-only after creation."""

    name: str
    session: InferenceSession
    input_name: str
    output_name: str
    input_shape: tuple[int, int, int, int]
    labels: tuple[str, ...]

    @property
    def num_classes(self) -> int:
        return len(self.labels)


def _is_static(dim: object) -> bool:
    return isinstance(dim, int) and dim > 0


def resolve_io(session: InferenceSession, input_size: int, num_labels: int) -> tuple[str, str]:
    """Check the session's first input/output against the pipeline contract.

    Symbolic (named or unknown) dimensions are accepted; static ones must match.

    Returns:
        The (input_name, output_name) pair.

    Raises:
        ModelUnavailableError: If the model has no inputs/outputs or the shapes do not fit.
    """
    inputs = session.get_inputs()
    outputs = session.get_outputs()
    if not inputs or not outputs:
        raise ModelUnavailableError("Model declares no inputs or no outputs")

    model_input, model_output = inputs[0], outputs[0]
    in_shape = list(model_input.shape)
    expected = [1, TENSOR_CHANNELS, input_size, input_size]
    if len(in_shape) != len(expected):
        raise ModelUnavailableError(f"Model input '{model_input.name}' has rank {len(in_shape)}, expected 4")
    for axis, (actual, wanted) in enumerate(zip(in_shape, expected, strict=True)):
        if _is_static(actual) and actual != wanted:
            raise ModelUnavailableError(
                f"Model input '{model_input.name}' has shape {in_shape}, expected {expected} (axis {axis})"
            )

    out_shape = list(model_output.shape)
    if len(out_shape) not in (1, 2):
        raise ModelUnavailableError(f"Model output '{model_output.name}' has rank {len(out_shape)}, expected 1 or 2")
    classes = out_shape[-1]
    if _is_static(classes) and classes != num_labels:
        raise ModelUnavailableError(
            f"Model output '{model_output.name}' has {classes} classes but the label table has {num_labels}"
        )

    return model_input.name, model_output.name


# ---------------------------------------------------------------------------
# Concrete implementation
# ---------------------------------------------------------------------------


class OnnxModelManager:
    """Loads the configured model exactly once and hands out its handle."""

    def __init__(self, settings: Settings, asset_loader: AssetLoader | None = None) -> None:
        self._settings = settings
        self._model_name = settings.model_name
        self._asset_loader = asset_loader

        self._lock = threading.Lock()
        self._handle: ModelHandle | None = None
        self._load_error: ModelUnavailableError | None = None

        self._providers = self._build_providers()
        self._session_options = self._build_session_options()

    # -- Public API ---------------------------------------------------------

    @property
    def is_loaded(self) -> bool:
        return self._handle is not None

    def load(self) -> ModelHandle:
        """Open the model, or return the handle opened earlier.

        A failed load is remembered and re-raised on later calls; it is not retried.

        Raises:
            ModelUnavailableError: If the assets are missing, corrupt, or do not fit the pipeline.
        """
        with self._lock:
            if self._handle is not None:
                return self._handle
            if self._load_error is not None:
                raise self._load_error
            try:
                self._handle = self._open()
            except ModelUnavailableError as exc:
                self._load_error = exc
                logger.error("Model %s unavailable: %s", self._model_name, exc)
                raise
            logger.info(
                "Loaded %s (input=%s, output=%s, classes=%s)",
                self._model_name,
                self._handle.input_name,
                self._handle.output_name,
                self._handle.num_classes,
            )
            return self._handle

    @property
    def handle(self) -> ModelHandle:
        """Return the loaded handle without triggering a load."""
        handle = self._handle
        if handle is None:
            raise self.load_error()
        return handle

    def load_error(self) -> ModelUnavailableError:
        """Return why the model is not available."""
        return self._load_error or ModelUnavailableError(f"Model '{self._model_name}' is not loaded")

    def get_loaded_models(self) -> list[str]:
        """Return names of models with an open session."""
        return [self._model_name] if self._handle is not None else []

    def shutdown(self) -> None:
        """Drop the open session."""
        with self._lock:
            self._handle = None
            logger.info("Model session cleared")

    # -- Internal -----------------------------------------------------------

    def _open(self) -> ModelHandle:
        spec = get_spec(self._model_name)
        loader = self._asset_loader or self._build_asset_loader(spec)
        labels = loader.load_labels()
        model_bytes = loader.load_model_bytes()
        try:
            session = InferenceSession(
                model_bytes,
                sess_options=self._session_options,
                providers=self._providers,
            )
        except Exception as exc:  # noqa: BLE001 - onnxruntime raises pybind11 types outside any common base
            raise ModelUnavailableError(f"Failed to open model '{self._model_name}': {exc}") from exc

        input_size = self._settings.input_size
        input_name, output_name = resolve_io(session, input_size, len(labels))
        return ModelHandle(
            name=self._model_name,
            session=session,
            input_name=input_name,
            output_name=output_name,
            input_shape=(1, TENSOR_CHANNELS, input_size, input_size),
            labels=tuple(labels),
        )

    def _build_asset_loader(self, spec: ModelSpec) -> AssetLoader:
        models_dir = Path(self._settings.models_dir)
        if self._settings.model_repo_id:
            try:
                models_dir.mkdir(parents=True, exist_ok=True)
            except OSError as exc:
                raise ModelUnavailableError(f"Cannot create models directory {models_dir}: {exc}") from exc
            return HubAssetLoader(self._settings.model_repo_id, models_dir, spec)
        return LocalAssetLoader(models_dir, spec)

    def _build_providers(self) -> list[str | tuple[str, dict[str, object]]]:
        device = self._settings.device
        if device == "cuda":
            return [
                (
                    "CUDAExecutionProvider",
                    {
                        "device_id": 0,
                        "gpu_mem_limit": self._settings.gpu_mem_limit,
                        "arena_extend_strategy": "kSameAsRequested",
                    },
                ),
                "CPUExecutionProvider",
            ]
        if device == "openvino":
            return [
                ("OpenVINOExecutionProvider", {"device_type": "CPU"}),
                "CPUExecutionProvider",
            ]
        return ["CPUExecutionProvider"]

    def _build_session_options(self) -> SessionOptions:
        opts = SessionOptions()
        opts.intra_op_num_threads = self._settings.intra_op_threads
        opts.inter_op_num_threads = self._settings.inter_op_threads
        opts.execution_mode = ExecutionMode.ORT_SEQUENTIAL
        opts.enable_mem_pattern = True
        opts.enable_mem_reuse = True

        if self._settings.device == "openvino":
            # OpenVINO does its own graph optimization
            from onnxruntime import GraphOptimizationLevel

            opts.graph_optimization_level = GraphOptimizationLevel.ORT_DISABLE_ALL
        return opts
