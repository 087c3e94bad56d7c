"""Model asset loading.

The classifier never touches the filesystem or network directly. It asks an
:class:`AssetLoader` for the model bytes and the label table, so the source of
those assets (a local directory, the HuggingFace Hub) stays outside the
pipeline.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import TYPE_CHECKING, Protocol

from huggingface_hub import hf_hub_download
from huggingface_hub.errors import HfHubHTTPError

from nutrilens.ml.errors import ModelUnavailableError

if TYPE_CHECKING:
    from nutrilens.ml.model_manager import ModelSpec

logger = logging.getLogger(__name__)


class AssetLoader(Protocol):
    """Capability for fetching the packaged model and its label table."""

    def load_model_bytes(self) -> bytes:
        """Return the serialized ONNX model."""
        ...

    def load_labels(self) -> list[str]:
        """Return class names, index-aligned with the model output."""
        ...


def parse_labels(raw: str, source: str) -> list[str]:
    """Parse a label table from JSON (list of strings) or plain text (one per line)."""
    stripped = raw.strip()
    if stripped.startswith("["):
        try:
            labels = json.loads(stripped)
        except json.JSONDecodeError as exc:
            raise ModelUnavailableError(f"Label table {source} is not valid JSON: {exc}") from exc
        if not isinstance(labels, list) or not all(isinstance(label, str) for label in labels):
            raise ModelUnavailableError(f"Label table {source} must be a JSON list of strings")
    else:
        labels = [line.strip() for line in stripped.splitlines() if line.strip()]

    if not labels:
        raise ModelUnavailableError(f"Label table {source} is empty")
    return labels


class LocalAssetLoader:
    """Reads assets from a local directory."""

    def __init__(self, models_dir: Path, spec: ModelSpec) -> None:
        self._models_dir = models_dir
        self._spec = spec

    @property
    def model_path(self) -> Path:
        return self._models_dir / self._spec.filename

    @property
    def labels_path(self) -> Path:
        return self._models_dir / self._spec.labels_filename

    def load_model_bytes(self) -> bytes:
        return self._read_bytes(self.model_path)

    def load_labels(self) -> list[str]:
        return self._read_labels(self.labels_path)

    @staticmethod
    def _read_bytes(path: Path) -> bytes:
        if not path.is_file():
            raise ModelUnavailableError(f"Model asset not found: {path}")
        try:
            return path.read_bytes()
        except OSError as exc:
            raise ModelUnavailableError(f"Cannot read model asset {path}: {exc}") from exc

    @classmethod
    def _read_labels(cls, path: Path) -> list[str]:
        try:
            raw = cls._read_bytes(path).decode("utf-8")
        except UnicodeDecodeError as exc:
            raise ModelUnavailableError(f"Label table {path} is not UTF-8: {exc}") from exc
        return parse_labels(raw, str(path))


class HubAssetLoader(LocalAssetLoader):
    """Downloads assets from a HuggingFace repo into ``models_dir`` on first use."""

    def __init__(self, repo_id: str, models_dir: Path, spec: ModelSpec) -> None:
        super().__init__(models_dir, spec)
        self._repo_id = repo_id

    def load_model_bytes(self) -> bytes:
        return self._read_bytes(self._download(self._spec.filename))

    def load_labels(self) -> list[str]:
        return self._read_labels(self._download(self._spec.labels_filename))

    def _download(self, filename: str) -> Path:
        local = self._models_dir / filename
        if local.is_file():
            return local
        try:
            downloaded = Path(
                hf_hub_download(
                    repo_id=self._repo_id,
                    filename=filename,
                    local_dir=str(self._models_dir),
                )
            )
        except (HfHubHTTPError, OSError, ValueError) as exc:
            raise ModelUnavailableError(f"Could not download {filename} from {self._repo_id}: {exc}") from exc
        logger.info("Downloaded %s to %s", filename, downloaded)
        return downloaded
