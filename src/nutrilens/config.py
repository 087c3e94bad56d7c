"""Environment-based configuration for NutriLens."""

from __future__ import annotations

from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from NUTRILENS_* environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="NUTRILENS_",
        case_sensitive=False,
        protected_namespaces=("settings_",),
    )

    # Server
    host: str = "0.0.0.0"  # noqa: S104
    port: int = 8083

    # Authentication (None = disabled)
    api_key: str | None = None

    # ML device
    device: Literal["cpu", "cuda", "openvino"] = "cpu"

    # Model selection
    model_name: str = "resnet50_v1_int8"
    models_dir: str = "models"
    # When set, model assets are fetched from this HuggingFace repo instead of models_dir only.
    model_repo_id: str | None = None

    # ONNX Runtime threading
    intra_op_threads: int = Field(default=0, ge=0)
    inter_op_threads: int = Field(default=1, ge=1)

    # Concurrency
    max_concurrent: int = Field(default=2, ge=1)

    # Timeouts (seconds)
    model_load_timeout: float = Field(default=60.0, gt=0)
    inference_timeout: float = Field(default=10.0, gt=0)

    # Input limits
    max_image_pixels: int = Field(default=16_777_216, ge=1)
    max_file_size: int = Field(default=20_971_520, ge=1)

    # Classification
    input_size: int = Field(default=224, ge=1)
    default_top_k: int = Field(default=3, ge=1)
    jpeg_quality: int = Field(default=100, ge=1, le=100)

    gpu_mem_limit: int = Field(default=2_147_483_648, ge=0)


def get_settings() -> Settings:
    """Create and return application settings."""
    return Settings()
