"""Pydantic request/response schemas for the NutriLens API."""

from __future__ import annotations

from pydantic import BaseModel, Field

from nutrilens.foods import NutritionItem


class PredictionTag(BaseModel):
    """A single classification label with its confidence."""

    label: str
    confidence: float = Field(ge=0.0, le=100.0, description="Softmax probability as a percentage (0-100)")


class ClassifyImageResponse(BaseModel):
    """Response for image classification endpoint."""

    model: str
    predictions: list[PredictionTag]
    food: NutritionItem | None = Field(
        default=None,
        description="Nutrition data for the top prediction, when it matches the food table",
    )


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = "ok"
    gpu: bool
    models_loaded: list[str]
    classifier_available: bool
    concurrent_requests: int
    queue_depth: int


class ModelInfo(BaseModel):
    """Information about an available model."""

    name: str
    task: str = Field(description="Model task: 'image_classification'")
    status: str = Field(description="Model status: 'active', 'unavailable', or 'available'")
    license: str


class ModelsResponse(BaseModel):
    """Response for the models listing endpoint."""

    models: list[ModelInfo]


class ErrorResponse(BaseModel):
    """Standard error response."""

    detail: str
