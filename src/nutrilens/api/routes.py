"""API route definitions."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Annotated

from fastapi import APIRouter, Depends, Query, Request, UploadFile, status
from fastapi.responses import JSONResponse

from nutrilens.api.middleware import verify_api_key
from nutrilens.api.schemas import (
    ClassifyImageResponse,
    ErrorResponse,
    HealthResponse,
    ModelInfo,
    ModelsResponse,
    PredictionTag,
)
from nutrilens.foods import NutritionItem
from nutrilens.ml.errors import (
    ClassificationError,
    DecodeError,
    InferenceError,
    InferenceTimeoutError,
    InvalidArgumentError,
    InvalidDimensionsError,
    ModelUnavailableError,
)
from nutrilens.ml.model_manager import MODEL_REGISTRY

if TYPE_CHECKING:
    from nutrilens.config import Settings
    from nutrilens.foods import FoodDatabase
    from nutrilens.ml.image_classifier import ImageClassifier
    from nutrilens.ml.inference import InferencePool
    from nutrilens.ml.model_manager import OnnxModelManager

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1", dependencies=[Depends(verify_api_key)])

_ERROR_STATUS: dict[type[ClassificationError], int] = {
    DecodeError: status.HTTP_422_UNPROCESSABLE_ENTITY,
    InvalidArgumentError: status.HTTP_422_UNPROCESSABLE_ENTITY,
    ModelUnavailableError: status.HTTP_503_SERVICE_UNAVAILABLE,
    InferenceTimeoutError: status.HTTP_503_SERVICE_UNAVAILABLE,
    InferenceError: status.HTTP_502_BAD_GATEWAY,
    InvalidDimensionsError: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


def _get_settings(request: Request) -> Settings:
    settings: Settings = request.app.state.settings
    return settings


def _get_inference_pool(request: Request) -> InferencePool:
    pool: InferencePool = request.app.state.inference_pool
    return pool


def _get_model_manager(request: Request) -> OnnxModelManager:
    manager: OnnxModelManager = request.app.state.model_manager
    return manager


def _get_classifier(request: Request) -> ImageClassifier | None:
    classifier: ImageClassifier | None = request.app.state.classifier
    return classifier


def _get_foods(request: Request) -> FoodDatabase:
    foods: FoodDatabase = request.app.state.foods
    return foods


def _error_response(exc: ClassificationError) -> JSONResponse:
    status_code = next(
        (code for error_type, code in _ERROR_STATUS.items() if isinstance(exc, error_type)),
        status.HTTP_500_INTERNAL_SERVER_ERROR,
    )
    if status_code == status.HTTP_500_INTERNAL_SERVER_ERROR:
        logger.error("Classification contract violation", exc_info=exc)
    else:
        logger.warning("Classification failed (%s): %s", type(exc).__name__, exc)
    return JSONResponse(status_code=status_code, content={"detail": str(exc)})


@router.post(
    "/classify-image",
    response_model=ClassifyImageResponse,
    responses={
        status.HTTP_413_REQUEST_ENTITY_TOO_LARGE: {"model": ErrorResponse},
        status.HTTP_422_UNPROCESSABLE_ENTITY: {"model": ErrorResponse},
        status.HTTP_502_BAD_GATEWAY: {"model": ErrorResponse},
        status.HTTP_503_SERVICE_UNAVAILABLE: {"model": ErrorResponse},
    },
    summary="Classify a food photo",
)
async def classify_image(
    request: Request,
    file: UploadFile,
    top_k: Annotated[int | None, Query(description="Number of predictions to return")] = None,
    match_food: Annotated[bool, Query(description="Look up the top prediction in the food table")] = True,
) -> ClassifyImageResponse | JSONResponse:
    """Classify an uploaded photo and return ranked labels."""
    settings = _get_settings(request)
    classifier = _get_classifier(request)
    if classifier is None:
        return _error_response(_get_model_manager(request).load_error())

    data = await file.read()
    if len(data) > settings.max_file_size:
        return JSONResponse(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            content={"detail": f"File exceeds {settings.max_file_size} bytes"},
        )

    k = settings.default_top_k if top_k is None else top_k
    pool = _get_inference_pool(request)
    try:
        predictions = await pool.run(classifier.classify, data, k, timeout=settings.inference_timeout)
    except ClassificationError as exc:
        return _error_response(exc)

    food = None
    if match_food and predictions:
        found = _get_foods(request).match_label(predictions[0].label)
        if found is not None:
            food = NutritionItem.from_food(found)

    return ClassifyImageResponse(
        model=classifier.model_name,
        predictions=[PredictionTag(label=p.label, confidence=p.confidence) for p in predictions],
        food=food,
    )


@router.get(
    "/foods/search",
    response_model=NutritionItem,
    responses={status.HTTP_404_NOT_FOUND: {"model": ErrorResponse}},
    summary="Look up a food by name",
)
async def search_food(
    request: Request,
    q: Annotated[str, Query(min_length=1, description="Food name or serving text")],
) -> NutritionItem | JSONResponse:
    """Return nutrition data for the first food matching the query."""
    foods = _get_foods(request)
    found = foods.search(q)
    if found is None:
        hints = ", ".join(foods.suggestions())
        return JSONResponse(
            status_code=status.HTTP_404_NOT_FOUND,
            content={"detail": f"Could not find '{q}' in the food table. Try: {hints}"},
        )
    return NutritionItem.from_food(found)


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Health check",
)
async def health(request: Request) -> HealthResponse:
    """Return service health status."""
    settings = _get_settings(request)
    pool = _get_inference_pool(request)
    manager = _get_model_manager(request)
    return HealthResponse(
        status="ok",
        gpu=settings.device == "cuda",
        models_loaded=manager.get_loaded_models(),
        classifier_available=_get_classifier(request) is not None,
        concurrent_requests=pool.active_count,
        queue_depth=pool.queue_depth,
    )


@router.get(
    "/models",
    response_model=ModelsResponse,
    summary="List available models",
)
async def list_models(request: Request) -> ModelsResponse:
    """Return available models and their status based on current configuration."""
    settings = _get_settings(request)
    manager = _get_model_manager(request)

    models: list[ModelInfo] = []
    for spec in MODEL_REGISTRY.values():
        if spec.name != settings.model_name:
            model_status = "available"
        elif manager.is_loaded:
            model_status = "active"
        else:
            model_status = "unavailable"

        models.append(
            ModelInfo(
                name=spec.name,
                task=spec.task,
                status=model_status,
                license=spec.license,
            )
        )

    return ModelsResponse(models=models)
