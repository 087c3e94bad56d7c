"""FastAPI application entry point."""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from nutrilens.config import Settings
    from nutrilens.ml.model_manager import ModelHandle

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from nutrilens.api.routes import router
from nutrilens.config import get_settings
from nutrilens.foods import load_food_database
from nutrilens.ml.errors import ModelUnavailableError
from nutrilens.ml.image_classifier import OnnxImageClassifier
from nutrilens.ml.inference import InferencePool
from nutrilens.ml.model_manager import OnnxModelManager

logger = logging.getLogger(__name__)


async def load_classifier(app: FastAPI, manager: OnnxModelManager, settings: Settings) -> None:
    """Open the model in a worker thread and install the classifier on ``app.state``.

    A load failure disables classification but leaves the rest of the API
    running. A load that outlives ``model_load_timeout`` keeps going in the
    background and enables classification when it completes.
    """
    loop = asyncio.get_running_loop()
    future: asyncio.Future[ModelHandle] = loop.run_in_executor(None, manager.load)

    def _install(done: asyncio.Future[ModelHandle]) -> None:
        if done.cancelled() or done.exception() is not None:
            return
        app.state.classifier = OnnxImageClassifier.from_settings(done.result(), settings)

    future.add_done_callback(_install)
    try:
        await asyncio.wait_for(asyncio.shield(future), timeout=settings.model_load_timeout)
    except ModelUnavailableError as exc:
        logger.error("Image classification disabled: %s", exc)
    except TimeoutError:
        logger.warning(
            "Loading %s exceeded %ss; classification stays unavailable until it finishes",
            settings.model_name,
            settings.model_load_timeout,
        )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Application lifespan: initialize on startup, clean up on shutdown."""
    settings = get_settings()
    app.state.settings = settings

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )

    logger.info(
        "Starting NutriLens (device=%s, max_concurrent=%s, model=%s)",
        settings.device,
        settings.max_concurrent,
        settings.model_name,
    )

    inference_pool = InferencePool(settings)
    model_manager = OnnxModelManager(settings)
    app.state.inference_pool = inference_pool
    app.state.model_manager = model_manager
    app.state.classifier = None
    app.state.foods = load_food_database()

    await load_classifier(app, model_manager, settings)

    logger.info("NutriLens ready")
    yield

    logger.info("Shutting down NutriLens")
    inference_pool.shutdown()
    model_manager.shutdown()
    logger.info("NutriLens shutdown complete")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    application = FastAPI(
        title="NutriLens",
        description="Food photo classification and nutrition lookup API",
        version="0.1.0",
        lifespan=lifespan,
    )

    application.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    application.include_router(router)
    return application


app = create_app()


def run() -> None:
    """Serve the API with uvicorn using NUTRILENS_HOST / NUTRILENS_PORT."""
    import uvicorn

    settings = get_settings()
    uvicorn.run("nutrilens.main:app", host=settings.host, port=settings.port)
