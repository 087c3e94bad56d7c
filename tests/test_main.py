"""Tests for classifier start-up."""

from __future__ import annotations

import asyncio
import threading
from unittest.mock import MagicMock

from conftest import make_handle, make_session
from fastapi import FastAPI

from nutrilens.config import Settings
from nutrilens.main import load_classifier
from nutrilens.ml.errors import ModelUnavailableError
from nutrilens.ml.image_classifier import OnnxImageClassifier


def _app() -> FastAPI:
    app = FastAPI()
    app.state.classifier = None
    return app


class TestLoadClassifier:
    async def test_installs_classifier(self) -> None:
        app = _app()
        manager = MagicMock()
        manager.load.return_value = make_handle(make_session())

        await load_classifier(app, manager, Settings())

        assert isinstance(app.state.classifier, OnnxImageClassifier)
        manager.load.assert_called_once()

    async def test_load_failure_leaves_classification_disabled(self) -> None:
        app = _app()
        manager = MagicMock()
        manager.load.side_effect = ModelUnavailableError("Model asset not found: models/resnet50-v1-12-int8.onnx")

        await load_classifier(app, manager, Settings())

        assert app.state.classifier is None

    async def test_slow_load_finishes_in_background(self) -> None:
        app = _app()
        release = threading.Event()
        handle = make_handle(make_session())

        def slow_load() -> object:
            release.wait(timeout=5)
            return handle

        manager = MagicMock()
        manager.load.side_effect = slow_load

        await load_classifier(app, manager, Settings(model_load_timeout=0.05))
        assert app.state.classifier is None

        release.set()
        for _ in range(100):
            if app.state.classifier is not None:
                break
            await asyncio.sleep(0.01)
        assert isinstance(app.state.classifier, OnnxImageClassifier)
