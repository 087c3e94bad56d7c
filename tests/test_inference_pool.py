"""Tests for the inference concurrency layer."""

from __future__ import annotations

import asyncio
import threading
import time
from typing import TYPE_CHECKING

import pytest

from nutrilens.config import Settings
from nutrilens.ml.errors import DecodeError, InferenceTimeoutError
from nutrilens.ml.inference import InferencePool

if TYPE_CHECKING:
    from collections.abc import Iterator


@pytest.fixture()
def pool() -> Iterator[InferencePool]:
    inference_pool = InferencePool(Settings(max_concurrent=1))
    yield inference_pool
    inference_pool.shutdown()


class TestInferencePool:
    async def test_runs_in_worker_thread(self, pool: InferencePool) -> None:
        name = await pool.run(lambda: threading.current_thread().name)
        assert name.startswith("onnx-inference")

    async def test_passes_arguments(self, pool: InferencePool) -> None:
        assert await pool.run(pow, 2, 10) == 1024

    async def test_errors_propagate_unchanged(self, pool: InferencePool) -> None:
        def fail() -> None:
            raise DecodeError("bad photo")

        with pytest.raises(DecodeError, match="bad photo"):
            await pool.run(fail)
        assert pool.active_count == 0

    async def test_timeout_raises_and_pool_recovers(self, pool: InferencePool) -> None:
        release = threading.Event()

        def slow() -> str:
            release.wait(timeout=5)
            return "late"

        with pytest.raises(InferenceTimeoutError):
            await pool.run(slow, timeout=0.05)
        # The worker still holds the only slot until it finishes.
        assert pool.active_count == 1

        release.set()
        for _ in range(100):
            if pool.active_count == 0:
                break
            await asyncio.sleep(0.01)
        assert pool.active_count == 0
        assert await pool.run(lambda: "ok", timeout=1.0) == "ok"

    async def test_timeout_is_a_builtin_timeout(self, pool: InferencePool) -> None:
        with pytest.raises(TimeoutError):
            await pool.run(time.sleep, 0.3, timeout=0.01)

    async def test_counters_idle(self, pool: InferencePool) -> None:
        assert pool.active_count == 0
        assert pool.queue_depth == 0
