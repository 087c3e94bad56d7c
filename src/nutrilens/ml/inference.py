"""Inference concurrency layer.

Architecture:
    FastAPI (async) -> asyncio.Semaphore(N) -> ThreadPoolExecutor(N) -> classification pipeline

Requests beyond the semaphore limit queue with a 5s timeout. Each admitted
request runs its whole pipeline (decode, resize, normalize, infer, rank) in
one worker thread. A request that exceeds its timeout is reported as timed
out; the worker finishes in the background and its result is discarded, and
the slot is only handed back once it does.
"""

from __future__ import annotations

import asyncio
import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import TYPE_CHECKING, TypeVar

from nutrilens.ml.errors import InferenceTimeoutError

if TYPE_CHECKING:
    from collections.abc import Callable

    from nutrilens.config import Settings

logger = logging.getLogger(__name__)

T = TypeVar("T")

SEMAPHORE_TIMEOUT_SECONDS: float = 5.0


class InferencePool:
    """Manages the semaphore and thread pool for ML inference."""

    def __init__(self, settings: Settings) -> None:
        self._semaphore = asyncio.Semaphore(settings.max_concurrent)
        self._executor = ThreadPoolExecutor(
            max_workers=settings.max_concurrent,
            thread_name_prefix="onnx-inference",
        )
        self._active_count: int = 0
        self._queue_depth: int = 0
        self._counter_lock = threading.Lock()

    async def run(self, func: Callable[..., T], *args: object, timeout: float | None = None) -> T:
        """Submit a synchronous function to the inference thread pool.

        Acquires the semaphore (with timeout), runs the function in the
        executor, then releases.

        Raises:
            InferenceTimeoutError: If no slot is free within the queue timeout,
                or the function does not finish within ``timeout`` seconds.
        """
        with self._counter_lock:
            self._queue_depth += 1
        try:
            await asyncio.wait_for(
                self._semaphore.acquire(),
                timeout=SEMAPHORE_TIMEOUT_SECONDS,
            )
        except TimeoutError:
            raise InferenceTimeoutError(
                f"No inference slot became free within {SEMAPHORE_TIMEOUT_SECONDS}s"
            ) from None
        finally:
            with self._counter_lock:
                self._queue_depth -= 1

        with self._counter_lock:
            self._active_count += 1
        loop = asyncio.get_running_loop()
        future = loop.run_in_executor(self._executor, func, *args)
        try:
            return await asyncio.wait_for(asyncio.shield(future), timeout=timeout)
        except TimeoutError:
            if future.done():
                raise
            logger.warning("Inference exceeded %ss; discarding its result", timeout)
            raise InferenceTimeoutError(f"Inference did not finish within {timeout}s") from None
        finally:
            if future.done():
                self._release()
            else:
                future.add_done_callback(self._release_abandoned)

    def _release(self) -> None:
        self._semaphore.release()
        with self._counter_lock:
            self._active_count -= 1

    def _release_abandoned(self, future: asyncio.Future[object]) -> None:
        if not future.cancelled() and future.exception() is not None:
            logger.info("Abandoned inference finished with %r", future.exception())
        self._release()

    @property
    def active_count(self) -> int:
        """Number of currently running inference tasks."""
        with self._counter_lock:
            return self._active_count

    @property
    def queue_depth(self) -> int:
        """Number of requests waiting for a semaphore slot."""
        with self._counter_lock:
            return self._queue_depth

    def shutdown(self) -> None:
        """Shut down the thread pool executor."""
        self._executor.shutdown(wait=True)
