"""Single-slot inference worker.

Architecture:
    FastAPI (async) -> asyncio.Semaphore(1) -> ThreadPoolExecutor(1) -> BlurDetector

The detector reuses its scratch buffers, so at most one classification is in
flight at a time. Callers waiting longer than the queue timeout get a
TimeoutError (HTTP 503).
"""

from __future__ import annotations

import asyncio
import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import TYPE_CHECKING, TypeVar

if TYPE_CHECKING:
    from collections.abc import Callable

    from focusgate.config import Settings

logger = logging.getLogger(__name__)

T = TypeVar("T")

WORKER_COUNT = 1


class InferencePool:
    """Queues blocking detector work onto one dedicated thread."""

    def __init__(self, settings: Settings) -> None:
        self._timeout = settings.queue_timeout
        self._semaphore = asyncio.Semaphore(WORKER_COUNT)
        self._executor = ThreadPoolExecutor(
            max_workers=WORKER_COUNT,
            thread_name_prefix="blur-inference",
        )
        self._active_count: int = 0
        self._queue_depth: int = 0
        self._counter_lock = threading.Lock()

    async def run(self, func: Callable[..., T], *args: object) -> T:
        """Run a synchronous function on the inference thread.

        Raises:
            TimeoutError: If the slot does not free up within the queue timeout.
        """
        with self._counter_lock:
            self._queue_depth += 1
        try:
            await asyncio.wait_for(self._semaphore.acquire(), timeout=self._timeout)
        except TimeoutError:
            logger.warning("Inference slot busy for %.1fs, rejecting request", self._timeout)
            raise
        finally:
            with self._counter_lock:
                self._queue_depth -= 1

        with self._counter_lock:
            self._active_count += 1
        try:
            loop = asyncio.get_running_loop()
            return await loop.run_in_executor(self._executor, func, *args)
        finally:
            self._semaphore.release()
            with self._counter_lock:
                self._active_count -= 1

    @property
    def active_count(self) -> int:
        """Number of currently running inference tasks."""
        with self._counter_lock:
            return self._active_count

    @property
    def queue_depth(self) -> int:
        """Number of requests waiting for the inference slot."""
        with self._counter_lock:
            return self._queue_depth

    def shutdown(self) -> None:
        """Shut down the worker thread."""
        self._executor.shutdown(wait=True)
