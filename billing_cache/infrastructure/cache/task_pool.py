"""Bounded background pool for fire-and-forget cache work.

Recomputations after invalidation and bulk-lookup write-backs are queued
here instead of being spawned as unbounded tasks. A fixed number of
worker tasks drain the queue; when the queue is full new jobs are
dropped with a warning (a dropped recomputation only means the next
reader recomputes on the request path).
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Any

logger = logging.getLogger(__name__)

BackgroundJob = Callable[[], Awaitable[Any]]


class BackgroundTaskPool:
    """Fixed-size worker pool over a bounded asyncio.Queue.

    Job failures are logged and never reach the submitter.
    """

    def __init__(self, workers: int, queue_size: int) -> None:
        if workers < 1:
            raise ValueError("workers must be at least 1")
        self._worker_count = workers
        self._queue: asyncio.Queue[tuple[str, BackgroundJob]] = asyncio.Queue(maxsize=queue_size)
        self._workers: list[asyncio.Task[None]] = []

    @property
    def running(self) -> bool:
        return bool(self._workers)

    @property
    def pending(self) -> int:
        """Jobs queued but not yet picked up by a worker."""
        return self._queue.qsize()

    def start(self) -> None:
        """Spawn worker tasks on the running loop. Idempotent."""
        if self._workers:
            return
        self._workers = [
            asyncio.create_task(self._worker(), name=f"cache-background-{i}")
            for i in range(self._worker_count)
        ]
        logger.info("Cache background pool started with %d workers", self._worker_count)

    def submit(self, label: str, job: BackgroundJob) -> bool:
        """Queue job without waiting. Returns False when it was dropped."""
        try:
            self._queue.put_nowait((label, job))
        except asyncio.QueueFull:
            logger.warning(
                "Cache background queue full (%d jobs); dropping %s",
                self._queue.maxsize,
                label,
            )
            return False
        if not self._workers:
            logger.warning("Cache background pool not started; %s queued without workers", label)
        return True

    async def join(self) -> None:
        """Wait until every queued job (including ones queued meanwhile) has finished."""
        if not self._workers:
            return
        await self._queue.join()

    async def stop(self, drain: bool = True) -> None:
        """Stop the workers, optionally letting queued jobs finish first."""
        if drain:
            await self.join()
        dropped = self._queue.qsize()
        for task in self._workers:
            task.cancel()
        await asyncio.gather(*self._workers, return_exceptions=True)
        self._workers = []
        while not self._queue.empty():
            self._queue.get_nowait()
            self._queue.task_done()
        if dropped:
            logger.warning("Cache background pool stopped with %d jobs discarded", dropped)
        logger.info("Cache background pool stopped")

    async def _worker(self) -> None:
        while True:
            label, job = await self._queue.get()
            try:
                await job()
            except Exception:
                logger.exception("Cache background job failed: %s", label)
            finally:
                self._queue.task_done()
