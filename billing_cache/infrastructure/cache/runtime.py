"""Cache runtime: the wiring every cached function resolves at call time.

One CacheRuntime is built at startup and installed process-wide. Cached
wrappers look it up on each call, so defining a cached function never
needs a live connection, and a process without a runtime (or with the
backend down) simply runs the wrapped functions uncached.
"""

import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field

from billing_cache.core.config import get_settings
from billing_cache.core.transaction_context import get_transaction_context
from billing_cache.domain.value_objects import TransactionContext
from billing_cache.infrastructure.cache.cache_protocol import KeyValueBackend
from billing_cache.infrastructure.cache.invalidation import InvalidationEngine
from billing_cache.infrastructure.cache.redis_cache import CacheService
from billing_cache.infrastructure.cache.registry import RecomputableDefinition, RecomputeRegistry
from billing_cache.infrastructure.cache.task_pool import BackgroundTaskPool
from billing_cache.infrastructure.persistence.transactions import (
    SqlTransactionRunner,
    TransactionRunner,
)

logger = logging.getLogger(__name__)


@dataclass
class CacheRuntime:
    """Backend connection, recompute registry, background pool and invalidation engine."""

    cache: CacheService
    registry: RecomputeRegistry
    task_pool: BackgroundTaskPool
    transaction_context_getter: Callable[[], TransactionContext | None] = get_transaction_context
    invalidation: InvalidationEngine = field(init=False)

    def __post_init__(self) -> None:
        self.invalidation = InvalidationEngine(self.cache, self.registry, self.task_pool)

    @property
    def client(self) -> KeyValueBackend | None:
        """Backend client, or None when the cache is unavailable."""
        return self.cache.client

    async def start(self) -> None:
        await self.cache.connect()
        self.task_pool.start()

    async def stop(self) -> None:
        """Let queued recomputations finish, then stop workers and disconnect."""
        await self.task_pool.stop(drain=True)
        await self.cache.disconnect()


def build_cache_runtime(
    definitions: Iterable[RecomputableDefinition] = (),
    transaction_runner: TransactionRunner | None = None,
    *,
    cache: CacheService | None = None,
) -> CacheRuntime:
    """Build a runtime from the process's recomputable cache definitions.

    Raises:
        DuplicateRecomputeHandlerException: Two definitions share a namespace.
    """
    settings = get_settings()
    registry = RecomputeRegistry.from_definitions(
        definitions, transaction_runner or SqlTransactionRunner()
    )
    return CacheRuntime(
        cache=cache or CacheService(),
        registry=registry,
        task_pool=BackgroundTaskPool(settings.recompute_workers, settings.recompute_queue_size),
    )


_runtime: CacheRuntime | None = None


def set_cache_runtime(runtime: CacheRuntime | None) -> None:
    """Install (or clear, with None) the process-wide runtime."""
    global _runtime
    _runtime = runtime


def get_cache_runtime() -> CacheRuntime | None:
    return _runtime


async def invalidate_dependencies(dependency_keys: Iterable[str]) -> None:
    """Invalidate all cache entries depending on any of dependency_keys.

    Best-effort: returns normally even when the backend fails, and is a
    no-op when no runtime is installed.
    """
    runtime = get_cache_runtime()
    if runtime is None:
        logger.debug("No cache runtime installed; skipping invalidation")
        return
    await runtime.invalidation.invalidate_dependencies(dependency_keys)
