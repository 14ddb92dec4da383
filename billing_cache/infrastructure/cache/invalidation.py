"""Invalidation engine: dependency fan-out and recomputation dispatch.

For each dependency key the engine reads the dependent cache keys, notes
which of them are recomputable (metadata exists) before anything is
deleted, deletes the entries and their LRU tracking, deletes the registry
set, and only then queues recomputation. Deleting the registry before
recomputing matters: a recomputed entry re-registers itself under the same
dependency, and a later delete would wipe that fresh registration.

If a recomputation fails after its registry set is gone, the entry stays
cold until the next organic read; it is not retried on a later
invalidation of the same dependency.
"""

import asyncio
import logging
from collections.abc import Iterable

from pydantic import ValidationError

from billing_cache.domain.value_objects import CacheRecomputeMetadata
from billing_cache.infrastructure.cache.cache_protocol import BACKEND_ERRORS, KeyValueBackend
from billing_cache.infrastructure.cache.keys import (
    dependency_registry_key,
    namespace_of,
    recompute_metadata_key,
)
from billing_cache.infrastructure.cache.lru import remove_from_lru
from billing_cache.infrastructure.cache.redis_cache import CacheService
from billing_cache.infrastructure.cache.registry import RecomputeRegistry
from billing_cache.infrastructure.cache.task_pool import BackgroundTaskPool
from billing_cache.shared.telemetry import add_span_attributes, traced

logger = logging.getLogger(__name__)


class InvalidationEngine:
    """Deletes dependent entries and schedules best-effort recomputation.

    Nothing here raises to the caller: backend errors are logged and the
    invalidation is simply incomplete.
    """

    def __init__(
        self,
        cache: CacheService,
        registry: RecomputeRegistry,
        task_pool: BackgroundTaskPool,
    ) -> None:
        self.cache = cache
        self.registry = registry
        self.task_pool = task_pool

    @traced("cache.invalidate_dependencies")
    async def invalidate_dependencies(self, dependency_keys: Iterable[str]) -> None:
        """Invalidate every cache entry that declared any of dependency_keys.

        Dependency keys are processed concurrently; recomputation is queued
        once per cache key after all of them are done.
        """
        unique = list(dict.fromkeys(dependency_keys))
        if not unique:
            return
        client = self.cache.client
        if client is None:
            logger.debug("Cache unavailable; skipping invalidation of %d dependencies", len(unique))
            return
        add_span_attributes(**{"cache.dependency_count": len(unique)})

        results = await asyncio.gather(
            *(self._invalidate_dependency(client, dependency) for dependency in unique)
        )
        recomputable = list(dict.fromkeys(key for keys in results for key in keys))
        for full_key in recomputable:
            self.schedule_recompute(full_key)
        add_span_attributes(**{
            "cache.invalidated_count": sum(len(keys) for keys in results),
            "cache.recompute_scheduled": len(recomputable),
        })

    async def _invalidate_dependency(self, client: KeyValueBackend, dependency: str) -> list[str]:
        """Run the ordered invalidation for one dependency; return its recomputable keys."""
        registry_key = dependency_registry_key(dependency)
        try:
            members = await client.smembers(registry_key)
            if not members:
                logger.debug("No cache entries registered for dependency %s", dependency)
                return []
            cache_keys = sorted(members)
            flags = await asyncio.gather(
                *(client.exists(recompute_metadata_key(key)) for key in cache_keys)
            )
            recomputable = [key for key, flag in zip(cache_keys, flags) if flag]
            await client.delete(*cache_keys)
            await asyncio.gather(
                *(remove_from_lru(client, namespace_of(key), key) for key in cache_keys)
            )
            await client.delete(registry_key)
        except BACKEND_ERRORS as e:
            logger.error("Failed to invalidate dependency %s: %s", dependency, e)
            return []
        logger.info(
            "Cache INVALIDATE: %s (%d entries, %d recomputable)",
            dependency,
            len(cache_keys),
            len(recomputable),
        )
        return recomputable

    def schedule_recompute(self, full_key: str) -> bool:
        """Queue recomputation of full_key on the background pool."""
        return self.task_pool.submit(
            f"recompute:{full_key}", lambda: self.recompute_cache_entry(full_key)
        )

    @traced("cache.recompute_cache_entry")
    async def recompute_cache_entry(self, full_key: str) -> None:
        """Regenerate one entry from its recompute metadata. Never raises."""
        client = self.cache.client
        if client is None:
            return
        try:
            raw = await client.get(recompute_metadata_key(full_key))
        except BACKEND_ERRORS as e:
            logger.error("Failed to read recompute metadata for %s: %s", full_key, e)
            return
        if raw is None:
            logger.debug("No recompute metadata for %s; not recomputable", full_key)
            return

        try:
            metadata = CacheRecomputeMetadata.model_validate_json(raw)
        except ValidationError as e:
            logger.warning(
                "Invalid recompute metadata for %s (%d errors); skipping",
                full_key,
                e.error_count(),
            )
            return

        handler = self.registry.get(metadata.namespace)
        if handler is None:
            logger.warning(
                "No recompute handler registered for namespace %s (key %s)",
                metadata.namespace,
                full_key,
            )
            return

        try:
            await handler(metadata.params, metadata.transaction_context)
        except Exception:
            logger.exception(
                "Recomputation failed for %s (namespace=%s)", full_key, metadata.namespace
            )
            return
        logger.debug("Recomputed cache entry %s", full_key)
