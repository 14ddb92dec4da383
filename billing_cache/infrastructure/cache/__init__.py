"""Dependency-tracked, recomputable read-through cache engine."""

from billing_cache.infrastructure.cache.combinators import (
    BulkLookupConfig,
    CacheConfig,
    CacheOptions,
    cached,
    cached_bulk_lookup,
)
from billing_cache.infrastructure.cache.core import (
    CacheHit,
    CacheMiss,
    populate_cache,
    try_get_from_cache,
)
from billing_cache.infrastructure.cache.keys import CacheDependency, cache_key
from billing_cache.infrastructure.cache.lru import remove_from_lru, track_and_evict_lru
from billing_cache.infrastructure.cache.recompute import (
    RecomputableCache,
    RecomputableCacheConfig,
    cached_recomputable,
)
from billing_cache.infrastructure.cache.redis_cache import CacheService
from billing_cache.infrastructure.cache.registry import RecomputeHandler, RecomputeRegistry
from billing_cache.infrastructure.cache.runtime import (
    CacheRuntime,
    build_cache_runtime,
    get_cache_runtime,
    invalidate_dependencies,
    set_cache_runtime,
)
from billing_cache.infrastructure.cache.task_pool import BackgroundTaskPool

__all__ = [
    "BackgroundTaskPool",
    "BulkLookupConfig",
    "CacheConfig",
    "CacheDependency",
    "CacheHit",
    "CacheMiss",
    "CacheOptions",
    "CacheRuntime",
    "CacheService",
    "RecomputableCache",
    "RecomputableCacheConfig",
    "RecomputeHandler",
    "RecomputeRegistry",
    "build_cache_runtime",
    "cache_key",
    "cached",
    "cached_bulk_lookup",
    "cached_recomputable",
    "get_cache_runtime",
    "invalidate_dependencies",
    "populate_cache",
    "remove_from_lru",
    "set_cache_runtime",
    "track_and_evict_lru",
    "try_get_from_cache",
]
