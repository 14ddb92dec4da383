"""Per-namespace LRU tracking and eviction.

Each namespace keeps a sorted set of its live cache keys scored by the
time they were last populated. When the set grows past the namespace's
capacity the oldest keys are popped (ZPOPMIN is atomic, so concurrent
writers never evict the same key twice) and their entries deleted.
Dependency-registry memberships of evicted keys are left to expire with
the registry's own TTL.
"""

import logging
import time

from billing_cache.domain.enums import CacheNamespace
from billing_cache.infrastructure.cache.cache_protocol import BACKEND_ERRORS, KeyValueBackend
from billing_cache.infrastructure.cache.keys import (
    lru_key,
    namespace_value,
    recompute_metadata_key,
)
from billing_cache.infrastructure.cache.namespaces import get_max_size_for_namespace
from billing_cache.shared.telemetry import add_span_event

logger = logging.getLogger(__name__)


async def track_and_evict_lru(
    client: KeyValueBackend,
    namespace: CacheNamespace | str,
    full_key: str,
) -> int:
    """Touch full_key in its namespace's LRU set and evict the oldest entries over capacity.

    Evicted entries lose their cache value and recompute metadata, so an
    evicted entry is not regenerated by a later invalidation.

    Args:
        client: Backend client.
        namespace: Namespace the key belongs to.
        full_key: Full cache key just written.

    Returns:
        Number of entries evicted (0 on failure; failures are logged).
    """
    ns = namespace_value(namespace)
    zset_key = lru_key(ns)
    max_size = get_max_size_for_namespace(ns)
    try:
        await client.zadd(zset_key, {full_key: time.time() * 1000})
        size = await client.zcard(zset_key)
        if size <= max_size:
            return 0
        popped = await client.zpopmin(zset_key, size - max_size)
        evicted = [member for member, _score in popped]
        if evicted:
            await client.delete(*evicted, *(recompute_metadata_key(key) for key in evicted))
    except BACKEND_ERRORS as e:
        logger.warning("LRU tracking failed for %s in %s: %s", full_key, ns, e)
        return 0
    if evicted:
        logger.debug(
            "LRU eviction performed: namespace=%s evicted=%d max_size=%d",
            ns,
            len(evicted),
            max_size,
        )
        add_span_event(
            "cache.lru_eviction",
            {"cache.namespace": ns, "cache.evicted_count": len(evicted)},
        )
    return len(evicted)


async def remove_from_lru(
    client: KeyValueBackend,
    namespace: CacheNamespace | str,
    full_key: str,
) -> None:
    """Stop tracking an explicitly invalidated key. Failures are logged, never raised."""
    ns = namespace_value(namespace)
    try:
        await client.zrem(lru_key(ns), full_key)
    except BACKEND_ERRORS as e:
        logger.warning("Failed to remove %s from LRU of %s: %s", full_key, ns, e)
