"""Read-through core shared by every cache combinator.

try_get_from_cache distinguishes a hit from the reasons for a miss;
populate_cache writes the entry, its recompute metadata, its dependency
registrations and its LRU position. Neither ever raises for backend or
serialization problems: the combinators fall back to computing fresh.
"""

import logging
import time
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

from pydantic import TypeAdapter, ValidationError
from pydantic_core import PydanticSerializationError

from billing_cache.domain.enums import CacheMissReason, CacheNamespace
from billing_cache.domain.value_objects import CacheRecomputeMetadata
from billing_cache.infrastructure.cache.cache_protocol import BACKEND_ERRORS, KeyValueBackend
from billing_cache.infrastructure.cache.dependencies import register_dependencies
from billing_cache.infrastructure.cache.keys import namespace_value, recompute_metadata_key
from billing_cache.infrastructure.cache.lru import track_and_evict_lru
from billing_cache.infrastructure.cache.namespaces import get_ttl_for_namespace
from billing_cache.shared.telemetry import add_span_attributes

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class CacheHit(Generic[T]):
    """A cached value that passed schema validation."""

    value: T


@dataclass(frozen=True)
class CacheMiss:
    """No usable cached value; reason says why."""

    reason: CacheMissReason


CacheLookup = CacheHit[Any] | CacheMiss


def log_cache_stats(
    namespace: CacheNamespace | str,
    full_key: str,
    *,
    hit: bool,
    latency_ms: float,
    reason: CacheMissReason | None = None,
    recomputable: bool = False,
) -> None:
    """Emit hit/miss statistics as a debug log line and span attributes."""
    ns = namespace_value(namespace)
    logger.debug(
        "Cache %s: namespace=%s key=%s latency_ms=%.2f%s",
        "HIT" if hit else "MISS",
        ns,
        full_key,
        latency_ms,
        f" reason={reason.value}" if reason is not None else "",
    )
    attributes: dict[str, Any] = {
        "cache.hit": hit,
        "cache.namespace": ns,
        "cache.key": full_key,
        "cache.latency_ms": latency_ms,
        "cache.recomputable": recomputable,
    }
    if reason is not None:
        attributes["cache.miss_reason"] = reason.value
        attributes["cache.validation_failed"] = reason is CacheMissReason.INVALID
        attributes["cache.error"] = reason is CacheMissReason.ERROR
    add_span_attributes(**attributes)


async def try_get_from_cache(
    client: KeyValueBackend,
    full_key: str,
    adapter: TypeAdapter[T],
    namespace: CacheNamespace | str,
    *,
    recomputable: bool = False,
) -> CacheLookup:
    """Read and validate one entry.

    Args:
        client: Backend client.
        full_key: Full cache key.
        adapter: Schema the stored JSON must satisfy.
        namespace: Namespace for stats.
        recomputable: Tag stats as coming from a recomputable cache.

    Returns:
        CacheHit with the validated value, or CacheMiss(COLD | INVALID | ERROR).
    """
    start = time.perf_counter()
    try:
        raw = await client.get(full_key)
    except BACKEND_ERRORS as e:
        logger.error("Cache read error for key %s: %s", full_key, e)
        log_cache_stats(
            namespace,
            full_key,
            hit=False,
            latency_ms=(time.perf_counter() - start) * 1000,
            reason=CacheMissReason.ERROR,
            recomputable=recomputable,
        )
        return CacheMiss(CacheMissReason.ERROR)
    latency_ms = (time.perf_counter() - start) * 1000

    if raw is None:
        log_cache_stats(
            namespace,
            full_key,
            hit=False,
            latency_ms=latency_ms,
            reason=CacheMissReason.COLD,
            recomputable=recomputable,
        )
        return CacheMiss(CacheMissReason.COLD)

    try:
        value = adapter.validate_json(raw)
    except ValidationError as e:
        logger.warning(
            "Cache schema validation failed for key %s (%d errors); treating as miss",
            full_key,
            e.error_count(),
        )
        log_cache_stats(
            namespace,
            full_key,
            hit=False,
            latency_ms=latency_ms,
            reason=CacheMissReason.INVALID,
            recomputable=recomputable,
        )
        return CacheMiss(CacheMissReason.INVALID)

    log_cache_stats(
        namespace, full_key, hit=True, latency_ms=latency_ms, recomputable=recomputable
    )
    return CacheHit(value)


def serialize_value(adapter: TypeAdapter[T], value: T) -> str | None:
    """JSON-encode value with its schema; None (logged) when it cannot be encoded."""
    try:
        return adapter.dump_json(value).decode()
    except (PydanticSerializationError, TypeError, ValueError) as e:
        logger.error("Cache serialization error: %s", e)
        return None


async def populate_cache(
    client: KeyValueBackend,
    full_key: str,
    value: Any,
    dependencies: Iterable[str],
    namespace: CacheNamespace | str,
    *,
    adapter: TypeAdapter[Any],
    recompute_metadata: CacheRecomputeMetadata | None = None,
    recomputable: bool = False,
) -> None:
    """Write an entry and everything that keeps it consistent.

    Order: value (namespace TTL), recompute metadata (same TTL), dependency
    registrations, LRU touch/evict. A recomputable entry written without
    metadata deletes metadata left by an earlier population. A failed value
    write skips the rest; later steps are best-effort on their own.
    """
    ns = namespace_value(namespace)
    payload = serialize_value(adapter, value)
    if payload is None:
        logger.warning("Skipping cache write for key %s: value not serializable", full_key)
        return
    ttl = get_ttl_for_namespace(ns)
    dependencies = list(dict.fromkeys(dependencies))
    try:
        await client.set(full_key, payload, ex=ttl)
        if recompute_metadata is not None:
            await client.set(
                recompute_metadata_key(full_key),
                recompute_metadata.model_dump_json(),
                ex=ttl,
            )
        elif recomputable:
            await client.delete(recompute_metadata_key(full_key))
    except BACKEND_ERRORS as e:
        logger.error("Cache write error for key %s: %s", full_key, e)
        return

    await register_dependencies(client, full_key, dependencies)
    await track_and_evict_lru(client, ns, full_key)

    logger.debug(
        "Cache SET: %s (ttl=%ss, dependencies=%d, recomputable=%s)",
        full_key,
        ttl,
        len(dependencies),
        recompute_metadata is not None,
    )
    add_span_attributes(**{
        "cache.ttl": ttl,
        "cache.dependencies": dependencies,
        "cache.metadata_stored": recompute_metadata is not None,
    })
