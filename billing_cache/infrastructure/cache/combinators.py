"""Read-through cache combinators.

cached wraps one async computation with a namespaced, schema-validated,
dependency-tracked cache entry. cached_bulk_lookup is the many-keys
variant: one MGET for all keys, one bulk fetch for the misses, and one
cache entry per key so each can be invalidated on its own.

Both fail open: without an installed runtime, or with the backend down,
the wrapped computation simply runs. Exceptions raised by the wrapped
computation (or the bulk fetch) always propagate unchanged.
"""

import logging
import time
from collections.abc import Awaitable, Callable, Hashable, Iterable, Mapping, Sequence
from dataclasses import dataclass
from functools import cached_property, partial, wraps
from typing import Any, TypeVar

from pydantic import TypeAdapter, ValidationError

from billing_cache.domain.enums import CacheNamespace
from billing_cache.domain.value_objects import CacheRecomputeMetadata
from billing_cache.infrastructure.cache.cache_protocol import BACKEND_ERRORS, KeyValueBackend
from billing_cache.infrastructure.cache.core import CacheHit, populate_cache, try_get_from_cache
from billing_cache.infrastructure.cache.keys import cache_key, namespace_value
from billing_cache.infrastructure.cache.runtime import get_cache_runtime
from billing_cache.shared.telemetry import add_span_attributes

logger = logging.getLogger(__name__)

T = TypeVar("T")
K = TypeVar("K", bound=Hashable)

_OPTION_FIELDS = frozenset({"ignore_cache"})


@dataclass(frozen=True)
class CacheOptions:
    """Per-call options. ignore_cache computes fresh and leaves the cache untouched."""

    ignore_cache: bool = False


def split_cache_options(args: tuple[Any, ...]) -> tuple[tuple[Any, ...], CacheOptions]:
    """Strip trailing cache options from a call's positional args.

    Options are recognised by shape: a CacheOptions instance, or a dict
    whose only keys are option names with bool values.
    """
    if not args:
        return args, CacheOptions()
    last = args[-1]
    if isinstance(last, CacheOptions):
        return args[:-1], last
    if (
        isinstance(last, dict)
        and last
        and set(last) <= _OPTION_FIELDS
        and all(isinstance(value, bool) for value in last.values())
    ):
        return args[:-1], CacheOptions(**last)
    return args, CacheOptions()


@dataclass(frozen=True)
class CacheConfig:
    """Configuration for cached.

    Attributes:
        namespace: Cache namespace (first segment of every key).
        key_fn: Builds the key suffix from the call's arguments.
        schema: Any type TypeAdapter accepts; cached JSON must validate against it.
        dependencies_fn: Dependency keys from the call's arguments.
        result_dependencies_fn: Extra dependency keys from (result, *args, **kwargs).
    """

    namespace: CacheNamespace | str
    key_fn: Callable[..., str]
    schema: Any
    dependencies_fn: Callable[..., Sequence[str]]
    result_dependencies_fn: Callable[..., Sequence[str]] | None = None


async def read_through(
    client: KeyValueBackend,
    full_key: str,
    namespace: str,
    adapter: TypeAdapter[T],
    compute: Callable[[], Awaitable[T]],
    dependencies: Callable[[T], Sequence[str]],
    *,
    recompute_metadata: Callable[[], CacheRecomputeMetadata | None] | None = None,
) -> T:
    """Return the cached value for full_key, or compute, populate and return it."""
    lookup = await try_get_from_cache(
        client, full_key, adapter, namespace, recomputable=recompute_metadata is not None
    )
    if isinstance(lookup, CacheHit):
        return lookup.value
    result = await compute()
    metadata = recompute_metadata() if recompute_metadata is not None else None
    await populate_cache(
        client,
        full_key,
        result,
        dependencies(result),
        namespace,
        adapter=adapter,
        recompute_metadata=metadata,
        recomputable=recompute_metadata is not None,
    )
    return result


def cached(config: CacheConfig) -> Callable[[Callable[..., Awaitable[T]]], Callable[..., Awaitable[T]]]:
    """Decorator: read-through cache for an async function.

    The wrapped function accepts its own arguments plus an optional
    trailing CacheOptions (or {"ignore_cache": True}).

    Example:
        @cached(CacheConfig(
            namespace=CacheNamespace.SUBSCRIPTIONS_BY_CUSTOMER,
            key_fn=lambda customer_id, livemode: f"{customer_id}:{livemode}",
            schema=list[Subscription],
            dependencies_fn=lambda customer_id, livemode: [
                CacheDependency.customer_subscriptions(customer_id)
            ],
        ))
        async def subscriptions_by_customer(customer_id: str, livemode: bool) -> list[Subscription]:
            ...
    """
    namespace = namespace_value(config.namespace)
    adapter: TypeAdapter[Any] = TypeAdapter(config.schema)

    def collect_dependencies(result: Any, args: tuple[Any, ...], kwargs: dict[str, Any]) -> list[str]:
        dependencies = list(config.dependencies_fn(*args, **kwargs))
        if config.result_dependencies_fn is not None:
            dependencies.extend(config.result_dependencies_fn(result, *args, **kwargs))
        return dependencies

    def decorator(func: Callable[..., Awaitable[T]]) -> Callable[..., Awaitable[T]]:
        @wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> T:
            call_args, options = split_cache_options(args)
            runtime = get_cache_runtime()
            client = runtime.client if runtime is not None else None
            if options.ignore_cache or client is None:
                return await func(*call_args, **kwargs)
            full_key = cache_key(namespace, config.key_fn(*call_args, **kwargs))
            return await read_through(
                client,
                full_key,
                namespace,
                adapter,
                lambda: func(*call_args, **kwargs),
                lambda result: collect_dependencies(result, call_args, kwargs),
            )

        wrapper.cache_config = config  # type: ignore[attr-defined]
        return wrapper

    return decorator


@dataclass(frozen=True)
class BulkLookupConfig:
    """Configuration for cached_bulk_lookup.

    Each input key gets its own entry holding the list of its items.

    Attributes:
        namespace: Cache namespace.
        key_fn: Key suffix for one input key.
        item_schema: Schema of one item; entries hold list[item_schema].
        dependencies_fn: Dependency keys for one input key.
        result_dependencies_fn: Extra dependency keys from (items, key).
    """

    namespace: CacheNamespace | str
    key_fn: Callable[[Any], str]
    item_schema: Any
    dependencies_fn: Callable[[Any], Sequence[str]]
    result_dependencies_fn: Callable[[list[Any], Any], Sequence[str]] | None = None

    @cached_property
    def adapter(self) -> TypeAdapter[list[Any]]:
        return TypeAdapter(list[self.item_schema])

    def dependencies_for(self, key: Any, items: list[Any]) -> list[str]:
        dependencies = list(self.dependencies_fn(key))
        if self.result_dependencies_fn is not None:
            dependencies.extend(self.result_dependencies_fn(items, key))
        return dependencies


async def _bulk_read(
    client: KeyValueBackend,
    config: BulkLookupConfig,
    namespace: str,
    full_keys: Mapping[K, str],
) -> dict[K, list[Any]]:
    """MGET every key; return the schema-valid hits. Backend errors mean no hits."""
    start = time.perf_counter()
    try:
        raw_values = await client.mget(list(full_keys.values()))
    except BACKEND_ERRORS as e:
        logger.error("Bulk cache read error for namespace %s: %s", namespace, e)
        add_span_attributes(**{"cache.error": True})
        return {}
    hits: dict[K, list[Any]] = {}
    invalid = 0
    for key, raw in zip(full_keys, raw_values):
        if raw is None:
            continue
        try:
            hits[key] = config.adapter.validate_json(raw)
        except ValidationError:
            invalid += 1
            logger.warning(
                "Cache schema validation failed for key %s; treating as miss", full_keys[key]
            )
    latency_ms = (time.perf_counter() - start) * 1000
    logger.debug(
        "Bulk cache lookup: namespace=%s keys=%d hits=%d invalid=%d latency_ms=%.2f",
        namespace,
        len(full_keys),
        len(hits),
        invalid,
        latency_ms,
    )
    add_span_attributes(**{
        "cache.namespace": namespace,
        "cache.bulk_keys": len(full_keys),
        "cache.bulk_hits": len(hits),
        "cache.latency_ms": latency_ms,
    })
    return hits


async def cached_bulk_lookup(
    config: BulkLookupConfig,
    keys: Iterable[K],
    bulk_fetch_fn: Callable[[list[K]], Awaitable[Iterable[T]]],
    group_by_key: Callable[[T], K],
) -> dict[K, list[T]]:
    """Look up items for many keys with one MGET and at most one bulk fetch.

    Args:
        config: Bulk lookup configuration.
        keys: Input keys; duplicates are collapsed.
        bulk_fetch_fn: Fetches items for the missed keys (called once, or not at all).
        group_by_key: Projects an item onto the input key it belongs to.

    Returns:
        Every input key mapped to its items (empty list when there are none),
        in input order.

    Raises:
        Whatever bulk_fetch_fn raises; source-of-truth failures are not masked.
    """
    unique_keys = list(dict.fromkeys(keys))
    if not unique_keys:
        return {}
    namespace = namespace_value(config.namespace)
    runtime = get_cache_runtime()
    client = runtime.client if runtime is not None else None
    full_keys = {key: cache_key(namespace, config.key_fn(key)) for key in unique_keys}

    hits: dict[K, list[T]] = {}
    if client is not None:
        hits = await _bulk_read(client, config, namespace, full_keys)

    misses = [key for key in unique_keys if key not in hits]
    fetched: dict[K, list[T]] = {key: [] for key in misses}
    if misses:
        for item in await bulk_fetch_fn(misses):
            group = fetched.get(group_by_key(item))
            if group is not None:
                group.append(item)
        if client is not None and runtime is not None:
            for key in misses:
                items = fetched[key]
                runtime.task_pool.submit(
                    f"bulk-populate:{full_keys[key]}",
                    partial(
                        populate_cache,
                        client,
                        full_keys[key],
                        items,
                        config.dependencies_for(key, items),
                        namespace,
                        adapter=config.adapter,
                    ),
                )

    return {key: hits[key] if key in hits else fetched[key] for key in unique_keys}
