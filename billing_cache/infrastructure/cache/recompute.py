"""Recomputable caches: entries that can regenerate themselves after invalidation.

A RecomputableCache behaves like cached, but its function takes a params
model and a transaction, and each populated entry also stores recompute
metadata (serialized params plus the ambient transaction context). After
an invalidation the registered handler validates those params, reopens a
transaction in the captured scope and calls the cached wrapper again, so
the entry, its dependency registrations and its LRU position are all
refreshed.
"""

import logging
from collections.abc import Awaitable, Callable, Mapping, Sequence
from dataclasses import dataclass
from functools import update_wrapper
from typing import Any, Generic, TypeVar

from pydantic import BaseModel, TypeAdapter, ValidationError

from billing_cache.domain.enums import CacheNamespace
from billing_cache.domain.value_objects import CacheRecomputeMetadata, TransactionContext
from billing_cache.infrastructure.cache.combinators import read_through, split_cache_options
from billing_cache.infrastructure.cache.keys import cache_key, namespace_value
from billing_cache.infrastructure.cache.registry import RecomputeHandler
from billing_cache.infrastructure.cache.runtime import CacheRuntime, get_cache_runtime
from billing_cache.infrastructure.persistence.transactions import TransactionRunner
from billing_cache.shared.utils import epoch_ms

logger = logging.getLogger(__name__)

P = TypeVar("P", bound=BaseModel)
T = TypeVar("T")


@dataclass(frozen=True)
class RecomputableCacheConfig(Generic[P]):
    """Configuration for cached_recomputable.

    Attributes:
        namespace: Cache namespace; also the key of the recompute handler.
        params_model: Pydantic model of the params. Its JSON dump must be
            flat: scalars or lists of scalars.
        key_fn: Key suffix from params.
        schema: Schema of the cached result.
        dependencies_fn: Dependency keys from params.
        result_dependencies_fn: Extra dependency keys from (result, params).
    """

    namespace: CacheNamespace | str
    params_model: type[P]
    key_fn: Callable[[P], str]
    schema: Any
    dependencies_fn: Callable[[P], Sequence[str]]
    result_dependencies_fn: Callable[[Any, P], Sequence[str]] | None = None


class RecomputableCache(Generic[P, T]):
    """Cached (params, transaction) function that can be replayed by namespace.

    Call it like the undecorated function: ``await cache(params, transaction)``,
    optionally followed by CacheOptions.
    """

    def __init__(
        self,
        config: RecomputableCacheConfig[P],
        func: Callable[[P, Any], Awaitable[T]],
    ) -> None:
        self.config = config
        self.namespace = namespace_value(config.namespace)
        self._func = func
        self._adapter: TypeAdapter[Any] = TypeAdapter(config.schema)
        update_wrapper(self, func)

    async def __call__(self, params: P | Mapping[str, Any], transaction: Any, *options: Any) -> T:
        extra, cache_options = split_cache_options(options)
        if extra:
            raise TypeError(
                f"{self.namespace} cache takes params, transaction and optional cache options"
            )
        if not isinstance(params, self.config.params_model):
            params = self.config.params_model.model_validate(params)

        runtime = get_cache_runtime()
        client = runtime.client if runtime is not None else None
        if cache_options.ignore_cache or client is None or runtime is None:
            return await self._func(params, transaction)

        full_key = cache_key(self.namespace, self.config.key_fn(params))
        return await read_through(
            client,
            full_key,
            self.namespace,
            self._adapter,
            lambda: self._func(params, transaction),
            lambda result: self._dependencies(params, result),
            recompute_metadata=lambda: self._build_metadata(runtime, params, full_key),
        )

    def _dependencies(self, params: P, result: Any) -> list[str]:
        dependencies = list(self.config.dependencies_fn(params))
        if self.config.result_dependencies_fn is not None:
            dependencies.extend(self.config.result_dependencies_fn(result, params))
        return dependencies

    def _build_metadata(
        self, runtime: CacheRuntime, params: P, full_key: str
    ) -> CacheRecomputeMetadata | None:
        """Metadata for the entry, or None when it cannot be made recomputable."""
        context = runtime.transaction_context_getter()
        if context is None:
            logger.debug("No transaction context for %s; caching without recompute metadata", full_key)
            return None
        try:
            return CacheRecomputeMetadata(
                namespace=self.namespace,
                params=params.model_dump(mode="json"),
                transaction_context=context,
                created_at=epoch_ms(),
            )
        except ValidationError as e:
            logger.warning(
                "Params of %s are not flat scalars (%d errors); entry will not be recomputable",
                full_key,
                e.error_count(),
            )
            return None

    def recompute_handler(self, runner: TransactionRunner) -> RecomputeHandler:
        """Handler that replays this cache from stored params and context."""

        async def handler(params: Mapping[str, Any], context: TransactionContext) -> T:
            validated = self.config.params_model.model_validate(params)
            return await runner.run(context, lambda transaction: self(validated, transaction))

        return handler


def cached_recomputable(
    config: RecomputableCacheConfig[P],
) -> Callable[[Callable[[P, Any], Awaitable[T]]], RecomputableCache[P, T]]:
    """Decorator producing a RecomputableCache.

    The result must be listed in the definitions passed to
    build_cache_runtime for its entries to be recomputed after invalidation.
    """

    def decorator(func: Callable[[P, Any], Awaitable[T]]) -> RecomputableCache[P, T]:
        return RecomputableCache(config, func)

    return decorator
