"""Key-value backend protocol: the Redis command surface the cache engine uses.

redis.asyncio.Redis (decode_responses=True) satisfies it; tests use an
in-memory fake. Every method is a suspension point and may raise
redis.RedisError, which the engine treats as "backend unavailable".
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any, Protocol

import redis.asyncio as redis


class KeyValueBackend(Protocol):
    """Commands consumed by the cache core, registry, invalidation and LRU tracker."""

    async def get(self, name: str) -> str | None:
        ...

    async def set(self, name: str, value: str, ex: int | None = None) -> Any:
        ...

    async def delete(self, *names: str) -> int:
        ...

    async def exists(self, *names: str) -> int:
        ...

    async def sadd(self, name: str, *values: str) -> int:
        ...

    async def smembers(self, name: str) -> set[str]:
        ...

    async def expire(self, name: str, time: int) -> bool:
        ...

    async def mget(self, keys: Sequence[str]) -> list[str | None]:
        ...

    async def zadd(self, name: str, mapping: Mapping[str, float]) -> int:
        ...

    async def zcard(self, name: str) -> int:
        ...

    async def zpopmin(self, name: str, count: int | None = None) -> list[tuple[str, float]]:
        ...

    async def zrem(self, name: str, *values: str) -> int:
        ...


# Failures of the backend itself; always contained by the cache layer.
BACKEND_ERRORS: tuple[type[Exception], ...] = (redis.RedisError, OSError)
