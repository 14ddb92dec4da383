"""Pytest configuration and fixtures for billing_cache.

The cache engine runs against FakeRedis, an in-memory implementation of
the Redis commands it uses (strings with TTLs, sets, sorted sets). Any
command can be made to fail with redis.ConnectionError through
FakeRedis.fail_on to exercise the fail-open paths.
"""

from __future__ import annotations

from collections.abc import AsyncIterator, Awaitable, Callable, Iterable, Mapping, Sequence
from typing import Any

import pytest
import redis.asyncio as redis
from httpx import ASGITransport, AsyncClient

from billing_cache.core.config import get_settings
from billing_cache.core.transaction_context import transaction_scope
from billing_cache.domain.value_objects import TransactionContext
from billing_cache.infrastructure.cache.redis_cache import CacheService
from billing_cache.infrastructure.cache.registry import RecomputableDefinition, RecomputeRegistry
from billing_cache.infrastructure.cache.runtime import CacheRuntime, set_cache_runtime
from billing_cache.infrastructure.cache.task_pool import BackgroundTaskPool
from billing_cache.main import create_app


class FakeRedis:
    """In-memory subset of redis.asyncio.Redis (decode_responses=True)."""

    def __init__(self) -> None:
        self.strings: dict[str, str] = {}
        self.sets: dict[str, set[str]] = {}
        self.zsets: dict[str, dict[str, float]] = {}
        self.ttls: dict[str, int] = {}
        self.fail_on: set[str] = set()
        self.commands: list[str] = []

    def _command(self, name: str) -> None:
        self.commands.append(name)
        if name in self.fail_on:
            raise redis.ConnectionError(f"{name} failed: connection refused")

    def _exists(self, name: str) -> bool:
        return name in self.strings or name in self.sets or name in self.zsets

    async def get(self, name: str) -> str | None:
        self._command("get")
        return self.strings.get(name)

    async def set(self, name: str, value: str | bytes, ex: int | None = None) -> bool:
        self._command("set")
        self.strings[name] = value.decode() if isinstance(value, bytes) else value
        if ex is not None:
            self.ttls[name] = ex
        else:
            self.ttls.pop(name, None)
        return True

    async def delete(self, *names: str) -> int:
        self._command("delete")
        deleted = 0
        for name in names:
            found = False
            for store in (self.strings, self.sets, self.zsets):
                if name in store:
                    del store[name]
                    found = True
            self.ttls.pop(name, None)
            deleted += found
        return deleted

    async def exists(self, *names: str) -> int:
        self._command("exists")
        return sum(1 for name in names if self._exists(name))

    async def sadd(self, name: str, *values: str) -> int:
        self._command("sadd")
        members = self.sets.setdefault(name, set())
        before = len(members)
        members.update(values)
        return len(members) - before

    async def smembers(self, name: str) -> set[str]:
        self._command("smembers")
        return set(self.sets.get(name, set()))

    async def expire(self, name: str, time: int) -> bool:
        self._command("expire")
        if not self._exists(name):
            return False
        self.ttls[name] = time
        return True

    async def mget(self, keys: Sequence[str]) -> list[str | None]:
        self._command("mget")
        return [self.strings.get(key) for key in keys]

    async def zadd(self, name: str, mapping: Mapping[str, float]) -> int:
        self._command("zadd")
        zset = self.zsets.setdefault(name, {})
        added = sum(1 for member in mapping if member not in zset)
        zset.update(mapping)
        return added

    async def zcard(self, name: str) -> int:
        self._command("zcard")
        return len(self.zsets.get(name, {}))

    async def zpopmin(self, name: str, count: int | None = None) -> list[tuple[str, float]]:
        self._command("zpopmin")
        zset = self.zsets.get(name, {})
        # Redis orders equal scores lexicographically by member.
        popped = sorted(zset.items(), key=lambda item: (item[1], item[0]))[: count or 1]
        for member, _score in popped:
            del zset[member]
        if not zset:
            self.zsets.pop(name, None)
        return popped

    async def zrem(self, name: str, *values: str) -> int:
        self._command("zrem")
        zset = self.zsets.get(name, {})
        removed = sum(1 for value in values if zset.pop(value, None) is not None)
        if not zset:
            self.zsets.pop(name, None)
        return removed


class FakeTransactionRunner:
    """TransactionRunner that records contexts and binds the ambient scope."""

    def __init__(self) -> None:
        self.contexts: list[TransactionContext] = []

    async def run(self, context: TransactionContext, fn: Callable[[Any], Awaitable[Any]]) -> Any:
        self.contexts.append(context)
        with transaction_scope(context):
            return await fn({"scope": context.type})


@pytest.fixture(autouse=True)
def _reset_settings(monkeypatch: pytest.MonkeyPatch) -> Iterable[None]:
    """Fresh settings per test; TTL overrides only when a test sets them."""
    monkeypatch.delenv("CACHE_TTLS", raising=False)
    monkeypatch.setenv("REDIS_ENABLED", "true")
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture(autouse=True)
def _reset_runtime() -> Iterable[None]:
    set_cache_runtime(None)
    yield
    set_cache_runtime(None)


@pytest.fixture
def fake_redis() -> FakeRedis:
    return FakeRedis()


@pytest.fixture
def cache_service(fake_redis: FakeRedis) -> CacheService:
    """CacheService wrapping the in-memory backend (counts as connected)."""
    return CacheService(redis_client=fake_redis)


@pytest.fixture
def transaction_runner() -> FakeTransactionRunner:
    return FakeTransactionRunner()


@pytest.fixture
async def make_runtime(
    cache_service: CacheService,
    transaction_runner: FakeTransactionRunner,
) -> AsyncIterator[Callable[..., CacheRuntime]]:
    """Factory installing a CacheRuntime with a started background pool.

    Call with the recomputable cache definitions a test needs.
    """
    runtimes: list[CacheRuntime] = []

    def _make(definitions: Iterable[RecomputableDefinition] = ()) -> CacheRuntime:
        runtime = CacheRuntime(
            cache=cache_service,
            registry=RecomputeRegistry.from_definitions(definitions, transaction_runner),
            task_pool=BackgroundTaskPool(workers=2, queue_size=100),
        )
        runtime.task_pool.start()
        set_cache_runtime(runtime)
        runtimes.append(runtime)
        return runtime

    yield _make
    for runtime in runtimes:
        await runtime.task_pool.stop(drain=False)


@pytest.fixture
async def runtime(make_runtime: Callable[..., CacheRuntime]) -> CacheRuntime:
    """Installed runtime without recompute handlers."""
    return make_runtime()


@pytest.fixture
async def client() -> AsyncIterator[AsyncClient]:
    """Async HTTP client against the FastAPI app (ASGI, lifespan not run)."""
    app = create_app()
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
