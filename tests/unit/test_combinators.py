"""Unit tests for the cached / cached_bulk_lookup wrappers."""

import pytest
from pydantic import BaseModel

from billing_cache.infrastructure.cache.combinators import (
    BulkLookupConfig,
    CacheConfig,
    CacheOptions,
    cached,
    cached_bulk_lookup,
    split_cache_options,
)
from billing_cache.infrastructure.cache.keys import CacheDependency


class Item(BaseModel):
    id: str
    subscription_id: str


class TestSplitCacheOptions:
    def test_no_options(self) -> None:
        assert split_cache_options(("a", 1)) == (("a", 1), CacheOptions())
        assert split_cache_options(()) == ((), CacheOptions())

    def test_options_instance(self) -> None:
        assert split_cache_options(("a", CacheOptions(ignore_cache=True))) == (
            ("a",),
            CacheOptions(ignore_cache=True),
        )

    def test_options_dict(self) -> None:
        assert split_cache_options(("a", {"ignore_cache": True})) == (
            ("a",),
            CacheOptions(ignore_cache=True),
        )

    def test_other_dicts_are_arguments(self) -> None:
        args = ("a", {"ignore_cache": True, "limit": 5})
        assert split_cache_options(args) == (args, CacheOptions())
        assert split_cache_options(("a", {})) == (("a", {}), CacheOptions())
        assert split_cache_options(("a", {"ignore_cache": "yes"}))[1] == CacheOptions()


def _counting(result):
    calls: list[tuple] = []

    @cached(
        CacheConfig(
            namespace="unitTest",
            key_fn=lambda customer_id: customer_id,
            schema=dict[str, int],
            dependencies_fn=lambda customer_id: [CacheDependency.customer(customer_id)],
        )
    )
    async def fetch(customer_id: str) -> dict[str, int]:
        calls.append((customer_id,))
        return result

    return fetch, calls


class TestCached:
    async def test_without_runtime_calls_through(self) -> None:
        fetch, calls = _counting({"version": 1})
        assert await fetch("cust_1") == {"version": 1}
        assert await fetch("cust_1") == {"version": 1}
        assert len(calls) == 2

    async def test_preserves_function_metadata(self) -> None:
        fetch, _ = _counting({})
        assert fetch.__name__ == "fetch"
        assert fetch.cache_config.namespace == "unitTest"

    async def test_backend_down_fails_open(self, runtime, fake_redis) -> None:
        fake_redis.fail_on.update({"get", "set"})
        fetch, calls = _counting({"version": 1})
        assert await fetch("cust_1") == {"version": 1}
        assert await fetch("cust_1") == {"version": 1}
        assert len(calls) == 2

    async def test_errors_from_function_propagate(self, runtime, fake_redis) -> None:
        @cached(
            CacheConfig(
                namespace="unitTest",
                key_fn=lambda customer_id: customer_id,
                schema=int,
                dependencies_fn=lambda customer_id: [],
            )
        )
        async def broken(customer_id: str) -> int:
            raise LookupError(customer_id)

        with pytest.raises(LookupError, match="cust_1"):
            await broken("cust_1")
        assert fake_redis.strings == {}

    async def test_result_dependencies(self, runtime, fake_redis) -> None:
        @cached(
            CacheConfig(
                namespace="unitTest",
                key_fn=lambda customer_id: customer_id,
                schema=list[Item],
                dependencies_fn=lambda customer_id: [CacheDependency.customer(customer_id)],
                result_dependencies_fn=lambda items, customer_id: [
                    CacheDependency.subscription_item(item.id) for item in items
                ],
            )
        )
        async def items(customer_id: str) -> list[Item]:
            return [Item(id="si_1", subscription_id="sub_1")]

        await items("cust_1")
        assert fake_redis.sets["cacheDeps:customer:cust_1"] == {"unitTest:cust_1"}
        assert fake_redis.sets["cacheDeps:subscriptionItem:si_1"] == {"unitTest:cust_1"}


ITEMS_CONFIG = BulkLookupConfig(
    namespace="itemsBySubscription",
    key_fn=lambda subscription_id: subscription_id,
    item_schema=Item,
    dependencies_fn=lambda subscription_id: [CacheDependency.subscription_items(subscription_id)],
)


class TestCachedBulkLookup:
    async def test_empty_input_touches_nothing(self, runtime, fake_redis) -> None:
        async def fetch(keys: list[str]) -> list[Item]:
            raise AssertionError("not called")

        assert await cached_bulk_lookup(ITEMS_CONFIG, [], fetch, lambda item: item.subscription_id) == {}
        assert fake_redis.commands == []

    async def test_without_runtime_fetches_deduplicated_keys(self) -> None:
        fetched: list[list[str]] = []

        async def fetch(keys: list[str]) -> list[Item]:
            fetched.append(keys)
            return [
                Item(id="si_1", subscription_id="sub_1"),
                Item(id="si_x", subscription_id="sub_unrequested"),
            ]

        result = await cached_bulk_lookup(
            ITEMS_CONFIG, ["sub_2", "sub_1", "sub_2"], fetch, lambda item: item.subscription_id
        )
        assert fetched == [["sub_2", "sub_1"]]
        assert list(result) == ["sub_2", "sub_1"]
        assert result == {"sub_2": [], "sub_1": [Item(id="si_1", subscription_id="sub_1")]}

    async def test_fetch_errors_propagate(self, runtime) -> None:
        async def fetch(keys: list[str]) -> list[Item]:
            raise ConnectionRefusedError("database down")

        with pytest.raises(ConnectionRefusedError):
            await cached_bulk_lookup(ITEMS_CONFIG, ["sub_1"], fetch, lambda item: item.subscription_id)

    async def test_mget_failure_fetches_everything(self, runtime, fake_redis) -> None:
        fake_redis.fail_on.add("mget")
        fetched: list[list[str]] = []

        async def fetch(keys: list[str]) -> list[Item]:
            fetched.append(keys)
            return []

        result = await cached_bulk_lookup(
            ITEMS_CONFIG, ["sub_1", "sub_2"], fetch, lambda item: item.subscription_id
        )
        assert fetched == [["sub_1", "sub_2"]]
        assert result == {"sub_1": [], "sub_2": []}
