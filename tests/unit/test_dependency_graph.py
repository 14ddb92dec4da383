"""Tests for the static cache dependency graph generator."""

from pathlib import Path

from billing_cache.application.services.dependency_graph import (
    generate_cache_dependency_graph,
    render_dot,
    scan_source,
)

SOURCE = '''
from billing_cache.domain.enums import CacheNamespace
from billing_cache.infrastructure.cache import (
    BulkLookupConfig,
    CacheConfig,
    CacheDependency,
    RecomputableCacheConfig,
    cached,
    cached_bulk_lookup,
    cached_recomputable,
    invalidate_dependencies,
)

ITEMS = BulkLookupConfig(
    namespace=CacheNamespace.ITEMS_BY_SUBSCRIPTION,
    key_fn=lambda subscription_id: subscription_id,
    item_schema=dict,
    dependencies_fn=lambda subscription_id: [CacheDependency.subscription_items(subscription_id)],
)


def _subscription_dependencies(params):
    return [CacheDependency.customer_subscriptions(params.customer_id)]


@cached(CacheConfig(
    namespace=CacheNamespace.PURCHASES_BY_CUSTOMER,
    key_fn=lambda customer_id: customer_id,
    schema=list,
    dependencies_fn=lambda customer_id: [CacheDependency.customer_purchases(customer_id)],
))
async def purchases_by_customer(customer_id):
    return []


@cached_recomputable(RecomputableCacheConfig(
    namespace=CacheNamespace.SUBSCRIPTIONS_BY_CUSTOMER,
    params_model=dict,
    key_fn=lambda params: params.customer_id,
    schema=list,
    dependencies_fn=_subscription_dependencies,
))
async def subscriptions_by_customer(params, transaction):
    return []


async def items_for(subscription_ids):
    return await cached_bulk_lookup(ITEMS, subscription_ids, fetch, lambda item: item["id"])


async def cancel_subscription(customer_id, subscription_id):
    await invalidate_dependencies([
        CacheDependency.customer_subscriptions(customer_id),
        CacheDependency.subscription_items(subscription_id),
    ])


async def refund_purchase(customer_id):
    keys = [CacheDependency.customer_purchases(customer_id)]
    await invalidate_dependencies(keys)
'''


def test_scan_finds_cached_functions_and_invalidations() -> None:
    graph = scan_source(SOURCE, "billing/subscriptions.py")

    by_name = {fn.name: fn for fn in graph.cached_functions}
    assert by_name["purchases_by_customer"].namespace == "purchasesByCustomer"
    assert by_name["purchases_by_customer"].dependencies == ("customer_purchases",)
    assert by_name["subscriptions_by_customer"].kind == "recomputable"
    assert by_name["subscriptions_by_customer"].dependencies == ("customer_subscriptions",)
    assert by_name["items_for"].kind == "bulk"
    assert by_name["items_for"].namespace == "itemsBySubscription"

    sites = {site.name: site.dependencies for site in graph.invalidations}
    assert sites["cancel_subscription"] == ("customer_subscriptions", "subscription_items")
    assert sites["refund_purchase"] == ("customer_purchases",)


def test_render_dot() -> None:
    dot = render_dot(scan_source(SOURCE, "billing/subscriptions.py"))
    assert dot.startswith("digraph CacheDependencies {")
    assert '"dep:customer_purchases" [label="customer_purchases", shape=diamond' in dot
    assert '"cache:purchasesByCustomer:purchases_by_customer" -> "dep:customer_purchases";' in dot
    assert '"invalidate:billing/subscriptions.py:cancel_subscription" -> "dep:subscription_items"' in dot
    assert dot.rstrip().endswith("}")


def test_generate_skips_tests_and_broken_files(tmp_path: Path) -> None:
    (tmp_path / "billing").mkdir()
    (tmp_path / "billing" / "subscriptions.py").write_text(SOURCE)
    (tmp_path / "billing" / "broken.py").write_text("def nope(:\n")
    (tmp_path / "tests").mkdir()
    (tmp_path / "tests" / "helpers.py").write_text(
        "async def f():\n    await invalidate_dependencies([CacheDependency.price('p')])\n"
    )

    dot = generate_cache_dependency_graph(tmp_path)
    assert "purchases_by_customer" in dot
    assert "dep:price" not in dot
