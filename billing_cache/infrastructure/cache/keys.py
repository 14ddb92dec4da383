"""Cache key builders. Single place for key format.

A full cache key is ``<namespace>:<suffix>``; the namespace is always the
first segment, so suffixes may themselves contain the separator.
Dependency keys are free-form strings; CacheDependency builds the
conventional ones so writers and invalidators agree on spelling.
"""

from enum import Enum

from billing_cache.core.constants import (
    CACHE_KEY_SEP,
    CACHE_PREFIX_DEPENDENCY_REGISTRY,
    CACHE_PREFIX_LRU,
    CACHE_PREFIX_RECOMPUTE_METADATA,
)
from billing_cache.domain.enums import CacheNamespace


def namespace_value(namespace: CacheNamespace | str) -> str:
    """Return the raw string of a namespace (enum member or plain string)."""
    if isinstance(namespace, Enum):
        return namespace.value
    return namespace


def cache_key(namespace: CacheNamespace | str, suffix: str) -> str:
    """Full cache key for a namespace and caller-supplied suffix."""
    return f"{namespace_value(namespace)}{CACHE_KEY_SEP}{suffix}"


def namespace_of(full_key: str) -> str:
    """Namespace segment of a full cache key."""
    return full_key.split(CACHE_KEY_SEP, 1)[0]


def dependency_registry_key(dependency_key: str) -> str:
    """Set of full cache keys that depend on dependency_key."""
    return f"{CACHE_PREFIX_DEPENDENCY_REGISTRY}{CACHE_KEY_SEP}{dependency_key}"


def recompute_metadata_key(full_key: str) -> str:
    """Recompute metadata stored in parallel to a cache entry."""
    return f"{CACHE_PREFIX_RECOMPUTE_METADATA}{CACHE_KEY_SEP}{full_key}"


def lru_key(namespace: CacheNamespace | str) -> str:
    """Sorted set tracking recency of a namespace's live entries."""
    return f"{CACHE_PREFIX_LRU}{CACHE_KEY_SEP}{namespace_value(namespace)}"


def _dependency(kind: str, entity_id: str) -> str:
    if not entity_id:
        raise ValueError(f"Dependency key {kind!r} requires a non-empty id")
    return f"{kind}{CACHE_KEY_SEP}{entity_id}"


class CacheDependency:
    """Conventional dependency keys.

    Two families by convention: set-membership keys (a row was added to or
    removed from a collection, e.g. customer_subscriptions) and content
    keys (a specific row changed, e.g. subscription). The engine treats
    them identically.
    """

    @staticmethod
    def customer(customer_id: str) -> str:
        return _dependency("customer", customer_id)

    @staticmethod
    def customer_subscriptions(customer_id: str) -> str:
        return _dependency("customerSubscriptions", customer_id)

    @staticmethod
    def subscription(subscription_id: str) -> str:
        return _dependency("subscription", subscription_id)

    @staticmethod
    def subscription_item(subscription_item_id: str) -> str:
        return _dependency("subscriptionItem", subscription_item_id)

    @staticmethod
    def subscription_items(subscription_id: str) -> str:
        return _dependency("subscriptionItems", subscription_id)

    @staticmethod
    def subscription_item_features(subscription_item_id: str) -> str:
        return _dependency("subscriptionItemFeatures", subscription_item_id)

    @staticmethod
    def subscription_ledger(subscription_id: str) -> str:
        return _dependency("ledger", subscription_id)

    @staticmethod
    def products_by_pricing_model(pricing_model_id: str) -> str:
        return _dependency("productsByPricingModel", pricing_model_id)

    @staticmethod
    def prices_by_pricing_model(pricing_model_id: str) -> str:
        return _dependency("pricesByPricingModel", pricing_model_id)

    @staticmethod
    def price(price_id: str) -> str:
        return _dependency("price", price_id)

    @staticmethod
    def product_features_by_pricing_model(pricing_model_id: str) -> str:
        return _dependency("productFeaturesByPricingModel", pricing_model_id)

    @staticmethod
    def customer_purchases(customer_id: str) -> str:
        return _dependency("customerPurchases", customer_id)

    @staticmethod
    def purchase(purchase_id: str) -> str:
        return _dependency("purchase", purchase_id)
