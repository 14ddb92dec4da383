"""Namespace table: default TTL and LRU capacity per cache namespace.

Capacities (and the few fixed TTLs) are compile-time constants. TTLs can
be overridden per namespace at runtime with the CACHE_TTLS JSON blob.
"""

import json
import logging
from dataclasses import dataclass

from billing_cache.core.config import get_settings
from billing_cache.core.constants import DEFAULT_CACHE_TTL, DEFAULT_LRU_MAX_SIZE
from billing_cache.domain.enums import CacheNamespace
from billing_cache.infrastructure.cache.keys import namespace_value

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class NamespacePolicy:
    """LRU capacity and optional fixed TTL (seconds) for one namespace."""

    max_entries: int
    ttl: int | None = None


EVICTION_POLICY: dict[str, NamespacePolicy] = {
    CacheNamespace.SUBSCRIPTIONS_BY_CUSTOMER.value: NamespacePolicy(max_entries=50_000),
    CacheNamespace.ITEMS_BY_SUBSCRIPTION.value: NamespacePolicy(max_entries=100_000),
    CacheNamespace.FEATURES_BY_SUBSCRIPTION_ITEM.value: NamespacePolicy(max_entries=200_000),
    CacheNamespace.METER_BALANCES_BY_SUBSCRIPTION.value: NamespacePolicy(max_entries=100_000),
    CacheNamespace.PRODUCTS_BY_PRICING_MODEL.value: NamespacePolicy(max_entries=50_000),
    CacheNamespace.PRICES_BY_PRICING_MODEL.value: NamespacePolicy(max_entries=50_000),
    CacheNamespace.PRODUCT_FEATURES_BY_PRICING_MODEL.value: NamespacePolicy(max_entries=50_000),
    CacheNamespace.PURCHASES_BY_CUSTOMER.value: NamespacePolicy(max_entries=50_000),
    CacheNamespace.API_KEY_VERIFICATION_RESULT.value: NamespacePolicy(
        max_entries=100_000, ttl=8640  # 2.4 hours
    ),
    # Small sets mapping dependency keys to cache keys
    CacheNamespace.CACHE_DEPENDENCY_REGISTRY.value: NamespacePolicy(max_entries=500_000),
    CacheNamespace.CACHE_RECOMPUTE_METADATA.value: NamespacePolicy(
        max_entries=500_000, ttl=86400
    ),
}


def _ttl_overrides() -> dict[str, int]:
    """Parse CACHE_TTLS; anything unparsable is ignored with a warning.

    An entry must expire before the dependency registry sets that point at
    it, so overrides not shorter than CACHE_DEPENDENCY_REGISTRY_TTL are
    dropped too.
    """
    settings = get_settings()
    raw = settings.cache_ttls
    if not raw:
        return {}
    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError:
        logger.warning("CACHE_TTLS is not valid JSON; using default TTLs")
        return {}
    if not isinstance(parsed, dict):
        logger.warning("CACHE_TTLS must be a JSON object; using default TTLs")
        return {}
    overrides: dict[str, int] = {}
    for ns, ttl in parsed.items():
        if not isinstance(ttl, int) or isinstance(ttl, bool) or ttl <= 0:
            continue
        if ttl >= settings.cache_dependency_registry_ttl:
            logger.warning(
                "Ignoring CACHE_TTLS override for %s: %ss is not shorter than the dependency registry TTL (%ss)",
                ns,
                ttl,
                settings.cache_dependency_registry_ttl,
            )
            continue
        overrides[str(ns)] = ttl
    return overrides


def get_ttl_for_namespace(namespace: CacheNamespace | str) -> int:
    """TTL in seconds: CACHE_TTLS override, else the table's fixed TTL, else 300."""
    ns = namespace_value(namespace)
    override = _ttl_overrides().get(ns)
    if override is not None:
        return override
    policy = EVICTION_POLICY.get(ns)
    if policy is not None and policy.ttl is not None:
        return policy.ttl
    return DEFAULT_CACHE_TTL


def get_max_size_for_namespace(namespace: CacheNamespace | str) -> int:
    """LRU capacity (entry count) for a namespace."""
    policy = EVICTION_POLICY.get(namespace_value(namespace))
    if policy is None:
        return DEFAULT_LRU_MAX_SIZE
    return policy.max_entries
