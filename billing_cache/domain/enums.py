"""Domain enumerations: cache namespaces, transaction scopes, miss reasons."""

from enum import Enum


class CacheNamespace(str, Enum):
    """Logical cache categories. The value is the key prefix in the backend."""

    SUBSCRIPTIONS_BY_CUSTOMER = "subscriptionsByCustomer"
    ITEMS_BY_SUBSCRIPTION = "itemsBySubscription"
    FEATURES_BY_SUBSCRIPTION_ITEM = "featuresBySubscriptionItem"
    METER_BALANCES_BY_SUBSCRIPTION = "meterBalancesBySubscription"
    PRODUCTS_BY_PRICING_MODEL = "productsByPricingModel"
    PRICES_BY_PRICING_MODEL = "pricesByPricingModel"
    PRODUCT_FEATURES_BY_PRICING_MODEL = "productFeaturesByPricingModel"
    PURCHASES_BY_CUSTOMER = "purchasesByCustomer"
    API_KEY_VERIFICATION_RESULT = "apiKeyVerificationResult"
    # Internal bookkeeping namespaces
    CACHE_DEPENDENCY_REGISTRY = "cacheDeps"
    CACHE_RECOMPUTE_METADATA = "cacheRecompute"


class CacheMissReason(str, Enum):
    """Why a cache read did not produce a value."""

    COLD = "cold"
    INVALID = "invalid"
    ERROR = "error"
