"""Value objects persisted alongside cache entries or replayed at recompute time."""

from billing_cache.domain.value_objects.recompute import (
    CacheRecomputeMetadata,
    Scalar,
    SerializableParams,
)
from billing_cache.domain.value_objects.transaction_context import (
    AdminTransactionContext,
    CustomerTransactionContext,
    MerchantTransactionContext,
    TransactionContext,
    transaction_context_adapter,
)

__all__ = [
    "AdminTransactionContext",
    "CacheRecomputeMetadata",
    "CustomerTransactionContext",
    "MerchantTransactionContext",
    "Scalar",
    "SerializableParams",
    "TransactionContext",
    "transaction_context_adapter",
]
