"""Domain exceptions for the billing cache.

Cache callers never see these: backend, serialization and recomputation
failures are contained by the cache layer. They surface only at startup
(misconfigured registry) or inside the recompute path, where they are
logged.
"""

from typing import Any


class BillingCacheException(Exception):
    """Base exception for all billing cache errors.

    Attributes:
        message: Human-readable error description.
        error_code: Machine-readable error code.
        details: Additional error context.
    """

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        self.message = message
        self.error_code = error_code or self.__class__.__name__
        self.details = details or {}
        super().__init__(self.message)


class SqlNotConfiguredException(BillingCacheException):
    """Raised when a recompute transaction is requested but DATABASE_URL is not set."""

    def __init__(self) -> None:
        super().__init__(
            "SQL database not configured: set DATABASE_URL to reconstruct recompute transactions",
            "SQL_NOT_CONFIGURED",
        )


class DuplicateRecomputeHandlerException(BillingCacheException):
    """Raised when two recomputable cache definitions claim the same namespace."""

    def __init__(self, namespace: str) -> None:
        super().__init__(
            f"Recompute handler already registered for namespace: {namespace}",
            "DUPLICATE_RECOMPUTE_HANDLER",
            {"namespace": namespace},
        )


class InvalidTransactionScopeException(BillingCacheException):
    """Raised when a transaction context carries identifiers unsafe for SET LOCAL."""

    def __init__(self, field: str) -> None:
        super().__init__(
            f"Transaction context field {field!r} failed format validation",
            "INVALID_TRANSACTION_SCOPE",
            {"field": field},
        )
