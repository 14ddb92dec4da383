"""Scoped transactions for recomputation.

A recompute handler replays a cached computation in the scope captured
when the entry was populated. SqlTransactionRunner opens a transaction,
binds that scope with SET LOCAL so row-level security applies as it did
for the original caller, and runs the computation with the context set
as the ambient transaction context.
"""

import logging
import re
from collections.abc import Awaitable, Callable
from typing import Any, Protocol, TypeVar, assert_never

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from billing_cache.core.transaction_context import transaction_scope
from billing_cache.domain.exceptions import InvalidTransactionScopeException
from billing_cache.domain.value_objects import (
    AdminTransactionContext,
    CustomerTransactionContext,
    MerchantTransactionContext,
    TransactionContext,
)
from billing_cache.infrastructure.persistence.database import get_session_factory

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Strict format for identifiers before interpolation into SET LOCAL.
_IDENTIFIER_MAX_LENGTH = 64
_IDENTIFIER_RE = re.compile(r"^[a-zA-Z0-9_-]{1," + str(_IDENTIFIER_MAX_LENGTH) + r"}$")


class TransactionRunner(Protocol):
    """Runs fn(transaction) inside a transaction scoped to context."""

    async def run(
        self,
        context: TransactionContext,
        fn: Callable[[Any], Awaitable[T]],
    ) -> T:
        ...


def _quote_set_value(value: str) -> str:
    """Escape a value for use in PostgreSQL SET (single-quoted literal)."""
    return value.replace("'", "''")


def _checked_identifier(value: str, field: str) -> str:
    if not _IDENTIFIER_RE.fullmatch(value):
        raise InvalidTransactionScopeException(field)
    return value


def scope_settings(context: TransactionContext) -> list[tuple[str, str]]:
    """SET LOCAL parameters that reproduce the scope of context.

    Admin scopes bind livemode only; merchant scopes add organization and
    user; customer scopes add the customer as well.

    Raises:
        InvalidTransactionScopeException: An identifier has an unsafe format.
    """
    settings = [("app.livemode", "true" if context.livemode else "false")]
    match context:
        case AdminTransactionContext():
            pass
        case MerchantTransactionContext(organization_id=organization_id, user_id=user_id):
            settings.append(
                ("app.current_organization_id", _checked_identifier(organization_id, "organization_id"))
            )
            settings.append(("app.current_user_id", _checked_identifier(user_id, "user_id")))
        case CustomerTransactionContext(
            organization_id=organization_id, user_id=user_id, customer_id=customer_id
        ):
            settings.append(
                ("app.current_organization_id", _checked_identifier(organization_id, "organization_id"))
            )
            settings.append(("app.current_user_id", _checked_identifier(user_id, "user_id")))
            settings.append(("app.current_customer_id", _checked_identifier(customer_id, "customer_id")))
        case _:
            assert_never(context)
    return settings


class SqlTransactionRunner:
    """TransactionRunner backed by an async SQLAlchemy session.

    Commits when fn returns, rolls back when it raises.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession] | None = None) -> None:
        self._session_factory = session_factory

    async def run(
        self,
        context: TransactionContext,
        fn: Callable[[AsyncSession], Awaitable[T]],
    ) -> T:
        settings = scope_settings(context)
        factory = self._session_factory or get_session_factory()
        async with factory() as session:
            async with session.begin():
                for name, value in settings:
                    await session.execute(text(f"SET LOCAL {name} = '{_quote_set_value(value)}'"))
                logger.debug("Opened %s transaction for recomputation", context.type)
                with transaction_scope(context):
                    return await fn(session)
