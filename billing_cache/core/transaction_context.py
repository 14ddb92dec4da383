"""Ambient transaction context for recomputable caches.

The authorization layer sets the current TransactionContext in this
context variable when it opens a transaction; cached_recomputable reads
it to persist recompute metadata. The recompute transaction runner sets
it again while replaying, so a recomputed entry captures the same scope.
"""

from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar

from billing_cache.domain.value_objects import TransactionContext

current_transaction_context: ContextVar[TransactionContext | None] = ContextVar(
    "current_transaction_context", default=None
)


def set_transaction_context(context: TransactionContext | None) -> None:
    """Set the transaction context for this async task/thread."""
    current_transaction_context.set(context)


def get_transaction_context() -> TransactionContext | None:
    """Return the current transaction context, or None outside any scope."""
    return current_transaction_context.get()


@contextmanager
def transaction_scope(context: TransactionContext) -> Iterator[TransactionContext]:
    """Bind context for the duration of the block, restoring the previous one on exit."""
    token = current_transaction_context.set(context)
    try:
        yield context
    finally:
        current_transaction_context.reset(token)
