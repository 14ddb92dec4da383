"""Recompute registry: namespace -> handler that regenerates an entry.

Built once at startup from an explicit list of recomputable cache
definitions and handed to the invalidation engine. Read-only afterwards.
"""

import logging
from collections.abc import Awaitable, Callable, Iterable, Mapping
from typing import Any, Protocol

from billing_cache.domain.exceptions import DuplicateRecomputeHandlerException
from billing_cache.domain.value_objects import TransactionContext
from billing_cache.infrastructure.persistence.transactions import TransactionRunner

logger = logging.getLogger(__name__)

RecomputeHandler = Callable[[Mapping[str, Any], TransactionContext], Awaitable[Any]]


class RecomputableDefinition(Protocol):
    """Anything that can produce a recompute handler for its namespace (e.g. RecomputableCache)."""

    @property
    def namespace(self) -> str:
        ...

    def recompute_handler(self, runner: TransactionRunner) -> RecomputeHandler:
        ...


class RecomputeRegistry:
    """Immutable-after-startup map from namespace to RecomputeHandler."""

    def __init__(self) -> None:
        self._handlers: dict[str, RecomputeHandler] = {}

    @classmethod
    def from_definitions(
        cls,
        definitions: Iterable[RecomputableDefinition],
        runner: TransactionRunner,
    ) -> "RecomputeRegistry":
        """Register one handler per definition.

        Raises:
            DuplicateRecomputeHandlerException: Two definitions share a namespace.
        """
        registry = cls()
        for definition in definitions:
            registry.register(definition.namespace, definition.recompute_handler(runner))
        logger.info(
            "Recompute registry built with %d handlers: %s",
            len(registry),
            ", ".join(registry.namespaces()) or "-",
        )
        return registry

    def register(self, namespace: str, handler: RecomputeHandler) -> None:
        if namespace in self._handlers:
            raise DuplicateRecomputeHandlerException(namespace)
        self._handlers[namespace] = handler

    def get(self, namespace: str) -> RecomputeHandler | None:
        return self._handlers.get(namespace)

    def namespaces(self) -> list[str]:
        return sorted(self._handlers)

    def __contains__(self, namespace: object) -> bool:
        return namespace in self._handlers

    def __len__(self) -> int:
        return len(self._handlers)
