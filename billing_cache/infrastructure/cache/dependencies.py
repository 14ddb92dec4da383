"""Dependency registry: reverse index from dependency key to dependent cache keys.

``cacheDeps:<dependencyKey>`` is a Redis set of full cache keys. Its TTL
is refreshed on every registration and is longer than any entry TTL, so
sets belonging to entries that simply expired are eventually reclaimed.
"""

import asyncio
import logging
from collections.abc import Iterable

from billing_cache.core.config import get_settings
from billing_cache.infrastructure.cache.cache_protocol import KeyValueBackend
from billing_cache.infrastructure.cache.keys import dependency_registry_key

logger = logging.getLogger(__name__)


async def register_dependencies(
    client: KeyValueBackend,
    full_key: str,
    dependencies: Iterable[str],
) -> None:
    """Add full_key to the registry set of every dependency (best-effort).

    Registrations run concurrently. A failure for one dependency is
    logged and does not affect the others or the caller.
    """
    unique = list(dict.fromkeys(dependencies))
    if not unique:
        return
    ttl = get_settings().cache_dependency_registry_ttl

    async def _register(dependency: str) -> None:
        registry_key = dependency_registry_key(dependency)
        await client.sadd(registry_key, full_key)
        await client.expire(registry_key, ttl)

    results = await asyncio.gather(
        *(_register(dependency) for dependency in unique),
        return_exceptions=True,
    )
    for dependency, result in zip(unique, results):
        if isinstance(result, Exception):
            logger.error(
                "Failed to register cache dependency %s for %s: %s",
                dependency,
                full_key,
                result,
            )
