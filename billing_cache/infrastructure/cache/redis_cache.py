"""Redis connection holder for the cache engine.

Owns the async Redis client. The engine never talks to Redis when the
service is unavailable: ``client`` is None and every cache read becomes a
miss, every write a no-op.
"""

from __future__ import annotations

import logging

import redis.asyncio as redis

from billing_cache.core.config import get_settings
from billing_cache.infrastructure.cache.cache_protocol import KeyValueBackend

logger = logging.getLogger(__name__)


class CacheService:
    """Async Redis connection with availability tracking.

    Call connect() at startup and disconnect() at shutdown. Pass
    redis_client for DI/testing; an injected client is assumed connected.
    """

    def __init__(self, redis_client: KeyValueBackend | None = None) -> None:
        self.redis: KeyValueBackend | None = redis_client
        self.settings = get_settings()
        self._connected = redis_client is not None

    async def connect(self) -> None:
        """Establish Redis connection. On failure, log and run with the cache disabled."""
        if self._connected:
            return
        if not self.settings.redis_enabled:
            logger.info("Redis cache disabled by configuration")
            return
        client = redis.Redis(
            host=self.settings.redis_host,
            port=self.settings.redis_port,
            db=self.settings.redis_db,
            password=self.settings.redis_password.get_secret_value() if self.settings.redis_password else None,
            decode_responses=True,
            socket_connect_timeout=self.settings.redis_socket_timeout,
            socket_timeout=self.settings.redis_socket_timeout,
            socket_keepalive=True,
        )
        try:
            await client.ping()
        except (redis.ConnectionError, redis.TimeoutError) as e:
            logger.warning("Redis connection failed: %s. Cache disabled.", e)
            await client.aclose()
            return
        self.redis = client
        self._connected = True
        logger.info(
            "Redis cache connected: %s:%s",
            self.settings.redis_host,
            self.settings.redis_port,
        )

    async def disconnect(self) -> None:
        """Close Redis connection. Call on app shutdown."""
        if self.redis is not None and isinstance(self.redis, redis.Redis):
            await self.redis.aclose()
            logger.info("Redis cache disconnected")
        self.redis = None
        self._connected = False

    def is_available(self) -> bool:
        """Return True if Redis is connected and usable."""
        return self._connected and self.redis is not None

    @property
    def client(self) -> KeyValueBackend | None:
        """The backend client, or None when the cache is unavailable."""
        if not self.is_available():
            return None
        return self.redis
