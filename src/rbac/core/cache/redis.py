"""Redis client configuration and the cache-aside backend.

Provides an async Redis client with connection pooling and the
``RedisCache`` backend used by the role lookups.
"""

from collections.abc import AsyncGenerator, Awaitable, Callable
from contextlib import asynccontextmanager
from typing import Any

import redis.asyncio as redis
import structlog
from redis.asyncio.connection import ConnectionPool
from redis.exceptions import RedisError

from rbac.config import settings
from rbac.core.cache.serializers import deserialize, serialize
from rbac.core.errors import CacheError


logger = structlog.get_logger()

# Connection pool for efficient connection reuse
_pool: ConnectionPool | None = None


def _get_pool() -> ConnectionPool:
    """Get or create the Redis connection pool."""
    global _pool
    if _pool is None:
        _pool = ConnectionPool.from_url(
            str(settings.redis_url),
            max_connections=50,
            decode_responses=True,
        )
    return _pool


@asynccontextmanager
async def redis_client() -> AsyncGenerator[redis.Redis, None]:  # type: ignore[type-arg]
    """Context manager for Redis client.

    Usage:
        async with redis_client() as client:
            await client.set("key", "value")
    """
    client = redis.Redis(connection_pool=_get_pool())
    try:
        yield client
    finally:
        await client.aclose()


async def close_redis_pool() -> None:
    """Close the Redis connection pool.

    Call this during application shutdown.
    """
    global _pool
    if _pool is not None:
        await _pool.disconnect()
        _pool = None


class RedisCache:
    """Read-through cache over Redis.

    Keys are ``<prefix><namespace>:<key>``. Entries expire by TTL only;
    nothing in the engine deletes them when bindings change.
    """

    def __init__(self, prefix: str | None = None) -> None:
        """Initialize cache with optional key prefix.

        Args:
            prefix: Prefix for all keys (defaults to ``settings.cache_prefix``)
        """
        self.prefix = settings.cache_prefix if prefix is None else prefix

    def _key(self, namespace: str, key: str) -> str:
        return f"{self.prefix}{namespace}:{key}"

    async def get(self, namespace: str, key: str) -> str | None:
        """Get a raw value from cache.

        Returns:
            Cached value or None if not found
        """
        try:
            async with redis_client() as client:
                return await client.get(self._key(namespace, key))
        except RedisError as exc:
            raise CacheError(
                "Cache read failed",
                details={"namespace": namespace, "key": key},
            ) from exc

    async def set(self, namespace: str, key: str, value: str, ttl_seconds: int) -> None:
        """Set a raw value in cache with a TTL."""
        try:
            async with redis_client() as client:
                await client.setex(self._key(namespace, key), ttl_seconds, value)
        except RedisError as exc:
            raise CacheError(
                "Cache write failed",
                details={"namespace": namespace, "key": key},
            ) from exc

    async def delete(self, namespace: str, key: str) -> bool:
        """Delete a key from cache.

        Returns:
            True if key was deleted, False if it didn't exist
        """
        try:
            async with redis_client() as client:
                return await client.delete(self._key(namespace, key)) > 0
        except RedisError as exc:
            raise CacheError(
                "Cache delete failed",
                details={"namespace": namespace, "key": key},
            ) from exc

    async def get_or_set(
        self,
        namespace: str,
        key: str,
        ttl_seconds: int,
        compute: Callable[[], Awaitable[Any]],
        cache_none: bool = False,
    ) -> Any:
        """Return the cached value, or compute, store and return it.

        Concurrent misses for the same key all compute and all write; the
        last write wins.

        Args:
            namespace: Key namespace (e.g. "role")
            key: Key within the namespace
            ttl_seconds: Expiry for a freshly stored value
            compute: Coroutine factory producing the value on a miss
            cache_none: Whether a ``None`` result is stored

        Returns:
            The deserialized cached value or the computed value
        """
        cached_value = await self.get(namespace, key)
        if cached_value is not None:
            logger.debug("cache_hit", namespace=namespace, key=key)
            return deserialize(cached_value)

        logger.debug("cache_miss", namespace=namespace, key=key)
        result = await compute()
        if result is not None or cache_none:
            await self.set(namespace, key, serialize(result), ttl_seconds)
        return result
