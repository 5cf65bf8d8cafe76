"""Cache module for Redis-backed read-through caching.

Provides:
- Redis client connection management
- The ``get_or_set`` cache contract and its Redis backend
- Serialization utilities for cache values
"""

from rbac.core.cache.base import CacheBackend
from rbac.core.cache.redis import RedisCache, close_redis_pool, redis_client
from rbac.core.cache.serializers import deserialize, serialize


__all__ = [
    "CacheBackend",
    "RedisCache",
    "close_redis_pool",
    "deserialize",
    "redis_client",
    "serialize",
]
