"""
Cache strategies using Strategy Pattern.
Allows switching between different cache backends (Redis, In-Memory, Null).

Used cache-aside for geolocation records and tracking-link resolution.
"""

import json
import logging
import time
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional, Tuple

logger = logging.getLogger(__name__)


class CacheStrategy(ABC):
    """
    Abstract base class for cache strategies.

    All methods are async because cache operations involve I/O (network for Redis).
    Values are strings; get_json/set_json wrap structured payloads.
    """

    @abstractmethod
    async def get(self, key: str) -> Optional[str]:
        """
        Get value from cache.

        Args:
            key: Cache key

        Returns:
            Cached value or None if not found
        """
        pass

    @abstractmethod
    async def set(self, key: str, value: str, ttl: int = 3600) -> bool:
        """
        Set value in cache with TTL (Time To Live).

        Args:
            key: Cache key
            value: Value to cache
            ttl: Time to live in seconds (default: 1 hour)

        Returns:
            True if successful, False otherwise
        """
        pass

    @abstractmethod
    async def delete(self, key: str) -> bool:
        """Delete key from cache. True if something was removed."""
        pass

    @abstractmethod
    async def exists(self, key: str) -> bool:
        pass

    @abstractmethod
    async def clear(self) -> bool:
        pass

    async def get_json(self, key: str) -> Optional[Any]:
        raw = await self.get(key)
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except ValueError:
            logger.warning("Discarding undecodable cache entry %s", key)
            await self.delete(key)
            return None

    async def set_json(self, key: str, value: Any, ttl: int = 3600) -> bool:
        return await self.set(key, json.dumps(value), ttl=ttl)


class RedisCache(CacheStrategy):
    """
    Redis cache implementation.

    Shared between API workers, survives restarts if Redis is persistent.
    Redis errors are logged and treated as cache misses: the cache never
    fails a request.
    """

    def __init__(self, redis_client):
        """
        Args:
            redis_client: Redis client instance (redis.Redis)
        """
        self.redis = redis_client

    async def get(self, key: str) -> Optional[str]:
        try:
            value = self.redis.get(key)
            return value.decode('utf-8') if value else None
        except Exception as e:
            logger.error("Redis get error for %s: %s", key, e)
            return None

    async def set(self, key: str, value: str, ttl: int = 3600) -> bool:
        try:
            return bool(self.redis.setex(key, ttl, value))
        except Exception as e:
            logger.error("Redis set error for %s: %s", key, e)
            return False

    async def delete(self, key: str) -> bool:
        try:
            return bool(self.redis.delete(key))
        except Exception as e:
            logger.error("Redis delete error for %s: %s", key, e)
            return False

    async def exists(self, key: str) -> bool:
        try:
            return bool(self.redis.exists(key))
        except Exception as e:
            logger.error("Redis exists error for %s: %s", key, e)
            return False

    async def clear(self) -> bool:
        """Clear all Redis keys in the selected database"""
        try:
            self.redis.flushdb()
            return True
        except Exception as e:
            logger.error("Redis clear error: %s", e)
            return False


class InMemoryCache(CacheStrategy):
    """
    In-memory cache implementation using a Python dict.

    Per-process and lost on restart; good for development and tests.
    Expired entries are dropped lazily on access.
    """

    def __init__(self):
        self._cache: Dict[str, Tuple[str, float]] = {}

    def _alive(self, key: str) -> bool:
        entry = self._cache.get(key)
        if entry is None:
            return False
        if entry[1] <= time.monotonic():
            del self._cache[key]
            return False
        return True

    async def get(self, key: str) -> Optional[str]:
        if not self._alive(key):
            return None
        return self._cache[key][0]

    async def set(self, key: str, value: str, ttl: int = 3600) -> bool:
        self._cache[key] = (value, time.monotonic() + ttl)
        return True

    async def delete(self, key: str) -> bool:
        if key in self._cache:
            del self._cache[key]
            return True
        return False

    async def exists(self, key: str) -> bool:
        return self._alive(key)

    async def clear(self) -> bool:
        self._cache.clear()
        return True


class NullCache(CacheStrategy):
    """
    Null Object Pattern - cache that does nothing.

    Every lookup is a miss; writes succeed without storing anything.
    """

    async def get(self, key: str) -> Optional[str]:
        return None

    async def set(self, key: str, value: str, ttl: int = 3600) -> bool:
        return True

    async def delete(self, key: str) -> bool:
        return True

    async def exists(self, key: str) -> bool:
        return False

    async def clear(self) -> bool:
        return True
