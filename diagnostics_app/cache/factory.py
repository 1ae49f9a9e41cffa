"""
Cache backend selection and the key namespaces the diagnostics center caches.

geo:{ip}     successful ip-api records, shared by the proxy, analysis and visits
link:{code}  tracking link id for an active link code
"""

import logging
from enum import Enum

from .strategies import CacheStrategy, RedisCache, InMemoryCache, NullCache
from diagnostics_app.config import settings

logger = logging.getLogger(__name__)


class CacheBackend(Enum):
    """Available cache backends"""
    REDIS = "redis"
    MEMORY = "memory"
    NULL = "null"


class CacheNamespace(Enum):
    GEO = "geo"
    LINK = "link"

    def key(self, value: str) -> str:
        return f"{self.value}:{value}"

    @property
    def ttl(self) -> int:
        if self is CacheNamespace.GEO:
            return settings.geo_cache_ttl
        return settings.cache_ttl


class CacheFactory:
    """
    Builds the configured cache once per process and hands it out after that.

    An unreachable Redis degrades to the in-memory cache at start-up, so a
    missing Redis costs cache sharing between workers, never a request.
    """

    _instance: CacheStrategy = None

    @classmethod
    def create(cls, backend: CacheBackend) -> CacheStrategy:
        if cls._instance is not None:
            return cls._instance

        if backend == CacheBackend.REDIS:
            cls._instance = cls._connect_redis()
        elif backend == CacheBackend.MEMORY:
            cls._instance = InMemoryCache()
        elif backend == CacheBackend.NULL:
            cls._instance = NullCache()
        else:
            raise ValueError(f"Unknown cache backend: {backend}")

        logger.info(
            "Cache ready: %s (geo ttl %ss, link ttl %ss)",
            type(cls._instance).__name__, CacheNamespace.GEO.ttl, CacheNamespace.LINK.ttl,
        )
        return cls._instance

    @staticmethod
    def _connect_redis() -> CacheStrategy:
        import redis

        client = redis.from_url(
            settings.redis_url,
            decode_responses=False,
            socket_connect_timeout=2,
            socket_timeout=2,
        )
        try:
            client.ping()
        except Exception as e:
            logger.warning("Redis at %s unreachable (%s); using in-memory cache", settings.redis_url, e)
            return InMemoryCache()
        return RedisCache(client)

    @classmethod
    def clear_instance(cls):
        """Drop the cached instance (tests)"""
        cls._instance = None
