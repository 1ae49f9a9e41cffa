import asyncio

from diagnostics_app.cache.factory import CacheBackend, CacheFactory, CacheNamespace
from diagnostics_app.config import settings
from diagnostics_app.cache.strategies import InMemoryCache, NullCache, RedisCache


class BrokenRedis:
    """Redis client whose every call fails"""

    def ping(self):
        raise ConnectionError("connection refused")

    def get(self, key):
        raise ConnectionError("connection refused")

    def setex(self, key, ttl, value):
        raise ConnectionError("connection refused")


class TestInMemoryCache:
    def test_set_get_delete(self):
        cache = InMemoryCache()

        assert asyncio.run(cache.set("k", "v")) is True
        assert asyncio.run(cache.get("k")) == "v"
        assert asyncio.run(cache.exists("k")) is True
        assert asyncio.run(cache.delete("k")) is True
        assert asyncio.run(cache.get("k")) is None
        assert asyncio.run(cache.delete("k")) is False

    def test_expired_entries_are_misses(self):
        cache = InMemoryCache()

        asyncio.run(cache.set("k", "v", ttl=0))

        assert asyncio.run(cache.get("k")) is None
        assert asyncio.run(cache.exists("k")) is False

    def test_json_helpers(self):
        cache = InMemoryCache()

        asyncio.run(cache.set_json("geo:8.8.8.8", {"status": "success", "lat": 39.03}))

        assert asyncio.run(cache.get_json("geo:8.8.8.8")) == {"status": "success", "lat": 39.03}

    def test_undecodable_json_is_dropped(self):
        cache = InMemoryCache()
        asyncio.run(cache.set("geo:1.1.1.1", "{not json"))

        assert asyncio.run(cache.get_json("geo:1.1.1.1")) is None
        assert asyncio.run(cache.exists("geo:1.1.1.1")) is False


class TestNullCache:
    def test_never_stores(self):
        cache = NullCache()

        assert asyncio.run(cache.set("k", "v")) is True
        assert asyncio.run(cache.get("k")) is None


class TestRedisCache:
    def test_errors_are_misses(self):
        """Test that a failing Redis never fails the caller"""
        cache = RedisCache(BrokenRedis())

        assert asyncio.run(cache.get("k")) is None
        assert asyncio.run(cache.set("k", "v")) is False


class TestCacheFactory:
    def setup_method(self):
        CacheFactory.clear_instance()

    def teardown_method(self):
        CacheFactory.clear_instance()

    def test_memory_backend(self):
        assert isinstance(CacheFactory.create(CacheBackend.MEMORY), InMemoryCache)

    def test_null_backend(self):
        assert isinstance(CacheFactory.create(CacheBackend.NULL), NullCache)

    def test_unreachable_redis_falls_back_to_memory(self, monkeypatch):
        monkeypatch.setattr("redis.from_url", lambda *a, **kw: BrokenRedis())

        assert isinstance(CacheFactory.create(CacheBackend.REDIS), InMemoryCache)

    def test_reachable_redis(self, monkeypatch):
        monkeypatch.setattr("redis.from_url", lambda *a, **kw: HealthyRedis())

        assert isinstance(CacheFactory.create(CacheBackend.REDIS), RedisCache)


class HealthyRedis:
    def ping(self):
        return True


class TestCacheNamespace:
    def test_keys(self):
        assert CacheNamespace.GEO.key("8.8.8.8") == "geo:8.8.8.8"
        assert CacheNamespace.LINK.key("a1b2c3") == "link:a1b2c3"

    def test_geo_records_outlive_link_entries(self, monkeypatch):
        monkeypatch.setattr(settings, "geo_cache_ttl", 86400)
        monkeypatch.setattr(settings, "cache_ttl", 3600)

        assert CacheNamespace.GEO.ttl == 86400
        assert CacheNamespace.LINK.ttl == 3600
