from unittest.mock import AsyncMock, MagicMock, patch

import pytest
import redis.asyncio as redis

from catalog_service.app.core import cache_management
from catalog_service.app.core.setting import CatalogSettings
from catalog_service.app.services.cache import (
    ACTIVE_PRODUCTS,
    PRODUCT_BY_ID,
    PRODUCTS,
    InMemoryCache,
    ProductCache,
    RedisCache,
)
from catalog_service.app.services.cache.invalidation import CacheInvalidationService

MONOTONIC = "catalog_service.app.services.cache.time.monotonic"
TTLS = {PRODUCTS: 600, PRODUCT_BY_ID: 1800, ACTIVE_PRODUCTS: 3600}


class TestInMemoryCache:
    @pytest.mark.asyncio
    async def test_expired_entries_are_never_returned(self):
        cache = InMemoryCache()
        with patch(MONOTONIC, return_value=100.0):
            await cache.set("k", "v", ttl=10)

        with patch(MONOTONIC, return_value=109.9):
            assert await cache.get("k") == "v"
        with patch(MONOTONIC, return_value=110.0):
            assert await cache.get("k") is None
        assert "k" not in cache.cache

    @pytest.mark.asyncio
    async def test_size_is_bounded(self):
        cache = InMemoryCache(max_size=2)

        await cache.set("a", "1", ttl=60)
        await cache.set("b", "2", ttl=60)
        await cache.set("c", "3", ttl=60)

        assert len(cache.cache) == 2
        assert await cache.get("a") is None
        assert await cache.get("c") == "3"

    @pytest.mark.asyncio
    async def test_delete_prefix(self):
        cache = InMemoryCache()
        await cache.set("catalog:products:all", "[]", ttl=60)
        await cache.set("catalog:productById:1", "{}", ttl=60)

        assert await cache.delete_prefix("catalog:products:") == 1
        assert await cache.get("catalog:productById:1") == "{}"


class TestProductCache:
    @pytest.fixture
    def cache(self):
        return ProductCache(backend=InMemoryCache(), ttls=TTLS)

    @pytest.mark.asyncio
    async def test_round_trip_returns_copy(self, cache):
        value = {"id": 1, "name": "Widget"}
        await cache.put(PRODUCT_BY_ID, 1, value)
        value["name"] = "mutated"

        assert await cache.get(PRODUCT_BY_ID, 1) == {"id": 1, "name": "Widget"}

    @pytest.mark.asyncio
    async def test_none_is_not_cached(self, cache):
        await cache.put(PRODUCT_BY_ID, 1, None)

        assert cache.backend.cache == {}

    @pytest.mark.asyncio
    async def test_unknown_namespace_is_rejected(self, cache):
        with pytest.raises(KeyError):
            await cache.put("nope", 1, {"id": 1})

    @pytest.mark.asyncio
    async def test_evict_single_key_and_namespace(self, cache):
        await cache.put(PRODUCT_BY_ID, 1, {"id": 1})
        await cache.put(PRODUCT_BY_ID, 2, {"id": 2})
        await cache.put(PRODUCTS, "all", [])

        assert await cache.evict(PRODUCT_BY_ID, 1) == 1
        assert await cache.get(PRODUCT_BY_ID, 2) == {"id": 2}
        assert await cache.evict(PRODUCT_BY_ID) == 1
        assert await cache.get(PRODUCTS, "all") == []

    @pytest.mark.asyncio
    async def test_backend_errors_are_absorbed(self):
        backend = AsyncMock(spec=InMemoryCache)
        backend.get.side_effect = ConnectionError("down")
        backend.set.side_effect = ConnectionError("down")
        backend.delete.side_effect = ConnectionError("down")
        cache = ProductCache(backend=backend, ttls=TTLS)

        assert await cache.get(PRODUCT_BY_ID, 1) is None
        await cache.put(PRODUCT_BY_ID, 1, {"id": 1})
        assert await cache.evict(PRODUCT_BY_ID, 1) is None
        assert cache.bypassed

    @pytest.mark.asyncio
    async def test_failed_eviction_bypasses_cache_until_retried(self, cache):
        await cache.put(PRODUCT_BY_ID, 1, {"id": 1, "name": "Cup"})
        cache.backend.delete = AsyncMock(side_effect=ConnectionError("down"))

        assert await cache.evict(PRODUCT_BY_ID, 1) is None
        assert await cache.get(PRODUCT_BY_ID, 1) is None
        await cache.put(PRODUCT_BY_ID, 2, {"id": 2})
        assert "catalog:productById:2" not in cache.backend.cache

        del cache.backend.delete
        assert await cache.get(PRODUCT_BY_ID, 1) is None
        assert not cache.bypassed
        assert "catalog:productById:1" not in cache.backend.cache

    @pytest.mark.asyncio
    async def test_refresh_overwrites_entry_and_clears_its_pending_eviction(
        self, cache
    ):
        await cache.put(PRODUCT_BY_ID, 1, {"id": 1, "name": "Cup"})
        cache.backend.delete = AsyncMock(side_effect=ConnectionError("down"))
        await cache.evict(PRODUCT_BY_ID, 1)

        assert await cache.refresh(PRODUCT_BY_ID, 1, {"id": 1, "name": "Mug"})

        assert not cache.bypassed
        assert await cache.get(PRODUCT_BY_ID, 1) == {"id": 1, "name": "Mug"}

    @pytest.mark.asyncio
    async def test_disabled_cache_is_pass_through(self):
        cache = ProductCache(backend=InMemoryCache(), ttls=TTLS, enabled=False)

        await cache.put(PRODUCT_BY_ID, 1, {"id": 1})

        assert await cache.get(PRODUCT_BY_ID, 1) is None
        assert cache.backend_name == "disabled"


class TestCacheInvalidation:
    @pytest.mark.asyncio
    async def test_invalidate_evicts_product_and_aggregates(self):
        cache = ProductCache(backend=InMemoryCache(), ttls=TTLS)
        await cache.put(PRODUCT_BY_ID, 1, {"id": 1})
        await cache.put(PRODUCT_BY_ID, 2, {"id": 2})
        await cache.put(PRODUCTS, "all", [{"id": 1}])
        await cache.put(ACTIVE_PRODUCTS, "all", [{"id": 1}])

        removed = await CacheInvalidationService(cache).invalidate_product_caches(1)

        assert removed == 3
        assert await cache.get(PRODUCT_BY_ID, 2) == {"id": 2}
        assert await cache.get(PRODUCTS, "all") is None

    @pytest.mark.asyncio
    async def test_failed_product_eviction_writes_committed_snapshot(self):
        cache = ProductCache(backend=InMemoryCache(), ttls=TTLS)
        await cache.put(PRODUCT_BY_ID, 1, {"id": 1, "name": "Cup"})
        cache.backend.delete = AsyncMock(side_effect=ConnectionError("down"))

        await CacheInvalidationService(cache).invalidate_product_caches(
            1, {"id": 1, "name": "Mug"}
        )

        assert not cache.bypassed
        assert await cache.get(PRODUCT_BY_ID, 1) == {"id": 1, "name": "Mug"}

    @pytest.mark.asyncio
    async def test_failed_aggregate_eviction_keeps_cache_bypassed(self):
        cache = ProductCache(backend=InMemoryCache(), ttls=TTLS)
        await cache.put(PRODUCTS, "all", [{"id": 1, "name": "Cup"}])
        cache.backend.delete_prefix = AsyncMock(side_effect=ConnectionError("down"))

        await CacheInvalidationService(cache).invalidate_product_caches(1)

        assert cache.bypassed
        assert await cache.get(PRODUCTS, "all") is None


class TestCacheBackendSelection:
    @pytest.fixture
    def settings(self):
        return CatalogSettings(
            REDIS_URL="redis://cache:6379/0",
            CACHE_ENABLED=True,
            CACHE_CONNECT_TIMEOUT=0.1,
            CACHE_FALLBACK_MAX_SIZE=50,
        )

    @pytest.mark.asyncio
    async def test_uses_redis_when_reachable(self, settings):
        client = MagicMock()
        client.ping = AsyncMock(return_value=True)
        client.aclose = AsyncMock()

        with patch.object(cache_management.redis, "from_url", return_value=client):
            cache = await cache_management.init_cache(settings)

        assert isinstance(cache.backend, RedisCache)
        assert cache.backend_name == "redis"
        await cache_management.close_cache()
        client.aclose.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_falls_back_to_memory_when_unreachable(self, settings):
        client = MagicMock()
        client.ping = AsyncMock(side_effect=redis.ConnectionError("refused"))
        client.aclose = AsyncMock()

        with patch.object(cache_management.redis, "from_url", return_value=client):
            cache = await cache_management.init_cache(settings)

        assert isinstance(cache.backend, InMemoryCache)
        assert cache.backend.max_size == 50
        client.aclose.assert_awaited_once()

        await cache.put(PRODUCT_BY_ID, 1, {"id": 1})
        assert await cache.get(PRODUCT_BY_ID, 1) == {"id": 1}
        await cache_management.close_cache()


class TestRedisCache:
    @pytest.mark.asyncio
    async def test_set_uses_ttl_and_prefix_scan(self):
        client = MagicMock()
        client.set = AsyncMock()
        client.delete = AsyncMock(return_value=1)

        async def scan_iter(match):
            for key in ("catalog:products:all", "catalog:products:x"):
                yield key

        client.scan_iter = scan_iter
        backend = RedisCache(client)

        await backend.set("catalog:products:all", "[]", ttl=600)
        deleted = await backend.delete_prefix("catalog:products:")

        client.set.assert_awaited_once_with("catalog:products:all", "[]", ex=600)
        assert deleted == 2
