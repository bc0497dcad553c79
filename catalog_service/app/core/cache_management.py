"""
Catalog Service Cache Management
Selects the cache backend at startup: Redis when reachable, otherwise a
bounded in-process map with the same interface.
"""

import asyncio
from typing import Dict, Optional

import redis.asyncio as redis

from ..services.cache import (
    ACTIVE_PRODUCTS,
    PRODUCT_BY_ID,
    PRODUCT_CATEGORIES,
    PRODUCTS,
    PRODUCTS_BY_CATEGORY,
    PRODUCTS_BY_DESCRIPTION,
    PRODUCTS_BY_NAME,
    CacheBackend,
    InMemoryCache,
    ProductCache,
    RedisCache,
)
from ..utils.logging import setup_catalog_logging as setup_logging
from .setting import CatalogSettings, get_settings

logger = setup_logging("catalog_service_cache_management", log_level=get_settings().LOG_LEVEL)

# Global instance
_product_cache: Optional[ProductCache] = None


def namespace_ttls(settings: CatalogSettings) -> Dict[str, int]:
    return {
        PRODUCTS: settings.CACHE_TTL_PRODUCTS,
        PRODUCT_BY_ID: settings.CACHE_TTL_PRODUCT_BY_ID,
        PRODUCTS_BY_CATEGORY: settings.CACHE_TTL_PRODUCT_CATEGORIES,
        ACTIVE_PRODUCTS: settings.CACHE_TTL_PRODUCT_CATEGORIES,
        PRODUCT_CATEGORIES: settings.CACHE_TTL_PRODUCT_CATEGORIES,
        PRODUCTS_BY_NAME: settings.CACHE_TTL_PRODUCTS,
        PRODUCTS_BY_DESCRIPTION: settings.CACHE_TTL_PRODUCTS,
    }


async def _connect_backend(settings: CatalogSettings) -> CacheBackend:
    client = redis.from_url(
        settings.REDIS_URL,
        decode_responses=True,
        socket_connect_timeout=settings.CACHE_CONNECT_TIMEOUT,
        socket_timeout=settings.CACHE_CONNECT_TIMEOUT,
    )
    try:
        await asyncio.wait_for(client.ping(), timeout=settings.CACHE_CONNECT_TIMEOUT)
        logger.info(
            "Redis connection successful, using Redis cache",
            extra={"operation": "init_cache", "backend": "redis"},
        )
        return RedisCache(client)
    except (redis.RedisError, OSError, asyncio.TimeoutError) as e:
        await client.aclose()
        logger.warning(
            "Redis connection failed, falling back to in-memory cache",
            extra={
                "operation": "init_cache",
                "error": str(e),
                "backend": "memory",
                "degraded_mode": True,
            },
        )
        return InMemoryCache(max_size=settings.CACHE_FALLBACK_MAX_SIZE)


async def init_cache(settings: Optional[CatalogSettings] = None) -> ProductCache:
    """Initialize the cache layer"""
    global _product_cache

    settings = settings or get_settings()
    if settings.CACHE_ENABLED:
        backend = await _connect_backend(settings)
    else:
        logger.info("Caching disabled by configuration")
        backend = InMemoryCache(max_size=settings.CACHE_FALLBACK_MAX_SIZE)

    _product_cache = ProductCache(
        backend=backend,
        ttls=namespace_ttls(settings),
        key_prefix=settings.CACHE_KEY_PREFIX,
        enabled=settings.CACHE_ENABLED,
    )
    return _product_cache


async def close_cache() -> None:
    global _product_cache

    try:
        if _product_cache:
            await _product_cache.close()
            logger.info("Cache connections closed")
    except Exception as e:
        logger.error(
            "Error closing cache",
            extra={"operation": "close_cache", "error": str(e)},
        )
    finally:
        _product_cache = None


def get_product_cache() -> ProductCache:
    """Get the cache instance, initializing an in-memory one if startup was skipped"""
    global _product_cache
    if _product_cache is None:
        settings = get_settings()
        _product_cache = ProductCache(
            backend=InMemoryCache(max_size=settings.CACHE_FALLBACK_MAX_SIZE),
            ttls=namespace_ttls(settings),
            key_prefix=settings.CACHE_KEY_PREFIX,
            enabled=settings.CACHE_ENABLED,
        )
    return _product_cache
