"""
Cache layer for Catalog Service

Namespace-scoped key/value cache with a TTL per namespace. Backed by Redis
when reachable at startup, otherwise by a bounded in-process map.
"""

import json
import time
from abc import ABC, abstractmethod
from typing import Any, Dict, Iterable, Optional, Set, Tuple

import redis.asyncio as redis

from ...utils.logging import setup_catalog_logging

logger = setup_catalog_logging("catalog_service_cache")

# Namespaces used by the product lifecycle service
PRODUCTS = "products"
PRODUCT_BY_ID = "productById"
PRODUCTS_BY_CATEGORY = "productsByCategory"
ACTIVE_PRODUCTS = "activeProducts"
PRODUCT_CATEGORIES = "productCategories"
PRODUCTS_BY_NAME = "productsByName"
PRODUCTS_BY_DESCRIPTION = "productsByDescription"

ALL_KEYS = "*"


class CacheBackend(ABC):
    """Raw string storage used by ProductCache"""

    name = "abstract"

    @abstractmethod
    async def get(self, key: str) -> Optional[str]:
        pass

    @abstractmethod
    async def set(self, key: str, value: str, ttl: int) -> None:
        pass

    @abstractmethod
    async def delete(self, key: str) -> int:
        pass

    @abstractmethod
    async def delete_prefix(self, prefix: str) -> int:
        pass

    async def close(self) -> None:
        return None


class InMemoryCache(CacheBackend):
    """Bounded in-memory cache with TTL support"""

    name = "memory"

    def __init__(self, max_size: int = 1000):
        self.cache: Dict[str, Dict[str, Any]] = {}
        self.max_size = max_size

    async def get(self, key: str) -> Optional[str]:
        entry = self.cache.get(key)
        if entry is None:
            return None
        if time.monotonic() < entry["expires_at"]:
            return entry["value"]
        # Expired, remove it
        self.cache.pop(key, None)
        return None

    async def set(self, key: str, value: str, ttl: int) -> None:
        if key not in self.cache and len(self.cache) >= self.max_size:
            self._cleanup_expired()
            if len(self.cache) >= self.max_size:
                self._evict_oldest()

        now = time.monotonic()
        self.cache[key] = {
            "value": value,
            "expires_at": now + ttl,
            "created_at": now,
        }

    async def delete(self, key: str) -> int:
        return 1 if self.cache.pop(key, None) is not None else 0

    async def delete_prefix(self, prefix: str) -> int:
        keys_to_delete = [key for key in self.cache if key.startswith(prefix)]
        for key in keys_to_delete:
            del self.cache[key]
        return len(keys_to_delete)

    def _cleanup_expired(self) -> None:
        current_time = time.monotonic()
        expired_keys = [
            key
            for key, entry in self.cache.items()
            if current_time >= entry["expires_at"]
        ]
        for key in expired_keys:
            del self.cache[key]

    def _evict_oldest(self) -> None:
        oldest_key = min(self.cache, key=lambda k: self.cache[k]["created_at"])
        del self.cache[oldest_key]

    def get_stats(self) -> Dict[str, Any]:
        total_entries = len(self.cache)
        current_time = time.monotonic()
        expired_count = sum(
            1 for entry in self.cache.values() if current_time >= entry["expires_at"]
        )
        return {
            "entries": total_entries,
            "expired_entries": expired_count,
            "active_entries": total_entries - expired_count,
            "max_size": self.max_size,
        }


class RedisCache(CacheBackend):
    """Redis backend; expiry is delegated to Redis via SETEX"""

    name = "redis"

    def __init__(self, client: redis.Redis):
        self.client = client

    async def get(self, key: str) -> Optional[str]:
        return await self.client.get(key)

    async def set(self, key: str, value: str, ttl: int) -> None:
        await self.client.set(key, value, ex=ttl)

    async def delete(self, key: str) -> int:
        return await self.client.delete(key)

    async def delete_prefix(self, prefix: str) -> int:
        deleted = 0
        async for key in self.client.scan_iter(match=f"{prefix}*"):
            deleted += await self.client.delete(key)
        return deleted

    async def close(self) -> None:
        await self.client.aclose()


class ProductCache:
    """
    Namespace-aware cache facade used by the lifecycle service.

    Values are stored as JSON so every read hands back a fresh copy.
    Backend failures are logged and absorbed: a failed read is a miss, a
    failed write leaves the operation that triggered it intact.

    A failed eviction is remembered. Until every remembered eviction has
    been retried successfully the cache is bypassed: reads miss and writes
    are skipped, so an entry that should have been removed is never served.
    """

    def __init__(
        self,
        backend: CacheBackend,
        ttls: Dict[str, int],
        key_prefix: str = "catalog",
        enabled: bool = True,
    ):
        self.backend = backend
        self.ttls = ttls
        self.key_prefix = key_prefix
        self.enabled = enabled
        self.pending_evictions: Set[Tuple[str, str]] = set()

    @property
    def backend_name(self) -> str:
        return self.backend.name if self.enabled else "disabled"

    @property
    def namespaces(self) -> Iterable[str]:
        return self.ttls.keys()

    @property
    def bypassed(self) -> bool:
        return bool(self.pending_evictions)

    def _key(self, namespace: str, key: Any) -> str:
        return f"{self.key_prefix}:{namespace}:{key}"

    async def get(self, namespace: str, key: Any) -> Optional[Any]:
        """Return the cached value or None on a miss"""
        if not self.enabled:
            return None
        if self.pending_evictions and not await self.retry_pending_evictions():
            return None
        try:
            raw = await self.backend.get(self._key(namespace, key))
        except Exception as e:
            logger.warning(
                "Cache read failed, treating as miss",
                extra={"namespace": namespace, "key": str(key), "error": str(e)},
            )
            return None
        if raw is None:
            return None
        return json.loads(raw)

    async def put(self, namespace: str, key: Any, value: Any) -> None:
        """
        Store a value under the namespace TTL.

        Raises KeyError for a namespace without a configured TTL; that is a
        programming error, not a backend failure, so it is not absorbed.
        """
        # Null values are never cached, a miss already means "absent"
        if not self.enabled or value is None:
            return
        ttl = self._ttl(namespace)
        if self.pending_evictions:
            return
        await self._set(namespace, key, value, ttl)

    async def refresh(self, namespace: str, key: Any, value: Any) -> bool:
        """Overwrite one entry even while bypassed; True when the backend took it"""
        if not self.enabled:
            return True
        ttl = self._ttl(namespace)
        if not await self._set(namespace, key, value, ttl):
            return False
        self.pending_evictions.discard((namespace, str(key)))
        return True

    async def evict(self, namespace: str, key: Any = ALL_KEYS) -> Optional[int]:
        """
        Remove one key, or every key of the namespace when key is '*'.

        Returns the number of removed entries, or None when the backend
        failed; the eviction is then kept pending and the cache bypassed.
        """
        if not self.enabled:
            return 0
        try:
            removed = await self._delete(namespace, key)
        except Exception as e:
            logger.error(
                "Cache eviction failed, bypassing cache until it succeeds",
                extra={"namespace": namespace, "key": str(key), "error": str(e)},
            )
            self.pending_evictions.add((namespace, str(key)))
            return None
        self.pending_evictions = {
            (ns, k)
            for ns, k in self.pending_evictions
            if ns != namespace or (key != ALL_KEYS and k != str(key))
        }
        return removed

    async def retry_pending_evictions(self) -> bool:
        """Retry remembered evictions; True once none is left"""
        for namespace, key in list(self.pending_evictions):
            try:
                await self._delete(namespace, key)
            except Exception as e:
                logger.warning(
                    "Pending cache eviction still failing",
                    extra={"namespace": namespace, "key": key, "error": str(e)},
                )
                return False
            self.pending_evictions.discard((namespace, key))
        return True

    def _ttl(self, namespace: str) -> int:
        ttl = self.ttls.get(namespace)
        if ttl is None:
            raise KeyError(f"Unknown cache namespace: {namespace}")
        return ttl

    async def _set(self, namespace: str, key: Any, value: Any, ttl: int) -> bool:
        try:
            await self.backend.set(
                self._key(namespace, key), json.dumps(value, default=str), ttl
            )
            return True
        except Exception as e:
            logger.warning(
                "Cache write failed",
                extra={"namespace": namespace, "key": str(key), "error": str(e)},
            )
            return False

    async def _delete(self, namespace: str, key: Any) -> int:
        if key == ALL_KEYS:
            return await self.backend.delete_prefix(f"{self.key_prefix}:{namespace}:")
        return await self.backend.delete(self._key(namespace, key))

    async def close(self) -> None:
        await self.backend.close()


__all__ = [
    "ACTIVE_PRODUCTS",
    "ALL_KEYS",
    "PRODUCTS",
    "PRODUCTS_BY_CATEGORY",
    "PRODUCTS_BY_DESCRIPTION",
    "PRODUCTS_BY_NAME",
    "PRODUCT_BY_ID",
    "PRODUCT_CATEGORIES",
    "CacheBackend",
    "InMemoryCache",
    "ProductCache",
    "RedisCache",
]
