"""
Cache invalidation service for Catalog Service
"""

from typing import Any, Dict, Optional

from ...utils.logging import setup_catalog_logging
from . import (
    ACTIVE_PRODUCTS,
    ALL_KEYS,
    PRODUCT_BY_ID,
    PRODUCT_CATEGORIES,
    PRODUCTS,
    PRODUCTS_BY_CATEGORY,
    PRODUCTS_BY_DESCRIPTION,
    PRODUCTS_BY_NAME,
    ProductCache,
)

logger = setup_catalog_logging("catalog_service_cache_invalidation")

# Collections that may contain any product
AGGREGATE_NAMESPACES = (
    PRODUCTS,
    PRODUCTS_BY_CATEGORY,
    ACTIVE_PRODUCTS,
    PRODUCT_CATEGORIES,
    PRODUCTS_BY_NAME,
    PRODUCTS_BY_DESCRIPTION,
)


class CacheInvalidationService:
    """Coarse-grained invalidation run after every committed product write"""

    def __init__(self, cache: ProductCache):
        self.cache = cache

    async def invalidate_product_caches(
        self,
        product_id: Optional[int] = None,
        snapshot: Optional[Dict[str, Any]] = None,
    ) -> int:
        """
        Evict one product entry (or all of them) plus every aggregate collection.

        When the product entry cannot be evicted and the committed snapshot
        is known, the entry is overwritten with it instead.
        """
        if self.cache.pending_evictions:
            await self.cache.retry_pending_evictions()

        evicted = await self.cache.evict(
            PRODUCT_BY_ID, product_id if product_id is not None else ALL_KEYS
        )
        if evicted is None and product_id is not None and snapshot is not None:
            if await self.cache.refresh(PRODUCT_BY_ID, product_id, snapshot):
                logger.warning(
                    "Product cache entry overwritten after failed eviction",
                    extra={"product_id": product_id},
                )
        total_invalidated = evicted or 0

        for namespace in AGGREGATE_NAMESPACES:
            total_invalidated += await self.cache.evict(namespace, ALL_KEYS) or 0

        logger.info(
            f"Invalidated {total_invalidated} product cache entries",
            extra={
                "product_id": product_id,
                "cache_bypassed": self.cache.bypassed,
                "operation": "invalidate_product_caches",
            },
        )
        return total_invalidated
