"""Product lifecycle service: invariants, caching and change events"""

from contextlib import asynccontextmanager
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, AsyncIterator, Dict, List, Optional, Sequence

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from ..core.exceptions import (
    ConcurrentModificationError,
    DuplicateSkuError,
    InsufficientStockError,
    InvalidArgumentError,
    ProductNotFoundError,
)
from ..events.event_producers import ProductEventProducer
from ..events.schemas import PRODUCT_CREATED, PRODUCT_STOCK_UPDATED, PRODUCT_UPDATED
from ..models.base import utcnow
from ..models.product import DEFAULT_CATEGORY, PriceHistory, Product
from ..repository.price_history_repository import PriceHistoryRepository
from ..repository.product_repository import ProductRepository
from ..schemas.product import (
    BulkDeleteResult,
    CategoryCount,
    PriceHistoryResponse,
    PriceStatistics,
    ProductCreate,
    ProductPage,
    ProductResponse,
    ProductSearch,
    ProductStatistics,
    ProductUpdate,
    StockOperation,
)
from ..utils.logging import setup_catalog_logging as setup_logging
from .cache import (
    ACTIVE_PRODUCTS,
    PRODUCT_BY_ID,
    PRODUCT_CATEGORIES,
    PRODUCTS,
    PRODUCTS_BY_CATEGORY,
    PRODUCTS_BY_DESCRIPTION,
    PRODUCTS_BY_NAME,
    ProductCache,
)
from .cache.invalidation import CacheInvalidationService

logger = setup_logging("catalog_product_service")

ALL_PRODUCTS_KEY = "all"
CATEGORY_COUNTS_KEY = "counts"
DEFAULT_CHANGE_REASON = "Product update"
STATISTICS_RECENT_LIMIT = 5


class ProductService:
    """
    Owns every write to products and their price history.

    Within one operation the store commit happens before cache invalidation,
    which happens before the event publish attempt. Concurrent writers to the
    same product are detected through the product's version column.
    """

    def __init__(
        self,
        db: AsyncSession,
        cache: ProductCache,
        event_producer: Optional[ProductEventProducer] = None,
        low_stock_threshold: int = 10,
        max_page_size: int = 100,
    ):
        self.db = db
        self.repository = ProductRepository(db)
        self.price_history_repository = PriceHistoryRepository(db)
        self.cache = cache
        self.cache_invalidation = CacheInvalidationService(cache)
        self.event_producer = event_producer
        self.low_stock_threshold = low_stock_threshold
        self.max_page_size = max_page_size

    # ==============================================
    # HELPERS
    # ==============================================

    @staticmethod
    def _to_response(product: Product) -> ProductResponse:
        return ProductResponse.model_validate(product)

    @staticmethod
    def _dump(products: Sequence[ProductResponse]) -> List[Dict[str, Any]]:
        return [p.model_dump(mode="json") for p in products]

    @staticmethod
    def _load(cached: List[Dict[str, Any]]) -> List[ProductResponse]:
        return [ProductResponse.model_validate(item) for item in cached]

    @asynccontextmanager
    async def _write_transaction(
        self, product_id: Optional[int] = None, sku: Optional[str] = None
    ) -> AsyncIterator[None]:
        """Commit on success; roll back and translate store errors otherwise"""
        try:
            yield
            await self.db.commit()
        except IntegrityError as e:
            await self.db.rollback()
            if "sku" in str(e.orig).lower():
                raise DuplicateSkuError(sku or "<generated>") from e
            raise
        except StaleDataError as e:
            await self.db.rollback()
            raise ConcurrentModificationError(product_id or 0) from e
        except Exception:
            await self.db.rollback()
            raise

    async def _publish(
        self, product: Product, event_type: str, correlation_id: Optional[str]
    ) -> None:
        if self.event_producer is None:
            return
        try:
            # The returned delivery future is never awaited here
            await self.event_producer.publish_product_snapshot(
                product, event_type, correlation_id=correlation_id
            )
        except Exception as e:
            logger.error(
                f"Event publish failed after commit: {e}",
                extra={
                    "product_id": product.id,
                    "event_type": event_type,
                    "correlation_id": correlation_id,
                },
            )

    async def _ensure_sku_available(self, sku: str) -> None:
        if await self.repository.find_by_sku(sku) is not None:
            raise DuplicateSkuError(sku)

    # ==============================================
    # LIFECYCLE OPERATIONS
    # ==============================================

    async def create_product(
        self, product_data: ProductCreate, correlation_id: Optional[str] = None
    ) -> ProductResponse:
        """Create a new product"""
        logger.info(
            f"Creating new product: {product_data.name}",
            extra={"sku": product_data.sku, "correlation_id": correlation_id},
        )

        if product_data.sku is not None:
            await self._ensure_sku_available(product_data.sku)

        fields: Dict[str, Any] = {
            "name": product_data.name,
            "description": product_data.description,
            "price": product_data.price,
            "category": product_data.category or DEFAULT_CATEGORY,
            "stock_quantity": product_data.stock_quantity
            if product_data.stock_quantity is not None
            else 0,
            "is_active": product_data.is_active
            if product_data.is_active is not None
            else True,
        }
        if product_data.sku is not None:
            fields["sku"] = product_data.sku

        async with self._write_transaction(sku=product_data.sku):
            product = await self.repository.save(Product(**fields))

        response = self._to_response(product)
        await self.cache_invalidation.invalidate_product_caches(
            product.id, response.model_dump(mode="json")
        )
        await self._publish(product, PRODUCT_CREATED, correlation_id)

        logger.info(
            "Product created successfully",
            extra={
                "product_id": product.id,
                "sku": product.sku,
                "correlation_id": correlation_id,
            },
        )
        return response

    async def update_product(
        self,
        product_id: int,
        product_data: ProductUpdate,
        correlation_id: Optional[str] = None,
    ) -> ProductResponse:
        """Apply the fields present in the input; record a price change if any"""
        logger.info(
            f"Updating product with id: {product_id}",
            extra={"product_id": product_id, "correlation_id": correlation_id},
        )

        product = await self.repository.find_by_id(product_id)
        if product is None:
            raise ProductNotFoundError(product_id)

        changes = product_data.changes()

        new_sku = changes.get("sku")
        if new_sku is not None and new_sku != product.sku:
            await self._ensure_sku_available(new_sku)

        new_price = changes.get("price")
        old_price = product.price
        price_changed = new_price is not None and new_price != old_price

        async with self._write_transaction(product_id=product_id, sku=new_sku):
            if price_changed:
                await self.price_history_repository.save(
                    PriceHistory(
                        product_id=product.id,
                        old_price=old_price,
                        new_price=new_price,
                        change_reason=product_data.change_reason
                        or DEFAULT_CHANGE_REASON,
                        changed_by=product_data.changed_by,
                    )
                )
            for field_name, value in changes.items():
                setattr(product, field_name, value)
            product.updated_at = utcnow()
            product = await self.repository.save(product)

        response = self._to_response(product)
        await self.cache_invalidation.invalidate_product_caches(
            product_id, response.model_dump(mode="json")
        )
        await self._publish(product, PRODUCT_UPDATED, correlation_id)

        logger.info(
            "Product updated successfully",
            extra={
                "product_id": product_id,
                "updated_fields": sorted(changes),
                "price_changed": price_changed,
                "correlation_id": correlation_id,
            },
        )
        return response

    async def delete_product(
        self, product_id: int, correlation_id: Optional[str] = None
    ) -> None:
        """Delete a product; price history goes with it"""
        logger.info(
            f"Deleting product with id: {product_id}",
            extra={"product_id": product_id, "correlation_id": correlation_id},
        )

        if not await self.repository.exists_by_id(product_id):
            raise ProductNotFoundError(product_id)

        async with self._write_transaction(product_id=product_id):
            await self.repository.delete_by_id(product_id)

        await self.cache_invalidation.invalidate_product_caches(product_id)

        logger.info(
            "Product deleted successfully",
            extra={"product_id": product_id, "correlation_id": correlation_id},
        )

    async def bulk_delete(
        self, product_ids: Sequence[int], correlation_id: Optional[str] = None
    ) -> BulkDeleteResult:
        deleted_count = 0
        not_found_count = 0
        for product_id in product_ids:
            try:
                await self.delete_product(product_id, correlation_id=correlation_id)
                deleted_count += 1
            except ProductNotFoundError:
                not_found_count += 1

        return BulkDeleteResult(
            deleted_count=deleted_count,
            not_found_count=not_found_count,
            total_requested=len(product_ids),
        )

    async def update_stock(
        self,
        product_id: int,
        quantity: int,
        operation: str,
        correlation_id: Optional[str] = None,
    ) -> ProductResponse:
        """Increase or decrease stock; a decrease may never go below zero"""
        logger.info(
            f"Updating stock for product {product_id}: {operation} {quantity}",
            extra={"product_id": product_id, "correlation_id": correlation_id},
        )

        try:
            stock_operation = StockOperation((operation or "").strip().upper())
        except ValueError:
            raise InvalidArgumentError(
                "Invalid operation. Use 'INCREASE' or 'DECREASE'",
                details={"operation": operation},
            )
        if quantity is None or quantity <= 0:
            raise InvalidArgumentError(
                "Quantity must be a positive integer", details={"quantity": quantity}
            )

        product = await self.repository.find_by_id(product_id)
        if product is None:
            raise ProductNotFoundError(product_id)

        previous_quantity = product.stock_quantity
        if stock_operation is StockOperation.DECREASE:
            if previous_quantity < quantity:
                raise InsufficientStockError(product_id, previous_quantity, quantity)
            new_quantity = previous_quantity - quantity
        else:
            new_quantity = previous_quantity + quantity

        async with self._write_transaction(product_id=product_id):
            product.stock_quantity = new_quantity
            product.updated_at = utcnow()
            product = await self.repository.save(product)

        response = self._to_response(product)
        await self.cache_invalidation.invalidate_product_caches(
            product_id, response.model_dump(mode="json")
        )
        await self._publish(product, PRODUCT_STOCK_UPDATED, correlation_id)

        logger.info(
            f"Stock updated successfully for product {product_id}. "
            f"New stock: {product.stock_quantity}",
            extra={
                "product_id": product_id,
                "previous_quantity": previous_quantity,
                "new_quantity": product.stock_quantity,
                "correlation_id": correlation_id,
            },
        )
        return response

    # ==============================================
    # READS
    # ==============================================

    async def get_product(
        self, product_id: int, correlation_id: Optional[str] = None
    ) -> Optional[ProductResponse]:
        """Read-through lookup by id; None when the product does not exist"""
        cached = await self.cache.get(PRODUCT_BY_ID, product_id)
        if cached is not None:
            return ProductResponse.model_validate(cached)

        product = await self.repository.find_by_id(product_id)
        if product is None:
            return None

        response = self._to_response(product)
        await self.cache.put(PRODUCT_BY_ID, product_id, response.model_dump(mode="json"))

        logger.info(
            "Product retrieved",
            extra={"product_id": product_id, "correlation_id": correlation_id},
        )
        return response

    async def get_product_by_sku(self, sku: str) -> Optional[ProductResponse]:
        product = await self.repository.find_by_sku(sku.strip().upper())
        return self._to_response(product) if product else None

    async def get_all_products(self) -> List[ProductResponse]:
        cached = await self.cache.get(PRODUCTS, ALL_PRODUCTS_KEY)
        if cached is not None:
            return self._load(cached)

        logger.info("Fetching all products")
        products = [self._to_response(p) for p in await self.repository.find_all()]
        await self.cache.put(PRODUCTS, ALL_PRODUCTS_KEY, self._dump(products))
        return products

    async def search_products(self, criteria: ProductSearch) -> ProductPage:
        if criteria.size > self.max_page_size:
            criteria = criteria.model_copy(update={"size": self.max_page_size})
        logger.info(
            "Searching products",
            extra={"criteria": criteria.model_dump(mode="json", exclude_none=True)},
        )
        items, total = await self.repository.search(criteria)
        total_pages = (total + criteria.size - 1) // criteria.size
        return ProductPage(
            items=[self._to_response(p) for p in items],
            total=total,
            page=criteria.page,
            size=criteria.size,
            total_pages=total_pages,
        )

    async def get_products_by_category(self, category: str) -> List[ProductResponse]:
        cached = await self.cache.get(PRODUCTS_BY_CATEGORY, category)
        if cached is not None:
            return self._load(cached)

        products = [
            self._to_response(p) for p in await self.repository.find_by_category(category)
        ]
        await self.cache.put(PRODUCTS_BY_CATEGORY, category, self._dump(products))
        return products

    async def search_products_by_name(self, name: str) -> List[ProductResponse]:
        """Case-insensitive substring match on name"""
        key = name.strip().lower()
        cached = await self.cache.get(PRODUCTS_BY_NAME, key)
        if cached is not None:
            return self._load(cached)

        products = [
            self._to_response(p)
            for p in await self.repository.find_by_name_containing(key)
        ]
        await self.cache.put(PRODUCTS_BY_NAME, key, self._dump(products))
        return products

    async def search_products_by_description(
        self, description: str
    ) -> List[ProductResponse]:
        """Case-insensitive substring match on description"""
        key = description.strip().lower()
        cached = await self.cache.get(PRODUCTS_BY_DESCRIPTION, key)
        if cached is not None:
            return self._load(cached)

        products = [
            self._to_response(p)
            for p in await self.repository.find_by_description_containing(key)
        ]
        await self.cache.put(PRODUCTS_BY_DESCRIPTION, key, self._dump(products))
        return products

    async def get_products_by_price_range(
        self, min_price: Decimal, max_price: Decimal
    ) -> List[ProductResponse]:
        if min_price < 0 or max_price < min_price:
            raise InvalidArgumentError(
                "Price range must satisfy 0 <= min_price <= max_price",
                details={"min_price": str(min_price), "max_price": str(max_price)},
            )
        products = await self.repository.find_by_price_between(min_price, max_price)
        return [self._to_response(p) for p in products]

    async def get_active_products(self) -> List[ProductResponse]:
        cached = await self.cache.get(ACTIVE_PRODUCTS, ALL_PRODUCTS_KEY)
        if cached is not None:
            return self._load(cached)

        products = [self._to_response(p) for p in await self.repository.find_active()]
        await self.cache.put(ACTIVE_PRODUCTS, ALL_PRODUCTS_KEY, self._dump(products))
        return products

    async def get_low_stock_products(
        self, threshold: Optional[int] = None
    ) -> List[ProductResponse]:
        threshold = self.low_stock_threshold if threshold is None else threshold
        return [
            self._to_response(p) for p in await self.repository.find_low_stock(threshold)
        ]

    async def get_recent_products(self, limit: int = 10) -> List[ProductResponse]:
        return [self._to_response(p) for p in await self.repository.find_recent(limit)]

    async def get_category_counts(self) -> List[CategoryCount]:
        cached = await self.cache.get(PRODUCT_CATEGORIES, CATEGORY_COUNTS_KEY)
        if cached is not None:
            return [CategoryCount.model_validate(item) for item in cached]

        counts = [
            CategoryCount(category=category, count=count)
            for category, count in await self.repository.count_by_category()
        ]
        await self.cache.put(
            PRODUCT_CATEGORIES,
            CATEGORY_COUNTS_KEY,
            [c.model_dump() for c in counts],
        )
        return counts

    async def get_price_history(
        self, product_id: int, since: Optional[datetime] = None
    ) -> List[PriceHistoryResponse]:
        """Newest first; empty when nothing was recorded, even for unknown ids"""
        logger.info(
            f"Fetching price history for product: {product_id}",
            extra={"product_id": product_id, "since": since},
        )
        # Timestamps are stored as naive UTC
        if since is not None and since.tzinfo is not None:
            since = since.astimezone(timezone.utc).replace(tzinfo=None)
        if since is None:
            entries = await self.price_history_repository.find_by_product_id(product_id)
        else:
            entries = await self.price_history_repository.find_by_product_id_since(
                product_id, since
            )
        return [PriceHistoryResponse.model_validate(e) for e in entries]

    async def get_statistics(self) -> ProductStatistics:
        """Recomputed from the store on every call"""
        price_stats = await self.repository.price_statistics()
        category_counts = await self.repository.count_by_category()

        return ProductStatistics(
            total_products=price_stats["total"],
            active_products=await self.repository.count_active(),
            low_stock_products=await self.repository.count_low_stock(
                self.low_stock_threshold
            ),
            price_range_distribution=price_stats["buckets"],
            price_statistics=PriceStatistics(
                min=price_stats["min"],
                max=price_stats["max"],
                average=price_stats["average"],
            ),
            category_counts=[
                CategoryCount(category=category, count=count)
                for category, count in category_counts
            ],
            recent_products=await self.get_recent_products(STATISTICS_RECENT_LIMIT),
        )
