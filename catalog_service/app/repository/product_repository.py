"""Product repository for database operations"""

from decimal import Decimal
from typing import Any, Dict, List, Optional, Sequence, Tuple

from sqlalchemy import case, delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..models.product import PriceHistory, Product
from ..schemas.product import ProductSearch

# (label, inclusive lower bound, exclusive upper bound)
PRICE_BUCKETS: List[Tuple[str, int, Optional[int]]] = [
    ("0-50", 0, 50),
    ("50-100", 50, 100),
    ("100-500", 100, 500),
    ("500+", 500, None),
]


class ProductRepository:
    """Repository for product database operations.

    Writes are flushed, not committed; the caller owns the transaction.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    async def save(self, product: Product) -> Product:
        """Insert or update a product and return the persisted row"""
        self.db.add(product)
        await self.db.flush()
        await self.db.refresh(product)
        return product

    async def find_by_id(self, product_id: int) -> Optional[Product]:
        query = select(Product).where(Product.id == product_id)
        result = await self.db.execute(query)
        return result.scalar_one_or_none()

    async def find_by_sku(self, sku: str) -> Optional[Product]:
        query = select(Product).where(Product.sku == sku)
        result = await self.db.execute(query)
        return result.scalar_one_or_none()

    async def exists_by_id(self, product_id: int) -> bool:
        query = select(func.count()).select_from(Product).where(Product.id == product_id)
        result = await self.db.execute(query)
        return result.scalar_one() > 0

    async def delete_by_id(self, product_id: int) -> bool:
        """Delete a product together with its price history"""
        await self.db.execute(
            delete(PriceHistory).where(PriceHistory.product_id == product_id)
        )
        result = await self.db.execute(delete(Product).where(Product.id == product_id))
        return result.rowcount > 0

    async def find_all(self) -> Sequence[Product]:
        result = await self.db.execute(select(Product).order_by(Product.id))
        return result.scalars().all()

    async def search(self, criteria: ProductSearch) -> Tuple[Sequence[Product], int]:
        """Filtered, sorted and paged query; returns (page items, total matches)"""
        filters: List[Any] = []
        if criteria.name:
            filters.append(Product.name.icontains(criteria.name, autoescape=True))
        if criteria.category:
            filters.append(func.lower(Product.category) == criteria.category.lower())
        if criteria.min_price is not None:
            filters.append(Product.price >= criteria.min_price)
        if criteria.max_price is not None:
            filters.append(Product.price <= criteria.max_price)
        if criteria.is_active is not None:
            filters.append(Product.is_active == criteria.is_active)

        count_query = select(func.count()).select_from(Product).where(*filters)
        total = (await self.db.execute(count_query)).scalar_one()

        sort_column = getattr(Product, criteria.sort_by)
        order = sort_column.desc() if criteria.sort_direction == "DESC" else sort_column.asc()

        query = (
            select(Product)
            .where(*filters)
            .order_by(order, Product.id.asc())
            .offset(criteria.page * criteria.size)
            .limit(criteria.size)
        )
        result = await self.db.execute(query)
        return result.scalars().all(), total

    async def find_by_category(self, category: str) -> Sequence[Product]:
        query = select(Product).where(Product.category == category).order_by(Product.id)
        result = await self.db.execute(query)
        return result.scalars().all()

    async def find_by_name_containing(self, name: str) -> Sequence[Product]:
        query = (
            select(Product)
            .where(Product.name.icontains(name, autoescape=True))
            .order_by(Product.id)
        )
        result = await self.db.execute(query)
        return result.scalars().all()

    async def find_by_description_containing(
        self, description: str
    ) -> Sequence[Product]:
        query = (
            select(Product)
            .where(Product.description.icontains(description, autoescape=True))
            .order_by(Product.id)
        )
        result = await self.db.execute(query)
        return result.scalars().all()

    async def find_by_price_between(
        self, min_price: Decimal, max_price: Decimal
    ) -> Sequence[Product]:
        """Both bounds inclusive"""
        query = (
            select(Product)
            .where(Product.price.between(min_price, max_price))
            .order_by(Product.price.asc(), Product.id.asc())
        )
        result = await self.db.execute(query)
        return result.scalars().all()

    async def find_active(self) -> Sequence[Product]:
        query = select(Product).where(Product.is_active.is_(True)).order_by(Product.id)
        result = await self.db.execute(query)
        return result.scalars().all()

    async def find_low_stock(self, threshold: int) -> Sequence[Product]:
        query = (
            select(Product)
            .where(Product.stock_quantity < threshold)
            .order_by(Product.stock_quantity.asc(), Product.id.asc())
        )
        result = await self.db.execute(query)
        return result.scalars().all()

    async def find_recent(self, limit: int) -> Sequence[Product]:
        query = (
            select(Product)
            .order_by(Product.created_at.desc(), Product.id.desc())
            .limit(limit)
        )
        result = await self.db.execute(query)
        return result.scalars().all()

    async def count_by_category(self) -> List[Tuple[str, int]]:
        query = (
            select(Product.category, func.count(Product.id))
            .group_by(Product.category)
            .order_by(Product.category)
        )
        result = await self.db.execute(query)
        return [(category, count) for category, count in result.all()]

    async def count_active(self) -> int:
        query = select(func.count()).select_from(Product).where(Product.is_active.is_(True))
        return (await self.db.execute(query)).scalar_one()

    async def count_low_stock(self, threshold: int) -> int:
        query = (
            select(func.count())
            .select_from(Product)
            .where(Product.stock_quantity < threshold)
        )
        return (await self.db.execute(query)).scalar_one()

    async def price_statistics(self) -> Dict[str, Any]:
        """Total count, per-bucket counts and min/max/avg price in one query"""
        bucket_columns = []
        for label, lower, upper in PRICE_BUCKETS:
            condition = Product.price >= lower
            if upper is not None:
                condition = condition & (Product.price < upper)
            bucket_columns.append(
                func.coalesce(func.sum(case((condition, 1), else_=0)), 0).label(label)
            )

        query = select(
            func.count(Product.id),
            func.min(Product.price),
            func.max(Product.price),
            func.avg(Product.price),
            *bucket_columns,
        )
        row = (await self.db.execute(query)).one()
        total, min_price, max_price, avg_price, *bucket_counts = row

        return {
            "total": total,
            "min": _to_decimal(min_price),
            "max": _to_decimal(max_price),
            "average": _to_decimal(avg_price),
            "buckets": {
                label: int(count)
                for (label, _, _), count in zip(PRICE_BUCKETS, bucket_counts)
            },
        }


def _to_decimal(value: Any) -> Optional[Decimal]:
    if value is None:
        return None
    return Decimal(str(value)).quantize(Decimal("0.01"))
