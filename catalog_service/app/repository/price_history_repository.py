"""Price history repository for database operations"""

from datetime import datetime
from typing import Sequence

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..models.product import PriceHistory


class PriceHistoryRepository:
    """Append-only ledger of product price changes"""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def save(self, entry: PriceHistory) -> PriceHistory:
        self.db.add(entry)
        await self.db.flush()
        return entry

    async def find_by_product_id(self, product_id: int) -> Sequence[PriceHistory]:
        """All entries for a product, newest first"""
        query = (
            select(PriceHistory)
            .where(PriceHistory.product_id == product_id)
            .order_by(PriceHistory.changed_at.desc(), PriceHistory.id.desc())
        )
        result = await self.db.execute(query)
        return result.scalars().all()

    async def find_by_product_id_since(
        self, product_id: int, since: datetime
    ) -> Sequence[PriceHistory]:
        query = (
            select(PriceHistory)
            .where(
                PriceHistory.product_id == product_id,
                PriceHistory.changed_at >= since,
            )
            .order_by(PriceHistory.changed_at.desc(), PriceHistory.id.desc())
        )
        result = await self.db.execute(query)
        return result.scalars().all()
