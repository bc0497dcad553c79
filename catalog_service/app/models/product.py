import random
import time
from datetime import datetime
from decimal import Decimal

from sqlalchemy import (
    DECIMAL,
    TEXT,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
)
from sqlalchemy.orm import Mapped, mapped_column

from .base import CatalogServiceBase, CatalogServiceBaseModel, utcnow

DEFAULT_CATEGORY = "Uncategorized"


def generate_sku() -> str:
    """SKU assigned at insert time when the caller did not supply one."""
    return f"SKU-{int(time.time() * 1000)}-{random.randint(0, 999)}"


class Product(CatalogServiceBaseModel):
    __tablename__ = "products"

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(TEXT, nullable=True)
    price: Mapped[Decimal] = mapped_column(DECIMAL(10, 2), nullable=False)
    category: Mapped[str] = mapped_column(
        String(100), default=DEFAULT_CATEGORY, nullable=False, index=True
    )
    stock_quantity: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    sku: Mapped[str] = mapped_column(
        String(100), unique=True, default=generate_sku, nullable=False
    )
    is_active: Mapped[bool] = mapped_column(default=True, nullable=False)

    # Optimistic lock, bumped by the ORM on every UPDATE
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}

    def __repr__(self) -> str:
        return (
            f"Product(id={self.id!r}, sku={self.sku!r}, name={self.name!r}, "
            f"price={self.price!r}, stock_quantity={self.stock_quantity!r})"
        )


class PriceHistory(CatalogServiceBase):
    __tablename__ = "price_history"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    product_id: Mapped[int] = mapped_column(
        ForeignKey("products.id", ondelete="CASCADE"), nullable=False
    )
    old_price: Mapped[Decimal] = mapped_column(DECIMAL(10, 2), nullable=False)
    new_price: Mapped[Decimal] = mapped_column(DECIMAL(10, 2), nullable=False)
    change_reason: Mapped[str | None] = mapped_column(String(255), nullable=True)
    changed_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=False), default=utcnow, nullable=False
    )
    changed_by: Mapped[str | None] = mapped_column(String(255), nullable=True)

    __table_args__ = (
        Index("ix_price_history_product_changed_at", "product_id", "changed_at"),
    )
