"""
Catalog Service Event Schemas
=============================
"""

from .event_schemas import (
    NEW_PRODUCT_KEY,
    PRODUCT_CREATED,
    PRODUCT_STOCK_UPDATED,
    PRODUCT_UPDATED,
    ProductSnapshotEventData,
)

__all__ = [
    "NEW_PRODUCT_KEY",
    "PRODUCT_CREATED",
    "PRODUCT_STOCK_UPDATED",
    "PRODUCT_UPDATED",
    "ProductSnapshotEventData",
]
