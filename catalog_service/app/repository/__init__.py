"""Store adapter layer for Catalog Service"""

from .price_history_repository import PriceHistoryRepository
from .product_repository import PRICE_BUCKETS, ProductRepository

__all__ = [
    "PRICE_BUCKETS",
    "PriceHistoryRepository",
    "ProductRepository",
]
