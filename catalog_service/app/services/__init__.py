"""Service layer for Catalog Service"""

from .product_service import ProductService

__all__ = [
    "ProductService",
]
