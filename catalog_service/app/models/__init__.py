from .base import CatalogServiceBase, CatalogServiceBaseModel
from .product import DEFAULT_CATEGORY, PriceHistory, Product, generate_sku

"""Catalog Service Models"""

__all__ = [
    "CatalogServiceBase",
    "CatalogServiceBaseModel",
    "DEFAULT_CATEGORY",
    "PriceHistory",
    "Product",
    "generate_sku",
]
