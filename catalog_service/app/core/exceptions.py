"""Domain exceptions raised by the product lifecycle service"""

from typing import Any, Dict, Optional


class CatalogError(Exception):
    """Base class for catalog domain errors"""

    error_type = "catalog_error"
    status_code = 400

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ProductNotFoundError(CatalogError):
    error_type = "not_found"
    status_code = 404

    def __init__(self, product_id: Optional[int] = None, sku: Optional[str] = None):
        if sku is not None:
            super().__init__(f"Product not found with sku: {sku}", details={"sku": sku})
        else:
            super().__init__(
                f"Product not found with id: {product_id}",
                details={"product_id": product_id},
            )
        self.product_id = product_id
        self.sku = sku


class DuplicateSkuError(CatalogError):
    error_type = "duplicate_sku"
    status_code = 409

    def __init__(self, sku: str):
        super().__init__(
            f"Product with SKU {sku} already exists", details={"sku": sku}
        )
        self.sku = sku


class InsufficientStockError(CatalogError):
    error_type = "insufficient_stock"
    status_code = 400

    def __init__(self, product_id: int, available: int, requested: int):
        super().__init__(
            f"Insufficient stock. Available: {available}, Requested: {requested}",
            details={
                "product_id": product_id,
                "available": available,
                "requested": requested,
            },
        )
        self.available = available
        self.requested = requested


class InvalidArgumentError(CatalogError):
    error_type = "invalid_argument"
    status_code = 400


class ConcurrentModificationError(CatalogError):
    """Raised when an optimistic version check fails on write"""

    error_type = "concurrent_modification"
    status_code = 409

    def __init__(self, product_id: int):
        super().__init__(
            f"Product {product_id} was modified concurrently, retry the operation",
            details={"product_id": product_id},
        )
        self.product_id = product_id
