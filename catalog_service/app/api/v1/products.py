"""Product API endpoints"""

from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from fastapi import APIRouter, Query, Response, status

from ...core.exceptions import ProductNotFoundError
from ...schemas.product import (
    BulkDeleteRequest,
    BulkDeleteResult,
    CategoryCount,
    PriceHistoryResponse,
    ProductCreate,
    ProductPage,
    ProductResponse,
    ProductSearch,
    ProductStatistics,
    ProductUpdate,
)
from ...services.product_service import ProductService
from ...utils.logging import setup_catalog_logging as setup_logging
from ..dependencies import CorrelationIdDep, ProductServiceDep

logger = setup_logging("products_api")
router = APIRouter(prefix="/products")


# Static paths are declared before "/{product_id}" so they are matched first


@router.get("", response_model=List[ProductResponse])
async def list_products(service: ProductService = ProductServiceDep):
    """All products, served from cache when warm"""
    return await service.get_all_products()


@router.post("/search", response_model=ProductPage)
async def search_products(
    criteria: ProductSearch,
    service: ProductService = ProductServiceDep,
):
    """Filtered, sorted and paged product search"""
    return await service.search_products(criteria)


@router.get("/statistics", response_model=ProductStatistics)
async def get_statistics(service: ProductService = ProductServiceDep):
    return await service.get_statistics()


@router.get("/categories/counts", response_model=List[CategoryCount])
async def get_category_counts(service: ProductService = ProductServiceDep):
    return await service.get_category_counts()


@router.get("/category/{category}", response_model=List[ProductResponse])
async def get_products_by_category(
    category: str, service: ProductService = ProductServiceDep
):
    return await service.get_products_by_category(category)


@router.get("/active", response_model=List[ProductResponse])
async def get_active_products(service: ProductService = ProductServiceDep):
    return await service.get_active_products()


@router.get("/search/name", response_model=List[ProductResponse])
async def search_products_by_name(
    name: str = Query(..., min_length=1),
    service: ProductService = ProductServiceDep,
):
    """Case-insensitive name search"""
    return await service.search_products_by_name(name)


@router.get("/search/description", response_model=List[ProductResponse])
async def search_products_by_description(
    description: str = Query(..., min_length=1),
    service: ProductService = ProductServiceDep,
):
    """Case-insensitive description search"""
    return await service.search_products_by_description(description)


@router.get("/price-range", response_model=List[ProductResponse])
async def get_products_by_price_range(
    min_price: Decimal = Query(..., ge=0),
    max_price: Decimal = Query(..., ge=0),
    service: ProductService = ProductServiceDep,
):
    """Products priced between the bounds, both inclusive"""
    return await service.get_products_by_price_range(min_price, max_price)


@router.get("/low-stock", response_model=List[ProductResponse])
async def get_low_stock_products(
    threshold: Optional[int] = Query(None, ge=0),
    service: ProductService = ProductServiceDep,
):
    """Products whose stock is below the threshold (configured default when omitted)"""
    return await service.get_low_stock_products(threshold)


@router.get("/recent", response_model=List[ProductResponse])
async def get_recent_products(
    limit: int = Query(10, ge=1, le=100),
    service: ProductService = ProductServiceDep,
):
    return await service.get_recent_products(limit)


@router.get("/sku/{sku}", response_model=ProductResponse)
async def get_product_by_sku(sku: str, service: ProductService = ProductServiceDep):
    """Get product details by SKU"""
    product = await service.get_product_by_sku(sku)
    if product is None:
        raise ProductNotFoundError(sku=sku)
    return product


@router.post("/bulk-delete", response_model=BulkDeleteResult)
async def bulk_delete_products(
    request: BulkDeleteRequest,
    correlation_id: Optional[str] = CorrelationIdDep,
    service: ProductService = ProductServiceDep,
):
    result = await service.bulk_delete(request.ids, correlation_id=correlation_id)
    logger.info(
        "Bulk delete completed",
        extra={
            "deleted_count": result.deleted_count,
            "not_found_count": result.not_found_count,
            "correlation_id": correlation_id,
        },
    )
    return result


@router.post("", response_model=ProductResponse, status_code=status.HTTP_201_CREATED)
async def create_product(
    product_data: ProductCreate,
    correlation_id: Optional[str] = CorrelationIdDep,
    service: ProductService = ProductServiceDep,
):
    """Create a new product"""
    return await service.create_product(product_data, correlation_id=correlation_id)


@router.get("/{product_id}", response_model=ProductResponse)
async def get_product(
    product_id: int,
    correlation_id: Optional[str] = CorrelationIdDep,
    service: ProductService = ProductServiceDep,
):
    """Get product details by ID"""
    product = await service.get_product(product_id, correlation_id=correlation_id)
    if product is None:
        raise ProductNotFoundError(product_id)
    return product


@router.put("/{product_id}", response_model=ProductResponse)
async def update_product(
    product_id: int,
    product_data: ProductUpdate,
    correlation_id: Optional[str] = CorrelationIdDep,
    service: ProductService = ProductServiceDep,
):
    """Partially update a product; fields absent from the body are left untouched"""
    return await service.update_product(
        product_id, product_data, correlation_id=correlation_id
    )


@router.delete("/{product_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_product(
    product_id: int,
    correlation_id: Optional[str] = CorrelationIdDep,
    service: ProductService = ProductServiceDep,
):
    await service.delete_product(product_id, correlation_id=correlation_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.put("/{product_id}/stock", response_model=ProductResponse)
async def update_stock(
    product_id: int,
    quantity: int = Query(...),
    operation: str = Query(..., description="INCREASE or DECREASE"),
    correlation_id: Optional[str] = CorrelationIdDep,
    service: ProductService = ProductServiceDep,
):
    return await service.update_stock(
        product_id, quantity, operation, correlation_id=correlation_id
    )


@router.get("/{product_id}/price-history", response_model=List[PriceHistoryResponse])
async def get_price_history(
    product_id: int,
    since: Optional[datetime] = Query(
        None, description="Only changes at or after this time"
    ),
    service: ProductService = ProductServiceDep,
):
    """Price changes for a product, newest first"""
    return await service.get_price_history(product_id, since=since)
