"""
FastAPI dependency injection for Catalog Service

Wires database sessions, the product cache and the event producer into
ProductService, and extracts the request correlation ID.
"""

from typing import AsyncGenerator, Optional

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.cache_management import get_product_cache
from ..core.database import get_db_session
from ..core.event_management import get_event_producer
from ..core.setting import get_settings
from ..events.event_producers import ProductEventProducer
from ..services.cache import ProductCache
from ..services.product_service import ProductService

# =====================================================
# INFRASTRUCTURE DEPENDENCIES
# =====================================================


async def get_async_session() -> AsyncGenerator[AsyncSession, None]:
    """Provide async database session"""
    async for session in get_db_session():
        yield session


def get_cache() -> ProductCache:
    return get_product_cache()


def get_product_event_producer() -> Optional[ProductEventProducer]:
    """Provide ProductEventProducer instance, None when events never started"""
    return get_event_producer()


# =====================================================
# SERVICE DEPENDENCIES
# =====================================================


def get_product_service(
    session: AsyncSession = Depends(get_async_session),
    cache: ProductCache = Depends(get_cache),
    event_producer: Optional[ProductEventProducer] = Depends(
        get_product_event_producer
    ),
) -> ProductService:
    """Provide ProductService instance with database, cache and event publishing"""
    settings = get_settings()
    return ProductService(
        session,
        cache,
        event_producer,
        low_stock_threshold=settings.LOW_STOCK_THRESHOLD,
        max_page_size=settings.SEARCH_MAX_PAGE_SIZE,
    )


# =====================================================
# REQUEST CONTEXT DEPENDENCIES
# =====================================================


def get_correlation_id(request: Request) -> Optional[str]:
    """Extract correlation ID from request headers or state"""
    correlation_id = (
        request.headers.get("X-Correlation-ID")
        or request.headers.get("correlation-id")
        or request.headers.get("x-request-id")
    )

    # Fallback to request state (from middleware)
    if not correlation_id:
        correlation_id = getattr(request.state, "correlation_id", None)

    return correlation_id


# =====================================================
# COMMON DEPENDENCY ALIASES
# =====================================================

CorrelationIdDep = Depends(get_correlation_id)
ProductServiceDep = Depends(get_product_service)
