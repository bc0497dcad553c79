"""
Catalog Service FastAPI Application
===================================

Main application entry point for the Catalog Service. Wires the product
lifecycle API to the relational store, the product cache and the Kafka
product stream.
"""

import time
from contextlib import asynccontextmanager
from typing import Any, Dict, List

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .api.v1.health import router as health_router
from .api.v1.products import router as products_router
from .core import database
from .core.cache_management import close_cache, init_cache
from .core.event_management import close_events, init_events
from .core.setting import get_settings
from .middleware.error import setup_catalog_error_handling
from .middleware.logging.request_logging import RequestLoggingMiddleware
from .utils.logging import setup_catalog_logging

settings = get_settings()
enable_file_logging = settings.ENVIRONMENT.lower() in ["production", "staging"]

logger = setup_catalog_logging(
    "catalog_service",
    log_level=settings.LOG_LEVEL,
    enable_file_logging=enable_file_logging,
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan context manager for startup and shutdown."""
    startup_start = time.time()

    try:
        await _initialize_services()
    except Exception as e:
        logger.error(
            "Failed to start catalog service",
            exc_info=True,
            extra={
                "startup_duration_ms": int((time.time() - startup_start) * 1000),
                "error_type": type(e).__name__,
            },
        )
        raise

    logger.info(
        "Catalog service started successfully",
        extra={"total_startup_duration_ms": int((time.time() - startup_start) * 1000)},
    )

    yield

    await _shutdown_services()


async def _initialize_services() -> None:
    logger.info(
        "Starting catalog service initialization",
        extra={
            "environment": settings.ENVIRONMENT,
            "debug_mode": settings.DEBUG,
            "service_version": settings.APP_VERSION,
        },
    )

    # The store is required; cache and events degrade instead of failing
    await database.database_manager.create_tables()
    cache = await init_cache()
    await init_events()

    logger.info(
        "Catalog service dependencies ready",
        extra={"cache_backend": cache.backend_name, "kafka_enabled": settings.KAFKA_ENABLED},
    )


async def _shutdown_services() -> None:
    shutdown_start = time.time()
    logger.info("Starting catalog service shutdown")

    await close_events()
    await close_cache()
    await database.database_manager.close()

    logger.info(
        "Catalog service shutdown completed",
        extra={"shutdown_duration_ms": int((time.time() - shutdown_start) * 1000)},
    )


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title=settings.APP_NAME,
        version=settings.APP_VERSION,
        debug=settings.DEBUG,
        lifespan=lifespan,
        openapi_url="/openapi.json" if settings.DEBUG else None,
        docs_url="/docs" if settings.DEBUG else None,
        redoc_url="/redoc" if settings.DEBUG else None,
    )

    setup_catalog_error_handling(app)
    app.add_middleware(RequestLoggingMiddleware)
    _setup_cors(app)
    _setup_routers(app)

    return app


def _setup_cors(app: FastAPI) -> None:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=settings.CORS_CREDENTIALS,
        allow_methods=settings.CORS_METHODS,
        allow_headers=settings.CORS_HEADERS,
    )


def _setup_routers(app: FastAPI) -> None:
    """Configure all application routers with detailed logging."""
    routers_info: List[Dict[str, Any]] = []

    app.include_router(health_router, tags=["Health"])
    routers_info.append({"router": "health", "prefix": ""})

    app.include_router(products_router, prefix="/api/v1", tags=["Product Management"])
    routers_info.append({"router": "products", "prefix": "/api/v1"})

    logger.info(
        "API routes configured",
        extra={"total_routers": len(routers_info), "routers": routers_info},
    )


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "catalog_service.app.main:app",
        host="0.0.0.0",
        port=8000,
        log_level=settings.LOG_LEVEL.lower(),
        reload=settings.DEBUG,
    )
