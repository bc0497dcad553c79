"""
Pytest configuration and fixtures for catalog service tests.
"""

import os
from typing import Any, AsyncGenerator
from unittest.mock import AsyncMock, Mock

import pytest
from fastapi.testclient import TestClient

# Set up test environment variables before importing anything else
os.environ.setdefault("APP_NAME", "Catalog Service Test")
os.environ.setdefault("APP_VERSION", "1.0.0")
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("SERVICE_NAME", "catalog-service")
os.environ.setdefault("LOG_LEVEL", "INFO")
os.environ.setdefault("CATALOG_DATABASE_URL", "sqlite+aiosqlite:///:memory:")
# Nothing listens on port 1, so startup falls back to the in-memory cache
os.environ.setdefault("REDIS_URL", "redis://127.0.0.1:1/0")
os.environ.setdefault("CACHE_ENABLED", "true")
os.environ.setdefault("CACHE_CONNECT_TIMEOUT", "0.5")
os.environ.setdefault("KAFKA_ENABLED", "false")
os.environ.setdefault("KAFKA_BOOTSTRAP_SERVERS", "localhost:9092")
os.environ.setdefault("KAFKA_TOPIC_PRODUCTS", "products")
os.environ.setdefault("LOW_STOCK_THRESHOLD", "10")

from catalog_service.app.core import database as db_module  # noqa: E402
from catalog_service.app.core.cache_management import namespace_ttls  # noqa: E402
from catalog_service.app.core.database import CatalogDatabaseManager  # noqa: E402
from catalog_service.app.core.setting import get_settings  # noqa: E402
from catalog_service.app.events.event_producers import (  # noqa: E402
    ProductEventProducer,
)
from catalog_service.app.main import app  # noqa: E402
from catalog_service.app.services.cache import InMemoryCache, ProductCache  # noqa: E402
from catalog_service.app.services.product_service import ProductService  # noqa: E402

IN_MEMORY_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@pytest.fixture
async def database_manager() -> AsyncGenerator[CatalogDatabaseManager, None]:
    """Fresh in-memory database per test."""
    manager = CatalogDatabaseManager(database_url=IN_MEMORY_DATABASE_URL)
    await manager.create_tables()
    yield manager
    await manager.close()


@pytest.fixture
async def db_session(database_manager: CatalogDatabaseManager) -> AsyncGenerator[Any, None]:
    async with database_manager.async_session_maker() as session:
        yield session


@pytest.fixture
def memory_backend() -> InMemoryCache:
    return InMemoryCache(max_size=100)


@pytest.fixture
def product_cache(memory_backend: InMemoryCache) -> ProductCache:
    return ProductCache(backend=memory_backend, ttls=namespace_ttls(get_settings()))


@pytest.fixture
def mock_event_producer() -> Mock:
    """Event producer double; publish only records the call."""
    producer = Mock(spec=ProductEventProducer)
    producer.publish_product_snapshot = AsyncMock(return_value=None)
    return producer


@pytest.fixture
def product_service(db_session, product_cache, mock_event_producer) -> ProductService:
    return ProductService(
        db_session, product_cache, mock_event_producer, low_stock_threshold=10
    )


@pytest.fixture
def client(monkeypatch) -> TestClient:
    """FastAPI test client backed by its own in-memory database."""
    manager = CatalogDatabaseManager(database_url=IN_MEMORY_DATABASE_URL)
    monkeypatch.setattr(db_module, "database_manager", manager)

    # Entering the context runs the lifespan: tables, cache, events
    with TestClient(app) as test_client:
        yield test_client
