"""
Catalog Service configuration
"""

from pathlib import Path
from typing import List

from pydantic_settings import BaseSettings, SettingsConfigDict

# Get the catalog service directory path
CATALOG_SERVICE_DIR = Path(__file__).parent.parent.parent
ENV_FILE = CATALOG_SERVICE_DIR / ".env"


class CatalogSettings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=str(ENV_FILE),
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    APP_NAME: str = "Catalog Service"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False
    ENVIRONMENT: str = "development"
    LOG_LEVEL: str = "INFO"

    # Service specific
    SERVICE_NAME: str = "catalog-service"

    # Database
    CATALOG_DATABASE_URL: str = "sqlite+aiosqlite:///./catalog.db"
    DATABASE_POOL_SIZE: int = 25
    DATABASE_MAX_OVERFLOW: int = 50

    # Redis for caching
    REDIS_URL: str = "redis://localhost:6379/0"
    CACHE_ENABLED: bool = True
    CACHE_KEY_PREFIX: str = "catalog"
    CACHE_CONNECT_TIMEOUT: float = 2.0
    CACHE_FALLBACK_MAX_SIZE: int = 1000

    # Cache TTLs per namespace (seconds)
    CACHE_TTL_PRODUCTS: int = 600
    CACHE_TTL_PRODUCT_BY_ID: int = 1800
    CACHE_TTL_PRODUCT_CATEGORIES: int = 3600

    # Kafka for events
    KAFKA_ENABLED: bool = True
    KAFKA_BOOTSTRAP_SERVERS: str = "localhost:9092"
    KAFKA_CLIENT_ID: str = "catalog-service-producer"
    KAFKA_TOPIC_PRODUCTS: str = "products"
    KAFKA_REQUEST_TIMEOUT_MS: int = 30000
    KAFKA_CONNECT_MAX_RETRIES: int = 5
    KAFKA_CONNECT_RETRY_DELAY: float = 2.0
    KAFKA_CONSUMER_ENABLED: bool = True
    KAFKA_GROUP_ID: str = "product-group"

    # CORS
    CORS_ORIGINS: List[str] = ["*"]
    CORS_CREDENTIALS: bool = True
    CORS_METHODS: List[str] = ["*"]
    CORS_HEADERS: List[str] = ["*"]

    # Catalog rules
    LOW_STOCK_THRESHOLD: int = 10
    SEARCH_MAX_PAGE_SIZE: int = 100


# Create a singleton instance
_settings_instance = None


def get_settings() -> CatalogSettings:
    """Get settings singleton instance"""
    global _settings_instance
    if _settings_instance is None:
        _settings_instance = CatalogSettings()
    return _settings_instance
