from typing import Any, AsyncGenerator, Dict

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from ..models.base import CatalogServiceBase
from ..utils.logging import setup_catalog_logging as setup_logging
from .setting import get_settings

logger = setup_logging("catalog_service_database", log_level=get_settings().LOG_LEVEL)


def _mask_credentials(database_url: str) -> str:
    if "@" not in database_url:
        return database_url
    return database_url.split("://")[0] + "://***@" + database_url.split("@", 1)[1]


class CatalogDatabaseManager:
    """Owns the async engine and session factory for the catalog store."""

    def __init__(self, database_url: str, echo: bool = False) -> None:
        settings = get_settings()
        engine_kwargs: Dict[str, Any] = {"echo": echo}

        if "sqlite" in database_url:
            engine_kwargs["connect_args"] = {
                "timeout": 60,
                "check_same_thread": False,
            }
            # One shared connection, otherwise every checkout sees an empty database
            if ":memory:" in database_url:
                engine_kwargs["poolclass"] = StaticPool
        else:
            engine_kwargs.update(
                {
                    "pool_size": settings.DATABASE_POOL_SIZE,
                    "max_overflow": settings.DATABASE_MAX_OVERFLOW,
                    "pool_timeout": 45,
                    "pool_recycle": 3600,
                    "pool_pre_ping": True,
                    "connect_args": {
                        "command_timeout": 30,
                        "prepared_statement_cache_size": 0,
                    },
                }
            )

        self.async_engine = create_async_engine(database_url, **engine_kwargs)
        self.async_session_maker = async_sessionmaker(
            bind=self.async_engine,
            class_=AsyncSession,
            expire_on_commit=False,
            autoflush=False,
        )

        logger.info(
            "Catalog database manager initialized",
            extra={
                "operation": "database_manager_init",
                "database_url": _mask_credentials(database_url),
                "echo": echo,
            },
        )

    async def create_tables(self) -> None:
        """Create all catalog tables that do not exist yet."""
        async with self.async_engine.begin() as conn:
            await conn.run_sync(CatalogServiceBase.metadata.create_all, checkfirst=True)
        logger.info(
            "Database tables created successfully",
            extra={"operation": "create_tables"},
        )

    async def ping(self) -> bool:
        try:
            async with self.async_engine.connect() as conn:
                await conn.exec_driver_sql("SELECT 1")
            return True
        except Exception as e:
            logger.warning("Database ping failed", extra={"error": str(e)})
            return False

    async def get_async_session(self) -> AsyncGenerator[AsyncSession, None]:
        async with self.async_session_maker() as session:
            yield session

    async def close(self) -> None:
        await self.async_engine.dispose()
        logger.info(
            "Catalog database connections closed",
            extra={"operation": "database_close"},
        )


settings = get_settings()
database_manager = CatalogDatabaseManager(
    database_url=settings.CATALOG_DATABASE_URL, echo=settings.DEBUG
)


async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """Get database session for dependency injection."""
    async for session in database_manager.get_async_session():
        yield session
