from typing import Any, Dict

from fastapi import APIRouter
from fastapi.responses import JSONResponse

from ...core import database
from ...core.cache_management import get_product_cache
from ...core.event_management import health_check_events
from ...core.setting import get_settings
from ...services.cache import InMemoryCache
from ...utils.service_health import CatalogServiceHealthChecker

router = APIRouter()


async def _database_check() -> Dict[str, Any]:
    healthy = await database.database_manager.ping()
    return {"status": "healthy" if healthy else "unhealthy", "component": "database"}


async def _cache_check() -> Dict[str, Any]:
    cache = get_product_cache()
    backend = cache.backend_name
    # The in-memory fallback keeps the service working, but is worth surfacing
    result: Dict[str, Any] = {
        "status": "healthy" if backend in ("redis", "disabled") else "degraded",
        "backend": backend,
        "component": "cache",
    }
    if isinstance(cache.backend, InMemoryCache):
        result["stats"] = cache.backend.get_stats()
    return result


async def _kafka_check() -> Dict[str, Any]:
    if not get_settings().KAFKA_ENABLED:
        return {"status": "healthy", "state": "disabled", "component": "kafka"}
    connected = await health_check_events()
    return {
        "status": "healthy" if connected else "degraded",
        "state": "connected" if connected else "log-only",
        "component": "kafka",
    }


@router.get("/health")
async def health_check() -> JSONResponse:
    """Report database, cache backend and Kafka state"""
    settings = get_settings()
    checker = CatalogServiceHealthChecker(settings.SERVICE_NAME, settings.APP_VERSION)
    checker.add_check("database", _database_check)
    checker.add_check("cache", _cache_check)
    checker.add_check("kafka", _kafka_check)

    report = await checker.run_checks()
    status_code = 503 if report["status"] == "unhealthy" else 200
    return JSONResponse(status_code=status_code, content=report)
