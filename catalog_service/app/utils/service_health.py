"""
Catalog Service Health Check Utilities
======================================

Probes the store, the cache backend and the Kafka producer.
"""

import time
from typing import Any, Awaitable, Callable, Dict

HealthCheck = Callable[[], Awaitable[Dict[str, Any]]]

# Components whose failure marks the whole service unhealthy
CRITICAL_COMPONENTS = {"database"}


class CatalogServiceHealthChecker:
    """Runs registered async checks and folds them into one report"""

    def __init__(self, service_name: str = "catalog-service", version: str = "1.0.0"):
        self.service_name = service_name
        self.version = version
        self.checks: Dict[str, HealthCheck] = {}
        self.start_time = time.time()

    def add_check(self, name: str, check_func: HealthCheck) -> None:
        self.checks[name] = check_func

    async def run_checks(self) -> Dict[str, Any]:
        results: Dict[str, Dict[str, Any]] = {}
        check_start_time = time.time()

        for name, check_func in self.checks.items():
            individual_start = time.time()
            try:
                result = await check_func()
            except Exception as e:
                result = {"status": "error", "error": str(e)}
            result["duration_ms"] = round((time.time() - individual_start) * 1000, 2)
            results[name] = result

        critical_ok = all(
            results[name].get("status") == "healthy"
            for name in CRITICAL_COMPONENTS
            if name in results
        )
        all_ok = all(r.get("status") == "healthy" for r in results.values())

        if not critical_ok:
            status = "unhealthy"
        elif not all_ok:
            status = "degraded"
        else:
            status = "healthy"

        return {
            "service": self.service_name,
            "version": self.version,
            "status": status,
            "checks": results,
            "total_duration_ms": round((time.time() - check_start_time) * 1000, 2),
            "uptime_seconds": round(time.time() - self.start_time, 2),
            "timestamp": time.time(),
        }
