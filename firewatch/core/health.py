"""
Health checking for firewatch components.

Reports the state of the database, the Redis store and the polling engine.
"""

import logging
import time
from datetime import datetime, timezone
from typing import Any, Dict

import anyio
from sqlalchemy import text

from firewatch.database.connection import get_db_session

logger = logging.getLogger(__name__)


class HealthStatus:
    """Health status enumeration."""
    HEALTHY = "healthy"
    DEGRADED = "degraded"
    CRITICAL = "critical"


class ComponentHealth:
    """Health information for a system component."""

    def __init__(self, status: str, **kwargs):
        self.status = status
        self.details = kwargs

    def to_dict(self) -> Dict[str, Any]:
        return {"status": self.status, **self.details}


class SystemHealthChecker:
    """Checks the components of a ServiceContainer."""

    def __init__(self, services):
        self.services = services
        self.start_time = time.time()

    async def check_overall_health(self) -> Dict[str, Any]:
        components = {
            "database": await self.check_database_health(),
            "store": await self.check_store_health(),
            "poller": self.check_poller_health(),
        }
        return {
            "status": self._determine_overall_status(components),
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "components": {name: comp.to_dict() for name, comp in components.items()},
            "uptime_seconds": int(time.time() - self.start_time),
        }

    async def check_database_health(self) -> ComponentHealth:
        try:
            start_time = time.time()
            async with get_db_session() as session:
                result = await anyio.to_thread.run_sync(session.execute, text("SELECT 1"))
                await anyio.to_thread.run_sync(result.fetchone)
            latency_ms = round((time.time() - start_time) * 1000, 2)
            if latency_ms > 1000:
                return ComponentHealth(HealthStatus.DEGRADED, latency_ms=latency_ms, message="High database latency")
            return ComponentHealth(HealthStatus.HEALTHY, latency_ms=latency_ms)
        except Exception as e:
            logger.error(f"Database health check failed: {e}")
            return ComponentHealth(HealthStatus.CRITICAL, error=str(e), message="Database connection failed")

    async def check_store_health(self) -> ComponentHealth:
        if await self.services.store.health_check():
            return ComponentHealth(HealthStatus.HEALTHY)
        # Rate limiting and dedup fail open, polling does not.
        return ComponentHealth(
            HealthStatus.DEGRADED,
            message="Redis unavailable; rate limiting and alert dedup are failing open",
        )

    def check_poller_health(self) -> ComponentHealth:
        status = self.services.engine.status()
        if not status["running"]:
            return ComponentHealth(HealthStatus.DEGRADED, message="Poller is not running", **status)
        last_cycle = status["last_cycle"]
        if last_cycle and last_cycle["devices"] and last_cycle["failed"] == last_cycle["devices"]:
            return ComponentHealth(HealthStatus.DEGRADED, message="Every device failed the last cycle", **status)
        return ComponentHealth(HealthStatus.HEALTHY, **status)

    def _determine_overall_status(self, components: Dict[str, ComponentHealth]) -> str:
        if any(comp.status == HealthStatus.CRITICAL for comp in components.values()):
            return HealthStatus.CRITICAL
        if any(comp.status == HealthStatus.DEGRADED for comp in components.values()):
            return HealthStatus.DEGRADED
        return HealthStatus.HEALTHY
