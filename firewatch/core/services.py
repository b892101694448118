"""
Service wiring and lifecycle.

ServiceContainer builds the shared store handle, repository, alert manager,
rate limiter and polling engine once, so the API and the CLI run the same
pipeline.
"""

import logging
from typing import Optional

from ..alerts.manager import AlertManager
from ..config import Settings, settings as default_settings
from ..core.failure_policy import Resource
from ..database.engine import ensure_schema, init_db
from ..database.repository import FirewallRepository
from ..polling.engine import PollingEngine
from ..polling.state import PollingStateStore
from ..ratelimit.limiter import SlidingWindowLimiter
from ..ratelimit.suppressor import ChangeSuppressor
from ..store.redis import StoreHandle

logger = logging.getLogger(__name__)


class ServiceContainer:
    """
    Owns the pipeline components and their start/stop order.
    """

    def __init__(
        self,
        config: Settings = default_settings,
        *,
        store: Optional[StoreHandle] = None,
        repository: Optional[FirewallRepository] = None,
    ):
        self.config = config
        self.store = store or StoreHandle(config.REDIS_URL)
        self.repository = repository or FirewallRepository()
        self.limiter = SlidingWindowLimiter(self.store)
        self.alert_manager = AlertManager(self.repository, self.store, dedup_window=config.ALERT_DEDUP_WINDOW)
        self.state_store = PollingStateStore(
            self.store,
            snapshot_retention_days=config.DAILY_SNAPSHOT_RETENTION_DAYS,
        )
        self.health_suppressor = ChangeSuppressor(
            self.store,
            prefix="firewall:alert:dedup",
            window=config.HEALTH_ALERT_WINDOW,
            sensitivity=config.HEALTH_ALERT_SENSITIVITY,
            resource=Resource.ALERT_DEDUP,
        )
        self.engine = PollingEngine(
            self.repository,
            self.state_store,
            self.alert_manager,
            self.health_suppressor,
            interval=config.POLL_INTERVAL,
            concurrency=config.POLL_CONCURRENCY,
            snapshot_interval=config.SNAPSHOT_INTERVAL,
        )
        self._store_acquired = False

    async def start(self, *, init_database: bool = True, start_poller: Optional[bool] = None) -> None:
        """Open storage and optionally start the polling engine."""
        if init_database:
            init_db(self.config.DATABASE_URL)
            ensure_schema()

        # Rate limiting and dedup fail open and polling fails per device
        # until the handle reconnects.
        await self.store.acquire(required=False)
        self._store_acquired = True
        if not self.store.connected:
            logger.error("Redis unavailable at startup, continuing without it")

        if start_poller is None:
            start_poller = self.config.POLLING_ENABLED
        if start_poller:
            await self.engine.start()
        else:
            logger.info("Polling disabled by configuration")

    async def stop(self) -> None:
        if self.engine.running:
            await self.engine.stop()
        if self._store_acquired:
            await self.store.release()
            self._store_acquired = False
