"""
Per-device polling state kept in Redis.

``device:{id}:state`` holds the last observed counters and status as JSON
and is overwritten after every successful poll. ``device:{id}:snapshot:{day}``
holds the day's last counter values, keyed by UTC date, for the metrics
rollup. Both keys are written in one transaction so a device's state is
never partially updated.

Store errors here fail closed: without prior state a poll cannot diff.
"""
from __future__ import annotations

import logging
from datetime import date, datetime, timedelta
from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, Field, ValidationError

from ..config import settings
from ..core.failure_policy import Resource, guarded
from ..store.redis import StoreHandle

logger = logging.getLogger(__name__)


class DeviceStatus(BaseModel):
    wan: Literal["up", "down"] = "down"
    vpn: Literal["up", "down"] = "down"
    cpu_percent: float = 0.0
    ram_percent: float = 0.0


class PollingState(BaseModel):
    """What the poller saw on a device's last successful poll."""

    device_id: int
    last_poll_time: datetime
    last_counters: Dict[str, int] = Field(default_factory=dict)
    last_status: DeviceStatus = Field(default_factory=DeviceStatus)
    last_security_features: List[str] = Field(default_factory=list)
    last_snapshot_at: Optional[datetime] = None


class DailyCounterSnapshot(BaseModel):
    """Last known counter values of a device for one UTC day."""

    device_id: int
    day: date
    counters: Dict[str, float] = Field(default_factory=dict)
    recorded_at: datetime


def should_create_snapshot(previous: Optional[PollingState], now: datetime, interval: float) -> bool:
    """True when no health snapshot was taken within ``interval`` seconds."""
    if previous is None or previous.last_snapshot_at is None:
        return True
    return (now - previous.last_snapshot_at) >= timedelta(seconds=interval)


class PollingStateStore:
    """Reads and writes PollingState and DailyCounterSnapshot records."""

    def __init__(
        self,
        handle: StoreHandle,
        *,
        snapshot_retention_days: int = settings.DAILY_SNAPSHOT_RETENTION_DAYS,
    ):
        self.handle = handle
        self.snapshot_ttl = int(timedelta(days=snapshot_retention_days).total_seconds())

    @staticmethod
    def state_key(device_id: int) -> str:
        return f"device:{device_id}:state"

    @staticmethod
    def snapshot_key(device_id: int, day: date) -> str:
        return f"device:{device_id}:snapshot:{day.isoformat()}"

    async def get_state(self, device_id: int) -> Optional[PollingState]:
        """Load the last state; None on first poll or after eviction."""
        raw = await guarded(
            Resource.POLLING_STATE,
            self._get(self.state_key(device_id)),
            None,
            device=device_id,
        )
        if raw is None:
            return None
        try:
            return PollingState.model_validate_json(raw)
        except ValidationError:
            logger.warning("Discarding unreadable polling state for device %s", device_id)
            return None

    async def save(self, state: PollingState, snapshot: DailyCounterSnapshot) -> None:
        """Write the new state and the day's counter snapshot atomically."""
        await guarded(
            Resource.POLLING_STATE,
            self._save(state, snapshot),
            None,
            device=state.device_id,
        )

    async def get_daily_snapshot(self, device_id: int, day: date) -> Optional[DailyCounterSnapshot]:
        raw = await guarded(
            Resource.POLLING_STATE,
            self._get(self.snapshot_key(device_id, day)),
            None,
            device=device_id,
        )
        if raw is None:
            return None
        try:
            return DailyCounterSnapshot.model_validate_json(raw)
        except ValidationError:
            logger.warning("Discarding unreadable daily snapshot for device %s on %s", device_id, day)
            return None

    async def _get(self, key: str) -> Optional[str]:
        return await self.handle.client.get(key)

    async def _save(self, state: PollingState, snapshot: DailyCounterSnapshot) -> None:
        async with self.handle.client.pipeline(transaction=True) as pipe:
            pipe.set(self.state_key(state.device_id), state.model_dump_json())
            pipe.set(
                self.snapshot_key(snapshot.device_id, snapshot.day),
                snapshot.model_dump_json(),
                ex=self.snapshot_ttl,
            )
            await pipe.execute()
        logger.debug("Saved polling state for device %s", state.device_id)
