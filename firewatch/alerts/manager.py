"""
Alert creation, acknowledgement and listing.

Alerts pass through two gates before they are written:

1. Duplicate suppression: the same tenant, device, type and severity is
   written at most once per dedup window.
2. Storm detection: a device producing more than the storm threshold of
   alerts within the storm window gets a single ``alert_storm_detected``
   alert, and its further alerts are withheld for the suppression period.

Both gates live in Redis and fail open.
"""
from __future__ import annotations

import hashlib
import logging
import time
from typing import Any, Callable, List, Optional

from ..config import settings
from ..core.failure_policy import Resource
from ..ratelimit.limiter import RateLimitResult, SlidingWindowLimiter
from ..ratelimit.policies import RateLimitPolicy
from ..ratelimit.suppressor import ChangeSuppressor
from ..store.redis import StoreHandle
from .models import AlertFilter, AlertInput

logger = logging.getLogger(__name__)

STORM_ALERT_TYPE = "alert_storm_detected"


def default_storm_policy() -> RateLimitPolicy:
    return RateLimitPolicy(
        "alert_storm",
        window=settings.ALERT_STORM_WINDOW,
        max_requests=settings.ALERT_STORM_THRESHOLD,
        block_duration=settings.ALERT_STORM_SUPPRESSION,
    )


class AlertManager:
    """
    Creates alerts through the duplicate and storm gates.

    ``repository`` must provide ``insert_alert``, ``acknowledge_alert`` and
    ``list_alerts`` (see ``firewatch.database.repository.FirewallRepository``).
    """

    def __init__(
        self,
        repository: Any,
        handle: StoreHandle,
        *,
        dedup_window: float = settings.ALERT_DEDUP_WINDOW,
        storm_policy: Optional[RateLimitPolicy] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.repository = repository
        self.duplicates = ChangeSuppressor(
            handle,
            prefix="alert:dedup",
            window=dedup_window,
            sensitivity=None,
            resource=Resource.ALERT_DEDUP,
        )
        self.storm_limiter = SlidingWindowLimiter(handle, prefix="alert", resource=Resource.ALERT_STORM, clock=clock)
        self.storm_policy = storm_policy or default_storm_policy()

    @staticmethod
    def fingerprint(alert: AlertInput) -> str:
        raw = f"{alert.tenant_id}:{alert.device_id if alert.device_id is not None else '-'}:{alert.alert_type}:{alert.severity}"
        return hashlib.sha256(raw.encode("utf-8")).hexdigest()[:16]

    async def create_alert(
        self,
        alert: AlertInput,
        *,
        deduplicate: bool = True,
        dedup_window: Optional[float] = None,
        storm: bool = True,
    ) -> Optional[int]:
        """
        Write ``alert`` unless one of the gates withholds it.

        Args:
            alert: The alert to create.
            deduplicate: Apply duplicate suppression.
            dedup_window: Override the duplicate window, in seconds.
            storm: Apply per-device storm suppression. Alerts that carry state
                the caller persists regardless (status flips) pass False so
                an active storm block cannot drop them.

        Returns:
            The new alert id, or None when the alert was suppressed.
        """
        dedup_key = self.duplicates.key(self.fingerprint(alert))
        if deduplicate and not await self.duplicates.should_emit(dedup_key):
            logger.debug(
                "Duplicate alert suppressed: %s/%s for device %s",
                alert.alert_type,
                alert.severity,
                alert.device_id,
            )
            return None

        if storm and alert.device_id is not None:
            verdict = await self.storm_limiter.check(str(alert.device_id), self.storm_policy)
            if not verdict.allowed:
                if verdict.violations:
                    await self._raise_storm_alert(alert, verdict)
                logger.debug("Alert %s for device %s withheld by storm suppression", alert.alert_type, alert.device_id)
                return None

        alert_id = await self.repository.insert_alert(alert)
        if deduplicate:
            await self.duplicates.record(dedup_key, window=dedup_window)
        logger.info(
            f"Created {alert.severity} alert {alert_id} ({alert.alert_type}) "
            f"for device {alert.device_id} tenant {alert.tenant_id}"
        )
        return alert_id

    async def acknowledge_alert(self, alert_id: int, user_id: str, *, tenant_id: Optional[str] = None):
        """Mark an alert acknowledged. Raises AlertNotFoundError if missing."""
        alert = await self.repository.acknowledge_alert(alert_id, user_id, tenant_id=tenant_id)
        logger.info("Alert %s acknowledged by %s", alert_id, user_id)
        return alert

    async def get_alerts(self, query: Optional[AlertFilter] = None) -> List[Any]:
        return await self.repository.list_alerts(query or AlertFilter())

    async def _raise_storm_alert(self, trigger: AlertInput, storm: RateLimitResult) -> None:
        policy = self.storm_policy
        suppressed_for = storm.retry_after or int(policy.block_duration or 0)
        storm_alert = AlertInput(
            tenant_id=trigger.tenant_id,
            device_id=trigger.device_id,
            alert_type=STORM_ALERT_TYPE,
            severity="high",
            source="api",
            message=(
                f"Alert storm detected: more than {policy.max_requests} alerts in "
                f"{int(policy.window)} seconds for device {trigger.device_id}. "
                f"Suppressing alerts for {suppressed_for} seconds."
            ),
            metadata={
                "threshold": policy.max_requests,
                "window_seconds": int(policy.window),
                "suppressed_for_seconds": suppressed_for,
                "violations_24h": storm.violations,
                "triggering_alert_type": trigger.alert_type,
            },
        )
        alert_id = await self.repository.insert_alert(storm_alert)
        logger.warning(
            f"Alert storm on device {trigger.device_id} (tenant {trigger.tenant_id}); "
            f"created alert {alert_id}, suppressing for {suppressed_for}s"
        )
