"""
Polling engine for firewall devices.

This module contains the PollingEngine class, which loads the active
device roster, polls every device on a fixed schedule, detects changes
against the stored polling state, raises alerts and persists snapshots.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from ..alerts.manager import AlertManager
from ..alerts.models import AlertInput
from ..config import settings
from ..core.failure_policy import STORE_ERRORS
from ..core.secrets import CredentialError, SecretEncryptor, get_encryptor
from ..database.models import FirewallDevice
from ..ratelimit.suppressor import ChangeSuppressor
from ..sonicwall.client import SonicWallClient
from ..sonicwall.errors import SonicWallAuthError, SonicWallError
from ..utils.logging import device_context
from ..utils.schedule import IntervalScheduler, Schedule
from .events import (
    DetectedChange,
    check_health_thresholds,
    detect_counter_changes,
    detect_status_changes,
    determine_ha_status,
    determine_vpn_status,
    determine_wan_status,
    evaluate_licenses,
)
from .posture import build_posture
from .state import DailyCounterSnapshot, DeviceStatus, PollingState, PollingStateStore, should_create_snapshot

logger = logging.getLogger(__name__)

MIN_POLL_INTERVAL = 1.0  # seconds


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def device_base_url(management_ip: str) -> str:
    if management_ip.startswith(("http://", "https://")):
        return management_ip.rstrip("/")
    return f"https://{management_ip}"


@dataclass
class DevicePollResult:
    device_id: int
    alert_ids: List[int] = field(default_factory=list)
    snapshot_created: bool = False
    wan_status: str = "down"
    vpn_status: str = "down"


@dataclass
class CycleSummary:
    started_at: datetime
    finished_at: Optional[datetime] = None
    devices: int = 0
    succeeded: int = 0
    failed: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "started_at": self.started_at.isoformat(),
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
            "devices": self.devices,
            "succeeded": self.succeeded,
            "failed": self.failed,
        }


class PollingEngine:
    """
    Polls every active firewall on a fixed interval.
    """

    def __init__(
        self,
        repository: Any,
        state_store: PollingStateStore,
        alert_manager: AlertManager,
        health_suppressor: ChangeSuppressor,
        *,
        encryptor: Optional[SecretEncryptor] = None,
        client_factory: Callable[..., SonicWallClient] = SonicWallClient,
        interval: float = settings.POLL_INTERVAL,
        concurrency: int = settings.POLL_CONCURRENCY,
        snapshot_interval: float = settings.SNAPSHOT_INTERVAL,
        clock: Callable[[], datetime] = utcnow,
    ):
        """
        Initialize the polling engine.

        Args:
            repository: Database access, see FirewallRepository.
            state_store: Redis-backed per-device polling state.
            alert_manager: Creates alerts through the dedup and storm gates.
            health_suppressor: Metadata-change suppressor for CPU/RAM alerts.
            encryptor: Decrypts device passwords. Built from settings when omitted.
            client_factory: Builds a SonicWall client from (base_url, username, password).
            interval: Seconds between polling cycles.
            concurrency: Maximum number of devices polled at the same time.
            snapshot_interval: Seconds between health snapshots per device.
            clock: Returns the current UTC time.
        """
        if interval < MIN_POLL_INTERVAL:
            raise ValueError("Polling interval must be at least 1 second.")
        self.repository = repository
        self.state_store = state_store
        self.alert_manager = alert_manager
        self.health_suppressor = health_suppressor
        self._encryptor = encryptor
        self._client_factory = client_factory
        self.interval = interval
        self.concurrency = max(1, concurrency)
        self.snapshot_interval = snapshot_interval
        self._clock = clock
        self._devices: Tuple[FirewallDevice, ...] = ()
        self._scheduler: Optional[IntervalScheduler] = None
        self.last_cycle: Optional[CycleSummary] = None

    @property
    def devices(self) -> Tuple[FirewallDevice, ...]:
        return self._devices

    @property
    def running(self) -> bool:
        return self._scheduler is not None and self._scheduler.running

    @property
    def schedule(self) -> Schedule:
        return Schedule.from_interval(self.interval)

    async def start(self) -> None:
        """
        Load the roster and start polling.

        Raises:
            Any error from loading the initial roster; the engine does not
            start without one.
        """
        if self.running:
            logger.warning("Polling engine is already running.")
            return
        await self.reload_devices()
        self._scheduler = IntervalScheduler(self.schedule, self.poll_all_devices, name="firewall-poller")
        await self._scheduler.start()
        logger.info(f"Polling engine started with {len(self._devices)} device(s), {self.schedule}")

    async def stop(self) -> None:
        """Stop scheduling new cycles and let the in-flight one poll every device."""
        if self._scheduler is None:
            logger.warning("Polling engine is not running.")
            return
        await self._scheduler.stop()
        self._scheduler = None
        logger.info("Polling engine stopped.")

    async def set_polling_interval(self, seconds: float) -> None:
        """Change the interval, restarting the scheduler if it is running."""
        if seconds < MIN_POLL_INTERVAL:
            raise ValueError("Polling interval must be at least 1 second.")
        self.interval = seconds
        logger.info("Polling interval set to %ss (%s)", seconds, self.schedule)
        if self._scheduler is not None:
            await self._scheduler.stop()
            self._scheduler = IntervalScheduler(self.schedule, self.poll_all_devices, name="firewall-poller")
            await self._scheduler.start()

    async def reload_devices(self) -> int:
        """Replace the roster with the current set of active devices."""
        devices = await self.repository.list_active_devices()
        self._devices = tuple(devices)
        logger.info("Loaded %d active device(s)", len(self._devices))
        return len(self._devices)

    def status(self) -> Dict[str, Any]:
        schedule = self.schedule
        return {
            "running": self.running,
            "interval_seconds": self.interval,
            "schedule": str(schedule),
            "cron_expression": schedule.cron_expression,
            "device_count": len(self._devices),
            "concurrency": self.concurrency,
            "last_cycle": self.last_cycle.to_dict() if self.last_cycle else None,
        }

    async def poll_all_devices(self) -> CycleSummary:
        """Poll every device in the current roster concurrently."""
        await self.state_store.handle.ensure_connected()
        devices = self._devices
        summary = CycleSummary(started_at=self._clock(), devices=len(devices))
        semaphore = asyncio.Semaphore(self.concurrency)

        async def _poll(device: FirewallDevice) -> bool:
            async with semaphore:
                with device_context(device.id, device.tenant_id):
                    return await self._poll_logged(device)

        outcomes = await asyncio.gather(*(_poll(d) for d in devices))
        summary.succeeded = sum(1 for ok in outcomes if ok)
        summary.failed = len(outcomes) - summary.succeeded
        summary.finished_at = self._clock()
        self.last_cycle = summary
        logger.info(
            "Polling cycle finished: %d ok, %d failed",
            summary.succeeded,
            summary.failed,
        )
        return summary

    async def _poll_logged(self, device: FirewallDevice) -> bool:
        try:
            await self.poll_device(device)
            return True
        except CredentialError as e:
            logger.error(f"Cannot decrypt credentials for device {device.id} (tenant {device.tenant_id}): {e}")
        except SonicWallAuthError as e:
            logger.error(f"Authentication failed for device {device.id} (tenant {device.tenant_id}): {e}")
        except SonicWallError as e:
            logger.error(f"Polling device {device.id} (tenant {device.tenant_id}) failed: {e}")
        except STORE_ERRORS as e:
            logger.error(f"State store unavailable while polling device {device.id} (tenant {device.tenant_id}): {e}")
        except Exception:
            logger.exception(f"Unexpected error polling device {device.id} (tenant {device.tenant_id})")
        return False

    async def poll_device(self, device: FirewallDevice) -> DevicePollResult:
        """
        Poll one device and persist the results.

        Steps run in a fixed order: fetch, diff and alert, snapshot,
        posture, licenses, health thresholds, liveness, then polling state.
        The polling state is written last, in a single transaction.
        """
        password = self._decrypt(device)
        previous = await self.state_store.get_state(device.id)

        async with self._client_factory(device_base_url(device.management_ip), device.api_username, password) as client:
            stats, interfaces, health, vpn_policies, licenses = await self._fetch_all(client)

        now = self._clock()
        result = DevicePollResult(device_id=device.id)
        result.wan_status = wan = determine_wan_status(interfaces)
        result.vpn_status = vpn = determine_vpn_status(vpn_policies)
        counters = stats.counters()

        if previous is not None:
            # Every increase or flip is a distinct event, so no dedup here.
            for change in detect_counter_changes(previous.last_counters, counters):
                alert_id = await self._raise(device, change, deduplicate=False)
                if alert_id is not None:
                    result.alert_ids.append(alert_id)
            # The new status is saved below, so a withheld flip would never be re-detected.
            for change in detect_status_changes(previous.last_status.wan, previous.last_status.vpn, wan, vpn):
                alert_id = await self._raise(device, change, deduplicate=False, storm=False)
                if alert_id is not None:
                    result.alert_ids.append(alert_id)

        take_snapshot = should_create_snapshot(previous, now, self.snapshot_interval)
        if take_snapshot:
            await self.repository.insert_health_snapshot({
                "device_id": device.id,
                "cpu_percent": health.cpu_percent,
                "ram_percent": health.ram_percent,
                "uptime_seconds": health.uptime_seconds,
                "wan_status": wan,
                "vpn_status": vpn,
                "interface_status": [i.model_dump() for i in interfaces],
                "wifi_status": None,
                "ha_status": determine_ha_status(health),
                "timestamp": now,
            })
            result.snapshot_created = True
            logger.debug("Health snapshot stored for device %s", device.id)

        findings, warnings, license_alerts = evaluate_licenses(licenses, now, settings.LICENSE_WARNING_DAYS)
        await self.repository.insert_security_posture(build_posture(device.id, stats, findings, now))

        for change in license_alerts:
            alert_id = await self._raise(device, change, deduplicate=True, dedup_window=settings.LICENSE_ALERT_WINDOW)
            if alert_id is not None:
                result.alert_ids.append(alert_id)
        await self.repository.insert_license_record({
            "device_id": device.id,
            "ips_expiry": licenses.ips_expiry,
            "gav_expiry": licenses.gav_expiry,
            "atp_expiry": licenses.atp_expiry,
            "app_control_expiry": licenses.app_control_expiry,
            "content_filter_expiry": licenses.content_filter_expiry,
            "support_expiry": licenses.support_expiry,
            "license_warnings": warnings,
            "timestamp": now,
        })

        for change in check_health_thresholds(health, settings.CPU_ALERT_THRESHOLD, settings.RAM_ALERT_THRESHOLD):
            key = self.health_suppressor.key(device.id, change.alert_type, change.severity)
            if not await self.health_suppressor.should_emit(key, change.metadata):
                continue
            alert_id = await self._raise(device, change, deduplicate=False)
            if alert_id is not None:
                await self.health_suppressor.record(key, change.metadata)
                result.alert_ids.append(alert_id)

        await self.repository.touch_last_seen(
            device.id,
            now,
            uptime_seconds=health.uptime_seconds,
            model=health.model or None,
            firmware_version=health.firmware_version or None,
        )

        state = PollingState(
            device_id=device.id,
            last_poll_time=now,
            last_counters=counters,
            last_status=DeviceStatus(
                wan=wan,
                vpn=vpn,
                cpu_percent=health.cpu_percent,
                ram_percent=health.ram_percent,
            ),
            last_security_features=sorted(stats.reported_counters),
            last_snapshot_at=now if take_snapshot else previous.last_snapshot_at,
        )
        daily = DailyCounterSnapshot(
            device_id=device.id,
            # UTC day; devices reset their counters at local midnight.
            day=now.astimezone(timezone.utc).date(),
            counters={
                **counters,
                "blocked_connections": stats.blocked_connections,
                "bandwidth_total_mb": stats.bandwidth_total_mb,
            },
            recorded_at=now,
        )
        await self.state_store.save(state, daily)
        logger.debug("Polled device %s: %d alert(s)", device.id, len(result.alert_ids))
        return result

    def _decrypt(self, device: FirewallDevice) -> str:
        encryptor = self._encryptor or get_encryptor()
        self._encryptor = encryptor
        return encryptor.decrypt(device.api_password_encrypted)

    @staticmethod
    async def _fetch_all(client: SonicWallClient) -> Sequence[Any]:
        results = await asyncio.gather(
            client.get_statistics(),
            client.get_interfaces(),
            client.get_health(),
            client.get_vpn_policies(),
            client.get_licenses(),
            return_exceptions=True,
        )
        for outcome in results:
            if isinstance(outcome, BaseException):
                raise outcome
        return results

    async def _raise(
        self,
        device: FirewallDevice,
        change: DetectedChange,
        *,
        deduplicate: bool,
        dedup_window: Optional[float] = None,
        storm: bool = True,
    ) -> Optional[int]:
        return await self.alert_manager.create_alert(
            AlertInput(
                tenant_id=device.tenant_id,
                device_id=device.id,
                alert_type=change.alert_type,
                severity=change.severity,
                message=change.message,
                source="api",
                metadata=change.metadata,
            ),
            deduplicate=deduplicate,
            dedup_window=dedup_window,
            storm=storm,
        )
