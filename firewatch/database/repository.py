"""
Database operations used by the polling and alerting pipeline.

SQLAlchemy sessions are synchronous; every public method runs its work in
a worker thread through anyio so the event loop is never blocked.
"""
from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import anyio
from sqlalchemy import select

from ..alerts.models import AlertFilter, AlertInput, AlertNotFoundError
from ..core.secrets import SecretEncryptor
from .connection import get_db_session
from .models import FirewallAlert, FirewallDevice, HealthSnapshot, LicenseRecord, SecurityPosture

logger = logging.getLogger(__name__)


class FirewallRepository:
    """Reads and writes the firewall tables."""

    async def list_active_devices(self) -> List[FirewallDevice]:
        async with get_db_session() as session:
            def _query():
                stmt = select(FirewallDevice).where(FirewallDevice.status == "active").order_by(FirewallDevice.id)
                return list(session.scalars(stmt))

            return await anyio.to_thread.run_sync(_query)

    async def get_device(self, device_id: int) -> Optional[FirewallDevice]:
        async with get_db_session() as session:
            return await anyio.to_thread.run_sync(session.get, FirewallDevice, device_id)

    async def register_device(
        self,
        *,
        tenant_id: str,
        serial_number: str,
        management_ip: str,
        api_username: str,
        api_password: str,
        encryptor: SecretEncryptor,
        model: Optional[str] = None,
        status: str = "active",
    ) -> FirewallDevice:
        device = FirewallDevice(
            tenant_id=tenant_id,
            serial_number=serial_number,
            management_ip=management_ip,
            api_username=api_username,
            api_password_encrypted=encryptor.encrypt(api_password),
            model=model,
            status=status,
        )
        async with get_db_session() as session:
            def _insert():
                session.add(device)
                session.flush()
                return device

            device = await anyio.to_thread.run_sync(_insert)
        logger.info("Registered device %s (serial %s) for tenant %s", device.id, serial_number, tenant_id)
        return device

    async def touch_last_seen(
        self,
        device_id: int,
        seen_at: datetime,
        *,
        uptime_seconds: Optional[int] = None,
        model: Optional[str] = None,
        firmware_version: Optional[str] = None,
    ) -> None:
        """Record device liveness plus identity fields the appliance reported."""
        async with get_db_session() as session:
            def _update():
                device = session.get(FirewallDevice, device_id)
                if device is None:
                    logger.warning("Cannot update last_seen_at: device %s not found", device_id)
                    return
                device.last_seen_at = seen_at
                if uptime_seconds is not None:
                    device.uptime_seconds = uptime_seconds
                if model:
                    device.model = model
                if firmware_version:
                    device.firmware_version = firmware_version

            await anyio.to_thread.run_sync(_update)

    async def insert_alert(self, alert: AlertInput) -> int:
        row = FirewallAlert(
            tenant_id=alert.tenant_id,
            device_id=alert.device_id,
            alert_type=alert.alert_type,
            severity=alert.severity,
            message=alert.message,
            source=alert.source,
            alert_metadata=alert.metadata,
            acknowledged=False,
        )
        return (await self._insert(row)).id

    async def acknowledge_alert(
        self,
        alert_id: int,
        user_id: str,
        *,
        tenant_id: Optional[str] = None,
    ) -> FirewallAlert:
        async with get_db_session() as session:
            def _ack():
                alert = session.get(FirewallAlert, alert_id)
                if alert is None or (tenant_id is not None and alert.tenant_id != tenant_id):
                    raise AlertNotFoundError(f"Alert {alert_id} not found")
                alert.acknowledged = True
                alert.acknowledged_by = user_id
                alert.acknowledged_at = datetime.now(timezone.utc)
                return alert

            return await anyio.to_thread.run_sync(_ack)

    async def list_alerts(self, query: AlertFilter) -> List[FirewallAlert]:
        stmt = select(FirewallAlert)
        if query.tenant_id is not None:
            stmt = stmt.where(FirewallAlert.tenant_id == query.tenant_id)
        if query.device_id is not None:
            stmt = stmt.where(FirewallAlert.device_id == query.device_id)
        severities = query.severities()
        if severities:
            stmt = stmt.where(FirewallAlert.severity.in_(severities))
        if query.acknowledged is not None:
            stmt = stmt.where(FirewallAlert.acknowledged == query.acknowledged)
        if query.start_date is not None:
            stmt = stmt.where(FirewallAlert.created_at >= query.start_date)
        if query.end_date is not None:
            stmt = stmt.where(FirewallAlert.created_at <= query.end_date)
        stmt = (
            stmt.order_by(FirewallAlert.created_at.desc(), FirewallAlert.id.desc())
            .limit(query.limit)
            .offset(query.offset)
        )

        async with get_db_session() as session:
            return await anyio.to_thread.run_sync(lambda: list(session.scalars(stmt)))

    async def insert_health_snapshot(self, values: Dict[str, Any]) -> int:
        return (await self._insert(HealthSnapshot(**values))).id

    async def insert_security_posture(self, values: Dict[str, Any]) -> int:
        return (await self._insert(SecurityPosture(**values))).id

    async def insert_license_record(self, values: Dict[str, Any]) -> int:
        return (await self._insert(LicenseRecord(**values))).id

    async def _insert(self, row):
        async with get_db_session() as session:
            def _add():
                session.add(row)
                session.flush()
                return row

            return await anyio.to_thread.run_sync(_add)
