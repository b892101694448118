from datetime import datetime, timezone

import pytest

from firewatch.alerts.models import AlertFilter, AlertInput, AlertNotFoundError
from firewatch.core.secrets import SecretEncryptor
from firewatch.database import engine as db_engine
from firewatch.database.repository import FirewallRepository

ENCRYPTOR = SecretEncryptor("r" * 32)


@pytest.fixture
def database(tmp_path):
    engine = db_engine.init_db(f"sqlite:///{tmp_path / 'firewatch.db'}")
    db_engine.ensure_schema()
    yield engine
    engine.dispose()


@pytest.fixture
def repository(database):
    return FirewallRepository()


async def _register(repository, serial, tenant="tenant-a", status="active"):
    return await repository.register_device(
        tenant_id=tenant,
        serial_number=serial,
        management_ip="192.0.2.10",
        api_username="admin",
        api_password="hunter2",
        encryptor=ENCRYPTOR,
        status=status,
    )


def _alert(tenant="tenant-a", device_id=None, severity="warning", alert_type="high_cpu"):
    return AlertInput(
        tenant_id=tenant,
        device_id=device_id,
        alert_type=alert_type,
        severity=severity,
        message="test alert",
        metadata={"cpu_percent": 85.0},
    )


@pytest.mark.asyncio
async def test_register_and_list_active_devices(repository):
    active = await _register(repository, "SN1")
    await _register(repository, "SN2", status="inactive")

    devices = await repository.list_active_devices()

    assert [d.serial_number for d in devices] == ["SN1"]
    assert ENCRYPTOR.decrypt(devices[0].api_password_encrypted) == "hunter2"
    assert (await repository.get_device(active.id)).tenant_id == "tenant-a"
    assert await repository.get_device(999) is None


@pytest.mark.asyncio
async def test_touch_last_seen(repository):
    device = await _register(repository, "SN1")
    seen = datetime(2026, 1, 1, 12, tzinfo=timezone.utc)

    await repository.touch_last_seen(device.id, seen, uptime_seconds=3600, model="TZ470", firmware_version="7.1")

    stored = await repository.get_device(device.id)
    assert stored.last_seen_at.replace(tzinfo=timezone.utc) == seen
    assert stored.uptime_seconds == 3600
    assert stored.model == "TZ470"
    assert stored.firmware_version == "7.1"


@pytest.mark.asyncio
async def test_alert_insert_filter_and_acknowledge(repository):
    device = await _register(repository, "SN1")
    first = await repository.insert_alert(_alert(device_id=device.id))
    second = await repository.insert_alert(_alert(device_id=device.id, severity="critical", alert_type="wan_status_change"))
    await repository.insert_alert(_alert(tenant="tenant-b"))

    tenant_alerts = await repository.list_alerts(AlertFilter(tenant_id="tenant-a"))
    assert [a.id for a in tenant_alerts] == [second, first]
    assert tenant_alerts[1].alert_metadata == {"cpu_percent": 85.0}

    critical = await repository.list_alerts(AlertFilter(tenant_id="tenant-a", severity=["critical", "high"]))
    assert [a.id for a in critical] == [second]

    acked = await repository.acknowledge_alert(first, "user-7", tenant_id="tenant-a")
    assert acked.acknowledged is True
    assert acked.acknowledged_by == "user-7"
    assert acked.acknowledged_at is not None

    unacked = await repository.list_alerts(AlertFilter(tenant_id="tenant-a", acknowledged=False))
    assert [a.id for a in unacked] == [second]

    paged = await repository.list_alerts(AlertFilter(tenant_id="tenant-a", limit=1, offset=1))
    assert [a.id for a in paged] == [first]


@pytest.mark.asyncio
async def test_acknowledge_checks_tenant(repository):
    alert_id = await repository.insert_alert(_alert())

    with pytest.raises(AlertNotFoundError):
        await repository.acknowledge_alert(alert_id, "user-1", tenant_id="tenant-b")
    with pytest.raises(AlertNotFoundError):
        await repository.acknowledge_alert(12345, "user-1")


@pytest.mark.asyncio
async def test_snapshot_posture_and_license_rows(repository):
    device = await _register(repository, "SN1")
    now = datetime(2026, 1, 1, tzinfo=timezone.utc)

    snapshot_id = await repository.insert_health_snapshot({
        "device_id": device.id,
        "cpu_percent": 10.0,
        "ram_percent": 20.0,
        "uptime_seconds": 5,
        "wan_status": "up",
        "vpn_status": "down",
        "interface_status": [{"name": "X1", "status": "up"}],
        "wifi_status": None,
        "ha_status": "standalone",
        "timestamp": now,
    })
    posture_id = await repository.insert_security_posture({
        "device_id": device.id,
        "ips_enabled": True,
        "ips_daily_blocks": 3,
        "ips_license_status": "active",
        "timestamp": now,
    })
    license_id = await repository.insert_license_record({
        "device_id": device.id,
        "ips_expiry": now,
        "license_warnings": ["IPS expired"],
        "timestamp": now,
    })

    assert snapshot_id and posture_id and license_id
