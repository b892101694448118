"""
SQLAlchemy database models for firewatch.

This module defines the tables written by the polling and alerting
pipeline: the device registry, alerts, health snapshots, security
posture and license records.
"""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    LargeBinary,
    String,
    Text,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.sql import func

DEVICE_STATUSES = ("active", "inactive", "offline")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    """Base class for all database models."""

    type_annotation_map = {
        Dict[str, Any]: JSON,
        List[str]: JSON,
    }


class FirewallDevice(Base):
    """
    Registered firewall appliance.

    Rows are created by device registration. The poller only reads them and
    updates liveness and identity fields reported by the appliance.
    """
    __tablename__ = "firewall_devices"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    tenant_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    model: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    firmware_version: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    serial_number: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)
    management_ip: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        comment="Management address, host or URL of the appliance API",
    )
    api_username: Mapped[str] = mapped_column(String(255), nullable=False)
    api_password_encrypted: Mapped[bytes] = mapped_column(
        LargeBinary,
        nullable=False,
        comment="Fernet-encrypted API password",
    )
    uptime_seconds: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    last_seen_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default="active",
        comment="active|inactive|offline",
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow, server_default=func.now()
    )

    __table_args__ = (
        Index("idx_firewall_devices_tenant_status", "tenant_id", "status"),
    )


class FirewallAlert(Base):
    """
    Alert raised by the poller or another producer.

    Only acknowledgement mutates a row after creation.
    """
    __tablename__ = "firewall_alerts"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    tenant_id: Mapped[str] = mapped_column(String(64), nullable=False)
    device_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("firewall_devices.id", ondelete="SET NULL"),
        nullable=True,
        comment="Null when the alert could not be matched to a device",
    )
    alert_type: Mapped[str] = mapped_column(String(100), nullable=False)
    severity: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        comment="critical|high|medium|low|info|warning",
    )
    message: Mapped[str] = mapped_column(Text, nullable=False)
    source: Mapped[str] = mapped_column(String(20), nullable=False, comment="api|email|manual")
    # "metadata" is reserved on declarative classes.
    alert_metadata: Mapped[Optional[Dict[str, Any]]] = mapped_column("metadata", JSON, nullable=True)
    acknowledged: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    acknowledged_by: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    acknowledged_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, server_default=func.now()
    )

    __table_args__ = (
        Index("idx_firewall_alerts_tenant_created", "tenant_id", "created_at"),
        Index("idx_firewall_alerts_device", "device_id"),
        Index("idx_firewall_alerts_severity", "severity"),
    )


class HealthSnapshot(Base):
    """Periodic, append-only health snapshot of a device."""
    __tablename__ = "firewall_health_snapshots"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    device_id: Mapped[int] = mapped_column(ForeignKey("firewall_devices.id", ondelete="CASCADE"), nullable=False)
    cpu_percent: Mapped[float] = mapped_column(Float, nullable=False)
    ram_percent: Mapped[float] = mapped_column(Float, nullable=False)
    uptime_seconds: Mapped[int] = mapped_column(Integer, nullable=False)
    wan_status: Mapped[str] = mapped_column(String(10), nullable=False, comment="up|down")
    vpn_status: Mapped[str] = mapped_column(String(10), nullable=False, comment="up|down")
    interface_status: Mapped[Optional[List[Dict[str, Any]]]] = mapped_column(JSON, nullable=True)
    wifi_status: Mapped[Optional[str]] = mapped_column(String(10), nullable=True, comment="on|off, null if unknown")
    ha_status: Mapped[Optional[str]] = mapped_column(
        String(20),
        nullable=True,
        comment="active|standby|failover|standalone",
    )
    timestamp: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, server_default=func.now()
    )

    __table_args__ = (
        Index("idx_health_snapshots_device_time", "device_id", "timestamp"),
    )


class SecurityPosture(Base):
    """Inferred security-feature enablement and license status per poll."""
    __tablename__ = "firewall_security_posture"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    device_id: Mapped[int] = mapped_column(ForeignKey("firewall_devices.id", ondelete="CASCADE"), nullable=False)

    ips_enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    ips_license_status: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    ips_daily_blocks: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    gav_enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    gav_license_status: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    gav_daily_blocks: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    dpi_ssl_enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    dpi_ssl_certificate_status: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    dpi_ssl_daily_blocks: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    atp_enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    atp_license_status: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    atp_daily_verdicts: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    botnet_enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    botnet_daily_blocks: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    app_control_enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    app_control_license_status: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    app_control_daily_blocks: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    content_filter_enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    content_filter_license_status: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    content_filter_daily_blocks: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    timestamp: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, server_default=func.now()
    )

    __table_args__ = (
        Index("idx_security_posture_device_time", "device_id", "timestamp"),
    )


class LicenseRecord(Base):
    """License expiry dates and computed warnings, one row per poll."""
    __tablename__ = "firewall_licenses"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    device_id: Mapped[int] = mapped_column(ForeignKey("firewall_devices.id", ondelete="CASCADE"), nullable=False)
    ips_expiry: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    gav_expiry: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    atp_expiry: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    app_control_expiry: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    content_filter_expiry: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    support_expiry: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    license_warnings: Mapped[List[str]] = mapped_column(JSON, nullable=False, default=list)
    timestamp: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, server_default=func.now()
    )

    __table_args__ = (
        Index("idx_licenses_device_time", "device_id", "timestamp"),
    )


def serialize_model(instance: Base) -> Dict[str, Any]:
    """Convert a model row into a JSON-friendly dict keyed by attribute name."""
    data: Dict[str, Any] = {}
    for attr in instance.__mapper__.column_attrs:
        value = getattr(instance, attr.key)
        if isinstance(value, datetime):
            value = value.isoformat()
        elif isinstance(value, bytes):
            continue
        data[attr.key] = value
    return data
