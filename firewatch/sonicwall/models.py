"""
Data models for SonicWall API responses.

These are the typed shapes the rest of firewatch works with. Vendor
payloads are mapped onto them by ``firewatch.sonicwall.fields``.
"""
from datetime import datetime
from typing import Dict, FrozenSet, Literal, Optional

from pydantic import BaseModel, ConfigDict

LinkStatus = Literal["up", "down"]

# Short counter name -> SecurityStats field. Short names are used in alert
# types (``ips_counter_increase``) and in the stored polling state.
COUNTER_FIELDS: Dict[str, str] = {
    "ips": "ips_blocks_today",
    "gav": "gav_blocks_today",
    "dpi_ssl": "dpi_ssl_blocks_today",
    "atp": "atp_verdicts_today",
    "app_control": "app_control_blocks_today",
    "content_filter": "content_filter_blocks_today",
    "botnet": "botnet_blocks_today",
}


class SecurityStats(BaseModel):
    """Daily security-service counters reported by the appliance."""

    model_config = ConfigDict(frozen=True)

    ips_blocks_today: int = 0
    gav_blocks_today: int = 0
    dpi_ssl_blocks_today: int = 0
    atp_verdicts_today: int = 0
    app_control_blocks_today: int = 0
    content_filter_blocks_today: int = 0
    botnet_blocks_today: int = 0
    blocked_connections: int = 0
    bandwidth_total_mb: float = 0.0
    # Short counter names that were present in the payload at all.
    reported_counters: FrozenSet[str] = frozenset()

    def counters(self) -> Dict[str, int]:
        return {name: getattr(self, field) for name, field in COUNTER_FIELDS.items()}


class SystemHealth(BaseModel):
    """System status: resource usage, identity and HA role."""

    model_config = ConfigDict(frozen=True)

    cpu_percent: float = 0.0
    ram_percent: float = 0.0
    uptime_seconds: int = 0
    firmware_version: str = ""
    model: str = ""
    serial_number: str = ""
    ha_role: Optional[Literal["primary", "secondary"]] = None
    ha_state: Optional[Literal["active", "standby", "failover"]] = None
    active_sessions: int = 0


class InterfaceStatus(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str = "unknown"
    zone: str = ""
    ip_address: str = "0.0.0.0"
    status: LinkStatus = "down"
    link_speed: Optional[str] = None


class VPNPolicy(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str = ""
    status: LinkStatus = "down"
    remote_gateway: str = ""
    encryption: str = ""
    authentication_method: str = ""


class LicenseInfo(BaseModel):
    """Expiry dates of licensed services. ``None`` means not reported."""

    model_config = ConfigDict(frozen=True)

    ips_expiry: Optional[datetime] = None
    gav_expiry: Optional[datetime] = None
    atp_expiry: Optional[datetime] = None
    app_control_expiry: Optional[datetime] = None
    content_filter_expiry: Optional[datetime] = None
    support_expiry: Optional[datetime] = None

    def expiries(self) -> Dict[str, Optional[datetime]]:
        """Expiry dates keyed by the license's display name."""
        return {
            "IPS": self.ips_expiry,
            "Gateway AV": self.gav_expiry,
            "ATP": self.atp_expiry,
            "App Control": self.app_control_expiry,
            "Content Filter": self.content_filter_expiry,
            "Support": self.support_expiry,
        }
