"""
Change detection for polled devices.

This module compares a device's current readings with what was seen on
the previous poll and turns meaningful differences into alert
descriptions. Everything here is pure; the engine decides what to persist.
"""

import math
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from ..sonicwall.models import COUNTER_FIELDS, InterfaceStatus, LicenseInfo, SystemHealth, VPNPolicy

ALERT_WAN_STATUS_CHANGE = "wan_status_change"
ALERT_VPN_STATUS_CHANGE = "vpn_status_change"
ALERT_LICENSE_EXPIRED = "license_expired"
ALERT_LICENSE_EXPIRING = "license_expiring"
ALERT_HIGH_CPU = "high_cpu"
ALERT_HIGH_RAM = "high_ram"

COUNTER_LABELS: Dict[str, str] = {
    "ips": "IPS",
    "gav": "Gateway AV",
    "dpi_ssl": "DPI-SSL",
    "atp": "ATP",
    "app_control": "App Control",
    "content_filter": "Content Filter",
    "botnet": "Botnet",
}

SECONDS_PER_DAY = 86400


@dataclass(frozen=True)
class DetectedChange:
    """An alert the poller should raise, minus tenant and device."""

    alert_type: str
    severity: str
    message: str
    metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class LicenseFinding:
    name: str
    expiry: Optional[datetime]
    days_remaining: Optional[int]
    status: str  # unknown | expired | expiring | active


def counter_alert_type(counter: str) -> str:
    return f"{counter}_counter_increase"


def detect_counter_changes(previous: Mapping[str, int], current: Mapping[str, int]) -> List[DetectedChange]:
    """
    Raise an info alert for every counter that went up.

    Counters are daily and reset on the device, so a decrease is never an
    alert. Counters missing from ``previous`` are skipped.
    """
    changes: List[DetectedChange] = []
    for counter in COUNTER_FIELDS:
        before = previous.get(counter)
        if before is None:
            continue
        after = current.get(counter, 0)
        if after > before:
            delta = after - before
            changes.append(
                DetectedChange(
                    alert_type=counter_alert_type(counter),
                    severity="info",
                    message=f"{COUNTER_LABELS[counter]} counter increased by {delta} ({before} -> {after})",
                    metadata={"previous": before, "current": after, "delta": delta},
                )
            )
    return changes


def determine_wan_status(interfaces: Sequence[InterfaceStatus]) -> str:
    """WAN is up when any interface in the ``wan`` zone is up."""
    wan_up = any(i.zone.lower() == "wan" and i.status == "up" for i in interfaces)
    return "up" if wan_up else "down"


def determine_vpn_status(policies: Sequence[VPNPolicy]) -> str:
    """VPN is up when any policy is up. No policies means down."""
    return "up" if any(p.status == "up" for p in policies) else "down"


def determine_ha_status(health: SystemHealth) -> str:
    if health.ha_state == "failover":
        return "failover"
    if health.ha_role == "primary":
        return "active"
    if health.ha_role == "secondary":
        return "standby"
    return "standalone"


def _status_change(alert_type: str, label: str, before: str, after: str, down_severity: str) -> DetectedChange:
    return DetectedChange(
        alert_type=alert_type,
        severity=down_severity if after == "down" else "info",
        message=f"{label} status changed from {before} to {after}",
        metadata={"previous": before, "current": after},
    )


def detect_status_changes(
    previous_wan: str,
    previous_vpn: str,
    current_wan: str,
    current_vpn: str,
) -> List[DetectedChange]:
    """Alert on WAN/VPN flips: critical for WAN down, high for VPN down, info on recovery."""
    changes: List[DetectedChange] = []
    if previous_wan != current_wan:
        changes.append(_status_change(ALERT_WAN_STATUS_CHANGE, "WAN", previous_wan, current_wan, "critical"))
    if previous_vpn != current_vpn:
        changes.append(_status_change(ALERT_VPN_STATUS_CHANGE, "VPN", previous_vpn, current_vpn, "high"))
    return changes


def classify_license(name: str, expiry: Optional[datetime], now: datetime, warning_days: int = 30) -> LicenseFinding:
    if expiry is None:
        return LicenseFinding(name, None, None, "unknown")
    days_remaining = math.floor((expiry - now).total_seconds() / SECONDS_PER_DAY)
    if days_remaining < 0:
        status = "expired"
    elif days_remaining < warning_days:
        status = "expiring"
    else:
        status = "active"
    return LicenseFinding(name, expiry, days_remaining, status)


def evaluate_licenses(
    licenses: LicenseInfo,
    now: datetime,
    warning_days: int = 30,
) -> Tuple[Dict[str, LicenseFinding], List[str], List[DetectedChange]]:
    """
    Classify every license.

    Returns:
        Findings keyed by license name, the human-readable warnings list
        stored with the license record, and the alerts to raise.
    """
    findings: Dict[str, LicenseFinding] = {}
    warnings: List[str] = []
    alerts: List[DetectedChange] = []
    for name, expiry in licenses.expiries().items():
        finding = classify_license(name, expiry, now, warning_days)
        findings[name] = finding
        if finding.status not in ("expired", "expiring"):
            continue
        metadata = {
            "license_name": name,
            "expiry_date": finding.expiry.isoformat(),
            "days_remaining": finding.days_remaining,
        }
        if finding.status == "expired":
            ago = abs(finding.days_remaining)
            warnings.append(f"{name} expired")
            alerts.append(
                DetectedChange(ALERT_LICENSE_EXPIRED, "critical", f"{name} license expired {ago} days ago", metadata)
            )
        else:
            warnings.append(f"{name} expiring in {finding.days_remaining} days")
            alerts.append(
                DetectedChange(
                    ALERT_LICENSE_EXPIRING,
                    "warning",
                    f"{name} license expires in {finding.days_remaining} days",
                    metadata,
                )
            )
    return findings, warnings, alerts


def check_health_thresholds(
    health: SystemHealth,
    cpu_threshold: float = 80.0,
    ram_threshold: float = 90.0,
) -> List[DetectedChange]:
    changes: List[DetectedChange] = []
    if health.cpu_percent > cpu_threshold:
        changes.append(
            DetectedChange(
                ALERT_HIGH_CPU,
                "warning",
                f"CPU usage is {health.cpu_percent:.1f}% (threshold: {cpu_threshold:g}%)",
                {"cpu_percent": health.cpu_percent, "threshold": cpu_threshold},
            )
        )
    if health.ram_percent > ram_threshold:
        changes.append(
            DetectedChange(
                ALERT_HIGH_RAM,
                "warning",
                f"RAM usage is {health.ram_percent:.1f}% (threshold: {ram_threshold:g}%)",
                {"ram_percent": health.ram_percent, "threshold": ram_threshold},
            )
        )
    return changes
