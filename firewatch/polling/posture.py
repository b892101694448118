"""
Security posture rows built from a poll.
"""
from datetime import datetime
from typing import Any, Dict, Mapping

from ..sonicwall.models import COUNTER_FIELDS, SecurityStats
from .events import LicenseFinding

# Counter -> license display name, for counters that are licensed.
_LICENSED_COUNTERS = {
    "ips": "IPS",
    "gav": "Gateway AV",
    "atp": "ATP",
    "app_control": "App Control",
    "content_filter": "Content Filter",
}


def build_posture(
    device_id: int,
    stats: SecurityStats,
    licenses: Mapping[str, LicenseFinding],
    timestamp: datetime,
) -> Dict[str, Any]:
    """
    Column values for a SecurityPosture row.

    A feature counts as enabled when the appliance reported its counter at
    all; the counter's value does not matter.
    """
    values: Dict[str, Any] = {"device_id": device_id, "timestamp": timestamp}
    for counter, field in COUNTER_FIELDS.items():
        values[f"{counter}_enabled"] = counter in stats.reported_counters
        column = "atp_daily_verdicts" if counter == "atp" else f"{counter}_daily_blocks"
        values[column] = getattr(stats, field)
    for counter, license_name in _LICENSED_COUNTERS.items():
        finding = licenses.get(license_name)
        values[f"{counter}_license_status"] = finding.status if finding else "unknown"
    values["dpi_ssl_certificate_status"] = None
    return values
