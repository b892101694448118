"""
Extraction rules mapping SonicOS payloads onto firewatch models.

Each logical field has an ordered list of candidate key paths. The first
path holding a usable value wins; missing or unparseable values fall back
to the field's default. The tables are plain data so they can be tested
without any HTTP plumbing.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from .models import (
    COUNTER_FIELDS,
    InterfaceStatus,
    LicenseInfo,
    SecurityStats,
    SystemHealth,
    VPNPolicy,
)
from .normalize import (
    extract_datetime,
    extract_number,
    extract_string,
    get_path,
    has_any,
    normalize_status,
)


@dataclass(frozen=True)
class FieldRule:
    """One logical field and the paths it may be found under."""

    name: str
    paths: Tuple[str, ...]
    kind: str = "number"  # number | integer | string | datetime
    default: Any = None
    transform: Optional[Callable[[Any], Any]] = None

    def extract(self, data: Any) -> Any:
        if self.kind == "string":
            value: Any = extract_string(data, self.paths, self.default if self.default is not None else "")
        elif self.kind == "datetime":
            value = extract_datetime(data, self.paths)
        else:
            number = extract_number(data, self.paths, self.default if self.default is not None else 0.0)
            value = int(number) if self.kind == "integer" else number
        if self.transform is not None:
            value = self.transform(value)
        return value


def _ha_role(value: str) -> Optional[str]:
    text = value.lower()
    if "primary" in text or "master" in text:
        return "primary"
    if "secondary" in text or "backup" in text:
        return "secondary"
    return None


def _ha_state(value: str) -> Optional[str]:
    text = value.lower()
    if "standby" in text:
        return "standby"
    if "failover" in text:
        return "failover"
    if "active" in text:
        return "active"
    return None


STATISTICS_RULES: Tuple[FieldRule, ...] = (
    FieldRule("ips_blocks_today", ("ips_blocks_today", "ips_blocks", "ips.blocks"), "integer"),
    FieldRule("gav_blocks_today", ("gav_blocks_today", "gav_blocks", "gateway_av.blocks"), "integer"),
    FieldRule("dpi_ssl_blocks_today", ("dpi_ssl_blocks_today", "dpi_ssl_blocks", "dpi_ssl.blocks"), "integer"),
    FieldRule("atp_verdicts_today", ("atp_verdicts_today", "atp_verdicts", "atp.verdicts"), "integer"),
    FieldRule(
        "app_control_blocks_today",
        ("app_control_blocks_today", "app_control_blocks", "app_control.blocks"),
        "integer",
    ),
    FieldRule(
        "content_filter_blocks_today",
        ("content_filter_blocks_today", "content_filter_blocks", "content_filter.blocks"),
        "integer",
    ),
    FieldRule("botnet_blocks_today", ("botnet_blocks_today", "botnet_blocks", "botnet.blocks"), "integer"),
    FieldRule(
        "blocked_connections",
        ("blocked_connections", "denied_connections", "connections_blocked", "connections.blocked"),
        "integer",
    ),
    FieldRule(
        "bandwidth_total_mb",
        ("bandwidth_total_mb", "bandwidth_mb", "bandwidth.total_mb", "total_bandwidth_mb"),
    ),
)

HEALTH_RULES: Tuple[FieldRule, ...] = (
    FieldRule("cpu_percent", ("cpu_percent", "cpu", "cpu_usage")),
    FieldRule("ram_percent", ("ram_percent", "memory_percent", "memory", "ram")),
    FieldRule("uptime_seconds", ("uptime_seconds", "uptime", "system_uptime"), "integer"),
    FieldRule("firmware_version", ("firmware_version", "firmware", "version"), "string"),
    FieldRule("model", ("model", "device_model", "product"), "string"),
    FieldRule("serial_number", ("serial_number", "serial", "sn"), "string"),
    FieldRule("ha_role", ("ha_role", "ha.role", "high_availability.role"), "string", transform=_ha_role),
    FieldRule("ha_state", ("ha_state", "ha.state", "high_availability.state"), "string", transform=_ha_state),
    FieldRule(
        "active_sessions",
        ("active_sessions_count", "active_sessions", "sessions.active", "current_sessions"),
        "integer",
    ),
)

LICENSE_RULES: Tuple[FieldRule, ...] = (
    FieldRule("ips_expiry", ("ips_expiry", "ips.expiry", "licenses.ips.expiry"), "datetime"),
    FieldRule("gav_expiry", ("gav_expiry", "gateway_av_expiry", "licenses.gav.expiry"), "datetime"),
    FieldRule("atp_expiry", ("atp_expiry", "licenses.atp.expiry"), "datetime"),
    FieldRule("app_control_expiry", ("app_control_expiry", "licenses.app_control.expiry"), "datetime"),
    FieldRule(
        "content_filter_expiry",
        ("content_filter_expiry", "licenses.content_filter.expiry"),
        "datetime",
    ),
    FieldRule("support_expiry", ("support_expiry", "licenses.support.expiry"), "datetime"),
)

INTERFACE_LIST_KEYS = ("interfaces", "data")
VPN_LIST_KEYS = ("policies", "vpn_policies", "data")


def apply_rules(data: Any, rules: Sequence[FieldRule]) -> Dict[str, Any]:
    return {rule.name: rule.extract(data) for rule in rules}


def _rules_by_name(rules: Sequence[FieldRule]) -> Dict[str, FieldRule]:
    return {rule.name: rule for rule in rules}


def parse_statistics(data: Any) -> SecurityStats:
    values = apply_rules(data, STATISTICS_RULES)
    rules = _rules_by_name(STATISTICS_RULES)
    reported = frozenset(
        name for name, field in COUNTER_FIELDS.items() if has_any(data, rules[field].paths)
    )
    return SecurityStats(**values, reported_counters=reported)


def parse_health(data: Any) -> SystemHealth:
    return SystemHealth(**apply_rules(data, HEALTH_RULES))


def parse_licenses(data: Any) -> LicenseInfo:
    return LicenseInfo(**apply_rules(data, LICENSE_RULES))


def _list_payload(data: Any, keys: Sequence[str]) -> List[Any]:
    if isinstance(data, list):
        return data
    for key in keys:
        value = get_path(data, key)
        if isinstance(value, list):
            return value
    return []


def parse_interfaces(data: Any) -> List[InterfaceStatus]:
    interfaces = []
    for item in _list_payload(data, INTERFACE_LIST_KEYS):
        if not isinstance(item, dict):
            continue
        link_speed = extract_string(item, ("link_speed", "speed"))
        interfaces.append(
            InterfaceStatus(
                name=extract_string(item, ("name", "interface_name", "interface"), "unknown"),
                zone=extract_string(item, ("zone", "security_zone")),
                ip_address=extract_string(item, ("ip", "ip_address", "ipv4"), "0.0.0.0"),
                status=normalize_status(extract_string(item, ("status", "link_status"))),
                link_speed=link_speed or None,
            )
        )
    return interfaces


def parse_vpn_policies(data: Any) -> List[VPNPolicy]:
    policies = []
    for item in _list_payload(data, VPN_LIST_KEYS):
        if not isinstance(item, dict):
            continue
        policies.append(
            VPNPolicy(
                name=extract_string(item, ("name", "policy_name")),
                status=normalize_status(extract_string(item, ("status", "tunnel_status"))),
                remote_gateway=extract_string(item, ("remote_gateway", "peer", "remote_ip")),
                encryption=extract_string(item, ("encryption", "encryption_algorithm")),
                authentication_method=extract_string(
                    item, ("authentication", "auth_method", "authentication_method")
                ),
            )
        )
    return policies
