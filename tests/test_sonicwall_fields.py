from datetime import datetime, timedelta, timezone

import pytest

from firewatch.sonicwall.fields import (
    FieldRule,
    parse_health,
    parse_interfaces,
    parse_licenses,
    parse_statistics,
    parse_vpn_policies,
)
from firewatch.sonicwall.normalize import (
    get_path,
    normalize_status,
    parse_datetime,
    parse_retry_after,
    to_number,
)


@pytest.mark.parametrize(
    "value, expected",
    [
        (5, 5.0),
        (2.5, 2.5),
        ("85%", 85.0),
        (" 12.5 ", 12.5),
        ("n/a", None),
        (None, None),
        (True, None),
        ({"x": 1}, None),
        (float("nan"), None),
        (float("inf"), None),
        ("1e999", None),
        ("-1e999", None),
        (10 ** 400, None),
    ],
)
def test_to_number(value, expected):
    assert to_number(value) == expected


def test_get_path_walks_nested_dicts():
    data = {"licenses": {"ips": {"expiry": "2026-05-01"}}}
    assert get_path(data, "licenses.ips.expiry") == "2026-05-01"
    assert get_path(data, "licenses.gav.expiry") is None
    assert get_path(["not", "a", "dict"], "anything") is None


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("UP", "up"),
        ("Connected", "up"),
        ("active", "up"),
        ("Link Down", "down"),
        ("disconnected", "down"),
        ("inactive", "down"),
        ("", "down"),
        (None, "down"),
        ("weird", "down"),
    ],
)
def test_normalize_status(raw, expected):
    assert normalize_status(raw) == expected


def test_parse_datetime_variants():
    assert parse_datetime("2026-03-01T00:00:00Z") == datetime(2026, 3, 1, tzinfo=timezone.utc)
    assert parse_datetime("2026-03-01") == datetime(2026, 3, 1, tzinfo=timezone.utc)
    assert parse_datetime(0) == datetime(1970, 1, 1, tzinfo=timezone.utc)
    assert parse_datetime("soon") is None
    assert parse_datetime("") is None


def test_parse_retry_after():
    now = datetime(2026, 1, 1, 12, 0, 0, tzinfo=timezone.utc)
    assert parse_retry_after("90") == 90.0
    assert parse_retry_after("Thu, 01 Jan 2026 12:02:00 GMT", now=now) == 120.0
    assert parse_retry_after("Thu, 01 Jan 2026 11:00:00 GMT", now=now) == 0.0
    assert parse_retry_after(None) is None
    assert parse_retry_after("later") is None


def test_field_rule_first_usable_path_wins():
    rule = FieldRule("cpu", ("cpu_percent", "cpu"))
    assert rule.extract({"cpu_percent": "bogus", "cpu": "42%"}) == 42.0
    assert rule.extract({}) == 0.0


def test_parse_statistics_alternate_keys():
    stats = parse_statistics(
        {
            "ips_blocks": "15",
            "gateway_av": {"blocks": 3},
            "atp_verdicts_today": 2,
            "denied_connections": 40,
            "bandwidth_mb": "1024.5",
        }
    )

    assert stats.ips_blocks_today == 15
    assert stats.gav_blocks_today == 3
    assert stats.atp_verdicts_today == 2
    assert stats.blocked_connections == 40
    assert stats.bandwidth_total_mb == 1024.5
    assert stats.botnet_blocks_today == 0
    assert stats.reported_counters == {"ips", "gav", "atp"}
    assert stats.counters()["ips"] == 15


def test_parse_statistics_empty_payload():
    stats = parse_statistics({})
    assert stats.counters() == {name: 0 for name in stats.counters()}
    assert stats.reported_counters == frozenset()


def test_parse_health_maps_ha_and_percentages():
    health = parse_health(
        {
            "cpu": "85%",
            "memory": 70,
            "uptime": 3600,
            "firmware": "7.0.1-5050",
            "serial": "C0EAE4000000",
            "high_availability": {"role": "Primary", "state": "Active"},
            "current_sessions": 1200,
        }
    )

    assert health.cpu_percent == 85.0
    assert health.ram_percent == 70.0
    assert health.uptime_seconds == 3600
    assert health.firmware_version == "7.0.1-5050"
    assert health.serial_number == "C0EAE4000000"
    assert health.ha_role == "primary"
    assert health.ha_state == "active"
    assert health.active_sessions == 1200


def test_parse_health_unknown_ha_values_become_none():
    health = parse_health({"ha_role": "standalone", "ha_state": ""})
    assert health.ha_role is None
    assert health.ha_state is None


def test_parse_licenses():
    soon = datetime.now(timezone.utc) + timedelta(days=10)
    info = parse_licenses(
        {
            "ips_expiry": soon.isoformat(),
            "licenses": {"support": {"expiry": "2027-01-01T00:00:00Z"}},
            "atp_expiry": "never",
        }
    )

    assert info.ips_expiry == soon
    assert info.support_expiry == datetime(2027, 1, 1, tzinfo=timezone.utc)
    assert info.atp_expiry is None
    assert info.expiries()["IPS"] == soon


def test_parse_interfaces_accepts_list_or_wrapped():
    wrapped = parse_interfaces(
        {"interfaces": [{"interface_name": "X1", "security_zone": "WAN", "ip": "203.0.113.2", "link_status": "Up"}]}
    )
    bare = parse_interfaces([{"name": "X0", "zone": "LAN", "status": "down", "speed": "1000Mbps"}, "junk"])

    assert wrapped[0].name == "X1"
    assert wrapped[0].zone == "WAN"
    assert wrapped[0].status == "up"
    assert wrapped[0].link_speed is None
    assert len(bare) == 1
    assert bare[0].link_speed == "1000Mbps"
    assert parse_interfaces({"unexpected": True}) == []


def test_parse_vpn_policies():
    policies = parse_vpn_policies(
        {"vpn_policies": [{"policy_name": "HQ", "tunnel_status": "connected", "peer": "198.51.100.7"}]}
    )
    assert policies[0].name == "HQ"
    assert policies[0].status == "up"
    assert policies[0].remote_gateway == "198.51.100.7"


@pytest.mark.parametrize("bad", [float("nan"), float("inf"), "1e999", 10 ** 400])
def test_non_finite_numbers_fall_back_to_defaults(bad):
    stats = parse_statistics({"ips_blocks_today": bad, "gav_blocks_today": 3})
    health = parse_health({"uptime": bad, "cpu": bad, "ram": 55})

    assert stats.ips_blocks_today == 0
    assert stats.gav_blocks_today == 3
    assert health.uptime_seconds == 0
    assert health.cpu_percent == 0.0
    assert health.ram_percent == 55.0


def test_non_finite_value_does_not_hide_later_candidate():
    stats = parse_statistics({"ips_blocks_today": float("nan"), "ips_blocks": 12})
    assert stats.ips_blocks_today == 12
