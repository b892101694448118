from unittest.mock import patch

import pytest
from click.testing import CliRunner

from firewatch.cli.main import app
from firewatch.store.redis import StoreHandle


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def patched_store(fake_redis):
    with patch("firewatch.cli.ratelimit.StoreHandle", lambda url: StoreHandle(url, client=fake_redis)):
        yield fake_redis


def test_schedule_command(runner):
    result = runner.invoke(app, ["poller", "schedule", "90"])

    assert result.exit_code == 0
    assert "Polling Schedule" in result.output
    assert "every 1 minute" in result.output
    assert "0 */1 * * * *" in result.output


def test_schedule_command_rejects_bad_interval(runner):
    result = runner.invoke(app, ["poller", "schedule", "soon"])

    assert result.exit_code == 1
    assert "Invalid schedule" in result.output


def test_ratelimit_policies(runner):
    result = runner.invoke(app, ["ratelimit", "policies"])

    assert result.exit_code == 0
    assert "auth: 5 per 900s, block 900s" in result.output
    assert "api: 100 per 60s, block none" in result.output


def test_ratelimit_check_and_reset(runner, patched_store):
    consumed = runner.invoke(app, ["ratelimit", "check", "auth", "10.0.0.5", "--consume"])
    assert consumed.exit_code == 0
    assert "allowed" in consumed.output
    assert "Remaining: 4/5" in consumed.output

    peek = runner.invoke(app, ["ratelimit", "check", "auth", "10.0.0.5"])
    assert "Remaining: 4/5" in peek.output

    reset = runner.invoke(app, ["ratelimit", "reset", "auth", "10.0.0.5"])
    assert reset.exit_code == 0
    assert "Reset 10.0.0.5 under 'auth'" in reset.output
    assert patched_store.keys_matching("ratelimit:auth") == []


def test_ratelimit_unknown_policy(runner, patched_store):
    result = runner.invoke(app, ["ratelimit", "check", "nope", "10.0.0.5"])

    assert result.exit_code == 1
    assert "Unknown rate limit policy" in result.output
