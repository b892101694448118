"""
Tests for the sliding-window rate limiter.
"""

import pytest

from firewatch.ratelimit.limiter import SlidingWindowLimiter
from firewatch.ratelimit.policies import MAX_BLOCK_SECONDS, POLICIES, RateLimitPolicy, get_policy


@pytest.fixture
def limiter(store_handle, clock):
    return SlidingWindowLimiter(store_handle, clock=clock)


@pytest.mark.asyncio
async def test_admits_up_to_max_then_denies(limiter, clock):
    policy = RateLimitPolicy("test", window=60, max_requests=3)

    results = [await limiter.check("10.0.0.1", policy) for _ in range(3)]
    assert [r.allowed for r in results] == [True, True, True]
    assert [r.remaining for r in results] == [2, 1, 0]

    clock.advance(10)
    denied = await limiter.check("10.0.0.1", policy)
    assert denied.allowed is False
    assert denied.remaining == 0
    assert denied.retry_after == 50  # oldest entry leaves the window in 50s
    assert denied.violations == 1


@pytest.mark.asyncio
async def test_window_rolls_forward(limiter, clock):
    policy = RateLimitPolicy("test", window=60, max_requests=2)

    assert (await limiter.check("user", policy)).allowed
    clock.advance(30)
    assert (await limiter.check("user", policy)).allowed
    clock.advance(15)
    assert not (await limiter.check("user", policy)).allowed

    # t=61: the first request has aged out, the one at t=30 has not.
    clock.advance(16)
    assert (await limiter.check("user", policy)).allowed
    clock.advance(1)
    assert not (await limiter.check("user", policy)).allowed


@pytest.mark.asyncio
async def test_identifiers_are_independent(limiter):
    policy = RateLimitPolicy("test", window=60, max_requests=1)
    assert (await limiter.check("a", policy)).allowed
    assert not (await limiter.check("a", policy)).allowed
    assert (await limiter.check("b", policy)).allowed


@pytest.mark.asyncio
async def test_block_duration_doubles_on_repeated_violations(limiter, clock):
    policy = RateLimitPolicy("login", window=60, max_requests=1, block_duration=100)

    assert (await limiter.check("alice", policy)).allowed
    first = await limiter.check("alice", policy)
    assert first.allowed is False
    assert first.retry_after == 100
    assert first.violations == 1

    clock.advance(50)
    during_block = await limiter.check("alice", policy)
    assert during_block.allowed is False
    assert during_block.retry_after == 50
    assert during_block.violations == 0

    clock.advance(51)
    assert (await limiter.check("alice", policy)).allowed
    second = await limiter.check("alice", policy)
    assert second.allowed is False
    assert second.violations == 2
    assert second.retry_after == 200


@pytest.mark.asyncio
async def test_violations_decay_after_a_day(limiter, clock):
    policy = RateLimitPolicy("login", window=5, max_requests=1, block_duration=10)

    assert (await limiter.check("bob", policy)).allowed
    assert (await limiter.check("bob", policy)).violations == 1

    clock.advance(24 * 3600 + 1)
    assert (await limiter.check("bob", policy)).allowed
    again = await limiter.check("bob", policy)
    assert again.violations == 1
    assert again.retry_after == 10


def test_backoff_is_monotonic_and_capped():
    policy = RateLimitPolicy("login", window=60, max_requests=1, block_duration=900)
    durations = [policy.backoff_duration(k) for k in range(1, 60)]
    assert durations[0] == 900
    assert durations[1] == 1800
    assert all(later >= earlier for earlier, later in zip(durations, durations[1:]))
    assert max(durations) == MAX_BLOCK_SECONDS


def test_policy_validation():
    with pytest.raises(ValueError):
        RateLimitPolicy("bad", window=0, max_requests=1)
    with pytest.raises(ValueError):
        RateLimitPolicy("bad", window=10, max_requests=0)


def test_named_policies():
    assert get_policy("auth").max_requests == 5
    assert get_policy("auth").block_duration == 900
    assert set(POLICIES) >= {"auth", "api", "user", "webhook", "upload", "search", "alert_storm"}
    with pytest.raises(KeyError, match="Unknown rate limit policy"):
        get_policy("nope")


@pytest.mark.asyncio
async def test_status_does_not_consume(limiter):
    policy = RateLimitPolicy("test", window=60, max_requests=2)
    await limiter.check("x", policy)

    status = await limiter.status("x", policy)
    assert status.allowed is True
    assert status.remaining == 1
    assert (await limiter.status("x", policy)).remaining == 1


@pytest.mark.asyncio
async def test_reset_clears_window_and_block(limiter):
    policy = RateLimitPolicy("login", window=60, max_requests=1, block_duration=300)
    await limiter.check("carol", policy)
    assert not (await limiter.check("carol", policy)).allowed

    await limiter.reset("carol", policy)
    assert (await limiter.check("carol", policy)).allowed


@pytest.mark.asyncio
async def test_fails_open_when_store_is_down(limiter, fake_redis):
    policy = RateLimitPolicy("test", window=60, max_requests=1)
    fake_redis.fail = True

    for _ in range(3):
        result = await limiter.check("dave", policy)
        assert result.allowed is True
        assert result.remaining == 1

    # reset must not raise either
    await limiter.reset("dave", policy)


@pytest.mark.asyncio
async def test_window_key_expires_with_window(limiter, fake_redis):
    policy = RateLimitPolicy("test", window=60, max_requests=5)
    await limiter.check("erin", policy)
    assert await fake_redis.ttl("ratelimit:test:erin") == 60


@pytest.mark.asyncio
async def test_result_headers(limiter):
    policy = RateLimitPolicy("test", window=60, max_requests=1)
    await limiter.check("frank", policy)
    denied = await limiter.check("frank", policy)
    assert denied.headers["Retry-After"] == str(denied.retry_after)
    assert denied.headers["X-RateLimit-Remaining"] == "0"
