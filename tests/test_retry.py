from unittest.mock import AsyncMock

import pytest

from firewatch.utils.retry import RetryPolicy, is_retryable, run_with_retry


class Flaky(Exception):
    retryable = True

    def __init__(self, retry_after=None):
        super().__init__("flaky")
        self.retry_after = retry_after


class Fatal(Exception):
    pass


def test_delay_for_schedule_and_cap():
    policy = RetryPolicy()
    assert [policy.delay_for(i) for i in range(4)] == [30.0, 60.0, 120.0, 300.0]
    assert policy.delay_for(10) == 300.0
    assert policy.delay_for(0, retry_after=5) == 30.0
    assert policy.delay_for(0, retry_after=90) == 90.0
    assert policy.delay_for(0, retry_after=900) == 300.0


def test_is_retryable():
    assert is_retryable(Flaky())
    assert not is_retryable(Fatal())
    assert not is_retryable(ValueError())


@pytest.mark.asyncio
async def test_run_with_retry_recovers():
    sleep = AsyncMock()
    operation = AsyncMock(side_effect=[Flaky(), Flaky(retry_after=45), "ok"])

    assert await run_with_retry(operation, RetryPolicy(), sleep=sleep) == "ok"
    assert [c.args[0] for c in sleep.await_args_list] == [30.0, 60.0]


@pytest.mark.asyncio
async def test_run_with_retry_non_retryable_propagates_immediately():
    sleep = AsyncMock()
    operation = AsyncMock(side_effect=Fatal())

    with pytest.raises(Fatal):
        await run_with_retry(operation, RetryPolicy(), sleep=sleep)
    assert operation.await_count == 1
    sleep.assert_not_awaited()


@pytest.mark.asyncio
async def test_run_with_retry_gives_up():
    sleep = AsyncMock()
    operation = AsyncMock(side_effect=Flaky())

    with pytest.raises(Flaky):
        await run_with_retry(operation, RetryPolicy(delays=(1.0, 2.0)), sleep=sleep)
    assert operation.await_count == 3
    assert [c.args[0] for c in sleep.await_args_list] == [1.0, 2.0]


@pytest.mark.asyncio
async def test_run_with_retry_ignores_uncaught_types():
    operation = AsyncMock(side_effect=Flaky())
    with pytest.raises(Flaky):
        await run_with_retry(operation, catch_exceptions=KeyError, sleep=AsyncMock())
    assert operation.await_count == 1
