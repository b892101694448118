import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional, Tuple, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class RetryPolicy:
    """
    A fixed, escalating retry schedule.

    Attributes:
        delays: Delay before each retry, in seconds. The number of entries is
            the number of retries.
        max_delay: Upper bound for any delay, including server-requested ones.
    """

    delays: Tuple[float, ...] = (30.0, 60.0, 120.0, 300.0)
    max_delay: float = 300.0

    @property
    def retries(self) -> int:
        return len(self.delays)

    def delay_for(self, attempt: int, retry_after: Optional[float] = None) -> float:
        """Delay before retry number ``attempt`` (0-based)."""
        scheduled = self.delays[min(attempt, len(self.delays) - 1)]
        if retry_after is not None:
            return min(max(retry_after, scheduled), self.max_delay)
        return min(scheduled, self.max_delay)


DEFAULT_RETRY_POLICY = RetryPolicy()


def is_retryable(exc: BaseException) -> bool:
    return bool(getattr(exc, "retryable", False))


async def run_with_retry(
    operation: Callable[[], Awaitable[T]],
    policy: RetryPolicy = DEFAULT_RETRY_POLICY,
    *,
    name: str = "operation",
    catch_exceptions: type[Exception] | tuple[type[Exception], ...] = Exception,
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
) -> T:
    """
    Run ``operation`` until it succeeds or the retry schedule is exhausted.

    Only exceptions whose ``retryable`` attribute is true are retried; all
    others propagate immediately. An exception's ``retry_after`` (seconds)
    raises the scheduled delay, bounded by ``policy.max_delay``.

    Args:
        operation: Zero-argument callable returning a fresh awaitable per attempt.
        policy: The retry schedule.
        name: Used in log messages.
        catch_exceptions: The exception types considered for retrying.
        sleep: Awaitable sleep function, replaceable in tests.
    """
    attempts = policy.retries + 1
    for attempt in range(attempts):
        try:
            return await operation()
        except catch_exceptions as e:
            if not is_retryable(e):
                raise
            if attempt == policy.retries:
                logger.error(f"'{name}' failed after {attempts} attempts. Last error: {e}")
                raise

            delay = policy.delay_for(attempt, getattr(e, "retry_after", None))
            logger.warning(
                f"Attempt {attempt + 1}/{attempts} for '{name}' failed. "
                f"Retrying in {delay:.2f}s. Error: {e}"
            )
            await sleep(delay)

    # This line should not be reachable, but mypy complains without it
    raise RuntimeError("Retry loop exited unexpectedly")
