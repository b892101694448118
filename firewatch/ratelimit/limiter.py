"""
Sliding-window rate limiter backed by Redis sorted sets.

For every (policy, identifier) pair the limiter keeps three keys:

- ``ratelimit:{policy}:{identifier}``: sorted set of request timestamps.
- ``ratelimit:{policy}:{identifier}:blocked``: epoch seconds the block ends.
- ``ratelimit:{policy}:{identifier}:violations``: sorted set of violation
  timestamps over the last 24 hours, used for exponential backoff.

Store outages fail open: the request is admitted and the failure logged.
"""
from __future__ import annotations

import logging
import math
import time
import uuid
from dataclasses import dataclass
from typing import Callable, Optional

from ..core.failure_policy import Resource, guarded
from ..store.redis import StoreHandle
from .policies import VIOLATION_WINDOW_SECONDS, RateLimitPolicy

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RateLimitResult:
    allowed: bool
    remaining: int
    reset_at: float
    retry_after: Optional[int] = None
    # Violations in the last 24h, set only on the denial that recorded one.
    violations: int = 0

    @property
    def headers(self) -> dict[str, str]:
        headers = {
            "X-RateLimit-Remaining": str(self.remaining),
            "X-RateLimit-Reset": str(int(math.ceil(self.reset_at))),
        }
        if self.retry_after is not None:
            headers["Retry-After"] = str(self.retry_after)
        return headers


class SlidingWindowLimiter:
    """Admit at most ``policy.max_requests`` per rolling ``policy.window``."""

    def __init__(
        self,
        handle: StoreHandle,
        *,
        prefix: str = "ratelimit",
        resource: Resource = Resource.RATE_LIMIT,
        clock: Callable[[], float] = time.time,
    ):
        self.handle = handle
        self.prefix = prefix
        self.resource = resource
        self._clock = clock

    def key(self, identifier: str, policy: RateLimitPolicy) -> str:
        return f"{self.prefix}:{policy.name}:{identifier}"

    async def check(self, identifier: str, policy: RateLimitPolicy) -> RateLimitResult:
        """
        Consume one request for ``identifier`` under ``policy``.

        Returns:
            A RateLimitResult. Denied results carry ``retry_after`` in whole
            seconds.
        """
        now = self._clock()
        fallback = RateLimitResult(
            allowed=True,
            remaining=policy.max_requests,
            reset_at=now + policy.window,
        )
        return await guarded(
            self.resource,
            self._check(identifier, policy, now),
            fallback,
            policy=policy.name,
            identifier=identifier,
        )

    async def status(self, identifier: str, policy: RateLimitPolicy) -> RateLimitResult:
        """Report the current window without consuming a request."""
        now = self._clock()
        fallback = RateLimitResult(allowed=True, remaining=policy.max_requests, reset_at=now + policy.window)
        return await guarded(
            self.resource,
            self._status(identifier, policy, now),
            fallback,
            policy=policy.name,
            identifier=identifier,
        )

    async def reset(self, identifier: str, policy: RateLimitPolicy) -> None:
        """Clear the window, block marker and violation history."""
        await guarded(
            self.resource,
            self._reset(self.key(identifier, policy)),
            None,
            policy=policy.name,
            identifier=identifier,
        )
        logger.info("Rate limit reset for %s under policy '%s'", identifier, policy.name)

    async def _blocked_until(self, key: str, now: float) -> Optional[float]:
        raw = await self.handle.client.get(f"{key}:blocked")
        if raw is None:
            return None
        until = float(raw)
        return until if until > now else None

    async def _check(self, identifier: str, policy: RateLimitPolicy, now: float) -> RateLimitResult:
        client = self.handle.client
        key = self.key(identifier, policy)

        blocked_until = await self._blocked_until(key, now)
        if blocked_until is not None:
            return RateLimitResult(
                allowed=False,
                remaining=0,
                reset_at=blocked_until,
                retry_after=max(1, math.ceil(blocked_until - now)),
            )

        async with client.pipeline(transaction=True) as pipe:
            pipe.zremrangebyscore(key, "-inf", now - policy.window)
            pipe.zcard(key)
            pipe.zrange(key, 0, 0, withscores=True)
            _, count, oldest = await pipe.execute()

        window_reset = (oldest[0][1] if oldest else now) + policy.window

        if count >= policy.max_requests:
            violations = await self._record_violation(key, now)
            retry_after = max(1, math.ceil(window_reset - now))
            reset_at = window_reset
            if policy.block_duration:
                duration = policy.backoff_duration(violations)
                reset_at = now + duration
                retry_after = max(1, math.ceil(duration))
                await client.set(f"{key}:blocked", repr(reset_at), ex=retry_after)
                logger.warning(
                    f"Rate limit exceeded for {identifier} under '{policy.name}': "
                    f"blocked for {duration:.0f}s (violation {violations} in 24h)"
                )
            else:
                logger.info(f"Rate limit exceeded for {identifier} under '{policy.name}'")
            return RateLimitResult(
                allowed=False,
                remaining=0,
                reset_at=reset_at,
                retry_after=retry_after,
                violations=violations,
            )

        member = f"{now:.6f}:{uuid.uuid4().hex[:12]}"
        async with client.pipeline(transaction=True) as pipe:
            pipe.zadd(key, {member: now})
            pipe.expire(key, math.ceil(policy.window))
            await pipe.execute()

        return RateLimitResult(
            allowed=True,
            remaining=policy.max_requests - count - 1,
            reset_at=window_reset,
        )

    async def _record_violation(self, key: str, now: float) -> int:
        violations_key = f"{key}:violations"
        async with self.handle.client.pipeline(transaction=True) as pipe:
            pipe.zadd(violations_key, {f"{now:.6f}:{uuid.uuid4().hex[:12]}": now})
            pipe.zremrangebyscore(violations_key, "-inf", now - VIOLATION_WINDOW_SECONDS)
            pipe.zcard(violations_key)
            pipe.expire(violations_key, VIOLATION_WINDOW_SECONDS)
            _, _, count, _ = await pipe.execute()
        return int(count)

    async def _status(self, identifier: str, policy: RateLimitPolicy, now: float) -> RateLimitResult:
        client = self.handle.client
        key = self.key(identifier, policy)

        blocked_until = await self._blocked_until(key, now)
        if blocked_until is not None:
            return RateLimitResult(
                allowed=False,
                remaining=0,
                reset_at=blocked_until,
                retry_after=max(1, math.ceil(blocked_until - now)),
            )

        count = await client.zcount(key, f"({now - policy.window}", "+inf")
        remaining = max(policy.max_requests - int(count), 0)
        oldest = await client.zrangebyscore(key, f"({now - policy.window}", "+inf", start=0, num=1, withscores=True)
        reset_at = (oldest[0][1] if oldest else now) + policy.window
        return RateLimitResult(
            allowed=remaining > 0,
            remaining=remaining,
            reset_at=reset_at,
            retry_after=None if remaining > 0 else max(1, math.ceil(reset_at - now)),
        )

    async def _reset(self, key: str) -> None:
        await self.handle.client.delete(key, f"{key}:blocked", f"{key}:violations")
