"""
Fail-open / fail-closed decisions for shared resources.

Each resource the pipeline depends on is listed once in FAILURE_POLICY.
Call sites wrap their store operations in ``guarded`` so the behavior on
store outages is read from this table rather than decided per except block.
"""
from __future__ import annotations

import enum
import logging
from typing import Any, Awaitable, Dict, TypeVar

from redis.exceptions import RedisError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class FailureMode(str, enum.Enum):
    OPEN = "open"  # permit the operation, substitute a fallback
    CLOSED = "closed"  # deny the operation, propagate the error


class Resource(str, enum.Enum):
    RATE_LIMIT = "rate_limit"
    ALERT_DEDUP = "alert_dedup"
    ALERT_STORM = "alert_storm"
    POLLING_STATE = "polling_state"
    CREDENTIALS = "credentials"


FAILURE_POLICY: Dict[Resource, FailureMode] = {
    Resource.RATE_LIMIT: FailureMode.OPEN,
    Resource.ALERT_DEDUP: FailureMode.OPEN,
    Resource.ALERT_STORM: FailureMode.OPEN,
    Resource.POLLING_STATE: FailureMode.CLOSED,
    Resource.CREDENTIALS: FailureMode.CLOSED,
}

# Errors that mean "the store is unavailable", as opposed to programming errors.
STORE_ERRORS = (RedisError, OSError)


def failure_mode(resource: Resource) -> FailureMode:
    return FAILURE_POLICY[resource]


async def guarded(resource: Resource, operation: Awaitable[T], fallback: Any, **context: Any) -> T:
    """
    Await ``operation`` and apply the resource's failure mode on store errors.

    Args:
        resource: The resource the operation touches.
        operation: The awaitable performing the store call.
        fallback: Value returned when the resource fails open.
        **context: Extra fields included in the log line (device id, key, ...).

    Returns:
        The operation's result, or ``fallback`` when the store is unavailable
        and the resource fails open.

    Raises:
        The original store error when the resource fails closed.
    """
    try:
        return await operation
    except STORE_ERRORS as e:
        details = " ".join(f"{k}={v}" for k, v in context.items())
        if failure_mode(resource) is FailureMode.OPEN:
            logger.warning(f"Store unavailable for {resource.value}, failing open ({details}): {e}")
            return fallback
        logger.error(f"Store unavailable for {resource.value}, failing closed ({details}): {e}")
        raise
