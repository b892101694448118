"""
Window-based suppression of repeated alerts.

A ChangeSuppressor remembers the last emitted metadata for a key for
``window`` seconds. Within the window a repeat is withheld unless its
metadata moved by more than ``sensitivity`` percent (numeric fields) or
changed at all (other fields). With ``sensitivity=None`` every repeat
inside the window is withheld.
"""
from __future__ import annotations

import json
import logging
import math
from numbers import Real
from typing import Any, Mapping, Optional

from ..core.failure_policy import Resource, guarded
from ..store.redis import StoreHandle

logger = logging.getLogger(__name__)


def _is_number(value: Any) -> bool:
    return isinstance(value, Real) and not isinstance(value, bool)


def metadata_changed(previous: Mapping[str, Any], current: Mapping[str, Any], threshold_pct: float) -> bool:
    """
    Decide whether alert metadata moved enough to re-alert.

    Numeric values count as changed when the relative change exceeds
    ``threshold_pct``. A numeric value moving off zero always counts.
    Other values count as changed when they differ. Keys present on only
    one side count as changed.
    """
    for key in set(previous) | set(current):
        before = previous.get(key)
        after = current.get(key)
        if _is_number(before) and _is_number(after):
            if before == 0:
                if after != 0:
                    return True
                continue
            if abs(after - before) / abs(before) * 100 > threshold_pct:
                return True
        elif before != after:
            return True
    return False


class ChangeSuppressor:
    """Withhold repeats of the same alert key within a time window."""

    def __init__(
        self,
        handle: StoreHandle,
        *,
        prefix: str,
        window: float,
        sensitivity: Optional[float] = 1.0,
        resource: Resource = Resource.ALERT_DEDUP,
    ):
        self.handle = handle
        self.prefix = prefix
        self.window = window
        self.sensitivity = sensitivity
        self.resource = resource

    def key(self, *parts: Any) -> str:
        return ":".join([self.prefix, *(str(p) for p in parts)])

    async def should_emit(self, key: str, metadata: Optional[Mapping[str, Any]] = None) -> bool:
        """Return True when an alert for ``key`` should be created now."""
        raw = await guarded(self.resource, self._get(key), None, key=key)
        if raw is None:
            return True
        if self.sensitivity is None:
            logger.debug("Suppressed repeat alert %s", key)
            return False
        try:
            previous = json.loads(raw)
        except ValueError:
            logger.warning("Discarding unreadable suppression entry %s", key)
            return True
        if metadata_changed(previous, metadata or {}, self.sensitivity):
            return True
        logger.debug("Suppressed alert %s: metadata unchanged within %s%%", key, self.sensitivity)
        return False

    async def record(
        self,
        key: str,
        metadata: Optional[Mapping[str, Any]] = None,
        *,
        window: Optional[float] = None,
    ) -> None:
        """Remember that an alert for ``key`` was emitted, refreshing the window."""
        ttl = max(1, math.ceil(window if window is not None else self.window))
        payload = json.dumps(dict(metadata or {}), default=str)
        await guarded(self.resource, self._set(key, payload, ttl), None, key=key)

    async def _get(self, key: str) -> Optional[str]:
        return await self.handle.client.get(key)

    async def _set(self, key: str, payload: str, ttl: int) -> None:
        await self.handle.client.set(key, payload, ex=ttl)
