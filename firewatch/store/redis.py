"""
Reference-counted Redis handle.

Every component that needs the key/value store receives the same
StoreHandle instead of reaching for a module-level client. The first
``acquire()`` opens the connection and the last ``release()`` closes it.

A handle acquired with ``required=False`` while Redis is down stays
registered and reconnects on a later ``ensure_connected()``.
"""
from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Optional

import redis.asyncio as redis
from redis.exceptions import ConnectionError as RedisConnectionError, RedisError

logger = logging.getLogger(__name__)


class StoreHandle:
    """Shared, lazily connected Redis client with an explicit lifecycle."""

    def __init__(self, url: str, *, client: Optional[Any] = None, reconnect_interval: float = 5.0):
        """
        Initialize the handle.

        Args:
            url: Redis connection URL, e.g. ``redis://localhost:6379/0``.
            client: An already constructed client. Mainly used by tests; an
                injected client is never closed by the handle.
            reconnect_interval: Minimum seconds between reconnect attempts
                while the store is unreachable.
        """
        self.url = url
        self._client = client
        self._owns_client = client is None
        self._refs = 0
        self._lock = asyncio.Lock()
        self.reconnect_interval = reconnect_interval
        self._last_attempt: Optional[float] = None

    @property
    def client(self) -> Any:
        """The underlying client. Raises a store error if not connected."""
        if self._client is None:
            raise RedisConnectionError("Store handle is not connected. Call acquire() first.")
        return self._client

    @property
    def connected(self) -> bool:
        return self._client is not None

    @property
    def references(self) -> int:
        return self._refs

    async def connect(self) -> None:
        """Open the Redis connection if it is not open yet."""
        if self._client is not None:
            return
        client = redis.from_url(self.url, encoding="utf-8", decode_responses=True)
        try:
            await client.ping()
        except (RedisError, OSError):
            await client.aclose()
            logger.error("Redis connection to %s failed", self._safe_url())
            raise
        self._client = client
        self._owns_client = True
        logger.info("Connected to Redis at %s", self._safe_url())

    async def acquire(self, *, required: bool = True) -> "StoreHandle":
        """
        Register a user of the handle, connecting on first use.

        Args:
            required: Raise when the store is unreachable. With False the
                reference is kept and the connection is retried later by
                ensure_connected().
        """
        async with self._lock:
            try:
                await self._attempt_connect()
            except (RedisError, OSError) as e:
                if required:
                    raise
                logger.warning(f"Redis unavailable, will retry every {self.reconnect_interval:g}s: {e}")
            self._refs += 1
            logger.debug("Store handle acquired (refs=%d)", self._refs)
        return self

    async def ensure_connected(self) -> bool:
        """
        Reconnect a registered handle whose connection never came up.

        Attempts are spaced by ``reconnect_interval``. Returns whether the
        handle is connected afterwards; never raises.
        """
        if self._client is not None:
            return True
        if self._refs == 0:
            return False
        async with self._lock:
            if self._client is None and self._refs > 0 and self._may_retry():
                try:
                    await self._attempt_connect()
                except (RedisError, OSError) as e:
                    logger.warning(f"Redis reconnect failed: {e}")
        return self._client is not None

    async def release(self) -> None:
        """Drop a user of the handle, closing the client when none remain."""
        async with self._lock:
            if self._refs == 0:
                logger.warning("Store handle released more times than acquired")
                return
            self._refs -= 1
            logger.debug("Store handle released (refs=%d)", self._refs)
            if self._refs == 0:
                await self._close_client()

    async def close(self) -> None:
        """Close the client regardless of outstanding references."""
        async with self._lock:
            self._refs = 0
            await self._close_client()

    async def health_check(self) -> bool:
        """Ping the store. Returns False instead of raising."""
        if not await self.ensure_connected():
            return False
        try:
            return bool(await self._client.ping())
        except (RedisError, OSError) as e:
            logger.warning(f"Redis health check failed: {e}")
            return False

    async def __aenter__(self) -> "StoreHandle":
        return await self.acquire()

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.release()

    def _may_retry(self) -> bool:
        return self._last_attempt is None or time.monotonic() - self._last_attempt >= self.reconnect_interval

    async def _attempt_connect(self) -> None:
        self._last_attempt = time.monotonic()
        await self.connect()

    async def _close_client(self) -> None:
        if self._client is None:
            return
        if self._owns_client:
            await self._client.aclose()
            self._client = None
            logger.info("Redis connection closed")

    def _safe_url(self) -> str:
        # Hide credentials embedded in the URL.
        if "@" in self.url:
            scheme, _, rest = self.url.partition("://")
            return f"{scheme}://***@{rest.split('@', 1)[1]}"
        return self.url
