"""
Key/value store access for firewatch.

Provides a reference-counted handle around an asyncio Redis client that is
shared by the rate limiter, alert suppressors and the polling state store.
"""

from firewatch.store.redis import StoreHandle

__all__ = ["StoreHandle"]
