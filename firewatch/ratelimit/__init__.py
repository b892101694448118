"""
Sliding-window rate limiting and alert suppression.
"""

from firewatch.ratelimit.limiter import RateLimitResult, SlidingWindowLimiter
from firewatch.ratelimit.policies import POLICIES, RateLimitPolicy, get_policy
from firewatch.ratelimit.suppressor import ChangeSuppressor, metadata_changed

__all__ = [
    "ChangeSuppressor",
    "POLICIES",
    "RateLimitPolicy",
    "RateLimitResult",
    "SlidingWindowLimiter",
    "get_policy",
    "metadata_changed",
]
