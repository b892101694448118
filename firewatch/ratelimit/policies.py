"""
Named rate-limit policies.
"""
from dataclasses import dataclass
from typing import Dict, Optional

MAX_BLOCK_SECONDS = 24 * 3600
VIOLATION_WINDOW_SECONDS = 24 * 3600


@dataclass(frozen=True)
class RateLimitPolicy:
    """
    A sliding-window policy.

    Attributes:
        name: Policy name, used as part of the store key.
        window: Window length in seconds.
        max_requests: Requests admitted within any rolling window.
        block_duration: Base block length in seconds after a violation. When
            set, repeated violations within 24 hours double the block.
    """

    name: str
    window: float
    max_requests: int
    block_duration: Optional[float] = None

    def __post_init__(self):
        if self.window <= 0:
            raise ValueError("Rate limit window must be positive.")
        if self.max_requests < 1:
            raise ValueError("Rate limit max_requests must be at least 1.")

    def backoff_duration(self, violations: int) -> float:
        """Block length for the n-th violation in the last 24 hours."""
        if not self.block_duration:
            return 0.0
        exponent = max(violations, 1) - 1
        # Cap the exponent first so huge violation counts do not overflow.
        if exponent >= 32:
            return float(MAX_BLOCK_SECONDS)
        return float(min(self.block_duration * (2 ** exponent), MAX_BLOCK_SECONDS))


AUTH = RateLimitPolicy("auth", window=15 * 60, max_requests=5, block_duration=15 * 60)
API = RateLimitPolicy("api", window=60, max_requests=100)
USER = RateLimitPolicy("user", window=60, max_requests=60)
WEBHOOK = RateLimitPolicy("webhook", window=60, max_requests=30)
UPLOAD = RateLimitPolicy("upload", window=3600, max_requests=20)
SEARCH = RateLimitPolicy("search", window=60, max_requests=30)
ALERT_STORM = RateLimitPolicy("alert_storm", window=300, max_requests=10, block_duration=900)

POLICIES: Dict[str, RateLimitPolicy] = {
    p.name: p for p in (AUTH, API, USER, WEBHOOK, UPLOAD, SEARCH, ALERT_STORM)
}


def get_policy(name: str) -> RateLimitPolicy:
    try:
        return POLICIES[name]
    except KeyError:
        raise KeyError(f"Unknown rate limit policy '{name}'. Known: {', '.join(sorted(POLICIES))}") from None
