"""
SonicWall management API integration.

Provides a resilient async client for SonicOS appliances and the
data-driven extraction rules that map vendor payloads onto typed models.
"""

from firewatch.sonicwall.client import SonicWallClient
from firewatch.sonicwall.errors import (
    SonicWallAuthError,
    SonicWallConnectionError,
    SonicWallError,
    SonicWallRateLimitError,
    SonicWallRequestError,
    SonicWallServerError,
    SonicWallTimeoutError,
)

__all__ = [
    "SonicWallAuthError",
    "SonicWallClient",
    "SonicWallConnectionError",
    "SonicWallError",
    "SonicWallRateLimitError",
    "SonicWallRequestError",
    "SonicWallServerError",
    "SonicWallTimeoutError",
]
