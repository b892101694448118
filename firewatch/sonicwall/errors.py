"""
Exceptions raised by the SonicWall client.
"""
from typing import Optional


class SonicWallError(Exception):
    """Base exception for SonicWall API errors."""

    retryable = False

    def __init__(
        self,
        message: str,
        *,
        status_code: Optional[int] = None,
        retry_after: Optional[float] = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.retry_after = retry_after

    @property
    def auth_error(self) -> bool:
        return isinstance(self, SonicWallAuthError)

    @property
    def rate_limited(self) -> bool:
        return isinstance(self, SonicWallRateLimitError)


class SonicWallAuthError(SonicWallError):
    """Invalid credentials, forbidden, or no token issued."""
    pass


class SonicWallRequestError(SonicWallError):
    """A 4xx response other than auth and rate limiting."""
    pass


class SonicWallRateLimitError(SonicWallError):
    """The appliance answered 429."""

    retryable = True


class SonicWallServerError(SonicWallError):
    """The appliance answered with a 5xx status."""

    retryable = True


class SonicWallTimeoutError(SonicWallError):
    """The request did not complete within the client timeout."""

    retryable = True


class SonicWallConnectionError(SonicWallError):
    """The appliance could not be reached."""

    retryable = True
