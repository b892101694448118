"""
Asynchronous client for the SonicOS management API.

Every data request runs inside a retry envelope (see
``firewatch.utils.retry``) and re-authenticates once when the appliance
reports that the session token has expired.
"""
from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Awaitable, Callable, List, Optional

import httpx

from ..config import settings
from ..utils.retry import DEFAULT_RETRY_POLICY, RetryPolicy, run_with_retry
from .errors import (
    SonicWallAuthError,
    SonicWallConnectionError,
    SonicWallError,
    SonicWallRateLimitError,
    SonicWallRequestError,
    SonicWallServerError,
    SonicWallTimeoutError,
)
from .fields import (
    parse_health,
    parse_interfaces,
    parse_licenses,
    parse_statistics,
    parse_vpn_policies,
)
from .models import InterfaceStatus, LicenseInfo, SecurityStats, SystemHealth, VPNPolicy
from .normalize import parse_retry_after

logger = logging.getLogger(__name__)

AUTH_PATH = "/api/sonicos/auth"
STATISTICS_PATH = "/api/sonicos/reporting/security-services/statistics"
INTERFACES_PATH = "/api/sonicos/interfaces"
SYSTEM_STATUS_PATH = "/api/sonicos/system/status"
VPN_POLICIES_PATH = "/api/sonicos/vpn/policies"
LICENSES_PATH = "/api/sonicos/licenses"


def error_for_response(response: httpx.Response, action: str) -> SonicWallError:
    """Map a failed response onto the client's exception taxonomy."""
    status = response.status_code
    message = f"{action}: HTTP {status}"
    if status in (401, 403):
        return SonicWallAuthError(message, status_code=status)
    if status == 429:
        return SonicWallRateLimitError(
            message,
            status_code=status,
            retry_after=parse_retry_after(response.headers.get("Retry-After")),
        )
    if status >= 500:
        return SonicWallServerError(message, status_code=status)
    return SonicWallRequestError(message, status_code=status)


class SonicWallClient:
    """
    A resilient client for a single SonicWall appliance.
    """

    def __init__(
        self,
        base_url: str,
        username: str,
        password: str,
        *,
        timeout: float = settings.DEVICE_TIMEOUT,
        verify: bool = settings.DEVICE_VERIFY_TLS,
        retry_policy: RetryPolicy = DEFAULT_RETRY_POLICY,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize the SonicWall client.

        Args:
            base_url: Management URL of the appliance, e.g. ``https://10.0.0.1``.
            username: API username.
            password: API password (plaintext, already decrypted).
            timeout: Per-request timeout in seconds.
            verify: Verify the appliance's TLS certificate.
            retry_policy: Delay schedule for retryable failures.
            sleep: Awaitable used between retries. Tests replace it.
            transport: Optional httpx transport, used by tests.
        """
        self.base_url = base_url.rstrip("/")
        self.username = username
        self._password = password
        self.timeout = timeout
        self.retry_policy = retry_policy
        self._sleep = sleep
        self._token: Optional[str] = None
        self._auth_lock = asyncio.Lock()
        self._http = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=timeout,
            verify=verify,
            transport=transport,
            headers={"Accept": "application/json"},
        )
        logger.debug("Initialized SonicWall client base_url=%s user=%s", self.base_url, bool(username))

    @property
    def token(self) -> Optional[str]:
        return self._token

    async def __aenter__(self) -> "SonicWallClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._http.aclose()

    async def authenticate(self) -> str:
        """
        Obtain a session token.

        Returns:
            The token issued by the appliance.

        Raises:
            SonicWallAuthError: Credentials rejected or no token issued.
            SonicWallError: Any other failure, classified by status.
        """
        async with self._auth_lock:
            return await self._authenticate_locked()

    async def _authenticate_locked(self) -> str:
        response = await self._send("POST", AUTH_PATH, json={"username": self.username, "password": self._password})
        if response.is_error:
            raise error_for_response(response, f"Authentication against {self.base_url} failed")

        token = self._extract_token(response)
        if not token:
            raise SonicWallAuthError(f"No authentication token returned by {self.base_url}")
        self._token = token
        logger.info("Authenticated against %s", self.base_url)
        return token

    async def _ensure_token(self, stale: Optional[str] = None) -> None:
        """Authenticate unless another request already replaced the token."""
        async with self._auth_lock:
            if self._token is None or self._token == stale:
                await self._authenticate_locked()

    async def get_statistics(self) -> SecurityStats:
        return parse_statistics(await self._get_json(STATISTICS_PATH))

    async def get_health(self) -> SystemHealth:
        return parse_health(await self._get_json(SYSTEM_STATUS_PATH))

    async def get_interfaces(self) -> List[InterfaceStatus]:
        return parse_interfaces(await self._get_json(INTERFACES_PATH))

    async def get_vpn_policies(self) -> List[VPNPolicy]:
        return parse_vpn_policies(await self._get_json(VPN_POLICIES_PATH))

    async def get_licenses(self) -> LicenseInfo:
        return parse_licenses(await self._get_json(LICENSES_PATH))

    async def _get_json(self, path: str) -> Any:
        return await run_with_retry(
            lambda: self._request_once("GET", path),
            self.retry_policy,
            name=f"GET {path}",
            catch_exceptions=SonicWallError,
            sleep=self._sleep,
        )

    async def _request_once(self, method: str, path: str) -> Any:
        """One attempt: authenticate if needed, send, re-authenticate once on 401."""
        await self._ensure_token()

        token = self._token
        response = await self._send(method, path, headers=self._auth_headers())
        if response.status_code == 401:
            logger.info("Session for %s expired, re-authenticating", self.base_url)
            await self._ensure_token(stale=token)
            response = await self._send(method, path, headers=self._auth_headers())
            if response.status_code == 401:
                raise SonicWallAuthError(
                    f"{method} {path} rejected after re-authentication",
                    status_code=401,
                )

        if response.is_error:
            raise error_for_response(response, f"{method} {path} failed")

        try:
            return response.json()
        except ValueError:
            logger.warning("%s %s returned a non-JSON body, using empty payload", method, path)
            return {}

    async def _send(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        start_time = time.monotonic()
        try:
            response = await self._http.request(method, path, **kwargs)
        except httpx.TimeoutException as e:
            raise SonicWallTimeoutError(f"{method} {path} timed out after {self.timeout}s") from e
        except httpx.TransportError as e:
            raise SonicWallConnectionError(f"{method} {path} could not reach {self.base_url}: {e}") from e
        latency_ms = int((time.monotonic() - start_time) * 1000)
        logger.debug("HTTP %s %s -> %s in %dms", method, path, response.status_code, latency_ms)
        return response

    def _auth_headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self._token}"}

    @staticmethod
    def _extract_token(response: httpx.Response) -> Optional[str]:
        try:
            body = response.json()
        except ValueError:
            body = None
        if isinstance(body, dict):
            for field in ("token", "auth_token"):
                if body.get(field):
                    return str(body[field])
        header = response.headers.get("Authorization", "")
        if header:
            return header[len("Bearer "):] if header.startswith("Bearer ") else header
        return None
