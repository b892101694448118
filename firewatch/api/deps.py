"""
Shared FastAPI dependencies.
"""
import logging
from typing import Callable

from fastapi import Header, HTTPException, Request, Response

from firewatch.core.services import ServiceContainer
from firewatch.ratelimit.policies import get_policy

logger = logging.getLogger(__name__)


def get_services(request: Request) -> ServiceContainer:
    services = getattr(request.app.state, "services", None)
    if services is None:
        raise HTTPException(status_code=503, detail="Services are not initialized")
    return services


def get_tenant_id(x_tenant_id: str = Header(..., alias="X-Tenant-ID")) -> str:
    """Tenant scope supplied by the upstream authentication layer."""
    return x_tenant_id


def rate_limit(policy_name: str) -> Callable:
    """
    Build a dependency enforcing a named rate-limit policy per client address.

    Denied requests get 429 with a Retry-After header.
    """
    policy = get_policy(policy_name)

    async def _dependency(request: Request, response: Response) -> None:
        services = get_services(request)
        identifier = request.client.host if request.client else "unknown"
        await services.store.ensure_connected()
        result = await services.limiter.check(identifier, policy)
        if not result.allowed:
            logger.warning("Rate limit '%s' denied %s %s for %s", policy.name, request.method, request.url.path, identifier)
            raise HTTPException(status_code=429, detail="Too many requests", headers=result.headers)
        for name, value in result.headers.items():
            response.headers[name] = value

    return _dependency
