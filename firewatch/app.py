"""
Main FastAPI application file for firewatch.
"""
from contextlib import asynccontextmanager
import logging
import time

from fastapi import FastAPI, Request

from firewatch import __version__
from firewatch.api import alerts, system
from firewatch.config import settings
from firewatch.core.services import ServiceContainer
from firewatch.utils.logging import setup_logging

logger = logging.getLogger("firewatch.app")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Handles application startup and shutdown events.
    """
    setup_logging()
    logger.info("Initializing firewatch services...")
    logger.info(
        "App settings: poll_interval=%s concurrency=%s polling_enabled=%s",
        settings.POLL_INTERVAL,
        settings.POLL_CONCURRENCY,
        settings.POLLING_ENABLED,
    )
    services = getattr(app.state, "services", None) or ServiceContainer(settings)
    app.state.services = services
    await services.start()
    yield
    logger.info("Shutting down firewatch services...")
    await services.stop()


app = FastAPI(
    title="firewatch API",
    description="firewatch - firewall polling and alerting service",
    version=__version__,
    lifespan=lifespan,
)


# Request logging middleware (complements Uvicorn access logs)
@app.middleware("http")
async def log_requests(request: Request, call_next):
    start = time.monotonic()
    path = request.url.path
    method = request.method
    try:
        response = await call_next(request)
        duration_ms = int((time.monotonic() - start) * 1000)
        logger.info("%s %s -> %s in %dms", method, path, response.status_code, duration_ms)
        return response
    except Exception as e:
        duration_ms = int((time.monotonic() - start) * 1000)
        logger.exception("%s %s -> 500 in %dms (error: %s)", method, path, duration_ms, e)
        raise


app.include_router(alerts.router, prefix="/api", tags=["alerts"])
app.include_router(system.router, prefix="/api", tags=["system"])
