"""
Console logging for firewatch.

Environment:
- FIREWATCH_LOG_LEVEL: DEBUG|INFO|WARNING|ERROR (default: INFO)
- FIREWATCH_LOG_FORMAT: text|json (default: text)

Records emitted while a device is being polled carry ``device_id`` and
``tenant_id``, set with ``device_context()``. JSON output adds them as
top-level fields next to a constant ``service`` field; text output appends
``[device N tenant T]`` after the logger name.
"""
from __future__ import annotations

import logging
import os
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Iterator, Optional, Tuple

from pythonjsonlogger import jsonlogger

SERVICE_NAME = "firewatch"
TEXT_FORMAT = "%(asctime)s - %(levelname)s - %(name)s%(device)s - %(message)s"
JSON_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"

_current_device: ContextVar[Optional[Tuple[int, str]]] = ContextVar("firewatch_device", default=None)


@contextmanager
def device_context(device_id: int, tenant_id: str) -> Iterator[None]:
    """Tag every record logged inside the block with the device and tenant."""
    token = _current_device.set((device_id, tenant_id))
    try:
        yield
    finally:
        _current_device.reset(token)


class DeviceContextFilter(logging.Filter):
    """Copies the active device context onto records. Explicit ``extra`` wins."""

    def __init__(self, label: bool = True):
        super().__init__()
        self.label = label

    def filter(self, record: logging.LogRecord) -> bool:
        current = _current_device.get()
        if current is not None:
            if not hasattr(record, "device_id"):
                record.device_id = current[0]
            if not hasattr(record, "tenant_id"):
                record.tenant_id = current[1]
        if self.label:
            device_id = getattr(record, "device_id", None)
            record.device = (
                f" [device {device_id} tenant {getattr(record, 'tenant_id', '-')}]" if device_id is not None else ""
            )
        return True


def _get_level(level: Optional[str] = None) -> int:
    level = (level or os.getenv("FIREWATCH_LOG_LEVEL", "INFO")).upper()
    return getattr(logging, level, logging.INFO)


def _build_handler() -> logging.Handler:
    handler = logging.StreamHandler()
    if os.getenv("FIREWATCH_LOG_FORMAT", "text").lower() == "json":
        handler.setFormatter(
            jsonlogger.JsonFormatter(
                fmt=JSON_FORMAT,
                rename_fields={"levelname": "level", "name": "logger"},
                static_fields={"service": SERVICE_NAME},
            )
        )
        handler.addFilter(DeviceContextFilter(label=False))
    else:
        handler.setFormatter(logging.Formatter(fmt=TEXT_FORMAT, datefmt="%Y-%m-%dT%H:%M:%S%z"))
        handler.addFilter(DeviceContextFilter())
    return handler


def setup_logging(
    force: bool = False,
    *,
    logger: Optional[logging.Logger] = None,
    level: Optional[str] = None,
) -> None:
    """Attach the console handler to ``logger`` (root by default).

    Does nothing when the logger already has handlers, unless ``force`` is
    set, in which case they are replaced. An explicit ``level`` wins over
    FIREWATCH_LOG_LEVEL.
    """
    target = logger or logging.getLogger()
    if target.handlers and not force:
        return
    for existing in list(target.handlers):
        target.removeHandler(existing)
    target.setLevel(_get_level(level))
    target.addHandler(_build_handler())
