"""
Helpers for reading loosely shaped vendor payloads.

SonicOS responses change between firmware releases, so every value is
looked up through a list of candidate paths and coerced defensively.
"""
from __future__ import annotations

import math
import re
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Any, Iterable, Optional

_NUMBER_RE = re.compile(r"^\s*([-+]?(?:\d+\.?\d*|\.\d+)(?:[eE][-+]?\d+)?)")

_DOWN_MARKERS = ("down", "disconnect", "offline", "inactive")
_UP_MARKERS = ("up", "active", "online", "connected")


def get_path(data: Any, path: str) -> Any:
    """Resolve a dotted path like ``licenses.ips.expiry`` inside nested dicts."""
    current = data
    for part in path.split("."):
        if not isinstance(current, dict) or part not in current:
            return None
        current = current[part]
    return current


def to_number(value: Any) -> Optional[float]:
    """
    Coerce numbers and numeric strings (``"85%"``, ``" 12.5 "``) to float.

    NaN and infinite values count as unparseable and give None.
    """
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, str):
        match = _NUMBER_RE.match(value)
        if not match:
            return None
        value = match.group(1)
    elif not isinstance(value, (int, float)):
        return None
    try:
        number = float(value)
    except OverflowError:
        return None
    return number if math.isfinite(number) else None


def has_any(data: Any, paths: Iterable[str]) -> bool:
    """True when any candidate path holds a non-null value."""
    return any(get_path(data, p) is not None for p in paths)


def extract_number(data: Any, paths: Iterable[str], default: float = 0.0) -> float:
    for path in paths:
        number = to_number(get_path(data, path))
        if number is not None:
            return number
    return default


def extract_string(data: Any, paths: Iterable[str], default: str = "") -> str:
    for path in paths:
        value = get_path(data, path)
        if isinstance(value, bool) or value is None:
            continue
        if isinstance(value, (str, int, float)):
            return str(value)
    return default


def parse_datetime(value: Any) -> Optional[datetime]:
    """Parse ISO-8601 strings or epoch seconds into an aware UTC datetime."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        try:
            return datetime.fromtimestamp(value, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None
    if isinstance(value, str) and value.strip():
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            return None
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=timezone.utc)
        return parsed.astimezone(timezone.utc)
    return None


def extract_datetime(data: Any, paths: Iterable[str]) -> Optional[datetime]:
    for path in paths:
        parsed = parse_datetime(get_path(data, path))
        if parsed is not None:
            return parsed
    return None


def normalize_status(value: Any) -> str:
    """Collapse vendor status strings into ``up`` or ``down``."""
    text = str(value or "").lower()
    if any(marker in text for marker in _DOWN_MARKERS):
        return "down"
    if any(marker in text for marker in _UP_MARKERS):
        return "up"
    return "down"


def parse_retry_after(value: Optional[str], now: Optional[datetime] = None) -> Optional[float]:
    """Read a Retry-After header given as seconds or as an HTTP date."""
    if not value:
        return None
    value = value.strip()
    if value.isdigit():
        return float(value)
    try:
        when = parsedate_to_datetime(value)
    except (TypeError, ValueError):
        return None
    if when is None:
        return None
    if when.tzinfo is None:
        when = when.replace(tzinfo=timezone.utc)
    now = now or datetime.now(timezone.utc)
    return max((when - now).total_seconds(), 0.0)
