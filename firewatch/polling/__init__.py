"""
Device polling: scheduling, change detection and state tracking.
"""

from firewatch.polling.engine import PollingEngine
from firewatch.polling.state import DailyCounterSnapshot, DeviceStatus, PollingState, PollingStateStore

__all__ = [
    "DailyCounterSnapshot",
    "DeviceStatus",
    "PollingEngine",
    "PollingState",
    "PollingStateStore",
]
