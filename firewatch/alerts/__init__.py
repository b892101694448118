"""
Alert creation with duplicate and storm suppression.
"""

from firewatch.alerts.manager import AlertManager
from firewatch.alerts.models import AlertFilter, AlertInput, AlertNotFoundError

__all__ = ["AlertFilter", "AlertInput", "AlertManager", "AlertNotFoundError"]
