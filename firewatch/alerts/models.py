"""
Alert value types.
"""
from datetime import datetime
from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, Field

Severity = Literal["critical", "high", "medium", "low", "info", "warning"]
Source = Literal["api", "email", "manual"]

SEVERITIES = ("critical", "high", "medium", "low", "info", "warning")


class AlertNotFoundError(LookupError):
    """Raised when acknowledging an alert that does not exist."""
    pass


class AlertInput(BaseModel):
    """An alert to be created."""

    tenant_id: str
    device_id: Optional[int] = None
    alert_type: str
    severity: Severity
    message: str
    source: Source = "api"
    metadata: Dict[str, Any] = Field(default_factory=dict)


class AlertFilter(BaseModel):
    """Query parameters for listing alerts."""

    tenant_id: Optional[str] = None
    device_id: Optional[int] = None
    severity: Optional[Union[Severity, List[Severity]]] = None
    acknowledged: Optional[bool] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    limit: int = Field(100, ge=1, le=1000)
    offset: int = Field(0, ge=0)

    def severities(self) -> Optional[List[str]]:
        if self.severity is None:
            return None
        if isinstance(self.severity, str):
            return [self.severity]
        return list(self.severity)
