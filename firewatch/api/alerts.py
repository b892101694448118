"""
Alert listing and acknowledgement endpoints.
"""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel

from firewatch.alerts.models import AlertFilter, AlertNotFoundError, Severity
from firewatch.api.deps import get_services, get_tenant_id, rate_limit
from firewatch.core.services import ServiceContainer
from firewatch.database.models import serialize_model

router = APIRouter()
logger = logging.getLogger(__name__)


class AlertOut(BaseModel):
    id: int
    tenant_id: str
    device_id: Optional[int] = None
    alert_type: str
    severity: str
    message: str
    source: str
    metadata: Optional[Dict[str, Any]] = None
    acknowledged: bool
    acknowledged_by: Optional[str] = None
    acknowledged_at: Optional[datetime] = None
    created_at: datetime


class AcknowledgeIn(BaseModel):
    user_id: str


def _to_out(alert) -> AlertOut:
    data = serialize_model(alert)
    data["metadata"] = data.pop("alert_metadata", None)
    return AlertOut(**data)


@router.get("/alerts", response_model=List[AlertOut])
async def list_alerts(
    device_id: Optional[int] = None,
    severity: Optional[List[Severity]] = Query(None),
    acknowledged: Optional[bool] = None,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    limit: int = Query(100, ge=1, le=1000),
    offset: int = Query(0, ge=0),
    tenant_id: str = Depends(get_tenant_id),
    services: ServiceContainer = Depends(get_services),
) -> List[AlertOut]:
    """List the tenant's alerts, newest first."""
    query = AlertFilter(
        tenant_id=tenant_id,
        device_id=device_id,
        severity=severity or None,
        acknowledged=acknowledged,
        start_date=start_date,
        end_date=end_date,
        limit=limit,
        offset=offset,
    )
    alerts = await services.alert_manager.get_alerts(query)
    return [_to_out(a) for a in alerts]


@router.post(
    "/alerts/{alert_id}/acknowledge",
    response_model=AlertOut,
    dependencies=[Depends(rate_limit("api"))],
)
async def acknowledge_alert(
    alert_id: int,
    payload: AcknowledgeIn,
    tenant_id: str = Depends(get_tenant_id),
    services: ServiceContainer = Depends(get_services),
) -> AlertOut:
    try:
        alert = await services.alert_manager.acknowledge_alert(alert_id, payload.user_id, tenant_id=tenant_id)
    except AlertNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return _to_out(alert)
