"""
Alerts API.
"""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from api.deps import get_auth_context, get_fleet, to_response
from db.database import get_db
from db.schemas import AlertCreateRequest, AlertStatusUpdateRequest
from services import alert_service
from services.auth import AuthContext
from services.fleet_registry import FleetRegistry

router = APIRouter(prefix="/api/alerts", tags=["alerts"])


@router.post("", status_code=status.HTTP_201_CREATED)
def create_alert(
    payload: AlertCreateRequest,
    auth: AuthContext = Depends(get_auth_context),
    db: Session = Depends(get_db),
    fleet: Optional[FleetRegistry] = Depends(get_fleet),
) -> JSONResponse:
    result = alert_service.create_alert(db, payload, auth, fleet=fleet)
    return to_response(result, success_status=status.HTTP_201_CREATED)


@router.patch("/{alert_id}/status")
def update_alert_status(
    alert_id: str,
    payload: AlertStatusUpdateRequest,
    auth: AuthContext = Depends(get_auth_context),
    db: Session = Depends(get_db),
) -> JSONResponse:
    result = alert_service.update_alert_status(db, alert_id, payload, auth)
    return to_response(result)


@router.get("")
def list_alerts(
    status_filter: List[str] = Query(default=[], alias="status"),
    severity: List[str] = Query(default=[]),
    type: List[str] = Query(default=[]),
    entity_type: Optional[str] = Query(None),
    entity_id: Optional[str] = Query(None),
    start_date: Optional[datetime] = Query(None),
    end_date: Optional[datetime] = Query(None),
    limit: Optional[int] = Query(None),
    offset: int = Query(0),
    auth: AuthContext = Depends(get_auth_context),
    db: Session = Depends(get_db),
) -> JSONResponse:
    """Filtered alerts, newest first, plus per-status and per-severity statistics."""
    filters = {
        "status": status_filter,
        "severity": severity,
        "type": type,
        "entity_type": entity_type,
        "entity_id": entity_id,
        "start_date": start_date,
        "end_date": end_date,
        "limit": limit,
        "offset": offset,
    }
    result = alert_service.list_alerts(
        db,
        {key: value for key, value in filters.items() if value is not None},
        auth,
    )
    return to_response(result)
