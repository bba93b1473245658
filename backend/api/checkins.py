"""
Check-ins API.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from api.deps import get_auth_context, to_response
from db.database import get_db
from db.schemas import CheckinDisputeRequest, CheckinRequest, CheckinValidateRequest
from services import checkin_service
from services.auth import AuthContext

router = APIRouter(prefix="/api/checkins", tags=["checkins"])


@router.post("", status_code=status.HTTP_201_CREATED)
def process_checkin(
    payload: CheckinRequest,
    auth: AuthContext = Depends(get_auth_context),
    db: Session = Depends(get_db),
) -> JSONResponse:
    """
    Record a pickup or dropoff.

    Errors: 409 DUPLICATE_CHECKIN / ALREADY_CHECKED_IN / ROUTE_NOT_ACTIVE,
    422 INVALID_LOCATION when outside the geofence.
    """
    result = checkin_service.process_checkin(db, payload, auth)
    return to_response(result, success_status=status.HTTP_201_CREATED)


@router.post("/validate")
def validate_checkin(
    payload: CheckinValidateRequest,
    auth: AuthContext = Depends(get_auth_context),
    db: Session = Depends(get_db),
) -> JSONResponse:
    result = checkin_service.validate_checkin(db, payload.route_id, payload.passenger_id, auth)
    return to_response(result)


@router.get("")
def get_checkin_history(
    route_id: Optional[str] = Query(None),
    passenger_id: Optional[str] = Query(None),
    start_date: Optional[datetime] = Query(None),
    end_date: Optional[datetime] = Query(None),
    limit: Optional[int] = Query(None),
    auth: AuthContext = Depends(get_auth_context),
    db: Session = Depends(get_db),
) -> JSONResponse:
    filters = {
        "route_id": route_id,
        "passenger_id": passenger_id,
        "start_date": start_date,
        "end_date": end_date,
        "limit": limit,
    }
    result = checkin_service.get_checkin_history(
        db,
        {key: value for key, value in filters.items() if value is not None},
        auth,
    )
    return to_response(result)


@router.post("/{checkin_id}/dispute")
def dispute_checkin(
    checkin_id: str,
    payload: CheckinDisputeRequest,
    auth: AuthContext = Depends(get_auth_context),
    db: Session = Depends(get_db),
) -> JSONResponse:
    result = checkin_service.dispute_checkin(db, checkin_id, payload.reason, auth)
    return to_response(result)
