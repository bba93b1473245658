"""
Routes API.

Scheduling, lifecycle changes and passenger lists of routes.
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from api.deps import get_auth_context, get_fleet, to_response
from db.database import get_db
from db.schemas import RouteStatusUpdateRequest, ScheduleRouteRequest
from services import scheduling_service
from services.auth import AuthContext
from services.fleet_registry import FleetRegistry

router = APIRouter(prefix="/api/routes", tags=["routes"])


@router.post("", status_code=status.HTTP_201_CREATED)
def schedule_route(
    payload: ScheduleRouteRequest,
    auth: AuthContext = Depends(get_auth_context),
    db: Session = Depends(get_db),
    fleet: Optional[FleetRegistry] = Depends(get_fleet),
) -> JSONResponse:
    """
    Schedule a route.

    Rejected with 409 SCHEDULING_CONFLICT when the vehicle or the driver is
    already booked in an overlapping window.
    """
    result = scheduling_service.schedule_route(db, payload, auth, fleet=fleet)
    return to_response(result, success_status=status.HTTP_201_CREATED)


@router.patch("/{route_id}/status")
def update_route_status(
    route_id: str,
    payload: RouteStatusUpdateRequest,
    auth: AuthContext = Depends(get_auth_context),
    db: Session = Depends(get_db),
) -> JSONResponse:
    result = scheduling_service.update_route_status(db, route_id, payload, auth)
    return to_response(result)


@router.get("/{route_id}/passengers")
def get_route_passengers(
    route_id: str,
    auth: AuthContext = Depends(get_auth_context),
    db: Session = Depends(get_db),
) -> JSONResponse:
    result = scheduling_service.get_route_passengers(db, route_id, auth)
    return to_response(result)
