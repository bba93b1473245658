"""
Route scheduling service.

Public operations for routes:
- ``schedule_route``: validate, check vehicle/driver double booking and
  persist a route with its waypoints and passenger assignments
- ``update_route_status``: lifecycle changes through RouteStateMachine
- ``get_route_passengers``: route summary with its passenger records

Every operation returns an ``OperationResult``; only storage failures raise.
"""

import logging
import math
from typing import Any, Dict, List, Optional, Union

from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from config import config
from db import crud
from db.schemas import RoutePassengerResponse, RouteResponse, RouteStatusUpdateRequest, ScheduleRouteRequest
from models.results import OperationResult, ResultCode
from models.status import ACTIVE_ROUTE_STATUSES, PassengerStatus
from services import auth as actions
from services.auth import AuthContext
from services.conflict_scheduler import BookingWindow, check_conflict, describe_conflict
from services.distance import estimate_travel_minutes, route_total_distance_km
from services.fleet_registry import FleetRegistry
from services.locks import KeyedLocks, driver_key, keyed_locks, vehicle_key
from services.route_state_machine import RouteStateMachine
from services.runtime import Clock, IdFactory, minutes_between, new_id, to_utc_naive, utc_now

logger = logging.getLogger(__name__)


def _validate_structure(request: ScheduleRouteRequest) -> Optional[OperationResult]:
    """Cross-field checks the request schema cannot express."""
    start = to_utc_naive(request.start_time)
    end = to_utc_naive(request.end_time)
    if end <= start:
        return OperationResult.fail(ResultCode.VALIDATION_ERROR, "end_time must be after start_time")

    orders = [w.order for w in request.waypoints]
    if len(set(orders)) != len(orders):
        return OperationResult.fail(ResultCode.VALIDATION_ERROR, "Waypoint order values must be unique")

    seen = set()
    for passenger in request.passengers:
        if passenger.waypoint_index >= len(request.waypoints):
            return OperationResult.fail(
                ResultCode.VALIDATION_ERROR,
                f"Passenger {passenger.passenger_id}: waypoint_index {passenger.waypoint_index} "
                f"is out of range ({len(request.waypoints)} waypoints)",
            )
        natural_key = (passenger.passenger_id, passenger.type.value)
        if natural_key in seen:
            return OperationResult.fail(
                ResultCode.VALIDATION_ERROR,
                f"Passenger {passenger.passenger_id} has more than one {passenger.type.value}",
            )
        seen.add(natural_key)

    return None


def _check_fleet(fleet: Optional[FleetRegistry], request: ScheduleRouteRequest, company_id: str) -> Optional[OperationResult]:
    """Vehicle and driver must exist and be available. Skipped without a registry."""
    if fleet is None:
        return None

    for kind, item_id, lookup in (
        ("Vehicle", request.vehicle_id, fleet.get_vehicle),
        ("Driver", request.driver_id, fleet.get_driver),
    ):
        item = lookup(item_id)
        if item is None:
            return OperationResult.fail(ResultCode.NOT_FOUND, f"{kind} {item_id} not found")
        if not fleet.is_available(item, company_id):
            return OperationResult.fail(
                ResultCode.VALIDATION_ERROR,
                f"{kind} {item_id} is not available (status: {item.get('status')})",
            )
    return None


def schedule_route(
    db: Session,
    request: Union[ScheduleRouteRequest, Dict[str, Any]],
    auth: AuthContext,
    fleet: Optional[FleetRegistry] = None,
    locks: Optional[KeyedLocks] = None,
    clock: Clock = utc_now,
    id_factory: IdFactory = new_id,
) -> OperationResult:
    """
    Schedule a new route.

    The conflict check and the insert run under the vehicle and driver
    locks (plus advisory locks on PostgreSQL), so two requests for the same
    resource cannot both pass the check.

    Args:
        db: Database session
        request: Route data (schema instance or raw dict)
        auth: Caller capabilities
        fleet: Optional vehicle/driver directory for availability checks
        locks: Keyed lock registry (process-wide one by default)
        clock: Time source
        id_factory: Id source for the route and its child rows

    Returns:
        OperationResult with ``route_id`` and the stored ``route``
    """
    if not auth.can(actions.ROUTE_SCHEDULE):
        return OperationResult.fail(ResultCode.FORBIDDEN)

    if not isinstance(request, ScheduleRouteRequest):
        try:
            request = ScheduleRouteRequest.model_validate(request)
        except ValidationError as e:
            return OperationResult.invalid(e.errors())

    failure = _validate_structure(request) or _check_fleet(fleet, request, auth.company_id)
    if failure is not None:
        return failure

    start = to_utc_naive(request.start_time)
    end = to_utc_naive(request.end_time)
    waypoints = sorted((w.model_dump() for w in request.waypoints), key=lambda w: w["order"])
    total_distance = round(route_total_distance_km(waypoints), 2)
    estimated_duration = minutes_between(start, end)

    travel_minutes = int(math.ceil(estimate_travel_minutes(total_distance, config.AVERAGE_SPEED_KMH)))
    if travel_minutes > estimated_duration:
        logger.warning(
            f"[Scheduling] {total_distance} km needs ~{travel_minutes} min at "
            f"{config.AVERAGE_SPEED_KMH} km/h but the window is {estimated_duration} min"
        )

    locks = locks or keyed_locks
    lock_keys = [
        vehicle_key(auth.company_id, request.vehicle_id),
        driver_key(auth.company_id, request.driver_id),
    ]

    with locks.hold(lock_keys):
        try:
            crud.acquire_advisory_locks(db, lock_keys)

            existing = crud.list_active_routes_for_resources(
                db,
                auth.company_id,
                request.vehicle_id,
                request.driver_id,
                active_statuses=[s.value for s in ACTIVE_ROUTE_STATUSES],
            )
            conflict = check_conflict(
                BookingWindow(request.vehicle_id, request.driver_id, start, end),
                existing,
            )
            if conflict.conflict:
                db.rollback()
                return OperationResult.fail(
                    ResultCode.SCHEDULING_CONFLICT,
                    describe_conflict(conflict),
                    conflicting_route_id=conflict.conflicting_route_id,
                    shared_resource=conflict.shared_resource,
                    resource_id=conflict.resource_id,
                )

            now = clock()
            route = crud.create_route(
                db,
                route_id=id_factory(),
                company_id=auth.company_id,
                vehicle_id=request.vehicle_id,
                driver_id=request.driver_id,
                start_time=start,
                end_time=end,
                estimated_duration=estimated_duration,
                total_distance=total_distance,
                waypoints=waypoints,
                name=request.name,
                notes=request.notes,
                created_by=auth.user_id,
                now=now,
            )
            crud.add_route_passengers(
                db,
                route,
                [p.model_dump(mode="json") for p in request.passengers],
                id_factory=id_factory,
            )
            crud.add_audit_log(
                db,
                company_id=auth.company_id,
                action="route_created",
                performed_by=auth.user_id,
                entity_type="route",
                entity_id=str(route.id),
                details={
                    "vehicle_id": request.vehicle_id,
                    "driver_id": request.driver_id,
                    "start_time": start.isoformat(),
                    "end_time": end.isoformat(),
                    "passenger_count": route.passenger_count,
                },
                timestamp=now,
                log_id=id_factory(),
            )
            db.commit()
            db.refresh(route)
        except SQLAlchemyError:
            db.rollback()
            logger.exception(f"[Scheduling] Failed to schedule route for vehicle {request.vehicle_id}")
            raise

    logger.info(
        f"[Scheduling] Route {route.id} scheduled: vehicle {route.vehicle_id}, driver {route.driver_id}, "
        f"{route.start_time:%Y-%m-%d %H:%M} - {route.end_time:%H:%M}, {total_distance} km"
    )
    return OperationResult.ok(
        "Route scheduled",
        route_id=str(route.id),
        route=RouteResponse.model_validate(route).model_dump(mode="json"),
        estimated_travel_minutes=travel_minutes,
    )


def update_route_status(
    db: Session,
    route_id: str,
    request: Union[RouteStatusUpdateRequest, Dict[str, Any]],
    auth: AuthContext,
    locks: Optional[KeyedLocks] = None,
    clock: Clock = utc_now,
    id_factory: IdFactory = new_id,
) -> OperationResult:
    if not isinstance(request, RouteStatusUpdateRequest):
        try:
            request = RouteStatusUpdateRequest.model_validate(request)
        except ValidationError as e:
            return OperationResult.invalid(e.errors())

    machine = RouteStateMachine(db, clock=clock, id_factory=id_factory, locks=locks)
    return machine.apply(
        route_id,
        request.status,
        auth,
        actual_start_time=request.actual_start_time,
        actual_end_time=request.actual_end_time,
        notes=request.notes,
    )


def get_route_passengers(db: Session, route_id: str, auth: AuthContext) -> OperationResult:
    """
    Route summary plus its passenger records ordered by waypoint.

    Drivers only see routes assigned to them.
    """
    route = crud.get_route(db, route_id, company_id=auth.company_id)
    if route is None:
        return OperationResult.fail(ResultCode.NOT_FOUND, f"Route {route_id} not found", route_id=route_id)

    is_own_route = auth.can(actions.ROUTE_READ_OWN) and route.driver_id == auth.user_id
    if not (auth.can(actions.ROUTE_READ) or is_own_route):
        return OperationResult.fail(ResultCode.FORBIDDEN, route_id=route_id)

    passengers = crud.get_route_passengers(db, str(route.id))
    counts: Dict[str, int] = {status.value: 0 for status in PassengerStatus}
    for passenger in passengers:
        counts[passenger.status] = counts.get(passenger.status, 0) + 1

    rows: List[dict] = [
        RoutePassengerResponse.model_validate(p).model_dump(mode="json") for p in passengers
    ]
    return OperationResult.ok(
        "Route passengers retrieved",
        route={
            "id": str(route.id),
            "name": route.name,
            "status": route.status,
            "vehicle_id": route.vehicle_id,
            "driver_id": route.driver_id,
            "start_time": route.start_time.isoformat(),
            "end_time": route.end_time.isoformat(),
            "total_distance": route.total_distance,
        },
        passengers=rows,
        summary={"total": len(rows), **counts},
    )
