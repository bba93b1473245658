"""
Passenger check-in service.

``process_checkin`` runs the full pipeline for a pickup or dropoff:

    dedup window -> already recorded -> route (must be in_progress) / passenger
        -> geofence -> persist check-in + passenger status (one transaction)

The pipeline runs under the ``checkin:<route>:<passenger>:<type>`` lock so
two submissions of the same check-in are serialized; the first one wins and
the second is reported as DUPLICATE_CHECKIN. The passenger row is written
only while it and its route are unchanged, so a cancellation committed
mid-flight turns the check-in into ROUTE_NOT_ACTIVE.
"""

import logging
from datetime import datetime
from typing import Any, Dict, Optional, Union

from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from db import crud
from db.schemas import CheckinHistoryQuery, CheckinRequest, CheckinResponse
from models.results import OperationResult, ResultCode
from models.status import CheckinStatus, CheckinType, PassengerStatus, RouteStatus
from services import auth as actions
from services.auth import AuthContext
from services.checkin_dedup import CheckinDeduplicator
from services.geofence import validate_location
from services.locks import KeyedLocks, checkin_key, keyed_locks
from services.runtime import Clock, IdFactory, new_id, to_utc_naive, utc_now

logger = logging.getLogger(__name__)


def _route_not_active(route) -> OperationResult:
    return OperationResult.fail(
        ResultCode.ROUTE_NOT_ACTIVE,
        f"Route {route.id} is {route.status}",
        route_id=str(route.id),
        route_status=route.status,
    )


def process_checkin(
    db: Session,
    request: Union[CheckinRequest, Dict[str, Any]],
    auth: AuthContext,
    locks: Optional[KeyedLocks] = None,
    clock: Clock = utc_now,
    id_factory: IdFactory = new_id,
    tolerance_meters: Optional[float] = None,
    window_minutes: Optional[int] = None,
) -> OperationResult:
    """
    Record a pickup or dropoff for a passenger on a route.

    Args:
        db: Database session
        request: Check-in data (schema instance or raw dict)
        auth: Caller capabilities; the caller is recorded as the driver
        locks: Keyed lock registry (process-wide one by default)
        clock: Time source, used when the request carries no timestamp
        id_factory: Id source for the check-in and audit rows
        tolerance_meters: Geofence radius override
        window_minutes: Duplicate window override

    Returns:
        OperationResult with ``checkin_id``, ``timestamp`` and ``distance_meters``
    """
    if not auth.can(actions.CHECKIN_CREATE):
        return OperationResult.fail(ResultCode.FORBIDDEN)

    if not isinstance(request, CheckinRequest):
        try:
            request = CheckinRequest.model_validate(request)
        except ValidationError as e:
            return OperationResult.invalid(e.errors())

    checkin_type = request.type.value
    timestamp = to_utc_naive(request.timestamp) or clock()
    dedup = CheckinDeduplicator(db, window_minutes=window_minutes)
    lock_key = checkin_key(request.route_id, request.passenger_id, checkin_type)

    def abort(result: OperationResult) -> OperationResult:
        db.rollback()
        return result

    with (locks or keyed_locks).hold([lock_key]):
        try:
            crud.acquire_advisory_locks(db, [lock_key])

            if dedup.is_duplicate(request.route_id, request.passenger_id, checkin_type, timestamp):
                return abort(OperationResult.fail(ResultCode.DUPLICATE_CHECKIN))

            if dedup.has_already_checked_in(request.route_id, request.passenger_id, checkin_type):
                return abort(OperationResult.fail(
                    ResultCode.ALREADY_CHECKED_IN,
                    f"Passenger {request.passenger_id} already has a {checkin_type} on this route",
                ))

            route = crud.get_route(db, request.route_id, company_id=auth.company_id)
            if route is None:
                return abort(OperationResult.fail(ResultCode.NOT_FOUND, f"Route {request.route_id} not found"))
            if route.status != RouteStatus.IN_PROGRESS.value:
                return abort(_route_not_active(route))

            passenger = crud.get_route_passenger(db, str(route.id), request.passenger_id, checkin_type)
            if passenger is None:
                return abort(OperationResult.fail(
                    ResultCode.NOT_FOUND,
                    f"Passenger {request.passenger_id} has no {checkin_type} on route {route.id}",
                ))

            waypoints = list(route.waypoints)
            if passenger.waypoint_index >= len(waypoints):
                return abort(OperationResult.fail(
                    ResultCode.NOT_FOUND,
                    f"Waypoint {passenger.waypoint_index} does not exist on route {route.id}",
                ))
            expected = waypoints[passenger.waypoint_index]

            geofence = validate_location(request.location, expected, tolerance_meters)
            if not geofence.valid:
                return abort(OperationResult.fail(
                    ResultCode.INVALID_LOCATION,
                    f"Location is {geofence.distance_meters:.0f}m from the expected point "
                    f"(too far by {geofence.excess_meters:.0f}m)",
                    distance_meters=round(geofence.distance_meters, 1),
                    tolerance_meters=geofence.tolerance_meters,
                ))

            if request.type is CheckinType.PICKUP:
                passenger_values = {"status": PassengerStatus.CHECKED_IN.value, "checkin_time": timestamp}
            else:
                passenger_values = {"status": PassengerStatus.CHECKED_OUT.value, "checkout_time": timestamp}
            passenger_values["updated_at"] = clock()

            # The route may have been cancelled since it was read above.
            if not crud.compare_and_set_route_passenger_status(
                db,
                str(passenger.id),
                passenger.status,
                passenger_values,
                route_status=RouteStatus.IN_PROGRESS.value,
            ):
                logger.warning(
                    f"[Checkin] Route {route.id} left {RouteStatus.IN_PROGRESS.value} while recording "
                    f"{checkin_type} for passenger {request.passenger_id}"
                )
                return abort(OperationResult.fail(
                    ResultCode.ROUTE_NOT_ACTIVE,
                    f"Route {route.id} is no longer {RouteStatus.IN_PROGRESS.value}",
                    route_id=str(route.id),
                ))

            checkin = crud.create_checkin(
                db,
                id=id_factory(),
                company_id=auth.company_id,
                route_id=str(route.id),
                passenger_id=request.passenger_id,
                driver_id=auth.user_id,
                type=checkin_type,
                latitude=request.location.latitude,
                longitude=request.location.longitude,
                timestamp=timestamp,
                status=CheckinStatus.CONFIRMED.value,
                distance_meters=round(geofence.distance_meters, 1),
            )

            crud.add_audit_log(
                db,
                company_id=auth.company_id,
                action="checkin_processed",
                performed_by=auth.user_id,
                entity_type="checkin",
                entity_id=str(checkin.id),
                details={
                    "route_id": str(route.id),
                    "passenger_id": request.passenger_id,
                    "type": checkin_type,
                    "location": request.location.model_dump(),
                    "distance_meters": round(geofence.distance_meters, 1),
                },
                timestamp=clock(),
                log_id=id_factory(),
            )
            db.commit()
        except SQLAlchemyError:
            db.rollback()
            logger.exception(
                f"[Checkin] Failed to record {checkin_type} for passenger {request.passenger_id} "
                f"on route {request.route_id}"
            )
            raise

    logger.info(
        f"[Checkin] {checkin_type} recorded for passenger {request.passenger_id} on route {request.route_id} "
        f"({geofence.distance_meters:.1f}m from waypoint)"
    )
    return OperationResult.ok(
        "Pickup recorded" if request.type is CheckinType.PICKUP else "Dropoff recorded",
        checkin_id=str(checkin.id),
        timestamp=timestamp.isoformat(),
        distance_meters=round(geofence.distance_meters, 1),
    )


def validate_checkin(db: Session, route_id: str, passenger_id: str, auth: AuthContext) -> OperationResult:
    """
    Pre-check shown before the driver confirms a check-in.

    Reports which check-ins the passenger already has on the route and the
    next expected action: ``pickup``, ``dropoff`` or ``completed``.
    """
    if not auth.can(actions.CHECKIN_READ):
        return OperationResult.fail(ResultCode.FORBIDDEN)

    route = crud.get_route(db, route_id, company_id=auth.company_id)
    if route is None:
        return OperationResult.fail(ResultCode.NOT_FOUND, f"Route {route_id} not found")
    if route.status != RouteStatus.IN_PROGRESS.value:
        return _route_not_active(route)

    assignments = crud.passenger_on_route(db, str(route.id), passenger_id)
    if not assignments:
        return OperationResult.fail(ResultCode.NOT_FOUND, f"Passenger {passenger_id} is not on route {route_id}")

    recorded = {c.type for c in crud.list_checkins_for_passenger(db, str(route.id), passenger_id)}
    has_pickup = CheckinType.PICKUP.value in recorded
    has_dropoff = CheckinType.DROPOFF.value in recorded

    if not has_pickup:
        next_action = CheckinType.PICKUP.value
    elif not has_dropoff:
        next_action = CheckinType.DROPOFF.value
    else:
        next_action = "completed"

    waypoints = list(route.waypoints)
    expected_locations = {}
    for assignment in assignments:
        if assignment.waypoint_index < len(waypoints):
            wp = waypoints[assignment.waypoint_index]
            expected_locations[assignment.type] = {
                "latitude": wp.latitude,
                "longitude": wp.longitude,
                "address": wp.address,
            }

    return OperationResult.ok(
        "Check-in can proceed" if next_action != "completed" else "All check-ins recorded",
        valid=True,
        route_status=route.status,
        passenger={
            "id": passenger_id,
            "statuses": {a.type: a.status for a in assignments},
            "expected_locations": expected_locations,
        },
        checkins={"pickup": has_pickup, "dropoff": has_dropoff},
        next_action=next_action,
    )


def get_checkin_history(
    db: Session,
    query: Union[CheckinHistoryQuery, Dict[str, Any], None],
    auth: AuthContext,
) -> OperationResult:
    if not auth.can(actions.CHECKIN_READ):
        return OperationResult.fail(ResultCode.FORBIDDEN)

    if not isinstance(query, CheckinHistoryQuery):
        try:
            query = CheckinHistoryQuery.model_validate(query or {})
        except ValidationError as e:
            return OperationResult.invalid(e.errors())

    checkins = crud.list_checkins(
        db,
        auth.company_id,
        route_id=query.route_id,
        passenger_id=query.passenger_id,
        start_date=to_utc_naive(query.start_date),
        end_date=to_utc_naive(query.end_date),
        limit=query.limit,
    )
    return OperationResult.ok(
        "Check-in history retrieved",
        checkins=[CheckinResponse.model_validate(c).model_dump(mode="json") for c in checkins],
        count=len(checkins),
    )


def dispute_checkin(
    db: Session,
    checkin_id: str,
    reason: str,
    auth: AuthContext,
    clock: Clock = utc_now,
    id_factory: IdFactory = new_id,
) -> OperationResult:
    """Flag a confirmed check-in as disputed. Nothing else about it changes."""
    if not auth.can(actions.CHECKIN_DISPUTE):
        return OperationResult.fail(ResultCode.FORBIDDEN)
    if not reason or not reason.strip():
        return OperationResult.fail(ResultCode.VALIDATION_ERROR, "reason is required")

    checkin = crud.get_checkin(db, checkin_id, company_id=auth.company_id)
    if checkin is None:
        return OperationResult.fail(ResultCode.NOT_FOUND, f"Check-in {checkin_id} not found")

    current = checkin.status
    invalid = OperationResult.fail(
        ResultCode.INVALID_TRANSITION,
        f"Invalid check-in status transition: {current} -> {CheckinStatus.DISPUTED.value}",
        previous_status=current,
        requested_status=CheckinStatus.DISPUTED.value,
    )
    if current != CheckinStatus.CONFIRMED.value:
        return invalid

    now: datetime = clock()
    try:
        updated = crud.compare_and_set_checkin_status(
            db,
            str(checkin.id),
            CheckinStatus.CONFIRMED.value,
            {"status": CheckinStatus.DISPUTED.value, "dispute_reason": reason.strip(), "updated_at": now},
        )
        if not updated:
            db.rollback()
            return invalid

        crud.add_audit_log(
            db,
            company_id=auth.company_id,
            action="checkin_disputed",
            performed_by=auth.user_id,
            entity_type="checkin",
            entity_id=str(checkin.id),
            details={"reason": reason.strip(), "route_id": checkin.route_id, "passenger_id": checkin.passenger_id},
            timestamp=now,
            log_id=id_factory(),
        )
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception(f"[Checkin] Failed to dispute check-in {checkin_id}")
        raise

    logger.info(f"[Checkin] Check-in {checkin_id} disputed by {auth.user_id}")
    return OperationResult.ok(
        "Check-in disputed",
        checkin_id=str(checkin_id),
        previous_status=CheckinStatus.CONFIRMED.value,
        new_status=CheckinStatus.DISPUTED.value,
    )
