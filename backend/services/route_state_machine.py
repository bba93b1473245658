"""
Route lifecycle.

    scheduled --> in_progress --> completed
        |              |
        +--> cancelled <+
                 |
                 +--> scheduled   (reschedule)

Every transition is applied as a compare-and-swap on the stored status and
committed together with its side effects (actual times, passenger cascade,
audit entry), so concurrent requests cannot both leave the same state and
readers never see a half-applied cascade.
"""

import logging
from datetime import datetime
from typing import Dict, FrozenSet, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from db import crud
from models.results import OperationResult, ResultCode
from models.status import NON_TERMINAL_PASSENGER_STATUSES, PassengerStatus, RouteStatus
from services import auth as actions
from services.auth import AuthContext
from services.conflict_scheduler import BookingWindow, check_conflict, describe_conflict
from services.locks import KeyedLocks, driver_key, keyed_locks, vehicle_key
from services.runtime import Clock, IdFactory, minutes_between, new_id, to_utc_naive, utc_now

logger = logging.getLogger(__name__)

ROUTE_TRANSITIONS: Dict[RouteStatus, FrozenSet[RouteStatus]] = {
    RouteStatus.SCHEDULED: frozenset({RouteStatus.IN_PROGRESS, RouteStatus.CANCELLED}),
    RouteStatus.IN_PROGRESS: frozenset({RouteStatus.COMPLETED, RouteStatus.CANCELLED}),
    RouteStatus.COMPLETED: frozenset(),
    RouteStatus.CANCELLED: frozenset({RouteStatus.SCHEDULED}),
}


def can_transition(current: RouteStatus, target: RouteStatus) -> bool:
    return RouteStatus(target) in ROUTE_TRANSITIONS.get(RouteStatus(current), frozenset())


def invalid_transition(current: str, target: str, subject: str = "route") -> OperationResult:
    return OperationResult.fail(
        ResultCode.INVALID_TRANSITION,
        f"Invalid {subject} status transition: {current} -> {target}",
        previous_status=current,
        requested_status=target,
    )


class RouteStateMachine:
    """Validates and applies route status changes."""

    def __init__(
        self,
        db: Session,
        clock: Clock = utc_now,
        id_factory: IdFactory = new_id,
        locks: Optional[KeyedLocks] = None,
    ) -> None:
        self.db = db
        self.clock = clock
        self.id_factory = id_factory
        self.locks = locks or keyed_locks

    def apply(
        self,
        route_id: str,
        target: RouteStatus,
        auth: AuthContext,
        actual_start_time: Optional[datetime] = None,
        actual_end_time: Optional[datetime] = None,
        notes: Optional[str] = None,
    ) -> OperationResult:
        """
        Move a route to ``target``.

        Args:
            route_id: Route to update
            target: Requested status
            auth: Caller capabilities
            actual_start_time: Start reported when entering in_progress
                (defaults to now); also used as the duration base on completion
            actual_end_time: End reported when entering completed (defaults to now)
            notes: Optional free text stored on the route

        Returns:
            OperationResult with previous/new status and cascade counts
        """
        target = RouteStatus(target)
        route = crud.get_route(self.db, route_id, company_id=auth.company_id)
        if route is None:
            return OperationResult.fail(ResultCode.NOT_FOUND, f"Route {route_id} not found", route_id=route_id)

        is_own_route = auth.can(actions.ROUTE_UPDATE_OWN_STATUS) and route.driver_id == auth.user_id
        if not (auth.can(actions.ROUTE_UPDATE_STATUS) or is_own_route):
            return OperationResult.fail(ResultCode.FORBIDDEN, route_id=route_id)

        current = RouteStatus(route.status)
        if not can_transition(current, target):
            return invalid_transition(current.value, target.value)

        now = self.clock()
        values = {"status": target.value, "updated_at": now}
        if notes:
            values["notes"] = notes

        actual_start = to_utc_naive(actual_start_time)
        if target is RouteStatus.IN_PROGRESS:
            values["actual_start_time"] = actual_start or now

        elif target is RouteStatus.COMPLETED:
            actual_end = to_utc_naive(actual_end_time) or now
            duration_base = actual_start or route.actual_start_time or route.start_time
            if actual_end < duration_base:
                return OperationResult.fail(
                    ResultCode.VALIDATION_ERROR,
                    "actual_end_time is earlier than the route start",
                    route_id=route_id,
                )
            if actual_start is not None:
                values["actual_start_time"] = actual_start
            values["actual_end_time"] = actual_end
            values["actual_duration"] = minutes_between(duration_base, actual_end)

        elif target is RouteStatus.SCHEDULED:
            values["actual_start_time"] = None
            values["actual_end_time"] = None
            values["actual_duration"] = None

        # Re-entering the active set competes with new bookings for the same resources.
        lock_keys = []
        if target is RouteStatus.SCHEDULED:
            lock_keys = [
                vehicle_key(route.company_id, route.vehicle_id),
                driver_key(route.company_id, route.driver_id),
            ]

        with self.locks.hold(lock_keys):
            try:
                if lock_keys:
                    crud.acquire_advisory_locks(self.db, lock_keys)
                    existing = crud.list_active_routes_for_resources(
                        self.db,
                        route.company_id,
                        route.vehicle_id,
                        route.driver_id,
                        active_statuses=[RouteStatus.SCHEDULED.value, RouteStatus.IN_PROGRESS.value],
                        exclude_route_id=str(route.id),
                    )
                    conflict = check_conflict(
                        BookingWindow(route.vehicle_id, route.driver_id, route.start_time, route.end_time),
                        existing,
                        exclude_route_id=str(route.id),
                    )
                    if conflict.conflict:
                        self.db.rollback()
                        return OperationResult.fail(
                            ResultCode.SCHEDULING_CONFLICT,
                            describe_conflict(conflict),
                            route_id=str(route.id),
                            conflicting_route_id=conflict.conflicting_route_id,
                            shared_resource=conflict.shared_resource,
                        )

                if not crud.compare_and_set_route_status(self.db, str(route.id), current.value, values):
                    self.db.rollback()
                    logger.warning(f"[RouteFSM] Route {route.id} changed concurrently, {current.value} no longer current")
                    return invalid_transition(current.value, target.value)

                cancelled_passengers = 0
                revived_passengers = 0
                if target is RouteStatus.CANCELLED:
                    cancelled_passengers = crud.set_route_passenger_statuses(
                        self.db,
                        str(route.id),
                        from_statuses=[s.value for s in NON_TERMINAL_PASSENGER_STATUSES],
                        to_status=PassengerStatus.CANCELLED.value,
                        now=now,
                    )
                elif target is RouteStatus.SCHEDULED:
                    revived_passengers = crud.set_route_passenger_statuses(
                        self.db,
                        str(route.id),
                        from_statuses=[PassengerStatus.CANCELLED.value],
                        to_status=PassengerStatus.PENDING.value,
                        now=now,
                    )

                crud.add_audit_log(
                    self.db,
                    company_id=route.company_id,
                    action="route_status_updated",
                    performed_by=auth.user_id,
                    entity_type="route",
                    entity_id=str(route.id),
                    details={
                        "previous_status": current.value,
                        "new_status": target.value,
                        "notes": notes,
                        "cancelled_passengers": cancelled_passengers,
                        "revived_passengers": revived_passengers,
                    },
                    timestamp=now,
                    log_id=self.id_factory(),
                )
                self.db.commit()
            except SQLAlchemyError:
                self.db.rollback()
                logger.exception(f"[RouteFSM] Failed to apply {current.value} -> {target.value} on route {route_id}")
                raise

        logger.info(f"[RouteFSM] Route {route_id}: {current.value} -> {target.value}")

        payload = {
            "route_id": str(route_id),
            "previous_status": current.value,
            "new_status": target.value,
        }
        if target is RouteStatus.CANCELLED:
            payload["cancelled_passengers"] = cancelled_passengers
        if target is RouteStatus.SCHEDULED:
            payload["revived_passengers"] = revived_passengers
        if target is RouteStatus.COMPLETED:
            payload["actual_duration"] = values["actual_duration"]

        return OperationResult.ok("Route status updated", **payload)
