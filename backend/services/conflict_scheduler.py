"""
Double-booking detection for vehicles and drivers.

A candidate booking conflicts with an existing route when both are still
active, they share the vehicle or the driver, and their time windows
overlap under the half-open rule: ``[start, end)`` intervals touching at an
endpoint do not overlap.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Iterable, Optional

from models.results import ConflictResult
from models.status import ACTIVE_ROUTE_STATUSES

logger = logging.getLogger(__name__)

_ACTIVE_VALUES = {status.value for status in ACTIVE_ROUTE_STATUSES}


@dataclass(frozen=True)
class BookingWindow:
    """Vehicle + driver requested for ``[start, end)``."""
    vehicle_id: str
    driver_id: str
    start: datetime
    end: datetime


def intervals_overlap(start_a: datetime, end_a: datetime, start_b: datetime, end_b: datetime) -> bool:
    """True iff the half-open intervals ``[start_a, end_a)`` and ``[start_b, end_b)`` intersect."""
    return start_a < end_b and end_a > start_b


def _status_value(status: Any) -> str:
    return getattr(status, "value", status)


def check_conflict(
    candidate: BookingWindow,
    existing_routes: Iterable[Any],
    exclude_route_id: Optional[str] = None,
) -> ConflictResult:
    """
    Find the first existing route that double-books the candidate.

    Args:
        candidate: Requested vehicle, driver and window
        existing_routes: Objects exposing id, status, vehicle_id, driver_id,
            start_time and end_time (ORM rows or equivalents)
        exclude_route_id: Route to ignore, e.g. the route being rescheduled

    Returns:
        ConflictResult naming the conflicting route and the shared resource
        (the vehicle is reported when both are shared).
    """
    candidates = [
        route for route in existing_routes
        if _status_value(route.status) in _ACTIVE_VALUES
        and (exclude_route_id is None or str(route.id) != str(exclude_route_id))
        and (route.vehicle_id == candidate.vehicle_id or route.driver_id == candidate.driver_id)
    ]
    candidates.sort(key=lambda r: r.start_time)

    for route in candidates:
        if not intervals_overlap(candidate.start, candidate.end, route.start_time, route.end_time):
            continue

        if route.vehicle_id == candidate.vehicle_id:
            shared, resource_id = "vehicle", candidate.vehicle_id
        else:
            shared, resource_id = "driver", candidate.driver_id

        logger.info(
            f"[Conflict] {shared} {resource_id} already booked on route {route.id} "
            f"({route.start_time:%Y-%m-%d %H:%M} - {route.end_time:%H:%M})"
        )
        return ConflictResult(
            conflict=True,
            conflicting_route_id=str(route.id),
            shared_resource=shared,
            resource_id=resource_id,
        )

    return ConflictResult(conflict=False)


def describe_conflict(result: ConflictResult) -> str:
    """Human-readable message for a SCHEDULING_CONFLICT response."""
    return (
        f"Scheduling conflict: {result.shared_resource} {result.resource_id} "
        f"is already booked on route {result.conflicting_route_id}"
    )
