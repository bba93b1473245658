"""
CRUD operations for Fleetline database.

Provides functions to create, read and update:
- Routes with waypoints and passenger records
- Check-ins
- Alerts
- Audit log entries

These functions add and flush but never commit: the service layer owns the
transaction so that multi-row changes are all-or-nothing.
"""

import logging
import uuid
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Tuple

from sqlalchemy import func, or_, select, text
from sqlalchemy.orm import Session, joinedload

from . import models

logger = logging.getLogger(__name__)


# =============================================================================
# Ids
# =============================================================================

def parse_id(value: Any) -> Optional[str]:
    """
    Canonical form of a UUID primary key, or None when ``value`` is not one.

    PostgreSQL rejects a malformed literal for a UUID column with DataError,
    so lookups check the id before it reaches the query.
    """
    try:
        return str(uuid.UUID(str(value)))
    except (TypeError, ValueError):
        return None


# =============================================================================
# Locking
# =============================================================================

def acquire_advisory_locks(db: Session, keys: Iterable[str]) -> None:
    """
    Take transaction-scoped advisory locks on PostgreSQL.

    Keys are locked in sorted order. No-op on other dialects, where the
    in-process keyed locks are the only serialization.
    """
    if db.get_bind().dialect.name != "postgresql":
        return
    for key in sorted(set(keys)):
        db.execute(text("SELECT pg_advisory_xact_lock(hashtext(:key))"), {"key": key})


# =============================================================================
# Route CRUD
# =============================================================================

def create_route(
    db: Session,
    *,
    route_id: str,
    company_id: str,
    vehicle_id: str,
    driver_id: str,
    start_time: datetime,
    end_time: datetime,
    estimated_duration: int,
    total_distance: float,
    waypoints: List[Dict[str, Any]],
    name: Optional[str] = None,
    notes: Optional[str] = None,
    created_by: Optional[str] = None,
    now: Optional[datetime] = None,
) -> models.RouteModel:
    """
    Create a new route with its waypoints.

    Args:
        db: Database session
        route_id: Identifier issued by the caller's id factory
        waypoints: Dicts with latitude, longitude, address and order

    Returns:
        Created RouteModel instance (flushed, not committed)
    """
    db_route = models.RouteModel(
        id=route_id,
        company_id=company_id,
        name=name,
        vehicle_id=vehicle_id,
        driver_id=driver_id,
        status="scheduled",
        start_time=start_time,
        end_time=end_time,
        estimated_duration=estimated_duration,
        total_distance=total_distance,
        passenger_count=0,
        notes=notes,
        created_by=created_by,
    )
    if now is not None:
        db_route.created_at = now
        db_route.updated_at = now

    for waypoint in waypoints:
        db_route.waypoints.append(
            models.WaypointModel(
                latitude=waypoint["latitude"],
                longitude=waypoint["longitude"],
                address=waypoint.get("address") or "",
                order=waypoint["order"],
            )
        )

    db.add(db_route)
    db.flush()

    logger.info(f"Created route {db_route.id} with {len(db_route.waypoints)} waypoints")
    return db_route


def add_route_passengers(
    db: Session,
    route: models.RouteModel,
    passengers: List[Dict[str, Any]],
    id_factory=None,
) -> List[models.RoutePassengerModel]:
    """Create the RoutePassenger rows for a route."""
    created = []
    for passenger in passengers:
        row = models.RoutePassengerModel(
            company_id=route.company_id,
            passenger_id=passenger["passenger_id"],
            waypoint_index=passenger["waypoint_index"],
            type=passenger["type"],
            status="pending",
        )
        if id_factory is not None:
            row.id = id_factory()
        route.passengers.append(row)
        created.append(row)

    route.passenger_count = len(route.passengers)
    db.flush()
    return created


def get_route(db: Session, route_id: str, company_id: Optional[str] = None) -> Optional[models.RouteModel]:
    """
    Get a route by ID with all its waypoints.

    Args:
        db: Database session
        route_id: Route ID
        company_id: When given, routes of other companies are not returned

    Returns:
        RouteModel instance or None (also for a malformed id)
    """
    route_id = parse_id(route_id)
    if route_id is None:
        return None

    query = db.query(models.RouteModel).options(
        joinedload(models.RouteModel.waypoints)
    ).filter(models.RouteModel.id == route_id)

    if company_id is not None:
        query = query.filter(models.RouteModel.company_id == company_id)

    return query.first()


def list_active_routes_for_resources(
    db: Session,
    company_id: str,
    vehicle_id: str,
    driver_id: str,
    active_statuses: Iterable[str],
    exclude_route_id: Optional[str] = None,
) -> List[models.RouteModel]:
    """
    Routes still holding ``vehicle_id`` or ``driver_id``.

    Returns routes of the company whose status is in ``active_statuses`` and
    that share the vehicle or the driver, ordered by start time.
    """
    query = db.query(models.RouteModel).filter(
        models.RouteModel.company_id == company_id,
        models.RouteModel.status.in_(list(active_statuses)),
        or_(
            models.RouteModel.vehicle_id == vehicle_id,
            models.RouteModel.driver_id == driver_id,
        ),
    )
    if exclude_route_id is not None:
        query = query.filter(models.RouteModel.id != exclude_route_id)

    return query.order_by(models.RouteModel.start_time).all()


def compare_and_set_route_status(
    db: Session,
    route_id: str,
    expected_status: str,
    values: Dict[str, Any],
) -> bool:
    """
    Conditionally update a route.

    The UPDATE only matches while the stored status equals
    ``expected_status``; returns False when another request got there first.
    """
    updated = db.query(models.RouteModel).filter(
        models.RouteModel.id == route_id,
        models.RouteModel.status == expected_status,
    ).update(values, synchronize_session=False)
    return updated == 1


def set_route_passenger_statuses(
    db: Session,
    route_id: str,
    from_statuses: Iterable[str],
    to_status: str,
    now: datetime,
) -> int:
    """Move every passenger row of a route in ``from_statuses`` to ``to_status``."""
    return db.query(models.RoutePassengerModel).filter(
        models.RoutePassengerModel.route_id == route_id,
        models.RoutePassengerModel.status.in_(list(from_statuses)),
    ).update({"status": to_status, "updated_at": now}, synchronize_session=False)


def get_route_passengers(db: Session, route_id: str) -> List[models.RoutePassengerModel]:
    return db.query(models.RoutePassengerModel).filter(
        models.RoutePassengerModel.route_id == route_id
    ).order_by(
        models.RoutePassengerModel.waypoint_index,
        models.RoutePassengerModel.passenger_id,
    ).all()


def get_route_passenger(
    db: Session,
    route_id: str,
    passenger_id: str,
    checkin_type: str,
) -> Optional[models.RoutePassengerModel]:
    """Look up a passenger row by its natural key (route, passenger, type)."""
    return db.query(models.RoutePassengerModel).filter(
        models.RoutePassengerModel.route_id == route_id,
        models.RoutePassengerModel.passenger_id == passenger_id,
        models.RoutePassengerModel.type == checkin_type,
    ).first()


def passenger_on_route(db: Session, route_id: str, passenger_id: str) -> List[models.RoutePassengerModel]:
    return db.query(models.RoutePassengerModel).filter(
        models.RoutePassengerModel.route_id == route_id,
        models.RoutePassengerModel.passenger_id == passenger_id,
    ).all()


def passenger_exists(db: Session, company_id: str, passenger_id: str) -> bool:
    """Whether the passenger is assigned to any route of the company."""
    query = db.query(models.RoutePassengerModel.id).filter(
        models.RoutePassengerModel.company_id == company_id,
        models.RoutePassengerModel.passenger_id == passenger_id,
    )
    return db.query(query.exists()).scalar()


def compare_and_set_route_passenger_status(
    db: Session,
    row_id: str,
    expected_status: str,
    values: Dict[str, Any],
    route_status: str,
) -> bool:
    """
    Update a passenger row only while it is still in ``expected_status`` and
    its route is still in ``route_status``.

    A cancellation committed in between moves the row to ``cancelled`` (and
    the route out of ``route_status``), so the update matches nothing.
    """
    active_route_ids = select(models.RouteModel.id).where(models.RouteModel.status == route_status)
    updated = db.query(models.RoutePassengerModel).filter(
        models.RoutePassengerModel.id == row_id,
        models.RoutePassengerModel.status == expected_status,
        models.RoutePassengerModel.route_id.in_(active_route_ids),
    ).update(values, synchronize_session=False)
    return updated == 1


# =============================================================================
# Check-in CRUD
# =============================================================================

def count_checkins_between(
    db: Session,
    route_id: str,
    passenger_id: str,
    checkin_type: str,
    window_start: datetime,
    window_end: datetime,
) -> int:
    """Count check-ins of the triple with ``window_start <= timestamp <= window_end``."""
    return db.query(func.count(models.CheckinModel.id)).filter(
        models.CheckinModel.route_id == route_id,
        models.CheckinModel.passenger_id == passenger_id,
        models.CheckinModel.type == checkin_type,
        models.CheckinModel.timestamp >= window_start,
        models.CheckinModel.timestamp <= window_end,
    ).scalar() or 0


def checkin_exists(db: Session, route_id: str, passenger_id: str, checkin_type: str) -> bool:
    query = db.query(models.CheckinModel.id).filter(
        models.CheckinModel.route_id == route_id,
        models.CheckinModel.passenger_id == passenger_id,
        models.CheckinModel.type == checkin_type,
    )
    return db.query(query.exists()).scalar()


def create_checkin(db: Session, **fields: Any) -> models.CheckinModel:
    db_checkin = models.CheckinModel(**fields)
    db.add(db_checkin)
    db.flush()
    return db_checkin


def get_checkin(db: Session, checkin_id: str, company_id: Optional[str] = None) -> Optional[models.CheckinModel]:
    checkin_id = parse_id(checkin_id)
    if checkin_id is None:
        return None
    query = db.query(models.CheckinModel).filter(models.CheckinModel.id == checkin_id)
    if company_id is not None:
        query = query.filter(models.CheckinModel.company_id == company_id)
    return query.first()


def list_checkins_for_passenger(db: Session, route_id: str, passenger_id: str) -> List[models.CheckinModel]:
    return db.query(models.CheckinModel).filter(
        models.CheckinModel.route_id == route_id,
        models.CheckinModel.passenger_id == passenger_id,
    ).order_by(models.CheckinModel.timestamp).all()


def list_checkins(
    db: Session,
    company_id: str,
    route_id: Optional[str] = None,
    passenger_id: Optional[str] = None,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    limit: int = 100,
) -> List[models.CheckinModel]:
    """
    Get check-in history, newest first.

    Args:
        db: Database session
        company_id: Tenant scope
        route_id, passenger_id: Optional equality filters
        start_date, end_date: Optional inclusive timestamp bounds
        limit: Maximum number of records to return
    """
    query = db.query(models.CheckinModel).filter(models.CheckinModel.company_id == company_id)

    if route_id:
        query = query.filter(models.CheckinModel.route_id == route_id)
    if passenger_id:
        query = query.filter(models.CheckinModel.passenger_id == passenger_id)
    if start_date:
        query = query.filter(models.CheckinModel.timestamp >= start_date)
    if end_date:
        query = query.filter(models.CheckinModel.timestamp <= end_date)

    return query.order_by(models.CheckinModel.timestamp.desc()).limit(limit).all()


def compare_and_set_checkin_status(
    db: Session,
    checkin_id: str,
    expected_status: str,
    values: Dict[str, Any],
) -> bool:
    updated = db.query(models.CheckinModel).filter(
        models.CheckinModel.id == checkin_id,
        models.CheckinModel.status == expected_status,
    ).update(values, synchronize_session=False)
    return updated == 1


# =============================================================================
# Alert CRUD
# =============================================================================

def create_alert(db: Session, **fields: Any) -> models.AlertModel:
    db_alert = models.AlertModel(**fields)
    db.add(db_alert)
    db.flush()
    return db_alert


def get_alert(db: Session, alert_id: str, company_id: Optional[str] = None) -> Optional[models.AlertModel]:
    alert_id = parse_id(alert_id)
    if alert_id is None:
        return None
    query = db.query(models.AlertModel).filter(models.AlertModel.id == alert_id)
    if company_id is not None:
        query = query.filter(models.AlertModel.company_id == company_id)
    return query.first()


def find_open_alerts(
    db: Session,
    company_id: str,
    alert_type: str,
    open_statuses: Iterable[str],
    entity_type: Optional[str] = None,
    entity_id: Optional[str] = None,
) -> List[models.AlertModel]:
    """Open alerts of the same type raised for the same entity (or for none)."""
    query = db.query(models.AlertModel).filter(
        models.AlertModel.company_id == company_id,
        models.AlertModel.type == alert_type,
        models.AlertModel.status.in_(list(open_statuses)),
    )
    if entity_type is None:
        query = query.filter(models.AlertModel.entity_type.is_(None))
    else:
        query = query.filter(models.AlertModel.entity_type == entity_type)
    if entity_id is None:
        query = query.filter(models.AlertModel.entity_id.is_(None))
    else:
        query = query.filter(models.AlertModel.entity_id == entity_id)
    return query.all()


def compare_and_set_alert_status(
    db: Session,
    alert_id: str,
    expected_status: str,
    values: Dict[str, Any],
) -> bool:
    updated = db.query(models.AlertModel).filter(
        models.AlertModel.id == alert_id,
        models.AlertModel.status == expected_status,
    ).update(values, synchronize_session=False)
    return updated == 1


def list_alerts(
    db: Session,
    company_id: str,
    statuses: Optional[List[str]] = None,
    severities: Optional[List[str]] = None,
    types: Optional[List[str]] = None,
    entity_type: Optional[str] = None,
    entity_id: Optional[str] = None,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    limit: int = 50,
    offset: int = 0,
) -> Tuple[List[models.AlertModel], int]:
    """
    Get alerts with filters and pagination, newest first.

    Returns:
        (page of AlertModel instances, total matching the filters)
    """
    query = db.query(models.AlertModel).filter(models.AlertModel.company_id == company_id)

    if statuses:
        query = query.filter(models.AlertModel.status.in_(statuses))
    if severities:
        query = query.filter(models.AlertModel.severity.in_(severities))
    if types:
        query = query.filter(models.AlertModel.type.in_(types))
    if entity_type:
        query = query.filter(models.AlertModel.entity_type == entity_type)
    if entity_id:
        query = query.filter(models.AlertModel.entity_id == entity_id)
    if start_date:
        query = query.filter(models.AlertModel.created_at >= start_date)
    if end_date:
        query = query.filter(models.AlertModel.created_at <= end_date)

    total = query.count()
    alerts = query.order_by(models.AlertModel.created_at.desc()).offset(offset).limit(limit).all()
    return alerts, total


def alert_statistics(db: Session, company_id: str) -> Dict[str, int]:
    """Counts of the company's alerts per status and per severity."""
    stats: Dict[str, int] = {"total": 0}

    by_status = db.query(models.AlertModel.status, func.count(models.AlertModel.id)).filter(
        models.AlertModel.company_id == company_id
    ).group_by(models.AlertModel.status).all()
    for status, count in by_status:
        stats[status] = count
        stats["total"] += count

    by_severity = db.query(models.AlertModel.severity, func.count(models.AlertModel.id)).filter(
        models.AlertModel.company_id == company_id
    ).group_by(models.AlertModel.severity).all()
    for severity, count in by_severity:
        stats[severity] = count

    return stats


# =============================================================================
# Audit log
# =============================================================================

def add_audit_log(
    db: Session,
    *,
    company_id: str,
    action: str,
    performed_by: Optional[str],
    entity_type: str,
    entity_id: str,
    details: Optional[Dict[str, Any]] = None,
    timestamp: Optional[datetime] = None,
    log_id: Optional[str] = None,
) -> models.AuditLogModel:
    entry = models.AuditLogModel(
        company_id=company_id,
        action=action,
        performed_by=performed_by,
        entity_type=entity_type,
        entity_id=entity_id,
        details=details or {},
    )
    if timestamp is not None:
        entry.timestamp = timestamp
    if log_id is not None:
        entry.id = log_id
    db.add(entry)
    return entry


def get_audit_logs(db: Session, entity_type: str, entity_id: str) -> List[models.AuditLogModel]:
    return db.query(models.AuditLogModel).filter(
        models.AuditLogModel.entity_type == entity_type,
        models.AuditLogModel.entity_id == entity_id,
    ).order_by(models.AuditLogModel.timestamp).all()
