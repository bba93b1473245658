"""
Operational alert service.

Alerts are raised by managers or, for a few operational types, by drivers
from the road. A non-critical alert is rejected while an open alert of the
same type already exists for the same entity; critical alerts always go
through.
"""

import logging
from typing import Any, Dict, Optional, Union

from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from config import config
from db import crud
from db.schemas import AlertCreateRequest, AlertListQuery, AlertResponse, AlertStatusUpdateRequest
from models.results import OperationResult, ResultCode
from models.status import AlertSeverity, AlertStatus, EntityType, OPEN_ALERT_STATUSES
from services import auth as actions
from services.alert_state_machine import AlertStateMachine
from services.auth import AuthContext, OPERATIONAL_ALERT_TYPES
from services.fleet_registry import FleetRegistry
from services.runtime import Clock, IdFactory, new_id, to_utc_naive, utc_now

logger = logging.getLogger(__name__)


def _entity_exists(
    db: Session,
    fleet: Optional[FleetRegistry],
    entity_type: EntityType,
    entity_id: str,
    company_id: str,
) -> bool:
    """
    Routes and passengers are looked up in the database, vehicles and drivers
    in the registry when one is wired. Without a registry vehicles and drivers
    are accepted as given.
    """
    if entity_type is EntityType.ROUTE:
        return crud.get_route(db, entity_id, company_id=company_id) is not None
    if entity_type is EntityType.PASSENGER:
        return crud.passenger_exists(db, company_id, entity_id)
    if fleet is not None and entity_type is EntityType.VEHICLE:
        return fleet.get_vehicle(entity_id) is not None
    if fleet is not None and entity_type is EntityType.DRIVER:
        return fleet.get_driver(entity_id) is not None
    return True


def create_alert(
    db: Session,
    request: Union[AlertCreateRequest, Dict[str, Any]],
    auth: AuthContext,
    fleet: Optional[FleetRegistry] = None,
    clock: Clock = utc_now,
    id_factory: IdFactory = new_id,
) -> OperationResult:
    """
    Raise a new alert in ``active`` status.

    Returns:
        OperationResult with ``alert_id`` and the stored ``alert``
    """
    if not (auth.can(actions.ALERT_CREATE) or auth.can(actions.ALERT_CREATE_OPERATIONAL)):
        return OperationResult.fail(ResultCode.FORBIDDEN)

    if not isinstance(request, AlertCreateRequest):
        try:
            request = AlertCreateRequest.model_validate(request)
        except ValidationError as e:
            return OperationResult.invalid(e.errors())

    if not auth.can(actions.ALERT_CREATE) and request.type not in OPERATIONAL_ALERT_TYPES:
        return OperationResult.fail(
            ResultCode.FORBIDDEN,
            f"Alert type '{request.type}' cannot be raised by drivers",
        )

    entity_type = request.entity_type.value if request.entity_type else None
    if (entity_type is None) != (request.entity_id is None):
        return OperationResult.fail(
            ResultCode.VALIDATION_ERROR,
            "entity_type and entity_id must be given together",
        )
    if entity_type and not _entity_exists(db, fleet, request.entity_type, request.entity_id, auth.company_id):
        return OperationResult.fail(ResultCode.NOT_FOUND, f"{entity_type} {request.entity_id} not found")

    try:
        open_alerts = crud.find_open_alerts(
            db,
            auth.company_id,
            request.type,
            open_statuses=[s.value for s in OPEN_ALERT_STATUSES],
            entity_type=entity_type,
            entity_id=request.entity_id,
        )
        if open_alerts and request.severity is not AlertSeverity.CRITICAL:
            db.rollback()
            return OperationResult.fail(
                ResultCode.DUPLICATE_ALERT,
                existing_alert_id=str(open_alerts[0].id),
            )

        now = clock()
        alert = crud.create_alert(
            db,
            id=id_factory(),
            company_id=auth.company_id,
            type=request.type,
            severity=request.severity.value,
            status=AlertStatus.ACTIVE.value,
            title=request.title,
            description=request.description,
            entity_type=entity_type,
            entity_id=request.entity_id,
            location=request.location.model_dump() if request.location else None,
            alert_metadata=request.metadata,
            created_by=auth.user_id,
            created_at=now,
            updated_at=now,
        )
        crud.add_audit_log(
            db,
            company_id=auth.company_id,
            action="alert_created",
            performed_by=auth.user_id,
            entity_type="alert",
            entity_id=str(alert.id),
            details={
                "type": request.type,
                "severity": request.severity.value,
                "entity_type": entity_type,
                "entity_id": request.entity_id,
            },
            timestamp=now,
            log_id=id_factory(),
        )
        db.commit()
        db.refresh(alert)
    except SQLAlchemyError:
        db.rollback()
        logger.exception(f"[Alerts] Failed to create {request.type} alert")
        raise

    if request.severity is AlertSeverity.CRITICAL:
        logger.warning(f"[Alerts] CRITICAL {request.type} alert {alert.id}: {request.title}")
    else:
        logger.info(f"[Alerts] {request.severity.value} {request.type} alert {alert.id} created")

    return OperationResult.ok(
        "Alert created",
        alert_id=str(alert.id),
        alert=AlertResponse.model_validate(alert).model_dump(mode="json"),
    )


def update_alert_status(
    db: Session,
    alert_id: str,
    request: Union[AlertStatusUpdateRequest, Dict[str, Any]],
    auth: AuthContext,
    clock: Clock = utc_now,
    id_factory: IdFactory = new_id,
) -> OperationResult:
    if not isinstance(request, AlertStatusUpdateRequest):
        try:
            request = AlertStatusUpdateRequest.model_validate(request)
        except ValidationError as e:
            return OperationResult.invalid(e.errors())

    machine = AlertStateMachine(db, clock=clock, id_factory=id_factory)
    return machine.apply(
        alert_id,
        request.status,
        auth,
        resolution=request.resolution,
        resolved_by=request.resolved_by,
    )


def list_alerts(
    db: Session,
    query: Union[AlertListQuery, Dict[str, Any], None],
    auth: AuthContext,
) -> OperationResult:
    """
    Alerts of the caller's company, newest first, with pagination and
    per-status / per-severity statistics over all of the company's alerts.
    """
    if not auth.can(actions.ALERT_READ):
        return OperationResult.fail(ResultCode.FORBIDDEN)

    if not isinstance(query, AlertListQuery):
        try:
            query = AlertListQuery.model_validate(query or {})
        except ValidationError as e:
            return OperationResult.invalid(e.errors())

    limit = query.limit or config.ALERTS_DEFAULT_LIMIT
    alerts, total = crud.list_alerts(
        db,
        auth.company_id,
        statuses=[s.value for s in query.status],
        severities=[s.value for s in query.severity],
        types=query.type,
        entity_type=query.entity_type.value if query.entity_type else None,
        entity_id=query.entity_id,
        start_date=to_utc_naive(query.start_date),
        end_date=to_utc_naive(query.end_date),
        limit=limit,
        offset=query.offset,
    )

    statistics = {"total": 0}
    statistics.update({s.value: 0 for s in AlertStatus})
    statistics.update({s.value: 0 for s in AlertSeverity})
    statistics.update(crud.alert_statistics(db, auth.company_id))

    return OperationResult.ok(
        "Alerts retrieved",
        alerts=[AlertResponse.model_validate(a).model_dump(mode="json") for a in alerts],
        pagination={
            "total": total,
            "limit": limit,
            "offset": query.offset,
            "has_more": query.offset + len(alerts) < total,
        },
        statistics=statistics,
    )
