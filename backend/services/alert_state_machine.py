"""
Alert lifecycle: active -> acknowledged -> resolved | dismissed.

``resolved`` and ``dismissed`` are terminal. An active alert may also be
resolved or dismissed without being acknowledged first.
"""

import logging
from typing import Dict, FrozenSet, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from db import crud
from models.results import OperationResult, ResultCode
from models.status import AlertStatus
from services import auth as actions
from services.auth import AuthContext
from services.route_state_machine import invalid_transition
from services.runtime import Clock, IdFactory, new_id, utc_now

logger = logging.getLogger(__name__)

ALERT_TRANSITIONS: Dict[AlertStatus, FrozenSet[AlertStatus]] = {
    AlertStatus.ACTIVE: frozenset({AlertStatus.ACKNOWLEDGED, AlertStatus.RESOLVED, AlertStatus.DISMISSED}),
    AlertStatus.ACKNOWLEDGED: frozenset({AlertStatus.RESOLVED, AlertStatus.DISMISSED}),
    AlertStatus.RESOLVED: frozenset(),
    AlertStatus.DISMISSED: frozenset(),
}


def can_transition(current: AlertStatus, target: AlertStatus) -> bool:
    return AlertStatus(target) in ALERT_TRANSITIONS.get(AlertStatus(current), frozenset())


class AlertStateMachine:
    def __init__(self, db: Session, clock: Clock = utc_now, id_factory: IdFactory = new_id) -> None:
        self.db = db
        self.clock = clock
        self.id_factory = id_factory

    def apply(
        self,
        alert_id: str,
        target: AlertStatus,
        auth: AuthContext,
        resolution: Optional[str] = None,
        resolved_by: Optional[str] = None,
    ) -> OperationResult:
        """
        Move an alert to ``target``.

        ``resolution`` is stored as the resolution text when resolving and as
        the dismissal reason when dismissing.
        """
        target = AlertStatus(target)
        if not auth.can(actions.ALERT_UPDATE_STATUS):
            return OperationResult.fail(ResultCode.FORBIDDEN, alert_id=alert_id)

        alert = crud.get_alert(self.db, alert_id, company_id=auth.company_id)
        if alert is None:
            return OperationResult.fail(ResultCode.NOT_FOUND, f"Alert {alert_id} not found", alert_id=alert_id)

        current = AlertStatus(alert.status)
        if not can_transition(current, target):
            return invalid_transition(current.value, target.value, subject="alert")

        now = self.clock()
        values = {"status": target.value, "updated_at": now}
        if target is AlertStatus.ACKNOWLEDGED:
            values["acknowledged_by"] = auth.user_id
            values["acknowledged_at"] = now
        elif target is AlertStatus.RESOLVED:
            values["resolved_by"] = resolved_by or auth.user_id
            values["resolved_at"] = now
            if resolution:
                values["resolution"] = resolution
        elif target is AlertStatus.DISMISSED:
            values["dismissed_by"] = auth.user_id
            values["dismissed_at"] = now
            if resolution:
                values["dismissal_reason"] = resolution

        try:
            if not crud.compare_and_set_alert_status(self.db, str(alert.id), current.value, values):
                self.db.rollback()
                logger.warning(f"[AlertFSM] Alert {alert.id} changed concurrently, {current.value} no longer current")
                return invalid_transition(current.value, target.value, subject="alert")

            crud.add_audit_log(
                self.db,
                company_id=alert.company_id,
                action="alert_status_updated",
                performed_by=auth.user_id,
                entity_type="alert",
                entity_id=str(alert.id),
                details={"previous_status": current.value, "new_status": target.value, "resolution": resolution},
                timestamp=now,
                log_id=self.id_factory(),
            )
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            logger.exception(f"[AlertFSM] Failed to apply {current.value} -> {target.value} on alert {alert_id}")
            raise

        logger.info(f"[AlertFSM] Alert {alert_id}: {current.value} -> {target.value}")
        return OperationResult.ok(
            "Alert status updated",
            alert_id=str(alert_id),
            previous_status=current.value,
            new_status=target.value,
        )
