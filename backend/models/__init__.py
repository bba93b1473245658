"""
Modelos de dominio para Fleetline.
"""

from .geo import Coordinates, GeofenceResult
from .results import ConflictResult, DEFAULT_MESSAGES, OperationResult, ResultCode
from .status import (
    ACTIVE_ROUTE_STATUSES,
    NON_TERMINAL_PASSENGER_STATUSES,
    OPEN_ALERT_STATUSES,
    AlertSeverity,
    AlertStatus,
    CheckinStatus,
    CheckinType,
    EntityType,
    PassengerStatus,
    RouteStatus,
)

__all__ = [
    "Coordinates",
    "GeofenceResult",
    "ConflictResult",
    "DEFAULT_MESSAGES",
    "OperationResult",
    "ResultCode",
    "ACTIVE_ROUTE_STATUSES",
    "NON_TERMINAL_PASSENGER_STATUSES",
    "OPEN_ALERT_STATUSES",
    "AlertSeverity",
    "AlertStatus",
    "CheckinStatus",
    "CheckinType",
    "EntityType",
    "PassengerStatus",
    "RouteStatus",
]
