"""
Estados y enumeraciones del dominio de transporte.

Route, passenger, check-in and alert lifecycles share these values between
the database layer, the state machines and the HTTP schemas.
"""

from enum import Enum


class RouteStatus(str, Enum):
    """Lifecycle of a scheduled route."""

    SCHEDULED = "scheduled"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class PassengerStatus(str, Enum):
    """Status of a passenger record on a route."""

    PENDING = "pending"
    CHECKED_IN = "checked_in"
    CHECKED_OUT = "checked_out"
    ABSENT = "absent"
    CANCELLED = "cancelled"


class CheckinType(str, Enum):
    PICKUP = "pickup"
    DROPOFF = "dropoff"


class CheckinStatus(str, Enum):
    CONFIRMED = "confirmed"
    DISPUTED = "disputed"
    CANCELLED = "cancelled"


class AlertSeverity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class AlertStatus(str, Enum):
    """Lifecycle of an operational alert."""

    ACTIVE = "active"
    ACKNOWLEDGED = "acknowledged"
    RESOLVED = "resolved"
    DISMISSED = "dismissed"


class EntityType(str, Enum):
    VEHICLE = "vehicle"
    DRIVER = "driver"
    ROUTE = "route"
    PASSENGER = "passenger"


# Routes in these states still hold their vehicle and driver.
ACTIVE_ROUTE_STATUSES = frozenset({RouteStatus.SCHEDULED, RouteStatus.IN_PROGRESS})

NON_TERMINAL_PASSENGER_STATUSES = frozenset({PassengerStatus.PENDING, PassengerStatus.CHECKED_IN})

OPEN_ALERT_STATUSES = frozenset({AlertStatus.ACTIVE, AlertStatus.ACKNOWLEDGED})
