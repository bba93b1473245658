"""
Caller capabilities.

The identity layer resolves the caller once per request into an
``AuthContext`` holding the set of actions it may perform. Services only
ever ask ``auth.can(action)``; they never look at role names.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, FrozenSet, Optional

ROUTE_SCHEDULE = "route:schedule"
ROUTE_READ = "route:read"
ROUTE_READ_OWN = "route:read_own"
ROUTE_UPDATE_STATUS = "route:update_status"
ROUTE_UPDATE_OWN_STATUS = "route:update_own_status"
CHECKIN_CREATE = "checkin:create"
CHECKIN_READ = "checkin:read"
CHECKIN_DISPUTE = "checkin:dispute"
ALERT_CREATE = "alert:create"
ALERT_CREATE_OPERATIONAL = "alert:create_operational"
ALERT_UPDATE_STATUS = "alert:update_status"
ALERT_READ = "alert:read"

_MANAGEMENT_ACTIONS = frozenset({
    ROUTE_SCHEDULE,
    ROUTE_READ,
    ROUTE_UPDATE_STATUS,
    CHECKIN_CREATE,
    CHECKIN_READ,
    CHECKIN_DISPUTE,
    ALERT_CREATE,
    ALERT_UPDATE_STATUS,
    ALERT_READ,
})

_DRIVER_ACTIONS = frozenset({
    ROUTE_READ_OWN,
    ROUTE_UPDATE_OWN_STATUS,
    CHECKIN_CREATE,
    CHECKIN_READ,
    ALERT_CREATE_OPERATIONAL,
})

ROLE_CAPABILITIES: Dict[str, FrozenSet[str]] = {
    "super_admin": _MANAGEMENT_ACTIONS,
    "admin": _MANAGEMENT_ACTIONS,
    "manager": _MANAGEMENT_ACTIONS,
    "driver": _DRIVER_ACTIONS,
}

# Alert types a driver may raise from the road.
OPERATIONAL_ALERT_TYPES = frozenset({"vehicle_breakdown", "emergency", "passenger_issue", "route_delay"})


@dataclass(frozen=True)
class AuthContext:
    user_id: str
    company_id: str
    allowed_actions: FrozenSet[str] = field(default_factory=frozenset)
    role: Optional[str] = None

    @classmethod
    def for_role(cls, user_id: str, company_id: str, role: str) -> "AuthContext":
        """Resolve a role name into its capability set (unknown roles get none)."""
        normalized = (role or "").strip().lower()
        return cls(
            user_id=user_id,
            company_id=company_id,
            allowed_actions=ROLE_CAPABILITIES.get(normalized, frozenset()),
            role=normalized or None,
        )

    def can(self, action: str) -> bool:
        return action in self.allowed_actions
