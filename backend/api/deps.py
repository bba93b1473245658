"""
Shared dependencies for the API routers.

- Caller identity from the ``X-User-Id`` / ``X-Company-Id`` / ``X-User-Role``
  headers set by the gateway
- Fleet registry (optional, from FLEET_REGISTRY_PATH)
- OperationResult -> HTTP response mapping
"""

from __future__ import annotations

from functools import lru_cache
from typing import Dict, Optional

from fastapi import Header, HTTPException, status
from fastapi.responses import JSONResponse

from models.results import OperationResult, ResultCode
from services.auth import AuthContext
from services.fleet_registry import FleetRegistry, get_fleet_registry

STATUS_BY_CODE: Dict[ResultCode, int] = {
    ResultCode.VALIDATION_ERROR: 422,
    ResultCode.INVALID_LOCATION: 422,
    ResultCode.SCHEDULING_CONFLICT: status.HTTP_409_CONFLICT,
    ResultCode.INVALID_TRANSITION: status.HTTP_409_CONFLICT,
    ResultCode.DUPLICATE_CHECKIN: status.HTTP_409_CONFLICT,
    ResultCode.ALREADY_CHECKED_IN: status.HTTP_409_CONFLICT,
    ResultCode.ROUTE_NOT_ACTIVE: status.HTTP_409_CONFLICT,
    ResultCode.DUPLICATE_ALERT: status.HTTP_409_CONFLICT,
    ResultCode.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ResultCode.FORBIDDEN: status.HTTP_403_FORBIDDEN,
}


def get_auth_context(
    x_user_id: Optional[str] = Header(default=None),
    x_company_id: Optional[str] = Header(default=None),
    x_user_role: Optional[str] = Header(default=None),
) -> AuthContext:
    if not x_user_id or not x_company_id or not x_user_role:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing X-User-Id, X-Company-Id or X-User-Role header",
        )
    return AuthContext.for_role(x_user_id, x_company_id, x_user_role)


@lru_cache(maxsize=1)
def _configured_registry() -> Optional[FleetRegistry]:
    return get_fleet_registry()


def get_fleet() -> Optional[FleetRegistry]:
    return _configured_registry()


def to_response(result: OperationResult, success_status: int = status.HTTP_200_OK) -> JSONResponse:
    """Serialize a result with the HTTP status matching its code."""
    if result.success:
        status_code = success_status
    else:
        status_code = STATUS_BY_CODE.get(result.code, status.HTTP_400_BAD_REQUEST)
    return JSONResponse(status_code=status_code, content=result.to_dict())
