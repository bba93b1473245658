"""
Modelos de resultado para las operaciones del motor de viajes.

Every public operation returns an ``OperationResult`` carrying one of the
``ResultCode`` values instead of raising for business-rule violations.
"""

from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class ResultCode(str, Enum):
    """Codigos de error reconocidos por los clientes."""

    VALIDATION_ERROR = "VALIDATION_ERROR"
    SCHEDULING_CONFLICT = "SCHEDULING_CONFLICT"
    INVALID_TRANSITION = "INVALID_TRANSITION"
    DUPLICATE_CHECKIN = "DUPLICATE_CHECKIN"
    ALREADY_CHECKED_IN = "ALREADY_CHECKED_IN"
    INVALID_LOCATION = "INVALID_LOCATION"
    NOT_FOUND = "NOT_FOUND"
    FORBIDDEN = "FORBIDDEN"
    ROUTE_NOT_ACTIVE = "ROUTE_NOT_ACTIVE"
    DUPLICATE_ALERT = "DUPLICATE_ALERT"


DEFAULT_MESSAGES: Dict[ResultCode, str] = {
    ResultCode.VALIDATION_ERROR: "The request is missing required fields or contains invalid values",
    ResultCode.SCHEDULING_CONFLICT: "The vehicle or driver is already booked in that time window",
    ResultCode.INVALID_TRANSITION: "The requested status change is not allowed",
    ResultCode.DUPLICATE_CHECKIN: "Duplicate check-in detected",
    ResultCode.ALREADY_CHECKED_IN: "This check-in was already recorded for the passenger on this route",
    ResultCode.INVALID_LOCATION: "Check-in location is too far from the expected point",
    ResultCode.NOT_FOUND: "The referenced record does not exist",
    ResultCode.FORBIDDEN: "You are not allowed to perform this action",
    ResultCode.ROUTE_NOT_ACTIVE: "The route is no longer active",
    ResultCode.DUPLICATE_ALERT: "A similar alert is already open for this entity",
}


class ConflictResult(BaseModel):
    """Resultado del chequeo de solapamiento de horarios."""

    conflict: bool
    conflicting_route_id: Optional[str] = None
    shared_resource: Optional[str] = None  # 'vehicle' or 'driver'
    resource_id: Optional[str] = None


class OperationResult(BaseModel):
    """
    Resultado estructurado de una operacion publica.

    Serialized as ``{success, code?, message, ...payload}``.
    """

    success: bool = Field(..., description="La operacion se completo")
    code: Optional[ResultCode] = Field(None, description="Codigo de error si fallo")
    message: str = Field(..., description="Mensaje legible para el usuario")
    payload: Dict[str, Any] = Field(default_factory=dict, description="Datos adicionales")

    @classmethod
    def ok(cls, message: str, **payload: Any) -> "OperationResult":
        return cls(success=True, message=message, payload=payload)

    @classmethod
    def fail(cls, code: ResultCode, message: Optional[str] = None, **payload: Any) -> "OperationResult":
        return cls(
            success=False,
            code=code,
            message=message or DEFAULT_MESSAGES[code],
            payload=payload,
        )

    @classmethod
    def invalid(cls, errors: List[Dict[str, Any]]) -> "OperationResult":
        """
        VALIDATION_ERROR built from pydantic-style errors.

        Each error only keeps its location (as ``field``) and message so the
        payload stays JSON serializable.
        """
        details = [
            {
                "field": ".".join(str(part) for part in err.get("loc", ()) if part != "body"),
                "message": err.get("msg", ""),
            }
            for err in errors
        ]
        if details:
            first = details[0]
            message = f"{first['field']}: {first['message']}" if first["field"] else first["message"]
        else:
            message = DEFAULT_MESSAGES[ResultCode.VALIDATION_ERROR]
        return cls.fail(ResultCode.VALIDATION_ERROR, message, errors=details)

    def to_dict(self) -> dict:
        """Convierte el resultado a diccionario plano."""
        result: Dict[str, Any] = {
            "success": self.success,
            "message": self.message,
        }
        if self.code is not None:
            result["code"] = self.code.value
        result.update(self.payload)
        return result

    def __getitem__(self, key: str) -> Any:
        return self.to_dict()[key]
