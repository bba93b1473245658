"""
Pydantic schemas for database operations.

These schemas are used for:
- Request validation (input data)
- Response serialization (output data)
- Type safety between API and database

Note: status enumerations and result types live in the ``models`` package.
"""

from datetime import datetime
from typing import List, Optional, Dict, Any

from pydantic import BaseModel, Field

from models.geo import Coordinates
from models.status import (
    AlertSeverity, AlertStatus, CheckinType, EntityType, RouteStatus
)


# =============================================================================
# Waypoint / passenger schemas
# =============================================================================

class WaypointCreate(BaseModel):
    """Schema for a waypoint supplied at scheduling time"""
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)
    address: str = Field(default="", max_length=500)
    order: int = Field(..., ge=0, description="Sequence position on the route")


class WaypointResponse(BaseModel):
    latitude: float
    longitude: float
    address: str = ""
    order: int

    class Config:
        from_attributes = True


class RoutePassengerCreate(BaseModel):
    """Schema for a passenger assignment supplied at scheduling time"""
    passenger_id: str = Field(..., min_length=1, max_length=128)
    waypoint_index: int = Field(..., ge=0, description="Index into the ordered waypoint list")
    type: CheckinType


class RoutePassengerResponse(BaseModel):
    id: str
    route_id: str
    passenger_id: str
    waypoint_index: int
    type: str
    status: str
    checkin_time: Optional[datetime] = None
    checkout_time: Optional[datetime] = None
    notes: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


# =============================================================================
# Route schemas
# =============================================================================

class ScheduleRouteRequest(BaseModel):
    """Schema for POST /api/routes - Schedule a new route"""
    name: Optional[str] = Field(None, max_length=200)
    vehicle_id: str = Field(..., min_length=1, max_length=128)
    driver_id: str = Field(..., min_length=1, max_length=128)
    start_time: datetime
    end_time: datetime
    waypoints: List[WaypointCreate] = Field(default_factory=list)
    passengers: List[RoutePassengerCreate] = Field(default_factory=list)
    notes: Optional[str] = Field(None, max_length=2000)

    class Config:
        json_schema_extra = {
            "example": {
                "name": "Centro - Shopping",
                "vehicle_id": "vehicle-1",
                "driver_id": "driver-1",
                "start_time": "2026-03-02T09:00:00Z",
                "end_time": "2026-03-02T10:00:00Z",
                "waypoints": [
                    {"latitude": -23.5505, "longitude": -46.6333, "address": "Praça da Sé", "order": 1},
                    {"latitude": -23.5618, "longitude": -46.6565, "address": "Av. Paulista", "order": 2},
                ],
                "passengers": [
                    {"passenger_id": "passenger-1", "waypoint_index": 0, "type": "pickup"},
                    {"passenger_id": "passenger-1", "waypoint_index": 1, "type": "dropoff"},
                ],
            }
        }


class RouteStatusUpdateRequest(BaseModel):
    """Schema for PATCH /api/routes/{route_id}/status"""
    status: RouteStatus
    actual_start_time: Optional[datetime] = None
    actual_end_time: Optional[datetime] = None
    notes: Optional[str] = Field(None, max_length=2000)


class RouteResponse(BaseModel):
    """Schema for route response from database"""
    id: str
    company_id: str
    name: Optional[str] = None
    vehicle_id: str
    driver_id: str
    status: str
    start_time: datetime
    end_time: datetime
    actual_start_time: Optional[datetime] = None
    actual_end_time: Optional[datetime] = None
    estimated_duration: int
    actual_duration: Optional[int] = None
    total_distance: float
    passenger_count: int
    notes: Optional[str] = None
    waypoints: List[WaypointResponse] = Field(default_factory=list)

    class Config:
        from_attributes = True


# =============================================================================
# Check-in schemas
# =============================================================================

class CheckinRequest(BaseModel):
    """Schema for POST /api/checkins"""
    route_id: str = Field(..., min_length=1)
    passenger_id: str = Field(..., min_length=1)
    type: CheckinType
    location: Coordinates
    timestamp: Optional[datetime] = Field(None, description="Defaults to the server time")


class CheckinValidateRequest(BaseModel):
    """Schema for POST /api/checkins/validate"""
    route_id: str = Field(..., min_length=1)
    passenger_id: str = Field(..., min_length=1)


class CheckinDisputeRequest(BaseModel):
    reason: str = Field(..., min_length=1, max_length=2000)


class CheckinHistoryQuery(BaseModel):
    route_id: Optional[str] = None
    passenger_id: Optional[str] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    limit: int = Field(100, ge=1, le=1000)


class CheckinResponse(BaseModel):
    id: str
    route_id: str
    passenger_id: str
    driver_id: str
    type: str
    latitude: float
    longitude: float
    timestamp: datetime
    status: str
    distance_meters: Optional[float] = None
    dispute_reason: Optional[str] = None

    class Config:
        from_attributes = True


# =============================================================================
# Alert schemas
# =============================================================================

class AlertLocation(BaseModel):
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)
    address: str = ""


class AlertCreateRequest(BaseModel):
    """Schema for POST /api/alerts"""
    type: str = Field(..., min_length=1, max_length=80)
    severity: AlertSeverity
    title: str = Field(..., min_length=1, max_length=200)
    description: str = Field(..., min_length=1, max_length=4000)
    entity_type: Optional[EntityType] = None
    entity_id: Optional[str] = Field(None, max_length=128)
    location: Optional[AlertLocation] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)


class AlertStatusUpdateRequest(BaseModel):
    """Schema for PATCH /api/alerts/{alert_id}/status"""
    status: AlertStatus
    resolution: Optional[str] = Field(None, max_length=4000)
    resolved_by: Optional[str] = Field(None, max_length=128)


class AlertListQuery(BaseModel):
    status: List[AlertStatus] = Field(default_factory=list)
    severity: List[AlertSeverity] = Field(default_factory=list)
    type: List[str] = Field(default_factory=list)
    entity_type: Optional[EntityType] = None
    entity_id: Optional[str] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    limit: Optional[int] = Field(None, ge=1, le=500)
    offset: int = Field(0, ge=0)


class AlertResponse(BaseModel):
    id: str
    company_id: str
    type: str
    severity: str
    status: str
    title: str
    description: str
    entity_type: Optional[str] = None
    entity_id: Optional[str] = None
    location: Optional[Dict[str, Any]] = None
    metadata: Dict[str, Any] = Field(default_factory=dict, validation_alias="alert_metadata")
    created_by: Optional[str] = None
    acknowledged_by: Optional[str] = None
    acknowledged_at: Optional[datetime] = None
    resolved_by: Optional[str] = None
    resolved_at: Optional[datetime] = None
    resolution: Optional[str] = None
    dismissed_by: Optional[str] = None
    dismissed_at: Optional[datetime] = None
    dismissal_reason: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True
        populate_by_name = True
