"""
SQLAlchemy models for Fleetline database.

These models define the database schema for:
- Routes, their waypoints and passenger records
- Passenger check-ins
- Operational alerts
- Audit log entries
"""

from sqlalchemy import (
    Column, String, Integer, Float, DateTime,
    ForeignKey, JSON, Text, UniqueConstraint, Index
)
from sqlalchemy.orm import declarative_base, relationship
from sqlalchemy.dialects.postgresql import UUID as PGUUID
import uuid
from datetime import datetime

Base = declarative_base()


# Cross-database compatible types.
# PostgreSQL keeps native UUID, SQLite uses String fallback.
UUIDType = PGUUID(as_uuid=False).with_variant(String(36), "sqlite")


def _new_id() -> str:
    return str(uuid.uuid4())


class RouteModel(Base):
    """Ruta programada: un vehiculo y un conductor en una ventana de tiempo."""
    __tablename__ = "routes"
    __table_args__ = (
        Index("ix_routes_company_status", "company_id", "status"),
        Index("ix_routes_vehicle_window", "vehicle_id", "start_time", "end_time"),
        Index("ix_routes_driver_window", "driver_id", "start_time", "end_time"),
    )

    id = Column(UUIDType, primary_key=True, default=_new_id)
    company_id = Column(String, nullable=False, index=True)
    name = Column(String, nullable=True)
    vehicle_id = Column(String, nullable=False)
    driver_id = Column(String, nullable=False)
    status = Column(String, nullable=False, default="scheduled")
    start_time = Column(DateTime, nullable=False)
    end_time = Column(DateTime, nullable=False)
    actual_start_time = Column(DateTime, nullable=True)
    actual_end_time = Column(DateTime, nullable=True)
    estimated_duration = Column(Integer, nullable=False, default=0)  # minutes
    actual_duration = Column(Integer, nullable=True)  # minutes
    total_distance = Column(Float, nullable=False, default=0.0)  # km, fixed at creation
    passenger_count = Column(Integer, nullable=False, default=0)
    notes = Column(Text, nullable=True)
    created_by = Column(String, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    # Relaciones
    waypoints = relationship(
        "WaypointModel",
        back_populates="route",
        cascade="all, delete-orphan",
        order_by="WaypointModel.order",
    )
    passengers = relationship(
        "RoutePassengerModel",
        back_populates="route",
        cascade="all, delete-orphan",
        order_by="RoutePassengerModel.waypoint_index",
    )

    def __repr__(self):
        return f"<RouteModel(id='{self.id}', vehicle='{self.vehicle_id}', status='{self.status}')>"


class WaypointModel(Base):
    """Punto de una ruta"""
    __tablename__ = "waypoints"
    __table_args__ = (
        UniqueConstraint("route_id", "order", name="uq_waypoint_route_order"),
    )

    id = Column(UUIDType, primary_key=True, default=_new_id)
    route_id = Column(UUIDType, ForeignKey("routes.id", ondelete="CASCADE"), nullable=False, index=True)
    latitude = Column(Float, nullable=False)
    longitude = Column(Float, nullable=False)
    address = Column(String, nullable=False, default="")
    order = Column(Integer, nullable=False)

    route = relationship("RouteModel", back_populates="waypoints")

    def __repr__(self):
        return f"<WaypointModel(order={self.order}, lat={self.latitude}, lon={self.longitude})>"


class RoutePassengerModel(Base):
    """Pasajero asignado a una ruta para recogida o bajada."""
    __tablename__ = "route_passengers"
    __table_args__ = (
        UniqueConstraint("route_id", "passenger_id", "type", name="uq_route_passenger_type"),
    )

    id = Column(UUIDType, primary_key=True, default=_new_id)
    company_id = Column(String, nullable=False)
    route_id = Column(UUIDType, ForeignKey("routes.id", ondelete="CASCADE"), nullable=False, index=True)
    passenger_id = Column(String, nullable=False)
    waypoint_index = Column(Integer, nullable=False)
    type = Column(String, nullable=False)  # 'pickup' or 'dropoff'
    status = Column(String, nullable=False, default="pending")
    checkin_time = Column(DateTime, nullable=True)
    checkout_time = Column(DateTime, nullable=True)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    route = relationship("RouteModel", back_populates="passengers")

    def __repr__(self):
        return (
            f"<RoutePassengerModel(route='{self.route_id}', passenger='{self.passenger_id}', "
            f"type='{self.type}', status='{self.status}')>"
        )


class CheckinModel(Base):
    """Check-in confirmado de un pasajero (registro inmutable)."""
    __tablename__ = "checkins"
    __table_args__ = (
        Index("ix_checkins_route_passenger_type", "route_id", "passenger_id", "type", "timestamp"),
    )

    id = Column(UUIDType, primary_key=True, default=_new_id)
    company_id = Column(String, nullable=False, index=True)
    route_id = Column(String, nullable=False)
    passenger_id = Column(String, nullable=False)
    driver_id = Column(String, nullable=False)
    type = Column(String, nullable=False)
    latitude = Column(Float, nullable=False)
    longitude = Column(Float, nullable=False)
    timestamp = Column(DateTime, nullable=False)
    status = Column(String, nullable=False, default="confirmed")
    distance_meters = Column(Float, nullable=True)
    dispute_reason = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    def __repr__(self):
        return f"<CheckinModel(id='{self.id}', type='{self.type}', status='{self.status}')>"


class AlertModel(Base):
    """Alerta operacional"""
    __tablename__ = "alerts"
    __table_args__ = (
        Index("ix_alerts_company_status", "company_id", "status"),
    )

    id = Column(UUIDType, primary_key=True, default=_new_id)
    company_id = Column(String, nullable=False)
    type = Column(String, nullable=False)
    severity = Column(String, nullable=False)
    status = Column(String, nullable=False, default="active")
    title = Column(String, nullable=False)
    description = Column(Text, nullable=False)
    entity_type = Column(String, nullable=True)
    entity_id = Column(String, nullable=True)
    location = Column(JSON, nullable=True)
    alert_metadata = Column("metadata", JSON, nullable=False, default=dict)
    created_by = Column(String, nullable=True)
    acknowledged_by = Column(String, nullable=True)
    acknowledged_at = Column(DateTime, nullable=True)
    resolved_by = Column(String, nullable=True)
    resolved_at = Column(DateTime, nullable=True)
    resolution = Column(Text, nullable=True)
    dismissed_by = Column(String, nullable=True)
    dismissed_at = Column(DateTime, nullable=True)
    dismissal_reason = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    def __repr__(self):
        return f"<AlertModel(id='{self.id}', type='{self.type}', status='{self.status}')>"


class AuditLogModel(Base):
    """Registro de auditoria de cambios de estado."""
    __tablename__ = "audit_logs"

    id = Column(UUIDType, primary_key=True, default=_new_id)
    company_id = Column(String, nullable=False, index=True)
    action = Column(String, nullable=False)
    performed_by = Column(String, nullable=True)
    entity_type = Column(String, nullable=False)
    entity_id = Column(String, nullable=False)
    details = Column(JSON, nullable=False, default=dict)
    timestamp = Column(DateTime, default=datetime.utcnow, nullable=False)

    def __repr__(self):
        return f"<AuditLogModel(action='{self.action}', entity='{self.entity_type}:{self.entity_id}')>"
