"""
Database module for Fleetline backend.

This module provides PostgreSQL/SQLite integration using SQLAlchemy.
It can be disabled by setting USE_DATABASE=false in environment variables.
"""

from .database import (
    get_db,
    init_engine,
    build_engine,
    create_tables,
    Base,
    USE_DATABASE,
    is_database_available,
)
from .models import (
    RouteModel,
    WaypointModel,
    RoutePassengerModel,
    CheckinModel,
    AlertModel,
    AuditLogModel,
)
from . import crud, schemas

__all__ = [
    "get_db",
    "init_engine",
    "build_engine",
    "create_tables",
    "Base",
    "USE_DATABASE",
    "is_database_available",
    "RouteModel",
    "WaypointModel",
    "RoutePassengerModel",
    "CheckinModel",
    "AlertModel",
    "AuditLogModel",
    "crud",
    "schemas",
]
