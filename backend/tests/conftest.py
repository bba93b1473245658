"""
Pytest configuration and shared fixtures for Fleetline backend tests.
"""
import os
import sys
from datetime import datetime, timedelta
from typing import Any, Dict, List

import pytest

# Add backend to path
sys.path.insert(0, os.path.dirname(os.path.dirname(__file__)))

from sqlalchemy.orm import sessionmaker

from db import models
from db.database import build_engine
from services.auth import AuthContext
from services.locks import KeyedLocks

COMPANY_ID = "company-1"
ROUTE_START = datetime(2026, 3, 2, 9, 0)
ROUTE_END = datetime(2026, 3, 2, 10, 0)


# ============================================================
# DATABASE
# ============================================================

@pytest.fixture
def db_session():
    """In-memory SQLite session with all tables created."""
    engine = build_engine("sqlite:///:memory:")
    models.Base.metadata.create_all(bind=engine)
    Session = sessionmaker(bind=engine, autoflush=False, autocommit=False)
    db = Session()
    try:
        yield db
    finally:
        db.close()
        engine.dispose()


@pytest.fixture
def session_factory(tmp_path):
    """File-backed SQLite sessionmaker, for tests that need one session per thread."""
    engine = build_engine(f"sqlite:///{tmp_path / 'fleetline_test.db'}")
    models.Base.metadata.create_all(bind=engine)
    yield sessionmaker(bind=engine, autoflush=False, autocommit=False)
    engine.dispose()


# ============================================================
# CALLERS, CLOCK, LOCKS
# ============================================================

@pytest.fixture
def admin_auth() -> AuthContext:
    return AuthContext.for_role("admin-1", COMPANY_ID, "admin")


@pytest.fixture
def driver_auth() -> AuthContext:
    """Driver assigned to the default routes below."""
    return AuthContext.for_role("driver-1", COMPANY_ID, "driver")


@pytest.fixture
def other_driver_auth() -> AuthContext:
    return AuthContext.for_role("driver-9", COMPANY_ID, "driver")


class FixedClock:
    """Callable clock that only moves when told to."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock(datetime(2026, 3, 2, 8, 0))


@pytest.fixture
def locks() -> KeyedLocks:
    return KeyedLocks(timeout_seconds=5)


# ============================================================
# ROUTE DATA
# ============================================================

@pytest.fixture
def sample_waypoints() -> List[Dict[str, Any]]:
    """Three stops in central Sao Paulo."""
    return [
        {"latitude": -23.5505, "longitude": -46.6333, "address": "Praca da Se", "order": 1},
        {"latitude": -23.5618, "longitude": -46.6565, "address": "Av. Paulista", "order": 2},
        {"latitude": -23.5874, "longitude": -46.6576, "address": "Parque Ibirapuera", "order": 3},
    ]


@pytest.fixture
def route_request(sample_waypoints):
    """Factory for schedule_route payloads."""

    def _make(
        vehicle_id: str = "vehicle-1",
        driver_id: str = "driver-1",
        start: datetime = ROUTE_START,
        end: datetime = ROUTE_END,
        waypoints=None,
        passengers=None,
        **extra,
    ) -> Dict[str, Any]:
        if passengers is None:
            passengers = [
                {"passenger_id": "passenger-1", "waypoint_index": 0, "type": "pickup"},
                {"passenger_id": "passenger-1", "waypoint_index": 2, "type": "dropoff"},
                {"passenger_id": "passenger-2", "waypoint_index": 1, "type": "pickup"},
                {"passenger_id": "passenger-2", "waypoint_index": 2, "type": "dropoff"},
            ]
        payload = {
            "vehicle_id": vehicle_id,
            "driver_id": driver_id,
            "start_time": start,
            "end_time": end,
            "waypoints": sample_waypoints if waypoints is None else waypoints,
            "passengers": passengers,
        }
        payload.update(extra)
        return payload

    return _make


@pytest.fixture
def scheduled_route(db_session, admin_auth, route_request, locks, clock):
    """A committed route in 'scheduled' status; returns its id."""
    from services.scheduling_service import schedule_route

    result = schedule_route(db_session, route_request(), admin_auth, locks=locks, clock=clock)
    assert result.success, result.message
    return result["route_id"]


@pytest.fixture
def active_route(db_session, admin_auth, scheduled_route):
    """The scheduled route moved to 'in_progress', ready for check-ins; returns its id."""
    from services.scheduling_service import update_route_status

    result = update_route_status(db_session, scheduled_route, {"status": "in_progress"}, admin_auth)
    assert result.success, result.message
    return scheduled_route
