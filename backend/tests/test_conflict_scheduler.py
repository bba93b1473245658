"""
Tests para la deteccion de solapamientos de vehiculo/conductor.
"""

from datetime import datetime
from types import SimpleNamespace

from services.conflict_scheduler import BookingWindow, check_conflict, describe_conflict, intervals_overlap


def _route(route_id, vehicle_id, driver_id, start_hour, end_hour, status="scheduled"):
    return SimpleNamespace(
        id=route_id,
        vehicle_id=vehicle_id,
        driver_id=driver_id,
        start_time=datetime(2026, 3, 2, start_hour),
        end_time=datetime(2026, 3, 2, end_hour),
        status=status,
    )


def _window(vehicle_id, driver_id, start_hour, end_hour):
    return BookingWindow(vehicle_id, driver_id, datetime(2026, 3, 2, start_hour), datetime(2026, 3, 2, end_hour))


class TestIntervalsOverlap:

    def test_overlapping(self):
        assert intervals_overlap(datetime(2026, 1, 1, 9), datetime(2026, 1, 1, 11),
                                 datetime(2026, 1, 1, 10), datetime(2026, 1, 1, 12))

    def test_touching_endpoints_do_not_overlap(self):
        assert not intervals_overlap(datetime(2026, 1, 1, 9), datetime(2026, 1, 1, 10),
                                     datetime(2026, 1, 1, 10), datetime(2026, 1, 1, 11))
        assert not intervals_overlap(datetime(2026, 1, 1, 10), datetime(2026, 1, 1, 11),
                                     datetime(2026, 1, 1, 9), datetime(2026, 1, 1, 10))

    def test_containment(self):
        assert intervals_overlap(datetime(2026, 1, 1, 9), datetime(2026, 1, 1, 12),
                                 datetime(2026, 1, 1, 10), datetime(2026, 1, 1, 11))


class TestCheckConflict:

    def test_shared_vehicle_conflicts(self):
        existing = [_route("R1", "V1", "D1", 9, 10)]
        result = check_conflict(_window("V1", "D2", 9, 10), existing)
        assert result.conflict
        assert result.conflicting_route_id == "R1"
        assert result.shared_resource == "vehicle"
        assert result.resource_id == "V1"

    def test_shared_driver_conflicts(self):
        existing = [_route("R1", "V1", "D1", 9, 11)]
        result = check_conflict(_window("V2", "D1", 10, 12), existing)
        assert result.conflict
        assert result.shared_resource == "driver"
        assert "driver D1" in describe_conflict(result)
        assert "R1" in describe_conflict(result)

    def test_no_shared_resource(self):
        existing = [_route("R1", "V1", "D1", 9, 10)]
        assert not check_conflict(_window("V2", "D2", 9, 10), existing).conflict

    def test_back_to_back_is_allowed(self):
        existing = [_route("R1", "V1", "D1", 9, 10)]
        assert not check_conflict(_window("V1", "D1", 10, 11), existing).conflict

    def test_inactive_routes_are_ignored(self):
        existing = [
            _route("R1", "V1", "D1", 9, 10, status="cancelled"),
            _route("R2", "V1", "D1", 9, 10, status="completed"),
        ]
        assert not check_conflict(_window("V1", "D1", 9, 10), existing).conflict

    def test_in_progress_route_blocks(self):
        existing = [_route("R1", "V1", "D1", 9, 10, status="in_progress")]
        assert check_conflict(_window("V1", "D9", 9, 10), existing).conflict

    def test_excluded_route_is_ignored(self):
        existing = [_route("R1", "V1", "D1", 9, 10)]
        assert not check_conflict(_window("V1", "D1", 9, 10), existing, exclude_route_id="R1").conflict

    def test_first_hit_by_start_time(self):
        existing = [
            _route("late", "V1", "D1", 11, 13),
            _route("early", "V1", "D1", 9, 11),
        ]
        result = check_conflict(_window("V1", "D1", 10, 12), existing)
        assert result.conflicting_route_id == "early"
