"""
Tests para la validacion de geocerca de check-ins.
"""

import pytest

from models.geo import Coordinates
from services import geofence
from services.distance import haversine_distance_m
from services.geofence import validate_location

EXPECTED = Coordinates(latitude=-23.5505, longitude=-46.6333)


class TestValidateLocation:

    def test_exact_point_is_valid(self):
        result = validate_location(EXPECTED, EXPECTED)
        assert result.valid
        assert result.distance_meters == 0.0
        assert result.tolerance_meters == 100.0

    def test_exactly_at_tolerance_is_valid(self, monkeypatch):
        monkeypatch.setattr(geofence, "haversine_distance_km", lambda *args: 0.1)
        result = validate_location((0, 0), (0, 0), tolerance_meters=100.0)
        assert result.distance_meters == pytest.approx(100.0)
        assert result.valid

    def test_just_beyond_tolerance_is_invalid(self, monkeypatch):
        monkeypatch.setattr(geofence, "haversine_distance_km", lambda *args: 0.1001)
        result = validate_location((0, 0), (0, 0), tolerance_meters=100.0)
        assert not result.valid
        assert result.excess_meters == pytest.approx(0.1)

    def test_boundary_with_real_distance(self):
        observed = (-23.5510, -46.6333)
        distance = haversine_distance_m(observed[0], observed[1], EXPECTED.latitude, EXPECTED.longitude)
        assert validate_location(observed, EXPECTED, tolerance_meters=distance).valid
        assert not validate_location(observed, EXPECTED, tolerance_meters=distance - 0.1).valid

    def test_far_point_reports_distance(self):
        # Av. Paulista is kilometres away from Praca da Se
        result = validate_location((-23.5618, -46.6565), EXPECTED)
        assert not result.valid
        assert result.distance_meters > 2000
        assert result.excess_meters == pytest.approx(result.distance_meters - 100.0)

    def test_default_tolerance_from_config(self, monkeypatch):
        monkeypatch.setattr(geofence.config, "GEOFENCE_TOLERANCE_METERS", 5000.0)
        result = validate_location((-23.5618, -46.6565), EXPECTED)
        assert result.valid
        assert result.tolerance_meters == 5000.0
