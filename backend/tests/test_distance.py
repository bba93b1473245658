"""
Tests para las utilidades de distancia (Haversine).
"""

import math

import pytest

from services.distance import (
    EARTH_RADIUS_KM,
    estimate_travel_minutes,
    haversine_distance_km,
    haversine_distance_m,
    route_total_distance_km,
)


class TestHaversine:

    def test_same_point_is_zero(self):
        assert haversine_distance_km(-23.5505, -46.6333, -23.5505, -46.6333) == 0.0

    def test_symmetry(self):
        a = haversine_distance_km(-23.5505, -46.6333, -23.5618, -46.6565)
        b = haversine_distance_km(-23.5618, -46.6565, -23.5505, -46.6333)
        assert a == pytest.approx(b)

    def test_one_degree_of_longitude_on_equator(self):
        expected = EARTH_RADIUS_KM * math.pi / 180
        assert haversine_distance_km(0, 0, 0, 1) == pytest.approx(expected)
        assert expected == pytest.approx(111.195, abs=0.001)

    def test_meters_variant(self):
        km = haversine_distance_km(-23.5505, -46.6333, -23.5618, -46.6565)
        assert haversine_distance_m(-23.5505, -46.6333, -23.5618, -46.6565) == pytest.approx(km * 1000)

    def test_known_city_distance(self):
        # Praca da Se -> Av. Paulista is a little under 3 km
        km = haversine_distance_km(-23.5505, -46.6333, -23.5618, -46.6565)
        assert 2.5 < km < 3.0


class TestRouteTotalDistance:

    def test_empty_and_single_waypoint(self, sample_waypoints):
        assert route_total_distance_km([]) == 0.0
        assert route_total_distance_km(sample_waypoints[:1]) == 0.0

    def test_sum_of_consecutive_legs(self, sample_waypoints):
        legs = [
            haversine_distance_km(a["latitude"], a["longitude"], b["latitude"], b["longitude"])
            for a, b in zip(sample_waypoints, sample_waypoints[1:])
        ]
        assert route_total_distance_km(sample_waypoints) == pytest.approx(sum(legs))

    def test_follows_order_field(self, sample_waypoints):
        shuffled = [sample_waypoints[2], sample_waypoints[0], sample_waypoints[1]]
        assert route_total_distance_km(shuffled) == pytest.approx(route_total_distance_km(sample_waypoints))

    def test_accepts_tuples(self):
        points = [(0.0, 0.0), (0.0, 1.0), (0.0, 2.0)]
        assert route_total_distance_km(points) == pytest.approx(2 * haversine_distance_km(0, 0, 0, 1))


class TestTravelEstimate:

    def test_minutes_at_average_speed(self):
        assert estimate_travel_minutes(15.0, 30.0) == pytest.approx(30.0)

    def test_rejects_non_positive_speed(self):
        with pytest.raises(ValueError):
            estimate_travel_minutes(10.0, 0)
