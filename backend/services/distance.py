"""
Great-circle distance helpers.

Haversine distance between coordinate pairs and total length of a route's
ordered waypoint sequence. Pure functions: inputs are assumed to be valid
decimal degrees.
"""

import math
from typing import Any, Iterable, List, Mapping, Tuple

EARTH_RADIUS_KM = 6371.0


def haversine_distance_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Distancia en km entre dos puntos usando la formula de Haversine."""
    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    dphi = math.radians(lat2 - lat1)
    dlambda = math.radians(lon2 - lon1)

    a = (math.sin(dphi / 2) ** 2 +
         math.cos(phi1) * math.cos(phi2) * math.sin(dlambda / 2) ** 2)
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))

    return EARTH_RADIUS_KM * c


def haversine_distance_m(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    return haversine_distance_km(lat1, lon1, lat2, lon2) * 1000.0


def _point(waypoint: Any) -> Tuple[float, float]:
    if isinstance(waypoint, (tuple, list)):
        return float(waypoint[0]), float(waypoint[1])
    if isinstance(waypoint, Mapping):
        return float(waypoint["latitude"]), float(waypoint["longitude"])
    return float(waypoint.latitude), float(waypoint.longitude)


def _order_of(waypoint: Any) -> Any:
    if isinstance(waypoint, Mapping):
        return waypoint.get("order")
    return getattr(waypoint, "order", None)


def _in_sequence(waypoints: Iterable[Any]) -> List[Any]:
    items = list(waypoints)
    if items and all(_order_of(w) is not None for w in items):
        items.sort(key=_order_of)
    return items


def route_total_distance_km(waypoints: Iterable[Any]) -> float:
    """
    Sum of haversine legs over consecutive waypoints.

    Waypoints may be ORM rows or schemas (``latitude``/``longitude``/``order``),
    mappings with the same keys, or plain ``(lat, lon)`` tuples. When every
    waypoint carries an ``order`` the legs follow that sequence.

    Returns 0.0 for zero or one waypoint.
    """
    points = [_point(w) for w in _in_sequence(waypoints)]
    total = 0.0
    for (lat1, lon1), (lat2, lon2) in zip(points, points[1:]):
        total += haversine_distance_km(lat1, lon1, lat2, lon2)
    return total


def estimate_travel_minutes(distance_km: float, speed_kmh: float = 30.0) -> float:
    """Minutes needed to cover ``distance_km`` at an average ``speed_kmh``."""
    if speed_kmh <= 0:
        raise ValueError("speed_kmh must be positive")
    return distance_km / speed_kmh * 60.0
