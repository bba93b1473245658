"""
Geofence validation for passenger check-ins.

Compares the coordinate reported by the driver app with the waypoint the
passenger is expected at. Reports, never raises: callers turn an invalid
result into an ``INVALID_LOCATION`` response that includes the distance.
"""

import logging
from typing import Any, Optional, Tuple

from config import config
from models.geo import GeofenceResult
from services.distance import haversine_distance_km

logger = logging.getLogger(__name__)

DEFAULT_TOLERANCE_METERS = 100.0


def _latlon(point: Any) -> Tuple[float, float]:
    if isinstance(point, (tuple, list)):
        return float(point[0]), float(point[1])
    return float(point.latitude), float(point.longitude)


def validate_location(
    observed: Any,
    expected: Any,
    tolerance_meters: Optional[float] = None,
) -> GeofenceResult:
    """
    Check that ``observed`` lies within ``tolerance_meters`` of ``expected``.

    Args:
        observed: Coordinates (or ``(lat, lon)``) reported at check-in
        expected: Coordinates of the pickup/dropoff waypoint
        tolerance_meters: Radius in meters; defaults to the configured
            geofence tolerance (100 m)

    Returns:
        GeofenceResult with ``valid`` and the computed ``distance_meters``.
        A point exactly at the tolerance is valid.
    """
    if tolerance_meters is None:
        tolerance_meters = config.GEOFENCE_TOLERANCE_METERS

    obs_lat, obs_lon = _latlon(observed)
    exp_lat, exp_lon = _latlon(expected)
    distance_meters = haversine_distance_km(obs_lat, obs_lon, exp_lat, exp_lon) * 1000.0

    valid = distance_meters <= tolerance_meters
    if not valid:
        logger.debug(
            f"[Geofence] ({obs_lat},{obs_lon}) is {distance_meters:.1f}m from "
            f"({exp_lat},{exp_lon}), tolerance {tolerance_meters:.1f}m"
        )

    return GeofenceResult(
        valid=valid,
        distance_meters=distance_meters,
        tolerance_meters=tolerance_meters,
    )
