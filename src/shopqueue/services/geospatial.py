"""Geospatial helper functions."""

from __future__ import annotations

import math
from typing import Any

from ..errors import InvalidCoordinates
from ..models.domain import Coordinate

EARTH_RADIUS_KM = 6371.0


def haversine_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Compute distance between two coordinates using the Haversine formula."""

    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lon2 - lon1)

    a = math.sin(d_phi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_KM * c


def distance_km(a: Coordinate, b: Coordinate) -> float:
    """Great-circle distance between two validated coordinates, full precision."""

    return haversine_km(a.latitude, a.longitude, b.latitude, b.longitude)


def _as_float(value: Any, label: str) -> float:
    if value is None or value == "":
        raise InvalidCoordinates(f"{label} is required.")
    if isinstance(value, bool):
        raise InvalidCoordinates(f"{label} must be a number.")
    try:
        number = float(value)
    except (TypeError, ValueError) as exc:
        raise InvalidCoordinates(f"{label} must be a number, got '{value}'.") from exc
    if not math.isfinite(number):
        raise InvalidCoordinates(f"{label} must be finite.")
    return number


def make_coordinate(latitude: Any, longitude: Any) -> Coordinate:
    """Validate both components together and build a coordinate.

    Raises:
        InvalidCoordinates: if either value is missing, non-numeric or out of range.
    """

    lat = _as_float(latitude, "latitude")
    lon = _as_float(longitude, "longitude")
    if not -90.0 <= lat <= 90.0 or not -180.0 <= lon <= 180.0:
        raise InvalidCoordinates(
            f"Coordinates out of valid range: latitude={lat}, longitude={lon}."
        )
    return Coordinate(latitude=lat, longitude=lon)
