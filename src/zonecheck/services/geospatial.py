"""Geospatial helper functions."""

from __future__ import annotations

import math
from typing import Any

from ..models.domain import Coordinate
from .delivery.errors import InvalidCoordinatesError

EARTH_RADIUS_KM = 6371.0


def haversine_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Compute distance between two coordinates using the Haversine formula."""

    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lon2 - lon1)

    a = math.sin(d_phi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_KM * c


def is_valid_coordinate(lat: float, lng: float) -> bool:
    return (
        math.isfinite(lat)
        and math.isfinite(lng)
        and -90.0 <= lat <= 90.0
        and -180.0 <= lng <= 180.0
    )


def _to_float(value: Any) -> float:
    # bool is an int subclass; reject it explicitly
    if value is None or isinstance(value, bool):
        raise InvalidCoordinatesError()
    if isinstance(value, str) and not value.strip():
        raise InvalidCoordinatesError()
    try:
        return float(value)
    except (TypeError, ValueError) as exc:
        raise InvalidCoordinatesError() from exc


def coordinate_from_values(lat: Any, lng: Any) -> Coordinate:
    """Build a Coordinate from untrusted input, raising InvalidCoordinatesError when unusable."""

    lat_value = _to_float(lat)
    lng_value = _to_float(lng)
    if not is_valid_coordinate(lat_value, lng_value):
        raise InvalidCoordinatesError()
    return Coordinate(lat=lat_value, lng=lng_value)
