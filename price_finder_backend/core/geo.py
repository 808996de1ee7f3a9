from __future__ import annotations

import math

from .models import Coordinate

EARTH_RADIUS_MILES = 3958.8

# Added to the requested radius so stores sitting on the boundary are not lost to rounding.
RADIUS_BUFFER_MILES = 0.5


def haversine_miles(a: Coordinate, b: Coordinate) -> float:
    """Great-circle distance between two coordinates, in miles."""

    lat1 = math.radians(a.latitude)
    lat2 = math.radians(b.latitude)
    d_lat = lat2 - lat1
    d_lon = math.radians(b.longitude - a.longitude)

    h = math.sin(d_lat / 2) ** 2 + math.cos(lat1) * math.cos(lat2) * math.sin(d_lon / 2) ** 2
    h = min(max(h, 0.0), 1.0)
    return 2 * EARTH_RADIUS_MILES * math.atan2(math.sqrt(h), math.sqrt(1 - h))


def within_radius(center: Coordinate, point: Coordinate, radius_miles: float) -> bool:
    return haversine_miles(center, point) <= radius_miles
