"""Great-circle distance and bounding boxes in miles."""

from __future__ import annotations

import math

EARTH_RADIUS_MILES = 3958.8
MILES_PER_DEGREE_LAT = 69.0


def haversine_miles(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lon2 - lon1)
    a = math.sin(d_phi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    return 2 * EARTH_RADIUS_MILES * math.asin(min(1.0, math.sqrt(a)))


def bounding_box(lat: float, lon: float, radius_miles: float) -> tuple[float, float, float, float]:
    """(min_lat, max_lat, min_lon, max_lon) enclosing the radius. Used as a cheap SQL prefilter."""
    d_lat = radius_miles / MILES_PER_DEGREE_LAT
    cos_lat = math.cos(math.radians(lat))
    d_lon = 180.0 if cos_lat < 1e-6 else min(180.0, radius_miles / (MILES_PER_DEGREE_LAT * cos_lat))
    return lat - d_lat, lat + d_lat, lon - d_lon, lon + d_lon
