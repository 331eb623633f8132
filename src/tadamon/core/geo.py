from __future__ import annotations

from math import asin, cos, radians, sin, sqrt

from tadamon.domain.models import GeoPoint

"""
Geospatial helpers.

One distance rule and one display rule, shared by the feed, the neighbor list
and chat history, so "nearby" means the same thing everywhere.
"""

EARTH_RADIUS_KM = 6371.0


def distance_km(a: GeoPoint, b: GeoPoint) -> float:
    """Compute great-circle (haversine) distance in kilometers between two points."""
    lat1 = radians(a.latitude)
    lon1 = radians(a.longitude)
    lat2 = radians(b.latitude)
    lon2 = radians(b.longitude)

    dlat = lat2 - lat1
    dlon = lon2 - lon1

    h = sin(dlat / 2) ** 2 + cos(lat1) * cos(lat2) * sin(dlon / 2) ** 2
    # Rounding can push h a hair above 1 for antipodal points.
    return 2 * EARTH_RADIUS_KM * asin(sqrt(min(1.0, h)))


def format_distance(km: float) -> str:
    """Render a distance for display: meters below 1 km, else kilometers to one decimal."""
    if km < 1:
        return f"{round(km * 1000)}m"
    return f"{km:.1f}km"
