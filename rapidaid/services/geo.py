"""
Great-circle distance helpers.
"""

import math

from rapidaid.models.base import Coordinate

EARTH_RADIUS_KM = 6371.0


def haversine_km(a: Coordinate, b: Coordinate, earth_radius_km: float = EARTH_RADIUS_KM) -> float:
    """Calculate distance between two points in kilometers using Haversine formula."""
    phi1 = math.radians(a.lat)
    phi2 = math.radians(b.lat)
    dphi = math.radians(b.lat - a.lat)
    dlambda = math.radians(b.lng - a.lng)
    h = math.sin(dphi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(dlambda / 2) ** 2
    c = 2 * math.atan2(math.sqrt(h), math.sqrt(1 - h))
    return earth_radius_km * c


def haversine_meters(a: Coordinate, b: Coordinate, earth_radius_km: float = EARTH_RADIUS_KM) -> float:
    return haversine_km(a, b, earth_radius_km) * 1000.0
