# Geo helpers - great-circle distance and radius matching
# Used by both the bookmark store and the client-side fallback search

import math
from typing import Any, Dict

EARTH_RADIUS_KM = 6371.0
DEFAULT_RADIUS_KM = 0.5


def deg2rad(deg: float) -> float:
    return deg * (math.pi / 180)


def distance_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Haversine distance between two coordinates in kilometers"""
    d_lat = deg2rad(lat2 - lat1)
    d_lon = deg2rad(lon2 - lon1)
    a = (
        math.sin(d_lat / 2) * math.sin(d_lat / 2)
        + math.cos(deg2rad(lat1)) * math.cos(deg2rad(lat2))
        * math.sin(d_lon / 2) * math.sin(d_lon / 2)
    )
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_KM * c


def has_position(bookmark: Dict[str, Any]) -> bool:
    """True when the bookmark carries a position with both lat and lng"""
    position = bookmark.get("position")
    if not isinstance(position, dict):
        return False
    return position.get("lat") is not None and position.get("lng") is not None


def within_radius(bookmark: Dict[str, Any], lat: float, lng: float, radius_km: float = DEFAULT_RADIUS_KM) -> bool:
    if not has_position(bookmark):
        return False
    position = bookmark["position"]
    try:
        d = distance_km(lat, lng, float(position["lat"]), float(position["lng"]))
    except (TypeError, ValueError):
        # position present but not numeric
        return False
    return d <= radius_km
