"""
Purpose: Great-circle distance math.
What it does:
Computes straight-line (haversine) distances between (lat, lon) pairs in kilometers.
The matching engine has no road network, so every distance bound and distance score
is measured with this.

Rule: No filtering or scoring logic here. Math only.
"""

from __future__ import annotations

import math
from typing import Optional, Tuple

# Internal coordinate type: (lat, lon)
LatLon = Tuple[float, float]

EARTH_RADIUS_KM = 6371.0


def haversine_km(origin: LatLon, destination: LatLon) -> float:
    """
    Great-circle distance in kilometers between two (lat, lon) points.
    """
    lat1, lon1 = origin
    lat2, lon2 = destination

    d_lat = math.radians(lat2 - lat1)
    d_lon = math.radians(lon2 - lon1)

    a = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(lat1))
        * math.cos(math.radians(lat2))
        * math.sin(d_lon / 2) ** 2
    )

    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_KM * c


def distance_between(origin: Optional[LatLon], destination: Optional[LatLon]) -> Optional[float]:
    """
    Same as haversine_km but tolerant of unknown positions (returns None).
    """
    if origin is None or destination is None:
        return None
    return haversine_km(origin, destination)


def is_valid_coordinate(position: LatLon) -> bool:
    lat, lon = position
    return -90.0 <= lat <= 90.0 and -180.0 <= lon <= 180.0
