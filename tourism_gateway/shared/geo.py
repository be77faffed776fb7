"""
Geographic helpers for location-aware result sets.
"""

import math
from typing import Any, Dict, List, Optional

EARTH_RADIUS_KM = 6371.0088

DIRECTIONS_KO = ("북", "북동", "동", "남동", "남", "남서", "서", "북서")


def _as_float(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


def is_valid_coordinate(lat: Any, lon: Any) -> bool:
    lat, lon = _as_float(lat), _as_float(lon)
    return lat is not None and lon is not None and abs(lat) <= 90 and abs(lon) <= 180


def distance_km(lat1: Any, lon1: Any, lat2: Any, lon2: Any) -> Optional[float]:
    """Haversine distance in kilometres, or None for invalid input"""
    if not (is_valid_coordinate(lat1, lon1) and is_valid_coordinate(lat2, lon2)):
        return None

    phi1, phi2 = math.radians(float(lat1)), math.radians(float(lat2))
    d_phi = phi2 - phi1
    d_lambda = math.radians(float(lon2) - float(lon1))

    a = math.sin(d_phi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    return 2 * EARTH_RADIUS_KM * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def bearing_degrees(lat1: Any, lon1: Any, lat2: Any, lon2: Any) -> Optional[float]:
    """Initial bearing from point 1 to point 2, normalized to [0, 360)"""
    if not (is_valid_coordinate(lat1, lon1) and is_valid_coordinate(lat2, lon2)):
        return None

    phi1, phi2 = math.radians(float(lat1)), math.radians(float(lat2))
    d_lambda = math.radians(float(lon2) - float(lon1))

    y = math.sin(d_lambda) * math.cos(phi2)
    x = math.cos(phi1) * math.sin(phi2) - math.sin(phi1) * math.cos(phi2) * math.cos(d_lambda)
    return (math.degrees(math.atan2(y, x)) + 360) % 360


def direction_text(bearing: Optional[float]) -> Optional[str]:
    if bearing is None:
        return None
    return DIRECTIONS_KO[int(((bearing % 360) + 22.5) // 45) % 8]


def format_distance(km: Optional[float]) -> Optional[str]:
    if km is None:
        return None
    if km < 1:
        return f"{round(km * 1000)}m"
    if km < 10:
        return f"{km:.1f}km"
    return f"{round(km)}km"


def add_distance_info(
    items: List[Dict[str, Any]],
    user_lat: Any,
    user_lng: Any,
    radius_km: Optional[float] = None,
    keep_unlocated: bool = True,
) -> List[Dict[str, Any]]:
    """
    Annotate items with distance and bearing from the user, filter and sort.

    Items without coordinates get ``distance = None``. Under a radius filter
    they are kept when ``keep_unlocated`` is true (the historical behaviour)
    and dropped otherwise. Results are sorted by ascending distance with
    unlocated items last.
    """
    annotated = []
    for item in items:
        distance = distance_km(user_lat, user_lng, item.get("mapy"), item.get("mapx"))
        bearing = bearing_degrees(user_lat, user_lng, item.get("mapy"), item.get("mapx"))
        annotated.append({
            **item,
            "distance": round(distance, 2) if distance is not None else None,
            "distanceText": format_distance(distance),
            "bearing": round(bearing, 1) if bearing is not None else None,
            "direction": direction_text(bearing),
        })

    if radius_km is not None:
        annotated = [
            item for item in annotated
            if (item["distance"] is None and keep_unlocated)
            or (item["distance"] is not None and item["distance"] <= radius_km)
        ]

    annotated.sort(key=lambda item: (item["distance"] is None, item["distance"] or 0.0))
    return annotated
