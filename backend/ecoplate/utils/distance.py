"""
EcoPlate Backend — Geographic Helpers
======================================

What:  Haversine distance and the "address|lat,lng" location string format
       used by listing pickup locations and user profiles.

Examples:
    parse_coordinates("1.3521,103.8198")                 → Coordinates(1.3521, 103.8198)
    parse_coordinates("10 Bayfront Ave|1.2834,103.8607") → Coordinates(1.2834, 103.8607)
    parse_coordinates("a|b|1.3,103.8")                   → None (only one '|' allowed)
"""

import math
from typing import NamedTuple, Optional

EARTH_RADIUS_KM = 6371.0

# Bounding box of mainland Singapore plus the southern islands
SG_MIN_LAT, SG_MAX_LAT = 1.15, 1.48
SG_MIN_LNG, SG_MAX_LNG = 103.6, 104.1


class Coordinates(NamedTuple):
    latitude: float
    longitude: float


def calculate_distance(a: Coordinates, b: Coordinates) -> float:
    """Great-circle distance between two points in kilometres (haversine)."""
    lat1, lat2 = math.radians(a.latitude), math.radians(b.latitude)
    d_lat = lat2 - lat1
    d_lng = math.radians(b.longitude - a.longitude)

    h = math.sin(d_lat / 2) ** 2 + math.cos(lat1) * math.cos(lat2) * math.sin(d_lng / 2) ** 2
    return EARTH_RADIUS_KM * 2 * math.atan2(math.sqrt(h), math.sqrt(1 - h))


def _parse_float(value: str) -> Optional[float]:
    value = value.strip()
    if not value:
        return None
    try:
        number = float(value)
    except ValueError:
        return None
    if math.isnan(number) or math.isinf(number):
        return None
    return number


def parse_coordinates(location: Optional[str]) -> Optional[Coordinates]:
    """
    Parse "lat,lng" or "address|lat,lng" into Coordinates.

    Returns None for empty input, more than one '|', anything other than
    exactly two comma-separated numbers, or non-numeric parts.
    """
    if not location:
        return None

    parts = location.split("|")
    if len(parts) > 2:
        return None
    coord_part = parts[-1]

    pieces = coord_part.split(",")
    if len(pieces) != 2:
        return None

    lat = _parse_float(pieces[0])
    lng = _parse_float(pieces[1])
    if lat is None or lng is None:
        return None
    return Coordinates(latitude=lat, longitude=lng)


def is_valid_singapore_coordinates(coords: Coordinates) -> bool:
    """True when the point lies inside the Singapore bounding box (inclusive)."""
    return (
        SG_MIN_LAT <= coords.latitude <= SG_MAX_LAT
        and SG_MIN_LNG <= coords.longitude <= SG_MAX_LNG
    )


def _format_number(value: float) -> str:
    # 1.0 → "1", 103.8198 → "103.8198"
    if float(value).is_integer():
        return str(int(value))
    return repr(float(value))


def format_coordinates(coords: Coordinates) -> str:
    return f"{_format_number(coords.latitude)},{_format_number(coords.longitude)}"
