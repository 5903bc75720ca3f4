import math
from typing import Optional, Tuple

EARTH_RADIUS_MILES = 3959

Coordinates = Tuple[float, float]  # (latitude, longitude) in decimal degrees


def distance_miles(a: Coordinates, b: Coordinates) -> int:
    """Great-circle distance between two points, rounded to the nearest mile (haversine)."""
    lat1, lon1 = a
    lat2, lon2 = b
    d_lat = math.radians(lat2 - lat1)
    d_lon = math.radians(lon2 - lon1)

    h = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) * math.sin(d_lon / 2) ** 2
    )
    # Clamp so floating point noise can't push asin out of its domain
    h = min(1.0, max(0.0, h))
    return round(2 * EARTH_RADIUS_MILES * math.asin(math.sqrt(h)))


def has_coordinates(listing) -> bool:
    return listing.latitude is not None and listing.longitude is not None


def coordinates_of(listing) -> Optional[Coordinates]:
    if not has_coordinates(listing):
        return None
    return (float(listing.latitude), float(listing.longitude))
