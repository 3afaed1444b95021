#Purpose: Campus-scale geofencing math.
#Great-circle (haversine) distance between two (lat, lon) points, in meters,
#and the radius check the candidate filter uses to keep runners close to the poster.
#Typical responsibilities:
#Given poster point + runner position -> distance in meters
#Apply the radius threshold (distance <= radius, boundary included)
#Output: plain floats / booleans, no I/O.

import math
from typing import Callable, Optional, Tuple

#internal coordinate type :(lat,lon)
LatLon = Tuple[float, float]

EARTH_RADIUS_M = 6371000.0 #mean earth radius in meters


def distance_meters(a: LatLon, b: LatLon) -> float:
    """
    Great-circle distance between two (lat, lon) coordinates in meters.

    Args:
        a: (lat, lon) of the first point, degrees
        b: (lat, lon) of the second point, degrees

    Returns:
        distance in meters (>= 0)

    Raises:
        ValueError if any coordinate is NaN or infinite.
    """
    lat1, lon1 = a
    lat2, lon2 = b

    #fail loudly on garbage coordinates instead of returning nan
    for value in (lat1, lon1, lat2, lon2):
        if value is None or not math.isfinite(value):
            raise ValueError(f"Coordinates must be finite numbers, got {a} and {b}")

    d_lat = math.radians(lat2 - lat1)
    d_lon = math.radians(lon2 - lon1)

    h = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) * math.sin(d_lon / 2) ** 2
    )
    c = 2 * math.atan2(math.sqrt(h), math.sqrt(1 - h))
    return EARTH_RADIUS_M * c


def is_valid_location(point: Optional[LatLon]) -> bool:
    """A usable fix: present, and both parts finite numbers."""
    if point is None:
        return False
    try:
        return all(math.isfinite(value) for value in point)
    except TypeError:
        return False


def within_radius(
    a: LatLon,
    b: LatLon,
    radius_m: float,
    distance_fn: Callable[[LatLon, LatLon], float] = distance_meters,
) -> bool:
    """True when b lies within radius_m of a (the boundary counts as inside)."""
    return distance_fn(a, b) <= radius_m


def offset_meters(origin: LatLon, north_m: float, east_m: float) -> LatLon:
    """
    Shift a coordinate by a small number of meters north/east.
    Flat-earth approximation, good enough at campus scale; used by the
    simulation scripts and tests to place runners around a poster.
    """
    lat, lon = origin
    d_lat = math.degrees(north_m / EARTH_RADIUS_M)
    d_lon = math.degrees(east_m / (EARTH_RADIUS_M * math.cos(math.radians(lat))))
    return (lat + d_lat, lon + d_lon)
