#Marks routing as a package.
#Re-exports the geofence math so other modules import from routing
#without knowing internal file names.
#No business logic.

from .geofence import LatLon, distance_meters, is_valid_location, within_radius, offset_meters

__all__ = [
    "LatLon",
    "distance_meters",
    "is_valid_location",
    "within_radius",
    "offset_meters",
]
