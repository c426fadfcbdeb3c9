#Marks geo as a package.
#Re-exports distance math and the geolocation contract so other packages
#import from geo without knowing internal file names.
#No business logic.

from .distance import LatLon, haversine_km, distance_between, is_valid_coordinate
from .location import GeolocationError, GeolocationProvider, StaticGeolocationProvider

__all__ = [
    "LatLon",
    "haversine_km",
    "distance_between",
    "is_valid_coordinate",
    "GeolocationError",
    "GeolocationProvider",
    "StaticGeolocationProvider",
]
