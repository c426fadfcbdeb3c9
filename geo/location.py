"""
Purpose: Geolocation provider contract.
What it does:
Describes the one-shot "where is the patient right now" call the booking flow makes
before building a ServiceRequestInput. Device / browser APIs live outside this library;
adapters implement GeolocationProvider.
"""

from __future__ import annotations

from typing import Optional, Protocol

from .distance import LatLon, is_valid_coordinate


class GeolocationError(Exception):
    """Raised when the current position cannot be determined."""
    pass


class GeolocationProvider(Protocol):
    def get_current_position(self) -> LatLon:
        ...


class StaticGeolocationProvider:
    """
    Returns a fixed position. Used by scripts and tests, and by callers that already
    resolved the patient's position some other way (e.g. a saved home address).
    """

    def __init__(self, position: Optional[LatLon] = None):
        self.position = position

    def get_current_position(self) -> LatLon:
        if self.position is None:
            raise GeolocationError("Could not get your location. Location services may be disabled.")
        if not is_valid_coordinate(self.position):
            raise GeolocationError(f"Invalid coordinates {self.position}")
        return self.position
