"""
Patients domain package.

Public API:
- Domain models: PatientProfile, MatchingPreferences
- Dashboard grouping lives in patients.dashboard (depends on bookings)
"""
from .models import DEFAULT_MAX_DISTANCE_KM, MatchingPreferences, PatientProfile

__all__ = [
    "DEFAULT_MAX_DISTANCE_KM",
    "MatchingPreferences",
    "PatientProfile",
]
