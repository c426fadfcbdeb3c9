#Purpose: Hard eligibility filtering (rule gates).
#Builds the base candidate set before scoring.
#A nurse is excluded if ANY gate fails:
#online
#distance within the effective bound (patient max distance / nurse service radius)
#applicable rate within the patient's price range
#offers the requested service type (exact tag, case-sensitive)

#Output: "rule-qualified nurses" (still not ranked).
#An empty list is a legitimate "no nurses available" outcome, not an error.

from __future__ import annotations

from typing import List, Optional, Sequence

from bookings.models import ServiceRequestInput
from geo import distance_between
from nurses.models import NurseProfile
from patients.models import MatchingPreferences


def effective_max_distance_km(
    nurse: NurseProfile,
    preferences: Optional[MatchingPreferences],
) -> Optional[float]:
    """
    The smaller of the patient's max distance and the nurse's service radius.
    If only one is defined, that one. None means "do not filter on distance".
    """
    bounds = []
    if preferences is not None and preferences.max_distance_km is not None:
        bounds.append(preferences.max_distance_km)
    if nurse.service_radius_km is not None:
        bounds.append(nurse.service_radius_km)
    return min(bounds) if bounds else None


def applicable_rate(nurse: NurseProfile, service_type: Optional[str]) -> float:
    """
    Specialty-specific rate if the nurse has one for this service, else the base hourly rate.
    """
    if service_type:
        rate = nurse.specialty_rate(service_type)
        if rate is not None:
            return rate
    return nurse.hourly_rate


def nurse_distance_km(nurse: NurseProfile, request: ServiceRequestInput) -> Optional[float]:
    return distance_between(request.patient_location, nurse.location)


def within_distance(
    nurse: NurseProfile,
    request: ServiceRequestInput,
    preferences: Optional[MatchingPreferences],
) -> bool:
    distance = nurse_distance_km(nurse, request)
    if distance is None:
        # unknown position on either side: nothing to filter on
        return True

    bound = effective_max_distance_km(nurse, preferences)
    if bound is None:
        return True

    return distance <= bound


def within_price_range(
    nurse: NurseProfile,
    request: ServiceRequestInput,
    preferences: Optional[MatchingPreferences],
) -> bool:
    if preferences is None or not preferences.has_price_range():
        return True

    rate = applicable_rate(nurse, request.service_type)
    if preferences.price_min is not None and rate < preferences.price_min:
        return False
    if preferences.price_max is not None and rate > preferences.price_max:
        return False
    return True


def offers_service(nurse: NurseProfile, request: ServiceRequestInput) -> bool:
    if not request.service_type:
        return True
    return nurse.offers(request.service_type)


def filter_eligible_nurses(
    nurses: Sequence[NurseProfile],
    request: ServiceRequestInput,
    preferences: Optional[MatchingPreferences] = None,
) -> List[NurseProfile]:
    """
    Returns the nurses that pass every gate, in input order.
    """
    eligible = []

    for nurse in nurses:
        if not nurse.is_online:
            continue

        if not within_distance(nurse, request, preferences):
            continue

        if not within_price_range(nurse, request, preferences):
            continue

        if not offers_service(nurse, request):
            continue

        eligible.append(nurse)

    return eligible
