#Purpose: Ranking/selection model (the "who is best" layer).
#Takes candidates (already eligible) + features (distance, rating, price, specialty, responsiveness)
#Produces:
#an integer 0-100 match score per nurse
#an ordered top-k list for the offer step
#Rules:
#weighted scoring, weights from MatchingPolicy
#deterministic tie-breaking: score desc, distance asc, rating desc, input order
#no randomness anywhere

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import List, Optional, Sequence

from bookings.models import ServiceRequestInput
from nurses.models import NurseProfile
from nurses.policy import MatchingPolicy, default_matching_policy
from patients.models import MatchingPreferences

from .candidate_filter import applicable_rate, effective_max_distance_km, nurse_distance_km


@dataclass(frozen=True)
class ScoredNurse:
    """
    A nurse with its match score and the features the score was computed from.
    """
    nurse: NurseProfile
    score: int
    distance_km: Optional[float]
    rate: float
    # position in the scoring input, the final tie-breaker
    index: int = 0

    @property
    def rating(self) -> float:
        return self.nurse.stats.rating


# -------------------------
# Sub-scores (each returns 0..weight)
# -------------------------

def distance_component(
    distance_km: Optional[float],
    max_distance_km: Optional[float],
    weight: float,
) -> float:
    if distance_km is None or max_distance_km is None:
        return 0.0
    if max_distance_km <= 0:
        return weight if distance_km <= 0 else 0.0
    return weight * (1 - min(distance_km / max_distance_km, 1.0))


def rating_component(rating: float, weight: float) -> float:
    return weight * min(max(rating / 5.0, 0.0), 1.0)


def price_component(rate: float, preferences: Optional[MatchingPreferences], weight: float) -> float:
    """
    Cheaper within the patient's range scores higher. No full range, no contribution.
    """
    if preferences is None or preferences.price_min is None or preferences.price_max is None:
        return 0.0

    price_min, price_max = preferences.price_min, preferences.price_max
    if price_max < price_min:
        return 0.0
    if price_max == price_min:
        return weight if rate <= price_min else 0.0

    position = max(rate - price_min, 0.0) / (price_max - price_min)
    return weight * (1 - min(position, 1.0))


def specialty_component(nurse: NurseProfile, service_type: Optional[str], weight: float) -> float:
    if service_type and nurse.offers(service_type):
        return weight
    return 0.0


def responsiveness_component(average_response_minutes: float, horizon_minutes: float, weight: float) -> float:
    return weight * max(0.0, 1 - average_response_minutes / horizon_minutes)


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


# -------------------------
# Scoring
# -------------------------

def score_nurse(
    nurse: NurseProfile,
    request: ServiceRequestInput,
    preferences: Optional[MatchingPreferences] = None,
    policy: Optional[MatchingPolicy] = None,
) -> int:
    """
    Weighted sum of the sub-scores, rounded to the nearest integer and clamped to [0, 100].
    Pure function of its inputs.
    """
    return _score(nurse, request, preferences, policy or default_matching_policy()).score


def _score(
    nurse: NurseProfile,
    request: ServiceRequestInput,
    preferences: Optional[MatchingPreferences],
    policy: MatchingPolicy,
    index: int = 0,
) -> ScoredNurse:
    distance = nurse_distance_km(nurse, request)
    rate = applicable_rate(nurse, request.service_type)

    total = (
        distance_component(distance, effective_max_distance_km(nurse, preferences), policy.distance_weight)
        + rating_component(nurse.stats.rating, policy.rating_weight)
        + price_component(rate, preferences, policy.price_weight)
        + specialty_component(nurse, request.service_type, policy.specialty_weight)
    )

    if policy.use_responsiveness:
        total += responsiveness_component(
            nurse.stats.average_response_minutes,
            policy.responsiveness_horizon_minutes,
            policy.responsiveness_weight,
        )

    score = min(max(_round_half_up(total), 0), 100)

    return ScoredNurse(nurse=nurse, score=score, distance_km=distance, rate=rate, index=index)


def score_candidates(
    nurses: Sequence[NurseProfile],
    request: ServiceRequestInput,
    preferences: Optional[MatchingPreferences] = None,
    policy: Optional[MatchingPolicy] = None,
) -> List[ScoredNurse]:
    """
    Score every (already eligible) nurse. Output keeps input order; each nurse is
    scored independently.
    """
    policy = policy or default_matching_policy()
    return [_score(nurse, request, preferences, policy, index=i) for i, nurse in enumerate(nurses)]


# -------------------------
# Ranking & selection
# -------------------------

def _ranking_key(candidate: ScoredNurse):
    unknown_distance = candidate.distance_km is None
    return (
        -candidate.score,
        unknown_distance,  # known distances first
        candidate.distance_km if not unknown_distance else 0.0,
        -candidate.rating,
        candidate.index,
    )


def rank_candidates(candidates: Sequence[ScoredNurse], k: Optional[int] = None) -> List[ScoredNurse]:
    """
    Sort descending by score; ties broken by ascending distance, then descending rating,
    then original order. Returns the first k (all when k is None).

    k=1 is the single best-match flow, k=4 the multi-offer flow.
    """
    if k is not None and k < 1:
        raise ValueError(f"k must be >= 1, got {k}")

    ranked = sorted(candidates, key=_ranking_key)
    return ranked if k is None else ranked[:k]
