"""
Purpose: The matching "orchestrator" (single entry point).
What it does:

Runs one matching pass end-to-end:

- filters raw nurse records down to eligible nurses (candidate_filter.py)

- scores each eligible nurse (scoring.py)

- ranks them and picks the top-k to offer

- projects nurses into MatchedNurseCandidate rows (score, estimated cost, distance, rating)

Every pass is computed fresh. A request stores the result as its candidate snapshot
and never re-derives it; re-running the match is a new pass.

Rule: Matcher is the only file other modules should call directly for matching.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence

from bookings.models import MatchedNurseCandidate, ServiceRequestInput
from nurses.models import NurseProfile
from nurses.policy import MatchingPolicy, default_matching_policy
from patients.models import MatchingPreferences

from .candidate_filter import filter_eligible_nurses
from .scoring import ScoredNurse, rank_candidates, score_candidates

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MatchResult:
    """
    Output of a matching pass.
    """
    # every eligible nurse, best first
    ranked: List[MatchedNurseCandidate]
    # the top-k to offer
    selected: List[MatchedNurseCandidate]

    @property
    def has_candidates(self) -> bool:
        return bool(self.selected)


def estimate_cost(rate: float, duration_hours: Optional[float], policy: MatchingPolicy) -> float:
    """
    rate x duration, or rate x fallback hours (1.5) when the duration is unknown.
    """
    hours = duration_hours if duration_hours else policy.fallback_duration_hours
    return round(rate * hours, 2)


def to_matched_candidate(
    scored: ScoredNurse,
    request: ServiceRequestInput,
    policy: MatchingPolicy,
) -> MatchedNurseCandidate:
    nurse = scored.nurse
    return MatchedNurseCandidate(
        nurse_id=nurse.id,
        nurse_name=nurse.name,
        avatar_url=nurse.avatar_url,
        qualification=nurse.qualification,
        match_score=scored.score,
        estimated_cost=estimate_cost(scored.rate, request.duration_hours, policy),
        distance_km=round(scored.distance_km, 1) if scored.distance_km is not None else None,
        rating=nurse.stats.rating,
    )


def find_matching_nurses(
    nurses: Sequence[NurseProfile],
    request: ServiceRequestInput,
    preferences: Optional[MatchingPreferences] = None,
    policy: Optional[MatchingPolicy] = None,
    *,
    exclude_nurse_ids: Sequence[str] = (),
) -> MatchResult:
    """
    Main matching entry point (pure algorithm). Does not touch the store.

    exclude_nurse_ids drops nurses before filtering (e.g. nurses that already
    declined an earlier request with the same details).
    """
    policy = policy or default_matching_policy()

    excluded = set(exclude_nurse_ids)
    pool = [nurse for nurse in nurses if nurse.id not in excluded]

    eligible = filter_eligible_nurses(pool, request, preferences)
    if not eligible:
        logger.info(f"No eligible nurses for '{request.service_type}' out of {len(pool)} considered")
        return MatchResult(ranked=[], selected=[])

    ranked = rank_candidates(score_candidates(eligible, request, preferences, policy))
    candidates = [to_matched_candidate(s, request, policy) for s in ranked]

    logger.info(
        f"Matched {len(candidates)} of {len(pool)} nurses for '{request.service_type}', "
        f"offering to top {min(policy.offer_count, len(candidates))}"
    )

    return MatchResult(ranked=candidates, selected=candidates[: policy.offer_count])
