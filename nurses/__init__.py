"""
Nurses domain package.

Public API:
- Domain models: NurseProfile, NurseStats, SpecialtyRate
- Matching configuration: MatchingPolicy, OfferMode and its factories
"""
from .models import NurseProfile, NurseStats, SpecialtyRate
from .policy import (
    MatchingPolicy,
    OfferMode,
    default_matching_policy,
    multi_offer_policy,
    policy_from_env,
    single_offer_policy,
)

__all__ = [
    "NurseProfile",
    "NurseStats",
    "SpecialtyRate",
    "MatchingPolicy",
    "OfferMode",
    "default_matching_policy",
    "multi_offer_policy",
    "policy_from_env",
    "single_offer_policy",
]
