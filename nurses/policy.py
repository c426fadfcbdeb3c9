"""
Purpose: Central configuration for nurse matching and offers.
What it does:

Stores all tunable thresholds/weights for filtering, scoring and offering:

OFFER_WINDOW_MINUTES = 15
OFFER_COUNT = 1 (single best match) or 4 (multi-offer)
WEIGHTS = distance 40 / rating 30 / price 20 / specialty 10

Rule: No logic here, just parameters so you can tune without rewriting code.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, replace
from enum import Enum

from dotenv import load_dotenv


class OfferMode(str, Enum):
    SINGLE = "single"
    MULTI = "multi"


@dataclass(frozen=True)
class MatchingPolicy:
    """
    Central configuration for the matching engine.
    """

    # --- Offer strategy ---
    # SINGLE: offer to the best match only; a decline ends the request.
    # MULTI: offer to the top `offer_count` nurses at once; first acceptance wins.
    mode: OfferMode = OfferMode.SINGLE
    offer_count: int = 1

    # How long an offered nurse has to respond before the offer is treated as expired.
    offer_window_minutes: int = 15

    # --- Score weights (sum to 100 in each configuration) ---
    distance_weight: float = 40.0
    rating_weight: float = 30.0
    price_weight: float = 20.0
    specialty_weight: float = 10.0

    # Responsiveness is only used by some matching modes. When enabled, the rating
    # weight should drop to 25 so the total stays at 100.
    use_responsiveness: bool = False
    responsiveness_weight: float = 5.0
    # Average response time (minutes) at which the responsiveness sub-score reaches 0.
    responsiveness_horizon_minutes: float = 60.0

    # --- Cost estimation ---
    # Hours billed when a request has no duration.
    fallback_duration_hours: float = 1.5

    # --- Payment ---
    platform_fee: float = 5.0

    # --- Write retries ---
    # Conditional updates re-read and re-apply on contention this many times.
    max_write_attempts: int = 5

    def total_weight(self) -> float:
        total = self.distance_weight + self.rating_weight + self.price_weight + self.specialty_weight
        if self.use_responsiveness:
            total += self.responsiveness_weight
        return total

    def validate(self) -> None:
        """
        Basic sanity checks.
        """
        if self.offer_count < 1:
            raise ValueError("offer_count must be >= 1")

        if self.mode == OfferMode.SINGLE and self.offer_count != 1:
            raise ValueError("single-offer mode must offer to exactly 1 nurse")

        if self.offer_window_minutes <= 0:
            raise ValueError("offer_window_minutes must be > 0")

        weights = [
            self.distance_weight,
            self.rating_weight,
            self.price_weight,
            self.specialty_weight,
            self.responsiveness_weight,
        ]
        if any(w < 0 for w in weights):
            raise ValueError("score weights must be >= 0")

        if abs(self.total_weight() - 100.0) > 1e-9:
            raise ValueError(f"score weights must sum to 100, got {self.total_weight()}")

        if self.responsiveness_horizon_minutes <= 0:
            raise ValueError("responsiveness_horizon_minutes must be > 0")

        if self.fallback_duration_hours <= 0:
            raise ValueError("fallback_duration_hours must be > 0")

        if self.platform_fee < 0:
            raise ValueError("platform_fee must be >= 0")

        if self.max_write_attempts < 1:
            raise ValueError("max_write_attempts must be >= 1")


def default_matching_policy() -> MatchingPolicy:
    """
    Convenience factory for the default policy (single best match).
    """
    p = MatchingPolicy()
    p.validate()
    return p


def single_offer_policy() -> MatchingPolicy:
    """
    Best-match auto-select: offer to the top-ranked nurse only.
    """
    p = MatchingPolicy(mode=OfferMode.SINGLE, offer_count=1)
    p.validate()
    return p


def multi_offer_policy(offer_count: int = 4) -> MatchingPolicy:
    """
    Offer to the top `offer_count` nurses simultaneously. Uses the responsiveness
    sub-score, so the rating weight drops to 25.
    """
    p = MatchingPolicy(
        mode=OfferMode.MULTI,
        offer_count=offer_count,
        rating_weight=25.0,
        use_responsiveness=True,
    )
    p.validate()
    return p


def policy_from_env() -> MatchingPolicy:
    """
    Build a policy from environment variables (a .env file is honoured).

    MATCHING_MODE=single|multi
    MATCHING_OFFER_COUNT=4
    OFFER_WINDOW_MINUTES=15
    PLATFORM_FEE=5
    """
    load_dotenv()

    mode = os.getenv("MATCHING_MODE", OfferMode.SINGLE.value).strip().lower()
    if mode == OfferMode.MULTI.value:
        p = multi_offer_policy(int(os.getenv("MATCHING_OFFER_COUNT") or "4"))
    elif mode == OfferMode.SINGLE.value:
        p = single_offer_policy()
    else:
        raise ValueError(f"Unknown MATCHING_MODE {mode!r}")

    window = os.getenv("OFFER_WINDOW_MINUTES")
    if window:
        p = replace(p, offer_window_minutes=int(window))

    fee = os.getenv("PLATFORM_FEE")
    if fee:
        p = replace(p, platform_fee=float(fee))

    p.validate()
    return p
