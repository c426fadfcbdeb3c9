#Expose the high-level pipeline pieces:
#Candidate filtering (hard rules)
#Scoring / ranking
#Matcher (the "one call" matching entry point)
#Dispatcher orchestrator (offers, responses, lifecycle)

from .candidate_filter import filter_eligible_nurses
from .scoring import rank_candidates, score_candidates, score_nurse
from .matcher import MatchResult, find_matching_nurses #the main function to call to match a request to nurses
from .dispatcher import BookingOutcome, Dispatcher, OfferOutcome, ResponseOutcome
from .expiry import OfferExpirySweeper
from .state_machines.request_state import StaleStateError

from bookings.models import RequestValidationError
from bookings.repository import NotFoundError
from store.document_store import StoreError

__all__ = [
    "filter_eligible_nurses",
    "rank_candidates",
    "score_candidates",
    "score_nurse",
    "MatchResult",
    "find_matching_nurses",
    "BookingOutcome",
    "Dispatcher",
    "OfferOutcome",
    "ResponseOutcome",
    "OfferExpirySweeper",
    "StaleStateError",
    "RequestValidationError",
    "NotFoundError",
    "StoreError",
]
