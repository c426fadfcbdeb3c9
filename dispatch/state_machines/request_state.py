"""
Purpose: Lifecycle of a ServiceRequest. The only code that changes `status`.

    creating -> finding-nurses -> pending-response -> confirmed -> in-progress -> completed
                                pending-response -> declined
                                       confirmed -> completed
    any non-terminal state -> cancelled

Every function validates its edge before touching the request, so a rejected transition
leaves the request exactly as it was. Functions mutate and return the request they were
given; callers hand in a freshly-read copy and persist it with a version precondition.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Dict, FrozenSet, List, Optional

from bookings.models import (
    MatchedNurseCandidate,
    RequestStatus,
    RequestValidationError,
    Review,
    ServiceRequest,
)


class StaleStateError(Exception):
    """Raised when a transition is not valid for the request's current status."""

    def __init__(self, message: str, request_id: str = "", status: Optional[RequestStatus] = None):
        super().__init__(message)
        self.request_id = request_id
        self.status = status


ALLOWED_TRANSITIONS: Dict[RequestStatus, FrozenSet[RequestStatus]] = {
    RequestStatus.CREATING: frozenset({RequestStatus.FINDING_NURSES, RequestStatus.CANCELLED}),
    RequestStatus.FINDING_NURSES: frozenset({RequestStatus.PENDING_RESPONSE, RequestStatus.CANCELLED}),
    RequestStatus.PENDING_RESPONSE: frozenset({
        RequestStatus.CONFIRMED,
        RequestStatus.DECLINED,
        RequestStatus.CANCELLED,
    }),
    RequestStatus.CONFIRMED: frozenset({
        RequestStatus.IN_PROGRESS,
        RequestStatus.COMPLETED,
        RequestStatus.CANCELLED,
    }),
    RequestStatus.IN_PROGRESS: frozenset({RequestStatus.COMPLETED, RequestStatus.CANCELLED}),
    RequestStatus.COMPLETED: frozenset(),
    RequestStatus.CANCELLED: frozenset(),
    RequestStatus.DECLINED: frozenset(),
}


def can_transition(current: RequestStatus, target: RequestStatus) -> bool:
    return target in ALLOWED_TRANSITIONS[current]


def _require(request: ServiceRequest, target: RequestStatus) -> None:
    if not can_transition(request.status, target):
        raise StaleStateError(
            f"Cannot transition request {request.id} to {target.value} from {request.status.value}",
            request_id=request.id,
            status=request.status,
        )


def _move(request: ServiceRequest, target: RequestStatus, now: datetime) -> ServiceRequest:
    _require(request, target)
    request.status = target
    request.updated_at = now
    return request


# -------------------------
# Matching / offers
# -------------------------

def transition_to_finding_nurses(
    request: ServiceRequest,
    candidates: List[MatchedNurseCandidate],
    mode: str,
    now: datetime,
) -> ServiceRequest:
    """
    Called once the candidate snapshot is ready to be persisted with the new request.
    """
    _require(request, RequestStatus.FINDING_NURSES)
    request.matching.available_nurses = list(candidates)
    request.matching.mode = mode
    return _move(request, RequestStatus.FINDING_NURSES, now)


def record_offer(
    request: ServiceRequest,
    nurse_id: str,
    estimated_cost: float,
    offer_window_minutes: int,
    now: datetime,
) -> ServiceRequest:
    """
    Adds nurse_id to the pending offers, refreshes the offer time and response deadline,
    sets the nurse payment, and moves finding-nurses -> pending-response.
    """
    matching = request.matching

    if request.status not in (RequestStatus.FINDING_NURSES, RequestStatus.PENDING_RESPONSE):
        raise StaleStateError(
            f"Cannot offer request {request.id} while {request.status.value}",
            request_id=request.id,
            status=request.status,
        )

    if nurse_id in matching.declined_nurse_ids:
        raise StaleStateError(
            f"Nurse {nurse_id} already declined request {request.id}",
            request_id=request.id,
            status=request.status,
        )

    if matching.mode == "single" and matching.pending_nurse_ids and nurse_id not in matching.pending_nurse_ids:
        raise StaleStateError(
            f"Request {request.id} is already offered to {matching.pending_nurse_ids[0]}",
            request_id=request.id,
            status=request.status,
        )

    if nurse_id not in matching.pending_nurse_ids:
        matching.pending_nurse_ids.append(nurse_id)
    if nurse_id not in matching.offered_nurse_ids:
        matching.offered_nurse_ids.append(nurse_id)

    matching.offer_sent_at = now
    matching.response_deadline = now + timedelta(minutes=offer_window_minutes)
    request.payment.nurse_payment_amount = estimated_cost

    if request.status == RequestStatus.FINDING_NURSES:
        return _move(request, RequestStatus.PENDING_RESPONSE, now)

    request.updated_at = now
    return request


def is_offer_expired(request: ServiceRequest, now: datetime) -> bool:
    deadline = request.matching.response_deadline
    return (
        request.status == RequestStatus.PENDING_RESPONSE
        and deadline is not None
        and now > deadline
    )


def is_duplicate_response(request: ServiceRequest, nurse_id: str, accepted: bool) -> bool:
    """
    True if this exact response was already applied, so applying it again must be a no-op.
    """
    matching = request.matching
    if accepted:
        return (
            request.status in (RequestStatus.CONFIRMED, RequestStatus.IN_PROGRESS, RequestStatus.COMPLETED)
            and matching.selected_nurse_id == nurse_id
        )
    return nurse_id in matching.declined_nurse_ids and nurse_id not in matching.pending_nurse_ids


def accept_offer(request: ServiceRequest, nurse_id: str, now: datetime) -> ServiceRequest:
    """
    pending-response -> confirmed. The accepting nurse becomes the selected nurse and
    every other pending offer is cleared in the same write.
    """
    if request.status != RequestStatus.PENDING_RESPONSE:
        raise StaleStateError(
            f"Offer for request {request.id} is no longer available ({request.status.value})",
            request_id=request.id,
            status=request.status,
        )

    matching = request.matching
    if nurse_id not in matching.pending_nurse_ids:
        raise StaleStateError(
            f"Nurse {nurse_id} has no pending offer for request {request.id}",
            request_id=request.id,
            status=request.status,
        )

    _move(request, RequestStatus.CONFIRMED, now)
    matching.selected_nurse_id = nurse_id
    matching.pending_nurse_ids = []

    # the payment follows the nurse who accepted, not the last nurse offered
    candidate = matching.candidate(nurse_id)
    if candidate is not None:
        request.payment.nurse_payment_amount = candidate.estimated_cost

    return request


def decline_offer(request: ServiceRequest, nurse_id: str, now: datetime) -> ServiceRequest:
    """
    Single-offer: pending-response -> declined.
    Multi-offer: drop the nurse from the pending set; declined once nobody is left.
    """
    if request.status != RequestStatus.PENDING_RESPONSE:
        raise StaleStateError(
            f"Offer for request {request.id} is no longer available ({request.status.value})",
            request_id=request.id,
            status=request.status,
        )

    matching = request.matching
    if nurse_id not in matching.pending_nurse_ids:
        raise StaleStateError(
            f"Nurse {nurse_id} has no pending offer for request {request.id}",
            request_id=request.id,
            status=request.status,
        )

    if matching.mode == "single" or len(matching.pending_nurse_ids) == 1:
        _require(request, RequestStatus.DECLINED)

    matching.pending_nurse_ids = [n for n in matching.pending_nurse_ids if n != nurse_id]
    matching.declined_nurse_ids.append(nurse_id)

    if matching.mode == "single" or not matching.pending_nurse_ids:
        matching.pending_nurse_ids = []
        matching.selected_nurse_id = None
        return _move(request, RequestStatus.DECLINED, now)

    request.updated_at = now
    return request


def expire_offer(request: ServiceRequest, now: datetime) -> ServiceRequest:
    """
    pending-response -> declined once the response deadline has passed with no acceptance.
    Nurses that let the offer lapse are recorded alongside the ones that declined.
    """
    if not is_offer_expired(request, now):
        raise StaleStateError(
            f"Offer for request {request.id} has not expired",
            request_id=request.id,
            status=request.status,
        )

    _require(request, RequestStatus.DECLINED)
    matching = request.matching
    for nurse_id in matching.pending_nurse_ids:
        if nurse_id not in matching.declined_nurse_ids:
            matching.declined_nurse_ids.append(nurse_id)
    matching.pending_nurse_ids = []
    matching.selected_nurse_id = None
    return _move(request, RequestStatus.DECLINED, now)


# -------------------------
# Patient / operational actions
# -------------------------

def cancel_request(request: ServiceRequest, now: datetime) -> ServiceRequest:
    """
    Patient-initiated, allowed from any non-terminal state. Outstanding offers are
    withdrawn; a notification already in flight may still arrive.
    """
    _move(request, RequestStatus.CANCELLED, now)
    request.matching.pending_nurse_ids = []
    return request


def start_service(request: ServiceRequest, now: datetime) -> ServiceRequest:
    return _move(request, RequestStatus.IN_PROGRESS, now)


def complete_request(request: ServiceRequest, now: datetime) -> ServiceRequest:
    return _move(request, RequestStatus.COMPLETED, now)


def add_review(request: ServiceRequest, rating: int, comment: str, now: datetime) -> ServiceRequest:
    if request.status != RequestStatus.COMPLETED:
        raise StaleStateError(
            f"Request {request.id} can only be reviewed once completed ({request.status.value})",
            request_id=request.id,
            status=request.status,
        )
    if request.review is not None:
        raise StaleStateError(
            f"Request {request.id} already has a review",
            request_id=request.id,
            status=request.status,
        )
    if isinstance(rating, bool) or not isinstance(rating, int) or not 1 <= rating <= 5:
        raise RequestValidationError(f"rating must be an integer 1-5, got {rating!r}")

    request.review = Review(rating=rating, comment=comment, submitted_at=now)
    request.updated_at = now
    return request
