"""
Purpose: Orchestrator / decision pipeline (the "glue").
What it does:
Takes a patient's request through matching, persists it with its candidate snapshot,
offers it to the selected nurse(s), and applies their accept/decline responses.

Every mutation of a ServiceRequest goes through this class:
read -> apply a request_state transition -> write conditioned on the version that was read.
If another writer got there first the write is retried against fresh state, which is how
"first acceptance wins" is enforced without locks.

Offer expiry is best-effort: it is applied whenever a request is observed through this class
(observe / respond) and by the opt-in OfferExpirySweeper. There is no built-in timer.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, List, Optional, Sequence, Tuple

from bookings.models import (
    MatchedNurseCandidate,
    PaymentState,
    RequestStatus,
    ServiceDetails,
    ServiceRequest,
    ServiceRequestInput,
    utcnow,
)
from bookings.repository import ServiceRequestRepository
from notifications.sender import NotificationKind, NotificationSender
from nurses.models import NurseProfile
from nurses.policy import MatchingPolicy, default_matching_policy
from patients.models import PatientProfile
from store.document_store import DocumentStore, PreconditionFailed, StoreError

from .matcher import MatchResult, find_matching_nurses
from .state_machines.request_state import (
    StaleStateError,
    accept_offer,
    add_review,
    cancel_request,
    complete_request,
    decline_offer,
    expire_offer,
    is_duplicate_response,
    is_offer_expired,
    record_offer,
    start_service,
    transition_to_finding_nurses,
)

logger = logging.getLogger(__name__)

NowFn = Callable[[], datetime]
# Applies a transition in place; returns False when there is nothing to write.
Mutation = Callable[[ServiceRequest], bool]


@dataclass(frozen=True)
class OfferOutcome:
    request: ServiceRequest
    nurse_id: str
    notified: bool
    warnings: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class ResponseOutcome:
    request: ServiceRequest
    # False when the same response had already been applied
    applied: bool
    warnings: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class BookingOutcome:
    request: ServiceRequest
    match: MatchResult
    offers: List[OfferOutcome] = field(default_factory=list)

    @property
    def no_nurses_available(self) -> bool:
        return not self.match.has_candidates


class Dispatcher:
    """
    Coordinates a ServiceRequest from creation to a terminal status.
    """
    def __init__(
        self,
        store: DocumentStore,
        notifier: Optional[NotificationSender] = None,
        policy: Optional[MatchingPolicy] = None,
        now_fn: Optional[NowFn] = None,
    ):
        self.repository = ServiceRequestRepository(store)
        self.notifier = notifier
        self.policy = policy or default_matching_policy()
        self.now_fn = now_fn or utcnow

    # -------------------------
    # Request creation
    # -------------------------

    def create_request(
        self,
        patient: PatientProfile,
        request_input: ServiceRequestInput,
        nurses: Sequence[NurseProfile],
        *,
        exclude_nurse_ids: Sequence[str] = (),
    ) -> Tuple[ServiceRequest, MatchResult]:
        """
        Validate, run a matching pass, and persist the request with its candidate snapshot
        (status finding-nurses). Nothing is written if the input is invalid.

        A pass with no candidates still persists the request; the caller shows the
        "no nurses available" state and sends no offer.
        """
        request_input.validate()

        match = find_matching_nurses(
            nurses,
            request_input,
            patient.preferences,
            self.policy,
            exclude_nurse_ids=exclude_nurse_ids,
        )

        now = self.now_fn()
        request = ServiceRequest(
            id="",
            patient_id=patient.id,
            patient_name=patient.name,
            service_details=ServiceDetails.from_input(request_input),
            payment=PaymentState(platform_fee=self.policy.platform_fee),
            created_at=now,
            updated_at=now,
        )
        # creating -> finding-nurses is committed by the same write that creates the record
        transition_to_finding_nurses(request, match.ranked, self.policy.mode.value, now)
        request = self.repository.create(request)

        return request, match

    def request_service(self, patient_id: str, request_input: ServiceRequestInput) -> BookingOutcome:
        """
        The full patient flow: load the patient and online nurses, create the request,
        offer it to the top-k candidates.
        """
        request_input.validate()

        patient = self.repository.get_patient(patient_id)
        nurses = self.repository.list_online_nurses()

        request, match = self.create_request(patient, request_input, nurses)
        return self._offer_new_request(request, match)

    def rebook(self, request_id: str) -> BookingOutcome:
        """
        Caller-driven fallback after a decline: a fresh matching pass for the same details,
        excluding nurses that declined or let the offer lapse. The declined request is
        left untouched.
        """
        previous = self.repository.get(request_id)
        if previous.status != RequestStatus.DECLINED:
            raise StaleStateError(
                f"Only declined requests can be rebooked ({previous.status.value})",
                request_id=previous.id,
                status=previous.status,
            )

        patient = self.repository.get_patient(previous.patient_id)
        nurses = self.repository.list_online_nurses()

        request, match = self.create_request(
            patient,
            previous.service_details.to_input(),
            nurses,
            exclude_nurse_ids=previous.matching.declined_nurse_ids,
        )
        logger.info(f"Rebooked declined request {previous.id} as {request.id}")
        return self._offer_new_request(request, match)

    def _offer_new_request(self, request: ServiceRequest, match: MatchResult) -> BookingOutcome:
        if not match.has_candidates:
            return BookingOutcome(request=request, match=match)

        offers = self.offer_to_candidates(request.id, match.selected)
        latest = offers[-1].request if offers else request
        return BookingOutcome(request=latest, match=match, offers=offers)

    # -------------------------
    # Offer dispatcher
    # -------------------------

    def offer(self, request_id: str, nurse_id: str, estimated_cost: float) -> OfferOutcome:
        """
        Record an outstanding offer (pending set, offer time, deadline, nurse payment),
        then notify the nurse. A failed notification does not roll the offer back.
        """
        now = self.now_fn()

        def mutation(request: ServiceRequest) -> bool:
            record_offer(request, nurse_id, estimated_cost, self.policy.offer_window_minutes, now)
            return True

        request, _ = self._apply(request_id, mutation)
        logger.info(
            f"Offer for request {request_id} sent to nurse {nurse_id}, "
            f"deadline {request.matching.response_deadline.isoformat()}"
        )

        warning = self._notify(NotificationKind.NEW_OFFER, nurse_id, request_id)
        return OfferOutcome(
            request=request,
            nurse_id=nurse_id,
            notified=warning is None,
            warnings=[warning] if warning else [],
        )

    def offer_to_candidates(
        self,
        request_id: str,
        candidates: Optional[Sequence[MatchedNurseCandidate]] = None,
    ) -> List[OfferOutcome]:
        """
        Offer to the given candidates, or to the top-k of the request's own snapshot.
        """
        if candidates is None:
            snapshot = self.repository.get(request_id).matching.available_nurses
            candidates = snapshot[: self.policy.offer_count]

        return [self.offer(request_id, c.nurse_id, c.estimated_cost) for c in candidates]

    # -------------------------
    # Response handler
    # -------------------------

    def respond(self, request_id: str, nurse_id: str, accepted: bool) -> ResponseOutcome:
        """
        Apply a nurse's decision.

        accept: pending-response -> confirmed, other offers cleared. A late acceptance
                (someone else won, or the offer expired) raises StaleStateError.
        decline: single-offer -> declined; multi-offer -> declined once nobody is pending.

        Repeating the same response is a no-op without notifications.
        """
        self.observe(request_id)
        now = self.now_fn()

        def mutation(request: ServiceRequest) -> bool:
            if is_duplicate_response(request, nurse_id, accepted):
                return False
            if accepted:
                accept_offer(request, nurse_id, now)
            else:
                decline_offer(request, nurse_id, now)
            return True

        request, applied = self._apply(request_id, mutation)
        if not applied:
            logger.info(f"Duplicate response from nurse {nurse_id} on request {request_id} ignored")
            return ResponseOutcome(request=request, applied=False)

        warnings = []
        if accepted:
            logger.info(f"Request {request_id} confirmed by nurse {nurse_id}")
            # the accepting nurse gets the booking confirmation, the patient the acceptance
            nurse_warning = self._notify(NotificationKind.CONFIRMATION, nurse_id, request_id)
            if nurse_warning:
                warnings.append(nurse_warning)
            warning = self._notify(NotificationKind.REQUEST_CONFIRMED, request.patient_id, request_id)
        elif request.status == RequestStatus.DECLINED:
            logger.info(f"Request {request_id} declined (last response from nurse {nurse_id})")
            warning = self._notify(NotificationKind.REQUEST_DECLINED, request.patient_id, request_id)
        else:
            logger.info(
                f"Nurse {nurse_id} declined request {request_id}, "
                f"{len(request.matching.pending_nurse_ids)} offer(s) still pending"
            )
            warning = None

        if warning:
            warnings.append(warning)
        return ResponseOutcome(request=request, applied=True, warnings=warnings)

    # -------------------------
    # Expiry
    # -------------------------

    def observe(self, request_id: str) -> ServiceRequest:
        """
        Client re-observation of a request. If the response deadline has passed with no
        acceptance, the request is moved to declined before it is returned.
        """
        request = self.repository.get(request_id)
        if not is_offer_expired(request, self.now_fn()):
            return request

        expired = self.expire_if_overdue(request_id)
        return expired or self.repository.get(request_id)

    def expire_if_overdue(self, request_id: str, now: Optional[datetime] = None) -> Optional[ServiceRequest]:
        """
        Returns the declined request if this call expired it, else None.
        """
        now = now or self.now_fn()

        def mutation(request: ServiceRequest) -> bool:
            if not is_offer_expired(request, now):
                return False
            expire_offer(request, now)
            return True

        request, applied = self._apply(request_id, mutation)
        if not applied:
            return None

        logger.info(f"Offer for request {request_id} expired at {request.matching.response_deadline.isoformat()}")
        self._notify(NotificationKind.REQUEST_DECLINED, request.patient_id, request_id)
        return request

    # -------------------------
    # Patient / operational actions
    # -------------------------

    def cancel(self, request_id: str) -> ServiceRequest:
        """
        Patient cancellation. Cancelling an already-cancelled request is a no-op.
        """
        now = self.now_fn()

        def mutation(request: ServiceRequest) -> bool:
            if request.status == RequestStatus.CANCELLED:
                return False
            cancel_request(request, now)
            return True

        request, applied = self._apply(request_id, mutation)
        if applied:
            logger.info(f"Request {request_id} cancelled by patient {request.patient_id}")
        return request

    def start_service(self, request_id: str) -> ServiceRequest:
        """
        confirmed -> in-progress; tells the patient the nurse is on the way.
        """
        now = self.now_fn()
        request, _ = self._apply(request_id, lambda r: bool(start_service(r, now)))
        self._notify(NotificationKind.EN_ROUTE, request.patient_id, request_id)
        return request

    def complete(self, request_id: str) -> ServiceRequest:
        now = self.now_fn()
        request, _ = self._apply(request_id, lambda r: bool(complete_request(r, now)))
        logger.info(f"Request {request_id} completed")
        return request

    def submit_review(self, request_id: str, rating: int, comment: str = "") -> ServiceRequest:
        now = self.now_fn()
        request, _ = self._apply(request_id, lambda r: bool(add_review(r, rating, comment, now)))
        return request

    # -------------------------
    # Internal helpers
    # -------------------------

    def _apply(self, request_id: str, mutation: Mutation) -> Tuple[ServiceRequest, bool]:
        """
        Read -> mutate -> conditional write, retried on contention.
        StaleStateError from the mutation propagates and nothing is written.
        """
        for attempt in range(1, self.policy.max_write_attempts + 1):
            request = self.repository.get(request_id)
            read_version = request.version

            if not mutation(request):
                return request, False

            try:
                return self.repository.save(request, expected_version=read_version), True
            except PreconditionFailed:
                logger.info(f"Request {request_id} changed concurrently (attempt {attempt}), retrying")

        raise StoreError(
            f"Could not update request {request_id} after {self.policy.max_write_attempts} attempts"
        )

    def _notify(self, kind: NotificationKind, recipient_id: str, request_id: str) -> Optional[str]:
        """
        Fire-and-forget. Returns a warning message on failure, None on success.
        """
        if not self.notifier:
            return None

        try:
            result = self.notifier.notify(kind, recipient_id, request_id)
        except Exception as e:
            logger.exception(f"Notification sender raised for {kind.value} to {recipient_id}")
            return f"Notification '{kind.value}' to {recipient_id} failed: {e}"

        if not result.success:
            logger.warning(f"Notification '{kind.value}' to {recipient_id} failed: {result.message}")
            return f"Notification '{kind.value}' to {recipient_id} failed: {result.message}"

        return None
