import copy
import pytest
from datetime import datetime, timedelta, timezone

from bookings.models import (
    MatchedNurseCandidate,
    RequestStatus,
    RequestValidationError,
    ServiceDetails,
    ServiceRequest,
)
from dispatch.state_machines.request_state import (
    StaleStateError,
    accept_offer,
    add_review,
    can_transition,
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

T0 = datetime(2026, 11, 2, 8, 0, tzinfo=timezone.utc)


def candidate(nurse_id, cost):
    return MatchedNurseCandidate(
        nurse_id=nurse_id, nurse_name=nurse_id, match_score=80, estimated_cost=cost, distance_km=1.0, rating=4.5
    )


def new_request(mode="single", nurse_costs=None):
    request = ServiceRequest(
        id="req_1",
        patient_id="patient_1",
        patient_name="Chipo",
        service_details=ServiceDetails(
            service_type="general",
            scheduled_at=T0 + timedelta(days=1),
            duration_hours=2,
            address="User's current location",
            coordinates=(-17.8292, 31.0522),
        ),
        created_at=T0,
        updated_at=T0,
    )
    costs = nurse_costs or {"nurse_a": 100.0, "nurse_b": 90.0, "nurse_c": 80.0}
    return transition_to_finding_nurses(request, [candidate(n, c) for n, c in costs.items()], mode, T0)


def pending_request(mode="single", nurse_ids=("nurse_a",)):
    request = new_request(mode)
    for nurse_id in nurse_ids:
        record_offer(request, nurse_id, request.matching.candidate(nurse_id).estimated_cost, 15, T0)
    return request


def test_record_offer_sets_deadline_and_moves_to_pending():
    request = new_request()

    record_offer(request, "nurse_a", 100.0, 15, T0)

    assert request.status == RequestStatus.PENDING_RESPONSE
    assert request.matching.pending_nurse_ids == ["nurse_a"]
    assert request.matching.offered_nurse_ids == ["nurse_a"]
    assert request.matching.offer_sent_at == T0
    assert request.matching.response_deadline == T0 + timedelta(minutes=15)
    assert request.payment.nurse_payment_amount == 100.0


def test_single_mode_rejects_second_offeree():
    request = pending_request()
    before = copy.deepcopy(request)

    with pytest.raises(StaleStateError):
        record_offer(request, "nurse_b", 90.0, 15, T0)

    # a rejected transition leaves the request untouched
    assert request == before


def test_multi_mode_accept_clears_other_offers_and_pays_acceptor():
    request = pending_request("multi", ("nurse_a", "nurse_b", "nurse_c"))
    # the last offer recorded nurse_c's cost
    assert request.payment.nurse_payment_amount == 80.0

    accept_offer(request, "nurse_b", T0 + timedelta(minutes=3))

    assert request.status == RequestStatus.CONFIRMED
    assert request.matching.selected_nurse_id == "nurse_b"
    assert request.matching.pending_nurse_ids == []
    assert request.payment.nurse_payment_amount == 90.0


def test_second_accept_is_stale():
    request = pending_request("multi", ("nurse_a", "nurse_b"))
    accept_offer(request, "nurse_a", T0)
    before = copy.deepcopy(request)

    with pytest.raises(StaleStateError):
        accept_offer(request, "nurse_b", T0)

    assert request == before
    assert is_duplicate_response(request, "nurse_a", True)
    assert not is_duplicate_response(request, "nurse_b", True)


def test_accept_requires_a_pending_offer():
    request = pending_request()

    with pytest.raises(StaleStateError):
        accept_offer(request, "nurse_b", T0)


def test_single_mode_decline_ends_request():
    request = pending_request()

    decline_offer(request, "nurse_a", T0)

    assert request.status == RequestStatus.DECLINED
    assert request.matching.selected_nurse_id is None
    assert request.matching.declined_nurse_ids == ["nurse_a"]
    assert is_duplicate_response(request, "nurse_a", False)


def test_multi_mode_decline_waits_for_last_pending():
    request = pending_request("multi", ("nurse_a", "nurse_b"))

    decline_offer(request, "nurse_a", T0)
    assert request.status == RequestStatus.PENDING_RESPONSE
    assert request.matching.pending_nurse_ids == ["nurse_b"]

    decline_offer(request, "nurse_b", T0)
    assert request.status == RequestStatus.DECLINED
    assert request.matching.declined_nurse_ids == ["nurse_a", "nurse_b"]


def test_declined_nurse_cannot_be_offered_again():
    request = pending_request("multi", ("nurse_a", "nurse_b"))
    decline_offer(request, "nurse_a", T0)

    with pytest.raises(StaleStateError):
        record_offer(request, "nurse_a", 100.0, 15, T0)


def test_offer_expires_only_after_deadline():
    request = pending_request()
    deadline = T0 + timedelta(minutes=15)

    assert not is_offer_expired(request, deadline)
    assert is_offer_expired(request, deadline + timedelta(seconds=1))

    with pytest.raises(StaleStateError):
        expire_offer(request, deadline)

    expire_offer(request, T0 + timedelta(minutes=16))

    assert request.status == RequestStatus.DECLINED
    # the lapsed nurse is remembered so a rebook skips them
    assert request.matching.declined_nurse_ids == ["nurse_a"]
    assert request.matching.pending_nurse_ids == []


def test_service_lifecycle_and_review():
    request = pending_request()
    accept_offer(request, "nurse_a", T0)

    start_service(request, T0 + timedelta(days=1))
    assert request.status == RequestStatus.IN_PROGRESS

    complete_request(request, T0 + timedelta(days=1, hours=2))
    assert request.status == RequestStatus.COMPLETED

    with pytest.raises(RequestValidationError):
        add_review(request, 6, "", T0)

    add_review(request, 5, "Very gentle", T0 + timedelta(days=2))
    assert request.review.rating == 5

    # one review per request
    with pytest.raises(StaleStateError):
        add_review(request, 4, "", T0)


def test_review_requires_completion():
    request = pending_request()

    with pytest.raises(StaleStateError):
        add_review(request, 5, "", T0)


@pytest.mark.parametrize("rating", [True, False, 4.5, "5"])
def test_review_rating_must_be_a_whole_star_count(rating):
    request = pending_request()
    accept_offer(request, "nurse_a", T0)
    complete_request(request, T0 + timedelta(hours=2))

    # bool is an int subclass and would otherwise pass as a 1-star rating
    with pytest.raises(RequestValidationError):
        add_review(request, rating, "", T0)
    assert request.review is None


def test_module_docstring_has_no_escape_sequences():
    import dispatch.state_machines.request_state as request_state

    assert "\\" not in request_state.__doc__
    assert "pending-response -> declined" in request_state.__doc__


def test_cancel_from_any_non_terminal_state():
    for make in (new_request, pending_request):
        request = make()
        cancel_request(request, T0)
        assert request.status == RequestStatus.CANCELLED
        assert request.matching.pending_nurse_ids == []

    confirmed = pending_request()
    accept_offer(confirmed, "nurse_a", T0)
    cancel_request(confirmed, T0)
    assert confirmed.status == RequestStatus.CANCELLED


@pytest.mark.parametrize("terminal", [RequestStatus.COMPLETED, RequestStatus.CANCELLED, RequestStatus.DECLINED])
def test_terminal_states_have_no_exits(terminal):
    for target in RequestStatus:
        assert not can_transition(terminal, target)


def test_illegal_edges_are_rejected():
    assert not can_transition(RequestStatus.CREATING, RequestStatus.CONFIRMED)
    assert not can_transition(RequestStatus.FINDING_NURSES, RequestStatus.CONFIRMED)
    assert not can_transition(RequestStatus.PENDING_RESPONSE, RequestStatus.IN_PROGRESS)
    assert can_transition(RequestStatus.CONFIRMED, RequestStatus.COMPLETED)

    request = new_request()
    with pytest.raises(StaleStateError):
        start_service(request, T0)
    with pytest.raises(StaleStateError):
        complete_request(request, T0)
    assert request.status == RequestStatus.FINDING_NURSES
