from datetime import timedelta

from bookings.models import RequestStatus
from patients.dashboard import group_requests

from conftest import T0


def test_dashboard_groups_patient_requests(dispatcher, clock, request_input):
    confirmed_id = dispatcher.request_service("patient_1", request_input).request.id
    dispatcher.respond(confirmed_id, "nurse_a", True)

    pending_id = dispatcher.request_service("patient_1", request_input).request.id

    cancelled_id = dispatcher.request_service("patient_1", request_input).request.id
    dispatcher.cancel(cancelled_id)

    requests = dispatcher.repository.list_for_patient("patient_1")
    dashboard = group_requests(requests, now=T0)

    assert [r.id for r in dashboard.upcoming] == [confirmed_id]
    assert [r.id for r in dashboard.active] == [pending_id]
    assert [r.id for r in dashboard.history] == [cancelled_id]


def test_confirmed_request_in_the_past_is_not_upcoming(dispatcher, request_input):
    request_id = dispatcher.request_service("patient_1", request_input).request.id
    dispatcher.respond(request_id, "nurse_a", True)
    requests = dispatcher.repository.list_for_patient("patient_1")

    dashboard = group_requests(requests, now=T0 + timedelta(days=2))

    assert requests[0].status == RequestStatus.CONFIRMED
    assert dashboard.upcoming == []
    assert dashboard.active == []
    assert dashboard.history == []


def test_watch_patient_pushes_newest_first(dispatcher, clock, request_input):
    snapshots = []
    unsubscribe = dispatcher.repository.watch_patient("patient_1", snapshots.append)

    first_id = dispatcher.request_service("patient_1", request_input).request.id
    clock.advance(minutes=1)
    second_id = dispatcher.request_service("patient_1", request_input).request.id
    unsubscribe()

    assert snapshots[0] == []
    assert [r.id for r in snapshots[-1]] == [second_id, first_id]
