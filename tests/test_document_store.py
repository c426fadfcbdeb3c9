import pytest

from store.document_store import (
    DocumentNotFound,
    InMemoryDocumentStore,
    PreconditionFailed,
    StoreError,
    get_path,
    sanitize_document,
)


@pytest.fixture
def store():
    return InMemoryDocumentStore()


def test_sanitize_drops_none_recursively():
    doc = {"a": 1, "b": None, "c": {"d": None, "e": [1, None, {"f": None}]}}

    assert sanitize_document(doc) == {"a": 1, "c": {"e": [1, {}]}}


def test_get_path():
    doc = {"availability": {"isOnline": True}}

    assert get_path(doc, "availability.isOnline") is True
    assert get_path(doc, "availability.serviceRadius", 10) == 10
    assert get_path(doc, "rates.hourlyRate") is None


def test_create_get_and_reads_are_copies(store):
    doc_id = store.create("serviceRequests", {"status": "creating", "matching": {"pendingNurseIds": []}})

    doc = store.get("serviceRequests", doc_id)
    assert doc["id"] == doc_id
    assert doc["status"] == "creating"

    # mutating a read never changes stored state
    doc["matching"]["pendingNurseIds"].append("nurse_a")
    assert store.get("serviceRequests", doc_id)["matching"]["pendingNurseIds"] == []

    with pytest.raises(StoreError):
        store.create("serviceRequests", {}, doc_id=doc_id)


def test_query_filters_and_orders_missing_last(store):
    store.put("nurses", "n1", {"availability": {"isOnline": True}, "stats": {"rating": 4.0}})
    store.put("nurses", "n2", {"availability": {"isOnline": False}, "stats": {"rating": 5.0}})
    store.put("nurses", "n3", {"availability": {"isOnline": True}, "stats": {"rating": 4.8}})
    store.put("nurses", "n4", {"availability": {"isOnline": True}})

    online = store.query("nurses", {"availability.isOnline": True}, order_by="stats.rating", descending=True)

    assert [d["id"] for d in online] == ["n3", "n1", "n4"]


def test_conditional_update(store):
    store.put("serviceRequests", "r1", {"status": "pending-response", "version": 2, "review": {"rating": 5}})

    with pytest.raises(PreconditionFailed) as exc_info:
        store.update("serviceRequests", "r1", {"status": "confirmed"}, expected={"version": 1})
    assert exc_info.value.actual == 2
    assert store.get("serviceRequests", "r1")["status"] == "pending-response"

    store.update("serviceRequests", "r1", {"status": "confirmed", "version": 3, "review": None},
                 expected={"version": 2})
    doc = store.get("serviceRequests", "r1")
    assert doc["status"] == "confirmed"
    # None deletes the field
    assert "review" not in doc

    with pytest.raises(DocumentNotFound):
        store.update("serviceRequests", "missing", {"status": "confirmed"})


def test_subscribe_document_and_query(store):
    store.put("serviceRequests", "r1", {"patientId": "p1", "status": "finding-nurses"})
    seen_doc = []
    seen_list = []

    unsubscribe = store.subscribe("serviceRequests", "r1", seen_doc.append)
    store.subscribe("serviceRequests", {"patientId": "p1"}, seen_list.append)

    store.update("serviceRequests", "r1", {"status": "pending-response"})
    store.put("serviceRequests", "r2", {"patientId": "p2"})

    # initial snapshot + one update; r2 is another document
    assert [d["status"] for d in seen_doc] == ["finding-nurses", "pending-response"]
    assert [len(docs) for docs in seen_list] == [1, 1, 1]

    unsubscribe()
    store.delete("serviceRequests", "r1")
    assert len(seen_doc) == 2
    assert seen_list[-1] == []


def test_broken_listener_does_not_undo_write(store):
    def explode(_):
        raise RuntimeError("listener bug")

    store.put("serviceRequests", "r1", {"status": "finding-nurses"})
    # the initial snapshot call is the caller's problem
    with pytest.raises(RuntimeError):
        store.subscribe("serviceRequests", "r1", explode)

    store.update("serviceRequests", "r1", {"status": "pending-response"})
    assert store.get("serviceRequests", "r1")["status"] == "pending-response"
