"""
Purpose: The document store "adapter".
What it does:
- Declares the DocumentStore contract the engine is written against
  (get / query / create / update / subscribe), i.e. the cloud document database.
- Ships InMemoryDocumentStore, a thread-safe implementation used by tests,
  scripts and single-process deployments.

Records are plain dicts keyed by collection + document id. Nested fields are
addressed with dotted paths ("matching.selectedNurseId") in filters, updates and
preconditions.

Conditional updates (`expected=`) are the only concurrency mechanism the engine
relies on: a write succeeds only if every expected field still holds the value the
caller read.

Rule: No matching or lifecycle rules here. Storage only.
"""

from __future__ import annotations

import copy
import logging
import threading
import uuid
from typing import Any, Callable, Dict, List, Optional, Protocol, Tuple, Union

logger = logging.getLogger(__name__)

Document = Dict[str, Any]
Filters = Dict[str, Any]
Unsubscribe = Callable[[], None]
OnChange = Callable[[Any], None]

_MISSING = object()


class StoreError(Exception):
    """Base error for document store failures."""
    pass


class DocumentNotFound(StoreError):
    def __init__(self, collection: str, doc_id: str):
        super().__init__(f"Document {doc_id} not found in {collection}")
        self.collection = collection
        self.doc_id = doc_id


class PreconditionFailed(StoreError):
    """Raised when a conditional update finds a field changed since it was read."""

    def __init__(self, collection: str, doc_id: str, field_path: str, expected: Any, actual: Any):
        super().__init__(
            f"Precondition failed on {collection}/{doc_id}: "
            f"{field_path} expected {expected!r}, found {actual!r}"
        )
        self.field_path = field_path
        self.expected = expected
        self.actual = actual


class DocumentStore(Protocol):
    def get(self, collection: str, doc_id: str) -> Optional[Document]:
        ...

    def query(
        self,
        collection: str,
        filters: Optional[Filters] = None,
        *,
        order_by: Optional[str] = None,
        descending: bool = False,
    ) -> List[Document]:
        ...

    def create(self, collection: str, record: Document, doc_id: Optional[str] = None) -> str:
        ...

    def update(
        self,
        collection: str,
        doc_id: str,
        fields: Document,
        *,
        expected: Optional[Filters] = None,
    ) -> None:
        ...

    def subscribe(
        self,
        collection: str,
        target: Union[str, Filters, None],
        on_change: OnChange,
    ) -> Unsubscribe:
        ...


# -------------------------
# Field path helpers
# -------------------------

def sanitize_document(value: Any) -> Any:
    """
    Recursively drop keys whose value is None (and None items in lists).
    The document database rejects undefined field values, so every record is
    sanitized before it is written.
    """
    if isinstance(value, dict):
        return {k: sanitize_document(v) for k, v in value.items() if v is not None}
    if isinstance(value, (list, tuple)):
        return [sanitize_document(item) for item in value if item is not None]
    return value


def get_path(document: Document, path: str, default: Any = None) -> Any:
    current: Any = document
    for part in path.split("."):
        if not isinstance(current, dict) or part not in current:
            return default
        current = current[part]
    return current


def set_path(document: Document, path: str, value: Any) -> None:
    """
    Set a dotted path, creating intermediate dicts. A None value deletes the field.
    """
    parts = path.split(".")
    current = document
    for part in parts[:-1]:
        nxt = current.get(part)
        if not isinstance(nxt, dict):
            if value is None:
                return
            nxt = {}
            current[part] = nxt
        current = nxt

    if value is None:
        current.pop(parts[-1], None)
    else:
        current[parts[-1]] = sanitize_document(value)


def matches_filters(document: Document, filters: Optional[Filters]) -> bool:
    if not filters:
        return True
    for path, expected in filters.items():
        if get_path(document, path, _MISSING) != expected:
            return False
    return True


class InMemoryDocumentStore:
    """
    Dict-backed DocumentStore.

    - All reads return deep copies, so callers can never patch stored state by accident.
    - Writes are serialized with a single lock; conditional updates are atomic.
    - Subscribers are called with a fresh snapshot after every write that touches
      their collection (outside the lock).
    """

    def __init__(self) -> None:
        self._collections: Dict[str, Dict[str, Document]] = {}
        self._lock = threading.RLock()
        self._subscribers: Dict[int, Tuple[str, Union[str, Filters, None], OnChange]] = {}
        self._next_subscriber_id = 0

    # --- Reads ---

    def get(self, collection: str, doc_id: str) -> Optional[Document]:
        with self._lock:
            record = self._collections.get(collection, {}).get(doc_id)
            if record is None:
                return None
            return self._with_id(doc_id, record)

    def query(
        self,
        collection: str,
        filters: Optional[Filters] = None,
        *,
        order_by: Optional[str] = None,
        descending: bool = False,
    ) -> List[Document]:
        with self._lock:
            results = [
                self._with_id(doc_id, record)
                for doc_id, record in self._collections.get(collection, {}).items()
                if matches_filters(record, filters)
            ]

        if order_by:
            # documents without the field sort last in either direction
            present = [doc for doc in results if get_path(doc, order_by) is not None]
            absent = [doc for doc in results if get_path(doc, order_by) is None]
            present.sort(key=lambda doc: get_path(doc, order_by), reverse=descending)
            results = present + absent

        return results

    # --- Writes ---

    def create(self, collection: str, record: Document, doc_id: Optional[str] = None) -> str:
        doc_id = doc_id or str(uuid.uuid4())
        with self._lock:
            docs = self._collections.setdefault(collection, {})
            if doc_id in docs:
                raise StoreError(f"Document {doc_id} already exists in {collection}")
            stored = sanitize_document(copy.deepcopy(record))
            stored.pop("id", None)
            docs[doc_id] = stored

        self._publish(collection, doc_id)
        return doc_id

    def put(self, collection: str, doc_id: str, record: Document) -> None:
        """
        Create-or-replace. Used for seeding nurse / patient records.
        """
        with self._lock:
            stored = sanitize_document(copy.deepcopy(record))
            stored.pop("id", None)
            self._collections.setdefault(collection, {})[doc_id] = stored

        self._publish(collection, doc_id)

    def update(
        self,
        collection: str,
        doc_id: str,
        fields: Document,
        *,
        expected: Optional[Filters] = None,
    ) -> None:
        with self._lock:
            record = self._collections.get(collection, {}).get(doc_id)
            if record is None:
                raise DocumentNotFound(collection, doc_id)

            for path, value in (expected or {}).items():
                actual = get_path(record, path, None)
                if actual != value:
                    raise PreconditionFailed(collection, doc_id, path, value, actual)

            updated = copy.deepcopy(record)
            for path, value in fields.items():
                set_path(updated, path, copy.deepcopy(value))
            self._collections[collection][doc_id] = updated

        self._publish(collection, doc_id)

    def delete(self, collection: str, doc_id: str) -> None:
        with self._lock:
            self._collections.get(collection, {}).pop(doc_id, None)

        self._publish(collection, doc_id)

    # --- Subscriptions ---

    def subscribe(
        self,
        collection: str,
        target: Union[str, Filters, None],
        on_change: OnChange,
    ) -> Unsubscribe:
        """
        target:
          - a document id: on_change(document_or_None)
          - a filters dict (or None): on_change(list_of_documents)

        on_change is invoked once immediately with the current snapshot.
        """
        with self._lock:
            subscriber_id = self._next_subscriber_id
            self._next_subscriber_id += 1
            self._subscribers[subscriber_id] = (collection, target, on_change)

        on_change(self._snapshot(collection, target))

        def unsubscribe() -> None:
            with self._lock:
                self._subscribers.pop(subscriber_id, None)

        return unsubscribe

    # --- Internal ---

    @staticmethod
    def _with_id(doc_id: str, record: Document) -> Document:
        document = copy.deepcopy(record)
        document["id"] = doc_id
        return document

    def _snapshot(self, collection: str, target: Union[str, Filters, None]) -> Any:
        if isinstance(target, str):
            return self.get(collection, target)
        return self.query(collection, target)

    def _publish(self, collection: str, doc_id: str) -> None:
        with self._lock:
            listeners = [
                (target, on_change)
                for (sub_collection, target, on_change) in self._subscribers.values()
                if sub_collection == collection
            ]

        for target, on_change in listeners:
            if isinstance(target, str) and target != doc_id:
                continue
            try:
                on_change(self._snapshot(collection, target))
            except Exception:
                # a broken listener must not undo a committed write
                logger.exception(f"Subscriber on {collection} failed handling change to {doc_id}")
