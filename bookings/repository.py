"""
Purpose: Owns every read/write of booking records in the document store.
What it does:
- Loads patients and online nurses for a matching pass.
- Creates, loads and lists service requests.
- Saves a request with an optimistic-concurrency precondition on `version`,
  so two writers that read the same state cannot both commit.

Rule: Repository owns persistence, dispatch owns state transitions.
"""

from __future__ import annotations

import logging
from typing import Callable, List, Optional

from nurses.models import NurseProfile
from patients.models import PatientProfile
from store.document_store import DocumentStore, DocumentNotFound

from .models import RequestStatus, ServiceRequest

logger = logging.getLogger(__name__)

PATIENTS = "patients"
NURSES = "nurses"
SERVICE_REQUESTS = "serviceRequests"


class NotFoundError(LookupError):
    """Raised when a patient, nurse or service request record does not exist."""

    def __init__(self, kind: str, record_id: str):
        super().__init__(f"{kind} {record_id} not found")
        self.kind = kind
        self.record_id = record_id


class ServiceRequestRepository:
    def __init__(self, store: DocumentStore):
        self.store = store

    # --- Directory reads ---

    def get_patient(self, patient_id: str) -> PatientProfile:
        doc = self.store.get(PATIENTS, patient_id)
        if doc is None:
            raise NotFoundError("Patient", patient_id)
        return PatientProfile.from_document(patient_id, doc)

    def list_online_nurses(self) -> List[NurseProfile]:
        docs = self.store.query(NURSES, {"availability.isOnline": True})
        return [NurseProfile.from_document(doc["id"], doc) for doc in docs]

    # --- Service requests ---

    def get(self, request_id: str) -> ServiceRequest:
        doc = self.store.get(SERVICE_REQUESTS, request_id)
        if doc is None:
            raise NotFoundError("Service request", request_id)
        return ServiceRequest.from_document(request_id, doc)

    def create(self, request: ServiceRequest) -> ServiceRequest:
        """
        Persist a new request. The store assigns the id unless the request already has one.
        """
        request.version = 1
        request.id = self.store.create(SERVICE_REQUESTS, request.to_document(), doc_id=request.id or None)
        logger.info(f"Created service request {request.id} for patient {request.patient_id} ({request.status.value})")
        return request

    def save(self, request: ServiceRequest, *, expected_version: int) -> ServiceRequest:
        """
        Write the whole request back, only if nobody else wrote since `expected_version`.
        Raises store.PreconditionFailed on contention.
        """
        request.version = expected_version + 1
        try:
            self.store.update(
                SERVICE_REQUESTS,
                request.id,
                request.to_document(),
                expected={"version": expected_version},
            )
        except DocumentNotFound:
            request.version = expected_version
            raise NotFoundError("Service request", request.id)
        except Exception:
            request.version = expected_version
            raise
        return request

    def list_for_patient(self, patient_id: str) -> List[ServiceRequest]:
        """
        A patient's requests, newest first.
        """
        docs = self.store.query(
            SERVICE_REQUESTS,
            {"patientId": patient_id},
            order_by="createdAt",
            descending=True,
        )
        return [ServiceRequest.from_document(doc["id"], doc) for doc in docs]

    def list_by_status(self, status: RequestStatus) -> List[ServiceRequest]:
        docs = self.store.query(SERVICE_REQUESTS, {"status": status.value}, order_by="createdAt")
        return [ServiceRequest.from_document(doc["id"], doc) for doc in docs]

    def watch(self, request_id: str, on_change: Callable[[Optional[ServiceRequest]], None]) -> Callable[[], None]:
        """
        Subscribe to one request. Returns the unsubscribe callable.
        """
        def _forward(doc):
            on_change(ServiceRequest.from_document(request_id, doc) if doc is not None else None)

        return self.store.subscribe(SERVICE_REQUESTS, request_id, _forward)

    def watch_patient(
        self, patient_id: str, on_change: Callable[[List[ServiceRequest]], None]
    ) -> Callable[[], None]:
        def _forward(docs):
            requests = [ServiceRequest.from_document(doc["id"], doc) for doc in docs]
            requests.sort(key=lambda r: r.created_at, reverse=True)
            on_change(requests)

        return self.store.subscribe(SERVICE_REQUESTS, {"patientId": patient_id}, _forward)
