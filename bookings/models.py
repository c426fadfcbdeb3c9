"""
Purpose: Domain models for the Bookings capability.
What it does:
- Defines core data structures:
- ServiceRequestInput (form input, consumed once to create a request)
- ServiceRequest (the persisted aggregate: details, status, matching, payment, review)
- MatchedNurseCandidate (read-only projection of a scored nurse)

Defines enums/constants:
- RequestStatus = creating | finding-nurses | pending-response | confirmed
                  | in-progress | completed | cancelled | declined

Maps requests to/from the stored document shape (camelCase, `matching` and
`payment` sub-structures), keeping status strings byte-for-byte.

Rule: No store calls, no lifecycle logic. Models only.
"""
from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from geo import LatLon, is_valid_coordinate


class RequestValidationError(ValueError):
    """Raised for malformed request input, before anything is persisted."""
    pass


class RequestStatus(str, Enum):
    CREATING = "creating"
    FINDING_NURSES = "finding-nurses"
    PENDING_RESPONSE = "pending-response"
    CONFIRMED = "confirmed"
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    DECLINED = "declined"


TERMINAL_STATUSES = frozenset({RequestStatus.COMPLETED, RequestStatus.CANCELLED, RequestStatus.DECLINED})


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _as_datetime(value: Any) -> Optional[datetime]:
    if value is None or isinstance(value, datetime):
        return value
    return datetime.fromisoformat(str(value))


@dataclass
class ServiceRequestInput:
    """
    What the patient fills in on the request form.
    """
    service_type: str
    scheduled_at: datetime
    duration_hours: float
    patient_location: Optional[LatLon]
    is_urgent: bool = False
    special_requirements: Optional[str] = None
    address: str = "User's current location"

    def validate(self) -> None:
        if not self.service_type or not self.service_type.strip():
            raise RequestValidationError("service_type is required")

        if not isinstance(self.scheduled_at, datetime):
            raise RequestValidationError(f"scheduled_at must be a datetime, got {self.scheduled_at!r}")

        # the engine clock is UTC-aware; naive datetimes cannot be compared against it
        if self.scheduled_at.tzinfo is None:
            raise RequestValidationError(f"scheduled_at must be timezone-aware, got {self.scheduled_at.isoformat()}")

        if self.duration_hours is None or not math.isfinite(self.duration_hours) or self.duration_hours < 1:
            raise RequestValidationError(f"duration_hours must be >= 1, got {self.duration_hours}")

        if self.patient_location is None:
            raise RequestValidationError("patient_location is required")

        if not is_valid_coordinate(self.patient_location):
            raise RequestValidationError(f"patient_location {self.patient_location} is not a valid coordinate")


@dataclass(frozen=True)
class MatchedNurseCandidate:
    nurse_id: str
    nurse_name: str
    match_score: int
    estimated_cost: float
    distance_km: Optional[float]
    rating: float
    avatar_url: str = ""
    qualification: str = ""

    def to_document(self) -> Dict[str, Any]:
        return {
            "nurseId": self.nurse_id,
            "nurseName": self.nurse_name,
            "avatarUrl": self.avatar_url,
            "qualification": self.qualification,
            "matchScore": self.match_score,
            "estimatedCost": self.estimated_cost,
            "distance": self.distance_km,
            "rating": self.rating,
        }

    @classmethod
    def from_document(cls, doc: Dict[str, Any]) -> MatchedNurseCandidate:
        return cls(
            nurse_id=doc["nurseId"],
            nurse_name=doc.get("nurseName", ""),
            match_score=int(doc.get("matchScore", 0)),
            estimated_cost=float(doc.get("estimatedCost", 0.0)),
            distance_km=doc.get("distance"),
            rating=float(doc.get("rating", 0.0)),
            avatar_url=doc.get("avatarUrl", ""),
            qualification=doc.get("qualification", ""),
        )


@dataclass
class ServiceDetails:
    service_type: str
    scheduled_at: datetime
    duration_hours: float
    address: str
    coordinates: LatLon
    is_urgent: bool = False
    special_requirements: Optional[str] = None

    @classmethod
    def from_input(cls, request_input: ServiceRequestInput) -> ServiceDetails:
        return cls(
            service_type=request_input.service_type,
            scheduled_at=request_input.scheduled_at,
            duration_hours=request_input.duration_hours,
            address=request_input.address,
            coordinates=request_input.patient_location,
            is_urgent=request_input.is_urgent,
            special_requirements=request_input.special_requirements,
        )

    def to_input(self) -> ServiceRequestInput:
        return ServiceRequestInput(
            service_type=self.service_type,
            scheduled_at=self.scheduled_at,
            duration_hours=self.duration_hours,
            patient_location=self.coordinates,
            is_urgent=self.is_urgent,
            special_requirements=self.special_requirements,
            address=self.address,
        )


@dataclass
class MatchingState:
    # Snapshot taken at creation; never re-derived.
    available_nurses: List[MatchedNurseCandidate] = field(default_factory=list)
    mode: str = "single"
    pending_nurse_ids: List[str] = field(default_factory=list)
    offered_nurse_ids: List[str] = field(default_factory=list)
    declined_nurse_ids: List[str] = field(default_factory=list)
    selected_nurse_id: Optional[str] = None
    offer_sent_at: Optional[datetime] = None
    response_deadline: Optional[datetime] = None

    def candidate(self, nurse_id: str) -> Optional[MatchedNurseCandidate]:
        return next((c for c in self.available_nurses if c.nurse_id == nurse_id), None)


@dataclass
class PaymentState:
    platform_fee: float = 5.0
    platform_fee_paid: bool = False
    nurse_payment_amount: float = 0.0
    nurse_payment_paid: bool = False


@dataclass(frozen=True)
class Review:
    rating: int
    comment: str = ""
    submitted_at: Optional[datetime] = None


@dataclass
class ServiceRequest:
    """
    The persistent aggregate root of the engine.
    Only dispatch.state_machines.request_state changes `status`.
    """
    id: str
    patient_id: str
    patient_name: str
    service_details: ServiceDetails

    status: RequestStatus = RequestStatus.CREATING
    matching: MatchingState = field(default_factory=MatchingState)
    payment: PaymentState = field(default_factory=PaymentState)
    review: Optional[Review] = None

    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)

    # optimistic concurrency counter, bumped on every write
    version: int = 0

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def to_document(self) -> Dict[str, Any]:
        details = self.service_details
        matching = self.matching
        return {
            "patientId": self.patient_id,
            "patientName": self.patient_name,
            "serviceDetails": {
                "type": details.service_type,
                "scheduledDateTime": details.scheduled_at,
                "duration": details.duration_hours,
                "location": {
                    "address": details.address,
                    "coordinates": {
                        "latitude": details.coordinates[0],
                        "longitude": details.coordinates[1],
                    },
                },
                "specialRequirements": details.special_requirements,
                "isUrgent": details.is_urgent,
            },
            "status": self.status.value,
            "matching": {
                "availableNurses": [c.to_document() for c in matching.available_nurses],
                "mode": matching.mode,
                "pendingNurseIds": list(matching.pending_nurse_ids),
                "offeredNurseIds": list(matching.offered_nurse_ids),
                "declinedNurseIds": list(matching.declined_nurse_ids),
                "selectedNurseId": matching.selected_nurse_id,
                "offerSentAt": matching.offer_sent_at,
                "responseDeadline": matching.response_deadline,
            },
            "payment": {
                "platformFee": self.payment.platform_fee,
                "platformFeePaid": self.payment.platform_fee_paid,
                "nursePayment": {
                    "amount": self.payment.nurse_payment_amount,
                    "paid": self.payment.nurse_payment_paid,
                },
            },
            "review": (
                {
                    "rating": self.review.rating,
                    "comment": self.review.comment,
                    "submittedAt": self.review.submitted_at,
                }
                if self.review else None
            ),
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
            "version": self.version,
        }

    @classmethod
    def from_document(cls, doc_id: str, doc: Dict[str, Any]) -> ServiceRequest:
        details = doc.get("serviceDetails") or {}
        location = details.get("location") or {}
        coordinates = location.get("coordinates") or {}
        matching = doc.get("matching") or {}
        payment = doc.get("payment") or {}
        nurse_payment = payment.get("nursePayment") or {}
        review = doc.get("review")

        return cls(
            id=doc_id,
            patient_id=doc.get("patientId", ""),
            patient_name=doc.get("patientName", ""),
            service_details=ServiceDetails(
                service_type=details.get("type", ""),
                scheduled_at=_as_datetime(details.get("scheduledDateTime")),
                duration_hours=details.get("duration"),
                address=location.get("address", ""),
                coordinates=(coordinates.get("latitude"), coordinates.get("longitude")),
                is_urgent=bool(details.get("isUrgent", False)),
                special_requirements=details.get("specialRequirements"),
            ),
            status=RequestStatus(doc.get("status", RequestStatus.CREATING.value)),
            matching=MatchingState(
                available_nurses=[
                    MatchedNurseCandidate.from_document(c) for c in matching.get("availableNurses") or []
                ],
                mode=matching.get("mode", "single"),
                pending_nurse_ids=list(matching.get("pendingNurseIds") or []),
                offered_nurse_ids=list(matching.get("offeredNurseIds") or []),
                declined_nurse_ids=list(matching.get("declinedNurseIds") or []),
                # legacy records store "" after a decline
                selected_nurse_id=matching.get("selectedNurseId") or None,
                offer_sent_at=_as_datetime(matching.get("offerSentAt")),
                response_deadline=_as_datetime(matching.get("responseDeadline")),
            ),
            payment=PaymentState(
                platform_fee=float(payment.get("platformFee", 0.0)),
                platform_fee_paid=bool(payment.get("platformFeePaid", False)),
                nurse_payment_amount=float(nurse_payment.get("amount", 0.0)),
                nurse_payment_paid=bool(nurse_payment.get("paid", False)),
            ),
            review=(
                Review(
                    rating=int(review["rating"]),
                    comment=review.get("comment", ""),
                    submitted_at=_as_datetime(review.get("submittedAt")),
                )
                if review else None
            ),
            created_at=_as_datetime(doc.get("createdAt")) or utcnow(),
            updated_at=_as_datetime(doc.get("updatedAt")) or utcnow(),
            version=int(doc.get("version", 0)),
        )
