"""
Bookings domain package.

Public API:
- Domain models: ServiceRequest, ServiceRequestInput, MatchedNurseCandidate, RequestStatus
- Persistence: ServiceRequestRepository, NotFoundError
"""
from .models import (
    MatchedNurseCandidate,
    MatchingState,
    PaymentState,
    RequestStatus,
    RequestValidationError,
    Review,
    ServiceDetails,
    ServiceRequest,
    ServiceRequestInput,
    TERMINAL_STATUSES,
)
from .repository import NotFoundError, ServiceRequestRepository

__all__ = [
    "MatchedNurseCandidate",
    "MatchingState",
    "PaymentState",
    "RequestStatus",
    "RequestValidationError",
    "Review",
    "ServiceDetails",
    "ServiceRequest",
    "ServiceRequestInput",
    "TERMINAL_STATUSES",
    "NotFoundError",
    "ServiceRequestRepository",
]
