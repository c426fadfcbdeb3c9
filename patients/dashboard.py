"""
Purpose: Patient dashboard grouping.
What it does:
Splits a patient's requests (newest first, as loaded from the store) into the three
lists the patient sees:
- active: still being matched or underway
- upcoming: confirmed and scheduled in the future
- history: finished one way or another
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional, Sequence

from bookings.models import RequestStatus, ServiceRequest, utcnow

ACTIVE_STATUSES = (
    RequestStatus.FINDING_NURSES,
    RequestStatus.PENDING_RESPONSE,
    RequestStatus.IN_PROGRESS,
)


@dataclass
class PatientDashboard:
    active: List[ServiceRequest] = field(default_factory=list)
    upcoming: List[ServiceRequest] = field(default_factory=list)
    history: List[ServiceRequest] = field(default_factory=list)


def group_requests(requests: Sequence[ServiceRequest], now: Optional[datetime] = None) -> PatientDashboard:
    now = now or utcnow()
    dashboard = PatientDashboard()

    for request in requests:
        scheduled_at = request.service_details.scheduled_at
        if scheduled_at is None:
            continue

        if request.status == RequestStatus.CONFIRMED and scheduled_at > now:
            dashboard.upcoming.append(request)
        elif request.status in ACTIVE_STATUSES:
            dashboard.active.append(request)
        elif request.is_terminal:
            dashboard.history.append(request)

    return dashboard
