"""
Purpose: Opt-in "heartbeat" for offer deadlines.
What it does:
Finds requests stuck in pending-response past their response deadline and moves them
to declined, the same way a client re-observing the request would.

Nothing runs this automatically. Schedule run_cycle from a cron job / worker loop if
expiry must not wait for someone to look at the request.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import List, Optional

from bookings.models import RequestStatus, ServiceRequest
from bookings.repository import NotFoundError

from .dispatcher import Dispatcher
from .state_machines.request_state import StaleStateError, is_offer_expired

logger = logging.getLogger(__name__)


class OfferExpirySweeper:
    def __init__(self, dispatcher: Dispatcher):
        self.dispatcher = dispatcher

    def run_cycle(self, now: Optional[datetime] = None) -> List[ServiceRequest]:
        """
        1. Lists pending-response requests.
        2. Expires the ones whose deadline has passed.
        Returns the requests this cycle moved to declined.
        """
        now = now or self.dispatcher.now_fn()
        repository = self.dispatcher.repository

        overdue = [
            r for r in repository.list_by_status(RequestStatus.PENDING_RESPONSE)
            if is_offer_expired(r, now)
        ]
        if not overdue:
            return []

        expired = []
        for request in overdue:
            try:
                result = self.dispatcher.expire_if_overdue(request.id, now)
            except (StaleStateError, NotFoundError) as e:
                # accepted, cancelled or deleted between the listing and the write
                logger.info(f"Skipping expiry of request {request.id}: {e}")
                continue
            if result is not None:
                expired.append(result)

        logger.info(f"Expiry cycle moved {len(expired)} of {len(overdue)} overdue request(s) to declined")
        return expired
