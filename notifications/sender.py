#Purpose: The notification "adapter".
#Sole responsibility: tell a patient or nurse that something happened to a request.
#Encapsulates delivery details:
#message wording per notification kind
#transport (log only, or HTTP webhook to a push gateway)
#timeouts/error handling
#It must never raise on delivery failure: every sender returns a NotificationResult.
#It should not contain matching or lifecycle rules.

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional, Protocol, Tuple

import requests
from dotenv import load_dotenv

logger = logging.getLogger(__name__)

# Read the push gateway URL from environment
# Example in .env:
# NOTIFICATION_WEBHOOK_URL=https://push.example.com/notify
load_dotenv()
NOTIFICATION_WEBHOOK_URL = os.getenv("NOTIFICATION_WEBHOOK_URL")


class NotificationKind(str, Enum):
    NEW_OFFER = "new_offer"
    REQUEST_CONFIRMED = "request_confirmed"
    REQUEST_DECLINED = "request_declined"
    EN_ROUTE = "en_route"
    CONFIRMATION = "confirmation"


_MESSAGES: Dict[NotificationKind, Tuple[str, str]] = {
    NotificationKind.CONFIRMATION: (
        "Appointment Confirmed!",
        "Your appointment is confirmed.",
    ),
    NotificationKind.EN_ROUTE: (
        "Your Nurse is On The Way!",
        "Your nurse is en route to your location.",
    ),
    NotificationKind.NEW_OFFER: (
        "New Service Request!",
        "You have a new service request from a patient. Please respond within {window} minutes.",
    ),
    NotificationKind.REQUEST_CONFIRMED: (
        "Your Request Was Accepted!",
        "Your service request has been confirmed by the nurse.",
    ),
    NotificationKind.REQUEST_DECLINED: (
        "Request Declined",
        "Unfortunately, your service request was declined. Please try another nurse.",
    ),
}


@dataclass(frozen=True)
class NotificationResult:
    success: bool
    message: str


@dataclass(frozen=True)
class Notification:
    kind: NotificationKind
    recipient_id: str
    context_id: str
    title: str
    body: str


class NotificationSender(Protocol):
    def notify(self, kind: NotificationKind, recipient_id: str, context_id: str) -> NotificationResult:
        ...


def compose_notification(
    kind: NotificationKind,
    recipient_id: str,
    context_id: str,
    *,
    offer_window_minutes: int = 15,
) -> Notification:
    title, body = _MESSAGES[NotificationKind(kind)]
    return Notification(
        kind=NotificationKind(kind),
        recipient_id=recipient_id,
        context_id=context_id,
        title=title,
        body=body.format(window=offer_window_minutes),
    )


class LoggingNotificationSender:
    """
    Development sender: logs the push instead of delivering it, and keeps a record
    of what was "sent" so callers (and tests) can inspect it.
    """

    def __init__(self, offer_window_minutes: int = 15):
        self.offer_window_minutes = offer_window_minutes
        self.sent: List[Notification] = []

    def notify(self, kind: NotificationKind, recipient_id: str, context_id: str) -> NotificationResult:
        notification = compose_notification(
            kind, recipient_id, context_id, offer_window_minutes=self.offer_window_minutes
        )
        self.sent.append(notification)
        logger.info(f"Push to {recipient_id}: {notification.title} - {notification.body} (request {context_id})")
        return NotificationResult(
            success=True,
            message=f"Notification '{notification.kind.value}' sent successfully for request {context_id}.",
        )


class WebhookNotificationSender:
    """
    Posts notifications as JSON to a push gateway over HTTP.

    Payload:
        {"kind": ..., "recipientId": ..., "requestId": ..., "title": ..., "body": ...}
    """

    def __init__(
        self,
        url: Optional[str] = None,
        timeout: float = 5,
        offer_window_minutes: int = 15,
        session: Optional[requests.Session] = None,
    ):
        self.url = url or NOTIFICATION_WEBHOOK_URL
        self.timeout = timeout  # seconds to wait for the gateway before giving up
        self.offer_window_minutes = offer_window_minutes
        self.session = session or requests.Session()

        if not self.url:
            raise ValueError("Notification webhook URL not set. Please set NOTIFICATION_WEBHOOK_URL in the .env file.")

    def notify(self, kind: NotificationKind, recipient_id: str, context_id: str) -> NotificationResult:
        try:
            notification = compose_notification(
                kind, recipient_id, context_id, offer_window_minutes=self.offer_window_minutes
            )
        except (KeyError, ValueError) as e:
            logger.error(f"Unknown notification kind {kind!r}: {e}")
            return NotificationResult(success=False, message=f"Unknown notification kind {kind!r}")

        payload = {
            "kind": notification.kind.value,
            "recipientId": notification.recipient_id,
            "requestId": notification.context_id,
            "title": notification.title,
            "body": notification.body,
        }

        try:
            response = self.session.post(self.url, json=payload, timeout=self.timeout)
            response.raise_for_status()
        except requests.RequestException as e:
            logger.error(f"Notification webhook failed for {notification.kind.value} to {recipient_id}: {e}")
            return NotificationResult(success=False, message=str(e))

        return NotificationResult(
            success=True,
            message=f"Notification '{notification.kind.value}' sent successfully for request {context_id}.",
        )
