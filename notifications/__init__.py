#Marks notifications as a package.
#Re-exports the sender contract and the shipped senders.
#No business logic.

from .sender import (
    LoggingNotificationSender,
    Notification,
    NotificationKind,
    NotificationResult,
    NotificationSender,
    WebhookNotificationSender,
    compose_notification,
)

__all__ = [
    "LoggingNotificationSender",
    "Notification",
    "NotificationKind",
    "NotificationResult",
    "NotificationSender",
    "WebhookNotificationSender",
    "compose_notification",
]
