"""Alert notification sinks."""
from .base import (
    BaseNotifier,
    Notification,
    NotificationError,
    NotificationResult,
    NotificationStatus,
)
from .sinks import FileNotifier, MemoryNotifier, StdoutNotifier, WebhookNotifier

__all__ = [
    "BaseNotifier",
    "FileNotifier",
    "MemoryNotifier",
    "Notification",
    "NotificationError",
    "NotificationResult",
    "NotificationStatus",
    "StdoutNotifier",
    "WebhookNotifier",
]
