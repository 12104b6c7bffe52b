"""Base classes for alert notification sinks."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterable, Optional

import structlog


class NotificationStatus(Enum):
    """Notification outcome."""
    SENT = "sent"
    FAILED = "failed"
    DUPLICATE = "duplicate"


@dataclass(frozen=True)
class Notification:
    """
    User-facing alert message.

    ``tag`` identifies the event (the alert rule id); sinks never deliver
    two notifications with the same tag.
    """
    tag: str
    title: str
    body: str
    data: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {"tag": self.tag, "title": self.title, "body": self.body, "data": self.data}


@dataclass
class NotificationResult:
    """Result of a notification attempt."""
    status: NotificationStatus
    message: Optional[str] = None
    error: Optional[Exception] = None


class NotificationError(Exception):
    """Raised by sinks when a notification cannot be delivered."""


class BaseNotifier(ABC):
    """Base class for notification sinks."""

    def __init__(self, name: str):
        self.name = name
        self.logger = structlog.get_logger(f"notifications.{name}")
        self._seen_tags: set[str] = set()
        self._sent_count = 0
        self._error_count = 0

    @abstractmethod
    def send(self, notification: Notification) -> None:
        """
        Deliver one notification.

        Raises:
            NotificationError: Delivery failed
        """

    def health_check(self) -> bool:
        """Check if the sink can currently deliver."""
        return True

    def notify(self, notification: Notification) -> NotificationResult:
        """
        Deliver a notification at most once per tag.

        Never raises: a sink failure must not interrupt alert evaluation.
        A failed delivery does not consume the tag, so a retry may succeed.
        """
        if notification.tag in self._seen_tags:
            self.logger.debug("Duplicate notification suppressed", tag=notification.tag)
            return NotificationResult(status=NotificationStatus.DUPLICATE, message="Already delivered")

        try:
            self.send(notification)
        except Exception as e:
            self._error_count += 1
            self.logger.error(
                "Notification delivery failed",
                notifier=self.name,
                tag=notification.tag,
                error=str(e),
            )
            return NotificationResult(status=NotificationStatus.FAILED, message=str(e), error=e)

        self._seen_tags.add(notification.tag)
        self._sent_count += 1
        self.logger.info("Notification delivered", notifier=self.name, tag=notification.tag)
        return NotificationResult(status=NotificationStatus.SENT)

    def forget(self, tags: Iterable[str]) -> None:
        """Drop dedupe entries for events that can no longer recur."""
        self._seen_tags.difference_update(tags)

    def get_stats(self) -> dict[str, Any]:
        """Get delivery statistics."""
        return {
            "name": self.name,
            "sent_count": self._sent_count,
            "error_count": self._error_count,
            "success_rate": (
                self._sent_count / (self._sent_count + self._error_count)
                if (self._sent_count + self._error_count) > 0 else 0.0
            )
        }

    def reset_stats(self):
        """Reset delivery statistics."""
        self._sent_count = 0
        self._error_count = 0
