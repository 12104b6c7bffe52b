"""Concrete notification sinks: stdout, JSON-lines file, webhook, memory."""

import json
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional
from urllib.error import HTTPError, URLError
from urllib.parse import urlparse
from urllib.request import Request, urlopen

from .base import BaseNotifier, Notification, NotificationError


class StdoutNotifier(BaseNotifier):
    """Prints notifications to standard output."""

    def __init__(self, name: str = "stdout", format: str = "pretty"):
        super().__init__(name)
        if format not in ("json", "pretty"):
            raise ValueError(f"Unsupported format: {format}")
        self.format = format

    def send(self, notification: Notification) -> None:
        print(self._format(notification), file=sys.stdout, flush=True)

    def _format(self, notification: Notification) -> str:
        if self.format == "pretty":
            return f"[{datetime.now(timezone.utc).isoformat()}] {notification.title} {notification.body}"
        payload = notification.to_dict()
        payload["emitted_at"] = datetime.now(timezone.utc).isoformat()
        return json.dumps(payload)

    def health_check(self) -> bool:
        try:
            return sys.stdout.writable()
        except (AttributeError, ValueError):
            return False


class FileNotifier(BaseNotifier):
    """Appends notifications to a JSON-lines file."""

    def __init__(self, output_path: str, name: str = "file", create_dirs: bool = True):
        super().__init__(name)
        self.output_path = Path(output_path)
        if create_dirs:
            self.output_path.parent.mkdir(parents=True, exist_ok=True)

    def send(self, notification: Notification) -> None:
        record = notification.to_dict()
        record["emitted_at"] = datetime.now(timezone.utc).isoformat()
        try:
            with open(self.output_path, "a", encoding="utf-8") as f:
                f.write(json.dumps(record) + "\n")
        except OSError as e:
            raise NotificationError(f"File system error: {e}") from e

    def health_check(self) -> bool:
        return self.output_path.parent.exists()


class WebhookNotifier(BaseNotifier):
    """POSTs notifications as JSON to an HTTP endpoint."""

    def __init__(
        self,
        url: str,
        name: str = "webhook",
        headers: Optional[dict[str, str]] = None,
        timeout_seconds: int = 10,
    ):
        super().__init__(name)
        parsed = urlparse(url)
        if not parsed.scheme or not parsed.netloc:
            raise ValueError(f"Invalid URL: {url}")
        self.url = url
        self.headers = headers or {}
        self.timeout_seconds = timeout_seconds

    def send(self, notification: Notification) -> None:
        data = json.dumps(notification.to_dict()).encode('utf-8')
        headers = {
            'Content-Type': 'application/json',
            'User-Agent': 'crypto-tracker/0.1',
            **self.headers,
        }
        req = Request(self.url, data=data, headers=headers, method='POST')

        try:
            with urlopen(req, timeout=self.timeout_seconds) as response:
                status = response.getcode()
        except HTTPError as e:
            raise NotificationError(f"HTTP {e.code}: {e.reason}") from e
        except (OSError, URLError) as e:
            raise NotificationError(f"Network error: {e}") from e

        if not 200 <= status < 300:
            raise NotificationError(f"HTTP {status}")


class MemoryNotifier(BaseNotifier):
    """Keeps delivered notifications in a list, for embedding and tests."""

    def __init__(self, name: str = "memory"):
        super().__init__(name)
        self.delivered: list[Notification] = []

    def send(self, notification: Notification) -> None:
        self.delivered.append(notification)
