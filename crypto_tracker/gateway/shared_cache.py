"""
Server-side shared cache.

One entry per cache key, visible to every request the server process
handles. Writers replace whole entries and the last write wins; entries are
never evicted, so an expired entry is still available as a degraded
fallback when the upstream provider fails.

The gateway depends only on the SharedCache interface. A multi-process
deployment must back it with an external keyed store; per-process memory
would make staleness depend on which process answered.
"""

import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Generic, Optional, TypeVar

T = TypeVar("T")


@dataclass(frozen=True)
class SharedEntry(Generic[T]):
    """Payload plus the time it was fetched from upstream."""
    value: T
    written_at: int


class SharedCache(ABC):
    """Eviction-free, last-write-wins register."""

    @abstractmethod
    def get(self, key: str) -> Optional[SharedEntry[Any]]:
        """Entry for key regardless of age, None if never written."""

    @abstractmethod
    def set(self, key: str, value: Any, written_at: int) -> None:
        """Replace the entry for key."""


class InMemorySharedCache(SharedCache):
    """Process-local implementation guarded by a lock for threaded servers."""

    def __init__(self):
        self._entries: dict[str, SharedEntry[Any]] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[SharedEntry[Any]]:
        with self._lock:
            return self._entries.get(key)

    def set(self, key: str, value: Any, written_at: int) -> None:
        with self._lock:
            self._entries[key] = SharedEntry(value=value, written_at=written_at)

    def keys(self) -> list[str]:
        with self._lock:
            return list(self._entries)
