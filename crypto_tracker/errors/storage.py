"""
Storage error classifications for client-side persistence.

Storage failures are never fatal: the Freshness Store and the other
persisted namespaces absorb them and behave as if the entry were absent.
"""

from typing import Any, Dict, Optional


class StorageError(Exception):
    """Base class for key-value persistence failures."""

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.context = context or {}
        self.recoverable = True


class CacheUnavailable(StorageError):
    """Storage could not be read or written (quota, I/O, serialization)."""

    def __init__(self, message: str, operation: Optional[str] = None,
                 key: Optional[str] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.operation = operation
        self.key = key
