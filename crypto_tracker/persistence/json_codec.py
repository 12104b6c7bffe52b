"""
JSON encoding on top of a KeyValueBackend.

Each persisted namespace (cache entries, alert rules, preferences) goes
through these two helpers so a corrupt or unwritable entry degrades to
"absent" for that key only.
"""

import json
from typing import Any, Optional

import structlog

from ..errors import CacheUnavailable
from .kv_store import KeyValueBackend

logger = structlog.get_logger(__name__)


def load_json(backend: KeyValueBackend, key: str) -> Optional[Any]:
    """Decode the JSON stored under key; None when absent, unreadable or corrupt."""
    try:
        raw = backend.read(key)
    except CacheUnavailable as e:
        logger.warning("Storage read failed", key=key, error=str(e))
        return None

    if raw is None:
        return None

    try:
        return json.loads(raw)
    except ValueError as e:
        logger.warning("Discarding corrupt stored entry", key=key, error=str(e))
        return None


def dump_json(backend: KeyValueBackend, key: str, value: Any) -> bool:
    """
    Encode and store value under key.

    Returns:
        True if the write reached the backend, False if it was absorbed
    """
    try:
        encoded = json.dumps(value, separators=(",", ":"))
    except (TypeError, ValueError) as e:
        logger.warning("Value is not serializable, skipping write", key=key, error=str(e))
        return False

    try:
        backend.write(key, encoded)
    except CacheUnavailable as e:
        logger.warning("Storage write failed", key=key, error=str(e), operation=e.operation)
        return False

    return True
