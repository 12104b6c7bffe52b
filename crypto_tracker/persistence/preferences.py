"""Persisted user preferences: last viewed coin and view mode."""

from enum import Enum
from typing import Optional

import structlog

from .json_codec import dump_json, load_json
from .kv_store import KeyValueBackend

logger = structlog.get_logger(__name__)


class ViewMode(str, Enum):
    """Dashboard layout."""
    SINGLE = "single"
    WATCHLIST = "watchlist"


class PreferenceStore:
    """Reads and writes the preference namespace."""

    def __init__(self, backend: KeyValueBackend, namespace: str = "crypto-tracker-"):
        self.backend = backend
        self.last_coin_key = f"{namespace}prefs-last-coin"
        self.view_mode_key = f"{namespace}prefs-view-mode"

    def get_last_coin(self, known_coins: list[str]) -> Optional[str]:
        """Last viewed coin, or None if unset or no longer supported."""
        stored = load_json(self.backend, self.last_coin_key)
        if isinstance(stored, str) and stored in known_coins:
            return stored
        if stored is not None:
            logger.info("Ignoring unknown stored coin", stored=stored)
        return None

    def set_last_coin(self, coin_id: str) -> None:
        dump_json(self.backend, self.last_coin_key, coin_id)

    def get_view_mode(self) -> ViewMode:
        stored = load_json(self.backend, self.view_mode_key)
        try:
            return ViewMode(stored)
        except ValueError:
            return ViewMode.SINGLE

    def set_view_mode(self, mode: ViewMode) -> None:
        dump_json(self.backend, self.view_mode_key, ViewMode(mode).value)
