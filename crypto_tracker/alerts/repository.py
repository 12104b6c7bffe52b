"""Alert rule persistence: one entry holding the full ordered rule list."""

import structlog

from ..persistence.json_codec import dump_json, load_json
from ..persistence.kv_store import KeyValueBackend
from .models import AlertRule

logger = structlog.get_logger(__name__)


class AlertRepository:
    """Loads and saves the rule list under a single key."""

    def __init__(self, backend: KeyValueBackend, namespace: str = "crypto-tracker-"):
        self.backend = backend
        self.key = f"{namespace}alerts"

    def load(self) -> list[AlertRule]:
        """
        All stored rules in creation order.

        A corrupt list yields no rules; individual corrupt records are
        dropped without affecting their neighbours.
        """
        stored = load_json(self.backend, self.key)
        if stored is None:
            return []
        if not isinstance(stored, list):
            logger.warning("Alert list is not a list, ignoring", key=self.key)
            return []

        rules = []
        for record in stored:
            try:
                rules.append(AlertRule.from_dict(record))
            except (KeyError, TypeError, ValueError) as e:
                logger.warning("Dropping unreadable alert rule", record=record, error=str(e))
        return rules

    def save(self, rules: list[AlertRule]) -> bool:
        """Replace the stored list. Returns False if persistence failed."""
        return dump_json(self.backend, self.key, [rule.to_dict() for rule in rules])
