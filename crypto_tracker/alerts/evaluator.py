"""
Alert Evaluator.

Compares every committed price snapshot against the user's threshold rules.
A rule that crosses its threshold is marked triggered (persisted, one way)
and produces exactly one notification tagged with the rule id. Running the
evaluator again on the same snapshot is a no-op because triggered rules are
skipped.
"""

import math
from typing import Iterable, Optional, Sequence

from ..config.defaults import MarketParams
from ..data.models import PriceSnapshot
from ..logging.config import get_alert_logger, log_alert_fired
from ..notifications.base import BaseNotifier, Notification
from ..utils.time import Clock, SystemClock
from .models import AlertCondition, AlertRule, AlertSpec
from .repository import AlertRepository

alert_logger = get_alert_logger(__name__)


def find_crossed_rules(rules: Iterable[AlertRule], snapshot: PriceSnapshot) -> list[AlertRule]:
    """
    Rules whose condition holds for the snapshot.

    Triggered rules are skipped, as are rules whose coin has no usable
    price in the snapshot yet. Each rule is judged on its own; the order of
    rules does not matter.
    """
    crossed = []
    for rule in rules:
        if rule.triggered:
            continue

        price = snapshot.price_of(rule.symbol)
        if price is None or price <= 0:
            continue

        if rule.condition.is_met(price, rule.target_price):
            crossed.append(rule)
    return crossed


def _format_usd(value: float) -> str:
    return f"${value:,.2f}"


class AlertEvaluator:
    """Rule management plus snapshot evaluation."""

    def __init__(
        self,
        repository: AlertRepository,
        notifiers: Optional[Sequence[BaseNotifier]] = None,
        clock: Optional[Clock] = None,
        market: Optional[MarketParams] = None,
    ):
        self.repository = repository
        self.notifiers = list(notifiers or [])
        self.clock = clock or SystemClock()
        self.market = market or MarketParams()
        self.logger = alert_logger
        self._rules: Optional[list[AlertRule]] = None

    @property
    def rules(self) -> list[AlertRule]:
        # Persistence failures must not lose in-session state, so the
        # in-memory list is authoritative once loaded.
        if self._rules is None:
            self._rules = self.repository.load()
        return self._rules

    def _commit(self, rules: list[AlertRule]) -> None:
        self._rules = rules
        if not self.repository.save(rules):
            self.logger.warning("Alert rules not persisted", rule_count=len(rules))

    def list_rules(self) -> list[AlertRule]:
        return list(self.rules)

    def active_rules(self) -> list[AlertRule]:
        return [rule for rule in self.rules if not rule.triggered]

    def triggered_rules(self) -> list[AlertRule]:
        return [rule for rule in self.rules if rule.triggered]

    def add_rule(self, spec: AlertSpec) -> AlertRule:
        """
        Create and persist a new rule.

        Raises:
            ValueError: Unknown coin or non-positive or non-finite target price
        """
        if spec.symbol not in self.market.coin_ids:
            raise ValueError(f"Unsupported coin: {spec.symbol}")
        if not math.isfinite(spec.target_price) or spec.target_price <= 0:
            raise ValueError(f"Target price must be a positive number, got {spec.target_price}")

        rule = AlertRule.create(spec, self.clock.now_ms())
        self._commit([*self.rules, rule])

        self.logger.info(
            "Alert rule added",
            rule_id=rule.id,
            symbol=rule.symbol,
            condition=rule.condition.value,
            target_price=rule.target_price,
        )
        return rule

    def remove_rule(self, rule_id: str) -> bool:
        """Delete a rule. Returns False if no rule had that id."""
        remaining = [rule for rule in self.rules if rule.id != rule_id]
        if len(remaining) == len(self.rules):
            return False

        self._commit(remaining)
        self._forget([rule_id])
        self.logger.info("Alert rule removed", rule_id=rule_id)
        return True

    def clear_triggered(self) -> int:
        """Delete every triggered rule. Returns how many were removed."""
        remaining = [rule for rule in self.rules if not rule.triggered]
        cleared = [rule.id for rule in self.rules if rule.triggered]
        removed = len(cleared)
        if removed:
            self._commit(remaining)
            self._forget(cleared)
            self.logger.info("Triggered alert rules cleared", removed=removed)
        return removed

    def evaluate(self, snapshot: PriceSnapshot) -> list[AlertRule]:
        """
        Fire every rule the snapshot crosses.

        Triggered state is persisted before any notification goes out, so
        a rule can never fire twice even if a notifier fails.

        Returns:
            The newly triggered rules
        """
        crossed = find_crossed_rules(self.rules, snapshot)
        if not crossed:
            return []

        crossed_ids = {rule.id for rule in crossed}
        updated = [rule.with_triggered() if rule.id in crossed_ids else rule for rule in self.rules]
        self._commit(updated)

        fired = [rule for rule in updated if rule.id in crossed_ids]
        for rule in fired:
            price = snapshot.price_of(rule.symbol)
            log_alert_fired(
                self.logger,
                rule_id=rule.id,
                symbol=rule.symbol,
                condition=rule.condition.value,
                target_price=rule.target_price,
                current_price=price,
            )
            self._notify(self.build_notification(rule, price))

        return fired

    def build_notification(self, rule: AlertRule, price: float) -> Notification:
        coin = self.market.get_coin(rule.symbol)
        ticker = coin.symbol if coin else rule.symbol.upper()
        name = coin.name if coin else rule.symbol
        direction = "above" if rule.condition is AlertCondition.ABOVE else "below"

        return Notification(
            tag=rule.id,
            title=f"{ticker} Price Alert!",
            body=(
                f"{name} is now {direction} {_format_usd(rule.target_price)} "
                f"(Current: {_format_usd(price)})"
            ),
            data={
                "rule_id": rule.id,
                "symbol": rule.symbol,
                "condition": rule.condition.value,
                "target_price": rule.target_price,
                "current_price": price,
            },
        )

    def _notify(self, notification: Notification) -> None:
        for notifier in self.notifiers:
            notifier.notify(notification)

    def _forget(self, rule_ids: list[str]) -> None:
        for notifier in self.notifiers:
            notifier.forget(rule_ids)
