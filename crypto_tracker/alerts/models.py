"""
Alert rule data models.

Rules are immutable; the evaluator produces a triggered copy instead of
mutating in place. ``triggered`` only ever goes from False to True.
"""

import uuid
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Mapping


class AlertCondition(str, Enum):
    """Direction of the threshold crossing."""
    ABOVE = "above"
    BELOW = "below"

    def is_met(self, price: float, target_price: float) -> bool:
        """Inclusive comparison: a price equal to the target fires."""
        if self is AlertCondition.ABOVE:
            return price >= target_price
        return price <= target_price


@dataclass(frozen=True)
class AlertSpec:
    """User input for a new rule."""
    symbol: str
    target_price: float
    condition: AlertCondition


@dataclass(frozen=True)
class AlertRule:
    """Persisted threshold rule."""
    id: str
    symbol: str
    target_price: float
    condition: AlertCondition
    created_at: int
    triggered: bool = False

    @classmethod
    def create(cls, spec: AlertSpec, now_ms: int) -> "AlertRule":
        return cls(
            id=f"{now_ms}-{uuid.uuid4().hex[:9]}",
            symbol=spec.symbol,
            target_price=float(spec.target_price),
            condition=AlertCondition(spec.condition),
            created_at=now_ms,
        )

    def with_triggered(self) -> "AlertRule":
        return replace(self, triggered=True)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "symbol": self.symbol,
            "target_price": self.target_price,
            "condition": self.condition.value,
            "created_at": self.created_at,
            "triggered": self.triggered,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "AlertRule":
        return cls(
            id=str(data["id"]),
            symbol=str(data["symbol"]),
            target_price=float(data["target_price"]),
            condition=AlertCondition(data["condition"]),
            created_at=int(data["created_at"]),
            triggered=bool(data.get("triggered", False)),
        )
