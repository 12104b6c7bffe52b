"""Price alert rules and their evaluation against price snapshots."""
from .evaluator import AlertEvaluator, find_crossed_rules
from .models import AlertCondition, AlertRule, AlertSpec
from .repository import AlertRepository

__all__ = [
    "AlertCondition",
    "AlertEvaluator",
    "AlertRepository",
    "AlertRule",
    "AlertSpec",
    "find_crossed_rules",
]
