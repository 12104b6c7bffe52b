"""
Freshness tiers and TTL policies.

An entry's tier is a pure function of its age against two thresholds:

    age < fresh_ttl            -> FRESH   (serve, no refresh)
    fresh_ttl <= age < stale   -> STALE   (serve, refresh in background)
    age >= stale_ttl           -> EXPIRED (treat as a miss)

Because age only grows, an entry moves FRESH -> STALE -> EXPIRED and never
back until it is rewritten.
"""

from dataclasses import dataclass
from enum import Enum

from ..config.defaults import TTLParams
from ..utils.time import age_ms


class FreshnessTier(str, Enum):
    """Classification of a cached entry's age."""
    FRESH = "fresh"
    STALE = "stale"
    EXPIRED = "expired"


@dataclass(frozen=True)
class TTLPolicy:
    """Fresh/stale thresholds in milliseconds for one cache kind."""
    fresh_ttl_ms: int
    stale_ttl_ms: int

    def __post_init__(self):
        if self.fresh_ttl_ms <= 0 or self.stale_ttl_ms <= self.fresh_ttl_ms:
            raise ValueError(
                f"TTL policy requires 0 < fresh_ttl_ms < stale_ttl_ms, "
                f"got {self.fresh_ttl_ms} and {self.stale_ttl_ms}"
            )

    @classmethod
    def from_params(cls, params: TTLParams) -> "TTLPolicy":
        return cls(fresh_ttl_ms=params.fresh_ttl_ms, stale_ttl_ms=params.stale_ttl_ms)

    def classify(self, written_at_ms: int, now_ms: int) -> FreshnessTier:
        age = age_ms(written_at_ms, now_ms)
        if age < self.fresh_ttl_ms:
            return FreshnessTier.FRESH
        if age < self.stale_ttl_ms:
            return FreshnessTier.STALE
        return FreshnessTier.EXPIRED


DEFAULT_POLICY = TTLPolicy(fresh_ttl_ms=60_000, stale_ttl_ms=900_000)
