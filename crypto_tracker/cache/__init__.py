"""Client-side Freshness Store: two-threshold cache over a persisted register."""
from .freshness import DEFAULT_POLICY, FreshnessTier, TTLPolicy
from .keys import CacheKey, candles_key, prices_key, sentiment_key
from .store import CacheLookup, FreshnessStore

__all__ = [
    "DEFAULT_POLICY",
    "CacheKey",
    "CacheLookup",
    "FreshnessStore",
    "FreshnessTier",
    "TTLPolicy",
    "candles_key",
    "prices_key",
    "sentiment_key",
]
