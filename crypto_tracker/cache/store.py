"""
Client-side Freshness Store.

A persisted key-value register mapping a cache key to ``{value, written_at}``
and classifying every read into a freshness tier. Reads never raise: missing,
corrupt and expired entries all come back as an empty lookup. Writes never
raise either; a failed write (quota, I/O, serialization) is logged as a
CacheUnavailable condition and counted, and the in-memory caller carries on.
"""

from dataclasses import dataclass
from typing import Any, Callable, Generic, Mapping, Optional, TypeVar

import structlog

from ..config.defaults import CacheParams
from ..errors import CacheUnavailable
from ..persistence.json_codec import dump_json, load_json
from ..persistence.kv_store import KeyValueBackend
from ..utils.time import Clock, SystemClock
from .freshness import DEFAULT_POLICY, FreshnessTier, TTLPolicy
from .keys import OHLC, PRICES, CacheKey

T = TypeVar("T")

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class CacheLookup(Generic[T]):
    """Result of a Freshness Store read."""
    value: Optional[T]
    tier: FreshnessTier
    written_at: Optional[int] = None

    @property
    def has_value(self) -> bool:
        return self.value is not None

    @property
    def is_fresh(self) -> bool:
        return self.has_value and self.tier == FreshnessTier.FRESH

    @property
    def is_stale(self) -> bool:
        return self.has_value and self.tier == FreshnessTier.STALE

    @classmethod
    def miss(cls) -> "CacheLookup[T]":
        return cls(value=None, tier=FreshnessTier.EXPIRED, written_at=None)


class FreshnessStore:
    """Two-threshold cache over a KeyValueBackend."""

    def __init__(
        self,
        backend: KeyValueBackend,
        clock: Optional[Clock] = None,
        policies: Optional[Mapping[str, TTLPolicy]] = None,
        default_policy: TTLPolicy = DEFAULT_POLICY,
        namespace: str = "crypto-tracker-",
    ):
        self.backend = backend
        self.clock = clock or SystemClock()
        self.policies = dict(policies or {})
        self.default_policy = default_policy
        self.prefix = f"{namespace}cache-"
        self.write_failures = 0

    @classmethod
    def from_config(
        cls,
        backend: KeyValueBackend,
        cache: CacheParams,
        clock: Optional[Clock] = None,
    ) -> "FreshnessStore":
        """Store with per-kind policies taken from cache parameters."""
        return cls(
            backend,
            clock=clock,
            policies={
                PRICES: TTLPolicy.from_params(cache.prices),
                OHLC: TTLPolicy.from_params(cache.ohlc),
            },
            namespace=cache.namespace,
        )

    def policy_for(self, key: CacheKey) -> TTLPolicy:
        return self.policies.get(key.kind, self.default_policy)

    def storage_key(self, key: CacheKey) -> str:
        return key.render(self.prefix)

    def get(
        self,
        key: CacheKey,
        decode: Optional[Callable[[Any], T]] = None,
    ) -> CacheLookup[T]:
        """
        Read and classify an entry.

        Args:
            key: Cache key
            decode: Optional converter from the stored JSON value to a model;
                a decode failure is treated as a miss

        Returns:
            CacheLookup with the value for FRESH/STALE entries, a miss otherwise
        """
        storage_key = self.storage_key(key)
        entry = load_json(self.backend, storage_key)
        if entry is None:
            return CacheLookup.miss()

        written_at = entry.get("written_at") if isinstance(entry, dict) else None
        if (
            not isinstance(written_at, int)
            or isinstance(written_at, bool)
            or "value" not in entry
            or entry["value"] is None
        ):
            logger.warning("Discarding malformed cache entry", key=storage_key)
            return CacheLookup.miss()

        tier = self.policy_for(key).classify(written_at, self.clock.now_ms())
        if tier == FreshnessTier.EXPIRED:
            return CacheLookup.miss()

        value = entry["value"]
        if decode is not None:
            try:
                value = decode(value)
            except (AttributeError, KeyError, TypeError, ValueError, IndexError) as e:
                logger.warning("Cache entry failed to decode", key=storage_key, error=str(e))
                return CacheLookup.miss()

        return CacheLookup(value=value, tier=tier, written_at=written_at)

    def put(self, key: CacheKey, value: Any) -> None:
        """Overwrite an entry with written_at = now. Failures are absorbed."""
        storage_key = self.storage_key(key)
        entry = {"value": value, "written_at": self.clock.now_ms()}

        if not dump_json(self.backend, storage_key, entry):
            self.write_failures += 1
            logger.warning(
                "Cache unavailable, continuing without persistence",
                key=storage_key,
                write_failures=self.write_failures,
            )

    def clear(self, prefix: Optional[str] = None) -> int:
        """
        Remove every entry whose storage key starts with prefix.

        Args:
            prefix: Absolute key prefix; defaults to the whole cache namespace

        Returns:
            Number of entries removed
        """
        prefix = self.prefix if prefix is None else prefix
        removed = 0
        try:
            for storage_key in self.backend.keys():
                if storage_key.startswith(prefix):
                    self.backend.delete(storage_key)
                    removed += 1
        except CacheUnavailable as e:
            logger.warning("Cache clear interrupted", prefix=prefix, removed=removed, error=str(e))
        return removed
