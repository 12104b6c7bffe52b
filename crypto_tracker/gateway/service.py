"""
Fetch Gateway.

Boundary between clients and the upstream provider. Each operation follows
the same stale-tolerant contract:

    FRESH shared entry, not forced   -> entry, is_stale=False, no network call
    STALE shared entry, not forced   -> entry, is_stale=True, no network call
    otherwise                        -> call upstream
        success                      -> normalize, write shared cache, is_stale=False
        rate limit / other failure   -> any entry (even expired), is_stale=True
                                        or NoDataAvailable when nothing is cached

The gateway never decides to refresh in the background; a caller receiving
is_stale=True does that itself.
"""

from dataclasses import dataclass
from typing import Any, Callable, Generic, Optional, TypeVar

import structlog

from ..cache.freshness import FreshnessTier, TTLPolicy
from ..cache.keys import CacheKey, candles_key, prices_key, sentiment_key
from ..config.defaults import TrackerConfig, get_default_config
from ..data.models import CandleSeries, FearGreedIndex, PriceSnapshot
from ..data.normalizer import (
    normalize_fear_greed_payload,
    normalize_markets_payload,
    normalize_ohlc_payload,
)
from ..errors import (
    NoDataAvailable,
    UnsupportedRangeError,
    UnsupportedSymbolError,
    UpstreamError,
    UpstreamRateLimited,
)
from ..utils.time import Clock, SystemClock
from .provider import UpstreamClient
from .shared_cache import InMemorySharedCache, SharedCache

T = TypeVar("T")

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class GatewayResponse(Generic[T]):
    """Best-known data plus whether it is known to be outdated."""
    data: T
    is_stale: bool = False


class FetchGateway:
    """Stale-tolerant access to prices, candles and market sentiment."""

    def __init__(
        self,
        upstream: Optional[UpstreamClient] = None,
        shared_cache: Optional[SharedCache] = None,
        clock: Optional[Clock] = None,
        config: Optional[TrackerConfig] = None,
    ):
        self.config = config or get_default_config()
        self.upstream = upstream or UpstreamClient(self.config.provider)
        self.shared_cache = shared_cache or InMemorySharedCache()
        self.clock = clock or SystemClock()
        self.logger = logger

        self.prices_policy = TTLPolicy.from_params(self.config.cache.prices)
        self.ohlc_policy = TTLPolicy.from_params(self.config.cache.ohlc)
        # Sentiment has a single TTL; anything older is only a failure fallback.
        sentiment_ttl = self.config.sentiment.ttl_ms
        self.sentiment_policy = TTLPolicy(fresh_ttl_ms=sentiment_ttl, stale_ttl_ms=sentiment_ttl * 2)

    def fetch_prices(self, force_refresh: bool = False) -> GatewayResponse[PriceSnapshot]:
        """Batch prices for every configured coin in one upstream call."""
        coin_ids = self.config.market.coin_ids
        return self._fetch(
            key=prices_key(),
            policy=self.prices_policy,
            force_refresh=force_refresh,
            load=lambda: normalize_markets_payload(self.upstream.fetch_markets(coin_ids)),
        )

    def fetch_candles(
        self,
        symbol: str,
        range_days: int,
        force_refresh: bool = False,
    ) -> GatewayResponse[CandleSeries]:
        """
        OHLC candles for one coin and range.

        Raises:
            UnsupportedSymbolError: Coin is not configured
            UnsupportedRangeError: Range is not configured
            NoDataAvailable: Upstream failed and nothing is cached
        """
        if symbol not in self.config.market.coin_ids:
            raise UnsupportedSymbolError(symbol)
        if range_days not in self.config.market.ranges:
            raise UnsupportedRangeError(range_days)

        return self._fetch(
            key=candles_key(symbol, range_days),
            policy=self.ohlc_policy,
            force_refresh=force_refresh,
            load=lambda: normalize_ohlc_payload(self.upstream.fetch_ohlc(symbol, range_days)),
            should_store=bool,
        )

    def fetch_fear_greed(self) -> GatewayResponse[FearGreedIndex]:
        """Current Fear & Greed index with daily and weekly comparisons."""
        limit = self.config.sentiment.limit
        return self._fetch(
            key=sentiment_key(),
            policy=self.sentiment_policy,
            force_refresh=False,
            load=lambda: normalize_fear_greed_payload(self.upstream.fetch_fear_greed(limit)),
            serve_stale=False,
        )

    def _fetch(
        self,
        key: CacheKey,
        policy: TTLPolicy,
        force_refresh: bool,
        load: Callable[[], T],
        should_store: Callable[[T], bool] = lambda _: True,
        serve_stale: bool = True,
    ) -> GatewayResponse[T]:
        cache_key = key.render()
        entry = self.shared_cache.get(cache_key)

        if entry is not None and not force_refresh:
            tier = policy.classify(entry.written_at, self.clock.now_ms())
            if tier == FreshnessTier.FRESH:
                return GatewayResponse(entry.value, is_stale=False)
            if tier == FreshnessTier.STALE and serve_stale:
                return GatewayResponse(entry.value, is_stale=True)

        try:
            value = load()
        except UpstreamError as e:
            return self._degrade(key, entry, e)

        # Normalization either produced a whole payload or raised above,
        # so the shared entry is replaced in one write or not at all.
        if should_store(value):
            self.shared_cache.set(cache_key, value, self.clock.now_ms())
        else:
            self.logger.info("Upstream returned empty payload, not caching", cache_key=cache_key)

        return GatewayResponse(value, is_stale=False)

    def _degrade(self, key: CacheKey, entry: Any, error: UpstreamError) -> GatewayResponse[Any]:
        cache_key = key.render()
        rate_limited = isinstance(error, UpstreamRateLimited)

        if entry is not None:
            self.logger.warning(
                "Serving cached data after upstream failure",
                cache_key=cache_key,
                rate_limited=rate_limited,
                cached_at=entry.written_at,
                error=str(error),
            )
            return GatewayResponse(entry.value, is_stale=True)

        self.logger.error(
            "No data available",
            cache_key=cache_key,
            rate_limited=rate_limited,
            error=str(error),
        )
        message = "Rate limited" if rate_limited else f"Failed to fetch {key.kind}"
        raise NoDataAvailable(message, kind=key.kind, cause=error) from error
