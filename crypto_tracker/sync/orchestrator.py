"""
Sync Orchestrator.

Client-side coordinator that keeps view state current while minimising
network use. Every load cycle reads the Freshness Store first:

    FRESH   -> paint from cache, no request
    STALE   -> paint from cache, refresh without a spinner
    EXPIRED -> request; spinner only if neither stream has anything cached

Requests for a selection the user has since left still update the store but
never reach view state. Selection switches paint whatever is cached at once
and debounce the network load. Timers (auto refresh, countdown, sentiment)
run only while the view is visible.
"""

import asyncio
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Coroutine, Optional

from ..alerts.evaluator import AlertEvaluator
from ..cache.keys import OHLC, PRICES, CacheKey, candles_key, prices_key
from ..cache.store import CacheLookup, FreshnessStore
from ..config.defaults import TrackerConfig, get_default_config
from ..data.models import CandleSeries, FearGreedIndex, PriceSnapshot
from ..errors import NoDataAvailable, UnsupportedRangeError, UnsupportedSymbolError
from ..gateway.service import GatewayResponse
from ..logging.config import get_sync_logger, log_freshness_decision
from ..persistence.preferences import PreferenceStore, ViewMode
from ..utils.time import Clock, SystemClock
from .scheduler import Debouncer, Scheduler
from .selection import SelectionContext, SelectionTag
from .source import DataSource
from .state import ViewState

sync_logger = get_sync_logger(__name__)

# Timer concerns
AUTO_REFRESH = "auto_refresh"
COUNTDOWN = "countdown"
SENTIMENT = "sentiment"

PRICES_ERROR = "Unable to load prices. Check your connection and try again."
CANDLES_ERROR = "Unable to load chart data. Check your connection and try again."
RATE_LIMITED_ERROR = "Market data provider is rate limiting requests. Retrying shortly."


@dataclass(frozen=True)
class FetchOutcome:
    """How one stream's request settled."""
    stream: str
    response: Optional[GatewayResponse] = None
    error: Optional[Exception] = None

    @property
    def ok(self) -> bool:
        return self.response is not None

    @property
    def is_stale(self) -> bool:
        return self.response is not None and self.response.is_stale

    @property
    def rate_limited(self) -> bool:
        return isinstance(self.error, NoDataAvailable) and self.error.rate_limited


def _action_for(lookup: CacheLookup) -> str:
    if lookup.is_fresh:
        return "serve"
    if lookup.is_stale:
        return "revalidate"
    return "fetch"


class SyncOrchestrator:
    """Drives view state from the Freshness Store and a DataSource."""

    def __init__(
        self,
        source: DataSource,
        store: FreshnessStore,
        clock: Optional[Clock] = None,
        config: Optional[TrackerConfig] = None,
        alert_evaluator: Optional[AlertEvaluator] = None,
        preferences: Optional[PreferenceStore] = None,
    ):
        self.source = source
        self.store = store
        self.clock = clock or SystemClock()
        self.config = config or get_default_config()
        self.alert_evaluator = alert_evaluator
        self.preferences = preferences
        self.logger = sync_logger

        market = self.config.market
        symbol = market.coins[0].id
        view_mode = ViewMode.SINGLE
        if preferences is not None:
            symbol = preferences.get_last_coin(market.coin_ids) or symbol
            view_mode = preferences.get_view_mode()

        self.selection = SelectionContext(symbol, market.default_range)
        self.state = ViewState(view_mode=view_mode)

        sync = self.config.sync
        self.scheduler = Scheduler()
        self.scheduler.add(AUTO_REFRESH, sync.auto_refresh_ms, self._on_auto_refresh)
        self.scheduler.add(COUNTDOWN, sync.countdown_tick_ms, self._on_countdown_tick)
        self.scheduler.add(SENTIMENT, self.config.sentiment.refresh_interval_ms, self._on_sentiment_tick)
        self.debouncer = Debouncer(sync.debounce_ms, self._spawn)

        self._tasks: set[asyncio.Task] = set()
        self._inflight: dict[tuple[str, bool], asyncio.Task] = {}
        self._loading_cycles = 0
        self._started = False

    @property
    def countdown_seconds(self) -> int:
        return max(1, self.config.sync.auto_refresh_ms // 1000)

    # Lifecycle

    async def start(self) -> None:
        """Initial load of both streams and sentiment, then start timers."""
        self.logger.info(
            "Sync orchestrator starting",
            symbol=self.selection.symbol,
            range_days=self.selection.range_days,
        )
        await asyncio.gather(self.load_all(), self.load_sentiment())
        self._started = True
        if self.state.is_visible:
            self._restart_timers()

    async def stop(self) -> None:
        """Stop timers and cancel every outstanding task."""
        self._started = False
        self.scheduler.stop()
        self.debouncer.cancel()

        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        self.logger.info("Sync orchestrator stopped", cancelled_tasks=len(tasks))

    async def drain(self) -> None:
        """Wait until no debounced load or background request remains."""
        while True:
            pending = [task for task in self._tasks if not task.done()]
            debounced = self.debouncer.pending
            if debounced is not None:
                pending.append(debounced)
            if not pending:
                return
            await asyncio.gather(*pending, return_exceptions=True)

    # Fetch-and-cache operations

    async def load_prices(self, force_refresh: bool = False) -> Optional[PriceSnapshot]:
        """Fetch prices through the source and cache them; None if unavailable."""
        outcome = await self._fetch_prices(force_refresh)
        return outcome.response.data if outcome.ok else None

    async def load_candles(
        self,
        symbol: str,
        range_days: int,
        force_refresh: bool = False,
    ) -> Optional[CandleSeries]:
        """Fetch candles through the source and cache them; None if unavailable."""
        outcome = await self._fetch_candles(SelectionTag(symbol, range_days), force_refresh)
        return outcome.response.data if outcome.ok else None

    async def load_sentiment(self) -> Optional[FearGreedIndex]:
        """Refresh the Fear & Greed index; the previous reading stays on failure."""
        try:
            response = await self.source.fetch_fear_greed()
        except NoDataAvailable as e:
            self.logger.warning("Sentiment unavailable", error=str(e), rate_limited=e.rate_limited)
            return None

        self.state.sentiment = response.data
        return response.data

    # Load cycles

    async def load_all(self) -> None:
        """One cache-first load cycle for the current selection."""
        tag = self.selection.current
        prices = self._read_prices()
        candles = self._read_candles(tag)

        if prices.has_value:
            self._commit_prices(prices.value)
        if candles.has_value:
            self._commit_candles(tag, candles.value)

        if prices.is_fresh and candles.is_fresh:
            self.state.is_stale = False
            self.state.error = None
            self.state.mark_updated(prices.written_at, from_cache=True)
            return

        self.state.is_stale = prices.is_stale or candles.is_stale

        jobs = []
        if not prices.is_fresh:
            jobs.append(self._refresh_prices(force_refresh=prices.is_stale))
        if not candles.is_fresh:
            jobs.append(self._refresh_candles(tag, force_refresh=candles.is_stale))

        cold = not prices.has_value and not candles.has_value
        await self._run_cycle(tag, jobs, show_loading=cold)

    async def manual_refresh(self) -> None:
        """Force both streams past every cache and restart the timers."""
        self.debouncer.cancel()
        tag = self.selection.current
        self.logger.info("Manual refresh", symbol=tag.symbol, range_days=tag.range_days)

        await self._run_cycle(
            tag,
            [self._refresh_prices(force_refresh=True), self._refresh_candles(tag, force_refresh=True)],
            show_loading=True,
        )
        if self._started and self.state.is_visible:
            self._restart_timers()

    async def _run_cycle(
        self,
        tag: SelectionTag,
        jobs: list[Awaitable[FetchOutcome]],
        show_loading: bool,
    ) -> list[FetchOutcome]:
        if show_loading:
            self._loading_cycles += 1
            self.state.is_loading = True
        try:
            outcomes = await asyncio.gather(*jobs)
        finally:
            if show_loading:
                self._loading_cycles -= 1
                self.state.is_loading = self._loading_cycles > 0

        self._settle(tag, outcomes)
        return outcomes

    def _settle(self, tag: SelectionTag, outcomes: list[FetchOutcome]) -> None:
        if not self.selection.is_current(tag):
            self.logger.debug(
                "Load cycle settled for abandoned selection",
                symbol=tag.symbol,
                range_days=tag.range_days,
            )
            return

        # A failure hidden behind data already on screen only shows as stale.
        self.state.is_stale = any(
            outcome.is_stale or (not outcome.ok and self._showing(outcome.stream))
            for outcome in outcomes
        )
        self.state.error = self._error_message(outcomes)
        if any(outcome.ok for outcome in outcomes):
            self.state.mark_updated(self.clock.now_ms(), from_cache=False)

    def _showing(self, stream: str) -> bool:
        if stream == PRICES:
            return self.state.prices is not None
        return bool(self.state.candles)

    def _error_message(self, outcomes: list[FetchOutcome]) -> Optional[str]:
        for outcome in outcomes:
            if outcome.ok or self._showing(outcome.stream):
                continue
            if outcome.rate_limited:
                return RATE_LIMITED_ERROR
            return PRICES_ERROR if outcome.stream == PRICES else CANDLES_ERROR
        return None

    # Selection

    def select_symbol(self, symbol: str) -> None:
        """Switch coin: paint cached data now, debounce the network load."""
        if symbol not in self.config.market.coin_ids:
            raise UnsupportedSymbolError(symbol)
        if symbol == self.selection.symbol:
            return

        self.selection.select(symbol=symbol)
        if self.preferences is not None:
            self.preferences.set_last_coin(symbol)
        self._on_selection_changed()

    def select_range(self, range_days: int) -> None:
        """Switch candle range: paint cached data now, debounce the network load."""
        if range_days not in self.config.market.ranges:
            raise UnsupportedRangeError(range_days)
        if range_days == self.selection.range_days:
            return

        self.selection.select(range_days=range_days)
        self._on_selection_changed()

    def set_view_mode(self, mode: ViewMode) -> None:
        self.state.view_mode = ViewMode(mode)
        if self.preferences is not None:
            self.preferences.set_view_mode(self.state.view_mode)

    def _on_selection_changed(self) -> None:
        tag = self.selection.current
        self.logger.info(
            "Selection changed",
            symbol=tag.symbol,
            range_days=tag.range_days,
            generation=tag.generation,
        )

        prices = self._read_prices()
        candles = self._read_candles(tag)

        if prices.has_value:
            self._commit_prices(prices.value)
        # The previous target's chart must not linger under the new one.
        self.state.candles = candles.value if candles.has_value else None
        self.state.error = None

        if prices.is_fresh and candles.is_fresh:
            self.debouncer.cancel()
            self.state.is_stale = False
            self.state.mark_updated(prices.written_at, from_cache=True)
        else:
            self.state.is_stale = prices.is_stale or candles.is_stale
            self.debouncer.schedule(self.load_all)

        if self._started and self.state.is_visible:
            self._restart_timers()

    # Visibility and timers

    def set_visible(self, visible: bool) -> None:
        """Pause every timer while hidden; reload and restart on return."""
        if visible == self.state.is_visible:
            return

        self.state.is_visible = visible
        self.logger.info("Visibility changed", visible=visible)

        if not visible:
            self.scheduler.stop()
            return

        if self._started:
            self._spawn(self.load_all(), name="load-on-visible")
            self._restart_timers()

    def _restart_timers(self) -> None:
        self.state.refresh_countdown = self.countdown_seconds
        self.scheduler.reset(AUTO_REFRESH)
        self.scheduler.reset(COUNTDOWN)
        self.scheduler.get(SENTIMENT).start()

    def _on_auto_refresh(self) -> None:
        self.state.refresh_countdown = self.countdown_seconds
        self._spawn(self.load_all(), name="auto-refresh")

    def _on_countdown_tick(self) -> None:
        if self.state.refresh_countdown > 1:
            self.state.refresh_countdown -= 1
        else:
            self.state.refresh_countdown = self.countdown_seconds

    def _on_sentiment_tick(self) -> None:
        self._spawn(self.load_sentiment(), name="sentiment-refresh")

    # Cache reads

    def _read_prices(self) -> CacheLookup[PriceSnapshot]:
        key = prices_key()
        lookup = self.store.get(key, decode=PriceSnapshot.from_dict)
        self._log_decision(PRICES, key, lookup)
        return lookup

    def _read_candles(self, tag: SelectionTag) -> CacheLookup[CandleSeries]:
        key = candles_key(tag.symbol, tag.range_days)
        lookup = self.store.get(key, decode=CandleSeries.from_rows)
        self._log_decision(OHLC, key, lookup)
        return lookup

    def _log_decision(self, stream: str, key: CacheKey, lookup: CacheLookup) -> None:
        log_freshness_decision(
            self.logger,
            stream=stream,
            cache_key=self.store.storage_key(key),
            tier=lookup.tier.value,
            action=_action_for(lookup),
            context={"written_at": lookup.written_at},
        )

    # Commits to view state

    def _commit_prices(self, snapshot: PriceSnapshot) -> None:
        # Prices are global, so no selection check; the snapshot replaces
        # the previous one whole.
        self.state.prices = snapshot
        if self.alert_evaluator is not None:
            self.alert_evaluator.evaluate(snapshot)

    def _commit_candles(self, tag: SelectionTag, series: CandleSeries) -> bool:
        if not self.selection.is_current(tag):
            self.logger.debug(
                "Discarding candles for abandoned selection",
                symbol=tag.symbol,
                range_days=tag.range_days,
                current_symbol=self.selection.symbol,
                current_range=self.selection.range_days,
            )
            return False
        if not series:
            return False
        self.state.candles = series
        return True

    async def _refresh_prices(self, force_refresh: bool) -> FetchOutcome:
        outcome = await self._fetch_prices(force_refresh)
        if outcome.ok:
            self._commit_prices(outcome.response.data)
        return outcome

    async def _refresh_candles(self, tag: SelectionTag, force_refresh: bool) -> FetchOutcome:
        outcome = await self._fetch_candles(tag, force_refresh)
        if outcome.ok:
            self._commit_candles(tag, outcome.response.data)
        return outcome

    # Requests

    async def _fetch_prices(self, force_refresh: bool) -> FetchOutcome:
        key = prices_key()
        return await self._shared(
            (self.store.storage_key(key), force_refresh),
            lambda: self._request_prices(force_refresh),
        )

    async def _fetch_candles(self, tag: SelectionTag, force_refresh: bool) -> FetchOutcome:
        key = candles_key(tag.symbol, tag.range_days)
        return await self._shared(
            (self.store.storage_key(key), force_refresh),
            lambda: self._request_candles(tag, force_refresh),
        )

    async def _request_prices(self, force_refresh: bool) -> FetchOutcome:
        try:
            response = await self.source.fetch_prices(force_refresh)
        except NoDataAvailable as e:
            self.logger.warning(
                "Prices unavailable",
                force_refresh=force_refresh,
                rate_limited=e.rate_limited,
                error=str(e),
            )
            return FetchOutcome(PRICES, error=e)

        if response.is_stale:
            # Stale answers are shown but never stamped as new in the store.
            if not force_refresh:
                self._spawn(self._revalidate_prices(), name="revalidate-prices")
        else:
            self.store.put(prices_key(), response.data.to_dict())
        return FetchOutcome(PRICES, response=response)

    async def _request_candles(self, tag: SelectionTag, force_refresh: bool) -> FetchOutcome:
        try:
            response = await self.source.fetch_candles(tag.symbol, tag.range_days, force_refresh)
        except (UnsupportedSymbolError, UnsupportedRangeError) as e:
            self.logger.error("Invalid candle request", symbol=tag.symbol, range_days=tag.range_days, error=str(e))
            return FetchOutcome(OHLC, error=e)
        except NoDataAvailable as e:
            self.logger.warning(
                "Candles unavailable",
                symbol=tag.symbol,
                range_days=tag.range_days,
                force_refresh=force_refresh,
                rate_limited=e.rate_limited,
                error=str(e),
            )
            return FetchOutcome(OHLC, error=e)

        if response.is_stale:
            if not force_refresh:
                self._spawn(self._revalidate_candles(tag), name="revalidate-candles")
        elif response.data:
            self.store.put(candles_key(tag.symbol, tag.range_days), response.data.to_rows())
        return FetchOutcome(OHLC, response=response)

    async def _revalidate_prices(self) -> None:
        outcome = await self._fetch_prices(force_refresh=True)
        if outcome.ok and not outcome.is_stale:
            self._commit_prices(outcome.response.data)

    async def _revalidate_candles(self, tag: SelectionTag) -> None:
        outcome = await self._fetch_candles(tag, force_refresh=True)
        if outcome.ok and not outcome.is_stale:
            self._commit_candles(tag, outcome.response.data)

    async def _shared(
        self,
        key: tuple[str, bool],
        request: Callable[[], Coroutine[Any, Any, FetchOutcome]],
    ) -> FetchOutcome:
        """Join an identical in-flight request instead of issuing a second one."""
        task = self._inflight.get(key)
        if task is None or task.done():
            task = self._spawn(request(), name=f"request-{key[0]}")
            self._inflight[key] = task
            task.add_done_callback(lambda done, k=key: self._release(k, done))
        return await asyncio.shield(task)

    def _release(self, key: tuple[str, bool], task: asyncio.Task) -> None:
        if self._inflight.get(key) is task:
            del self._inflight[key]

    # Task bookkeeping

    def _spawn(self, coro: Coroutine[Any, Any, Any], name: Optional[str] = None) -> asyncio.Task:
        task = asyncio.get_running_loop().create_task(coro, name=name)
        self._tasks.add(task)
        task.add_done_callback(self._on_task_done)
        return task

    def _on_task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            self.logger.error("Background task failed", task=task.get_name(), error=str(error))
