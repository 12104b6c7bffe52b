"""Tests for the cache-first sync orchestrator."""

import asyncio

import pytest

from crypto_tracker.alerts.evaluator import AlertEvaluator
from crypto_tracker.alerts.models import AlertCondition, AlertSpec
from crypto_tracker.alerts.repository import AlertRepository
from crypto_tracker.cache.keys import candles_key, prices_key
from crypto_tracker.data.models import Candle, CandleSeries, FearGreedIndex, FearGreedReading, PricePoint, PriceSnapshot
from crypto_tracker.errors import NoDataAvailable, UnsupportedSymbolError, UpstreamRateLimited
from crypto_tracker.gateway.service import GatewayResponse
from crypto_tracker.notifications.sinks import MemoryNotifier
from crypto_tracker.persistence.preferences import PreferenceStore, ViewMode
from crypto_tracker.sync.orchestrator import (
    CANDLES_ERROR,
    PRICES_ERROR,
    RATE_LIMITED_ERROR,
    SyncOrchestrator,
)


def _series(base: float) -> CandleSeries:
    return CandleSeries((
        Candle(open_time_ms=0, open=base, high=base + 1, low=base - 1, close=base),
        Candle(open_time_ms=1_800_000, open=base, high=base + 2, low=base - 2, close=base + 1),
    ))


class FakeSource:
    """DataSource whose responses can be held back, failed or flagged stale."""

    def __init__(self):
        self.prices = PriceSnapshot({
            "bitcoin": PricePoint(price=50000.0),
            "ethereum": PricePoint(price=3000.0),
            "solana": PricePoint(price=100.0),
        })
        self.candles = {
            ("bitcoin", 1): _series(50000.0),
            ("bitcoin", 7): _series(48000.0),
            ("ethereum", 1): _series(3000.0),
            ("solana", 1): _series(100.0),
        }
        self.sentiment = FearGreedIndex(
            current=FearGreedReading(70, "Greed"),
            yesterday=FearGreedReading(60, "Greed"),
            last_week=FearGreedReading(40, "Fear"),
        )
        self.calls: list[tuple[str, bool]] = []
        self.gates: dict[str, asyncio.Event] = {}
        self.failures: dict[str, Exception] = {}
        self.stale: set[str] = set()

    def hold(self, name: str) -> None:
        self.gates[name] = asyncio.Event()

    def release(self, name: str) -> None:
        self.gates.pop(name).set()

    def names(self) -> list[str]:
        return [name for name, _ in self.calls]

    async def _respond(self, name: str, force_refresh: bool, value):
        self.calls.append((name, force_refresh))
        gate = self.gates.get(name)
        if gate is not None:
            await gate.wait()
        if name in self.failures:
            raise self.failures[name]
        return GatewayResponse(value, is_stale=name in self.stale)

    async def fetch_prices(self, force_refresh=False):
        return await self._respond("prices", force_refresh, self.prices)

    async def fetch_candles(self, symbol, range_days, force_refresh=False):
        name = f"ohlc-{symbol}-{range_days}"
        return await self._respond(name, force_refresh, self.candles.get((symbol, range_days), CandleSeries()))

    async def fetch_fear_greed(self):
        return await self._respond("sentiment", False, self.sentiment)


async def wait_until(predicate, timeout: float = 2.0) -> None:
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not reached")
        await asyncio.sleep(0.001)


async def wait_for_calls(source: FakeSource, count: int) -> None:
    await wait_until(lambda: len(source.calls) >= count)


@pytest.fixture
def source():
    return FakeSource()


@pytest.fixture
def orchestrator(source, store, clock, fast_config):
    return SyncOrchestrator(source, store, clock=clock, config=fast_config)


def _no_data(kind: str, rate_limited: bool = False) -> NoDataAvailable:
    cause = UpstreamRateLimited("429") if rate_limited else None
    return NoDataAvailable("failed", kind=kind, cause=cause)


class TestLoadAll:
    """Test a single cache-first load cycle."""

    def test_cold_start_fetches_both_and_shows_loading(self, orchestrator, source, store, clock):
        """Test the spinner during a load with nothing cached."""
        async def scenario():
            source.hold("prices")
            source.hold("ohlc-bitcoin-1")
            load = asyncio.create_task(orchestrator.load_all())
            await wait_for_calls(source, 2)
            assert orchestrator.state.is_loading

            source.release("prices")
            source.release("ohlc-bitcoin-1")
            await load

        asyncio.run(scenario())

        state = orchestrator.state
        assert not state.is_loading
        assert state.prices == source.prices
        assert state.candles == source.candles[("bitcoin", 1)]
        assert state.last_updated_at == clock.now_ms()
        assert not state.last_updated_from_cache
        assert state.error is None
        assert sorted(source.calls) == [("ohlc-bitcoin-1", False), ("prices", False)]
        assert store.get(prices_key()).is_fresh
        assert store.get(candles_key("bitcoin", 1)).is_fresh

    def test_fresh_cache_makes_no_requests(self, orchestrator, source, store, clock):
        """Test that a fully fresh cache is served with a cached stamp."""
        store.put(prices_key(), source.prices.to_dict())
        store.put(candles_key("bitcoin", 1), source.candles[("bitcoin", 1)].to_rows())
        written_at = clock.now_ms()
        clock.advance_seconds(30)

        asyncio.run(orchestrator.load_all())

        state = orchestrator.state
        assert source.calls == []
        assert state.prices == source.prices
        assert state.candles == source.candles[("bitcoin", 1)]
        assert state.last_updated_at == written_at
        assert state.last_updated_from_cache
        assert state.last_updated_label().endswith(" (cached)")

    def test_wrong_shape_cache_entry_is_refetched(self, orchestrator, source, store):
        """Test that a stamped entry holding a list instead of prices acts as a miss."""
        store.put(prices_key(), [1, 2])

        asyncio.run(orchestrator.load_all())

        assert ("prices", False) in source.calls
        assert orchestrator.state.prices == source.prices
        assert orchestrator.state.error is None

    def test_stale_cache_paints_then_revalidates(self, orchestrator, source, store, clock):
        """Test that stale entries are shown at once and forced in the background."""
        old_prices = PriceSnapshot({"bitcoin": PricePoint(price=1.0)})
        store.put(prices_key(), old_prices.to_dict())
        store.put(candles_key("bitcoin", 1), source.candles[("bitcoin", 1)].to_rows())
        clock.advance_seconds(120)

        async def scenario():
            source.hold("prices")
            load = asyncio.create_task(orchestrator.load_all())
            await wait_for_calls(source, 2)

            assert orchestrator.state.prices == old_prices
            assert orchestrator.state.is_stale
            assert not orchestrator.state.is_loading

            source.release("prices")
            await load

        asyncio.run(scenario())

        assert ("prices", True) in source.calls
        assert ("ohlc-bitcoin-1", True) in source.calls
        assert orchestrator.state.prices == source.prices
        assert not orchestrator.state.is_stale
        assert not orchestrator.state.last_updated_from_cache

    def test_only_expired_stream_is_fetched(self, orchestrator, source, store):
        """Test that a fresh price entry is not refetched alongside candles."""
        store.put(prices_key(), source.prices.to_dict())

        asyncio.run(orchestrator.load_all())

        assert source.names() == ["ohlc-bitcoin-1"]

    def test_failure_without_cache_sets_error(self, orchestrator, source):
        """Test the user-visible message when nothing can be shown."""
        source.failures["prices"] = _no_data("prices")

        asyncio.run(orchestrator.load_all())

        state = orchestrator.state
        assert state.prices is None
        assert state.error == PRICES_ERROR
        assert state.candles == source.candles[("bitcoin", 1)]
        assert not state.is_loading

    def test_candle_failure_message(self, orchestrator, source, store):
        """Test the chart error when only candles fail."""
        store.put(prices_key(), source.prices.to_dict())
        source.failures["ohlc-bitcoin-1"] = _no_data("ohlc")

        asyncio.run(orchestrator.load_all())

        assert orchestrator.state.error == CANDLES_ERROR

    def test_rate_limit_message(self, orchestrator, source):
        """Test that a rate-limited failure gets its own message."""
        source.failures["prices"] = _no_data("prices", rate_limited=True)
        source.failures["ohlc-bitcoin-1"] = _no_data("ohlc", rate_limited=True)

        asyncio.run(orchestrator.load_all())

        assert orchestrator.state.error == RATE_LIMITED_ERROR
        assert orchestrator.state.last_updated_at is None

    def test_failure_with_cache_is_swallowed(self, orchestrator, source, store, clock):
        """Test that cached data stays up with only the stale indicator."""
        store.put(prices_key(), source.prices.to_dict())
        store.put(candles_key("bitcoin", 1), source.candles[("bitcoin", 1)].to_rows())
        clock.advance_seconds(120)
        source.failures["prices"] = _no_data("prices")

        asyncio.run(orchestrator.load_all())

        state = orchestrator.state
        assert state.error is None
        assert state.prices == source.prices
        assert state.is_stale

    def test_stale_gateway_response_not_stamped_in_store(self, orchestrator, source, store):
        """Test that stale-tagged data is shown but not cached as new."""
        source.stale.add("prices")

        async def scenario():
            await orchestrator.load_all()
            await orchestrator.drain()

        asyncio.run(scenario())

        assert orchestrator.state.prices == source.prices
        assert not store.get(prices_key()).has_value
        # One forced revalidation follows the stale answer
        assert source.calls.count(("prices", True)) == 1

    def test_empty_candles_not_cached(self, orchestrator, source, store):
        """Test that an empty series is neither cached nor painted."""
        source.candles[("bitcoin", 1)] = CandleSeries()

        asyncio.run(orchestrator.load_all())

        assert orchestrator.state.candles is None
        assert not store.get(candles_key("bitcoin", 1)).has_value
        assert orchestrator.state.error is None


class TestExposedLoads:
    """Test load_prices and load_candles."""

    def test_load_prices_caches(self, orchestrator, source, store):
        """Test that a successful load is written to the store."""
        result = asyncio.run(orchestrator.load_prices())

        assert result == source.prices
        assert store.get(prices_key()).value == source.prices.to_dict()
        # Fetch-and-cache only; view state is untouched
        assert orchestrator.state.prices is None

    def test_load_prices_returns_none_on_failure(self, orchestrator, source):
        """Test the None result when nothing is available."""
        source.failures["prices"] = _no_data("prices")

        assert asyncio.run(orchestrator.load_prices(force_refresh=True)) is None
        assert source.calls == [("prices", True)]

    def test_load_candles(self, orchestrator, source, store):
        """Test loading a target other than the current selection."""
        result = asyncio.run(orchestrator.load_candles("solana", 1))

        assert result == source.candles[("solana", 1)]
        assert store.get(candles_key("solana", 1)).has_value

    def test_load_candles_unsupported(self, orchestrator, source):
        """Test that an invalid request resolves to None."""
        async def reject(symbol, range_days, force_refresh=False):
            raise UnsupportedSymbolError(symbol)

        source.fetch_candles = reject

        assert asyncio.run(orchestrator.load_candles("dogecoin", 1)) is None

    def test_identical_requests_are_shared(self, orchestrator, source):
        """Test that concurrent identical loads make one request."""
        async def scenario():
            source.hold("ohlc-bitcoin-7")
            first = asyncio.create_task(orchestrator.load_candles("bitcoin", 7))
            second = asyncio.create_task(orchestrator.load_candles("bitcoin", 7))
            await wait_for_calls(source, 1)
            for _ in range(10):
                await asyncio.sleep(0)
            source.release("ohlc-bitcoin-7")
            return await asyncio.gather(first, second)

        first, second = asyncio.run(scenario())

        assert first == second == source.candles[("bitcoin", 7)]
        assert source.calls == [("ohlc-bitcoin-7", False)]


class TestSelection:
    """Test selection switches and stale-selection discard."""

    def test_abandoned_result_cached_but_not_shown(self, orchestrator, source, store):
        """Test that a late result for an old selection only updates the store."""
        async def scenario():
            source.hold("ohlc-bitcoin-1")
            load = asyncio.create_task(orchestrator.load_all())
            await wait_for_calls(source, 2)

            orchestrator.select_symbol("ethereum")
            ethereum = source.candles[("ethereum", 1)]
            await wait_until(lambda: orchestrator.state.candles == ethereum)

            source.release("ohlc-bitcoin-1")
            await load
            await orchestrator.drain()

        asyncio.run(scenario())

        assert orchestrator.state.candles == source.candles[("ethereum", 1)]
        assert store.get(candles_key("bitcoin", 1)).value == source.candles[("bitcoin", 1)].to_rows()

    def test_switch_paints_cache_immediately(self, orchestrator, source, store):
        """Test that cached data for the new target shows before any request."""
        store.put(prices_key(), source.prices.to_dict())
        store.put(candles_key("solana", 1), source.candles[("solana", 1)].to_rows())

        async def scenario():
            orchestrator.select_symbol("solana")
            assert orchestrator.state.candles == source.candles[("solana", 1)]
            assert orchestrator.state.last_updated_from_cache
            assert orchestrator.debouncer.pending is None
            await orchestrator.drain()

        asyncio.run(scenario())

        assert source.calls == []

    def test_switch_without_cache_clears_chart(self, orchestrator, source, store):
        """Test that the previous target's chart is not left on screen."""
        async def scenario():
            await orchestrator.load_all()
            source.hold("ohlc-ethereum-1")
            orchestrator.select_symbol("ethereum")
            assert orchestrator.state.candles is None
            await wait_for_calls(source, 3)
            source.release("ohlc-ethereum-1")
            await orchestrator.drain()

        asyncio.run(scenario())

        assert orchestrator.state.candles == source.candles[("ethereum", 1)]

    def test_rapid_switches_are_debounced(self, orchestrator, source, store):
        """Test that only the final target of a burst is fetched."""
        store.put(prices_key(), source.prices.to_dict())

        async def scenario():
            orchestrator.select_symbol("ethereum")
            orchestrator.select_symbol("solana")
            orchestrator.select_range(7)
            orchestrator.select_symbol("bitcoin")
            await orchestrator.drain()

        asyncio.run(scenario())

        assert source.names() == ["ohlc-bitcoin-7"]
        assert orchestrator.state.candles == source.candles[("bitcoin", 7)]

    def test_back_and_forth_keeps_original_request_relevant(self, orchestrator, source):
        """Test that returning to a target accepts its in-flight result."""
        async def scenario():
            source.hold("ohlc-bitcoin-1")
            load = asyncio.create_task(orchestrator.load_all())
            await wait_for_calls(source, 2)

            orchestrator.select_symbol("ethereum")
            orchestrator.select_symbol("bitcoin")
            source.release("ohlc-bitcoin-1")
            await load
            await orchestrator.drain()

        asyncio.run(scenario())

        assert orchestrator.state.candles == source.candles[("bitcoin", 1)]

    def test_unsupported_selection_rejected(self, orchestrator):
        """Test validation of selection input."""
        with pytest.raises(UnsupportedSymbolError):
            orchestrator.select_symbol("dogecoin")
        with pytest.raises(ValueError):
            orchestrator.select_range(30)

    def test_same_selection_is_noop(self, orchestrator):
        """Test that reselecting the current target does nothing."""
        orchestrator.select_symbol("bitcoin")
        orchestrator.select_range(1)

        assert orchestrator.selection.generation == 0


class TestManualRefresh:
    """Test manual refresh."""

    def test_forces_both_streams(self, orchestrator, source, store, clock):
        """Test that fresh caches are bypassed."""
        store.put(prices_key(), source.prices.to_dict())
        store.put(candles_key("bitcoin", 1), source.candles[("bitcoin", 1)].to_rows())
        clock.advance_seconds(10)

        asyncio.run(orchestrator.manual_refresh())

        assert sorted(source.calls) == [("ohlc-bitcoin-1", True), ("prices", True)]
        assert orchestrator.state.last_updated_at == clock.now_ms()
        assert not orchestrator.state.is_loading

    def test_shows_loading(self, orchestrator, source):
        """Test the spinner while a manual refresh is in flight."""
        async def scenario():
            source.hold("prices")
            refresh = asyncio.create_task(orchestrator.manual_refresh())
            await wait_for_calls(source, 2)
            assert orchestrator.state.is_loading
            source.release("prices")
            await refresh

        asyncio.run(scenario())

        assert not orchestrator.state.is_loading


class TestAlertsOnCommit:
    """Test that committed prices are evaluated against alert rules."""

    def test_rule_fires_once_across_cycles(self, source, store, clock, fast_config, backend):
        """Test that repeated commits of the same snapshot fire once."""
        notifier = MemoryNotifier()
        evaluator = AlertEvaluator(AlertRepository(backend), notifiers=[notifier], clock=clock)
        evaluator.add_rule(AlertSpec("bitcoin", 50000.0, AlertCondition.ABOVE))
        orchestrator = SyncOrchestrator(
            source, store, clock=clock, config=fast_config, alert_evaluator=evaluator,
        )

        async def scenario():
            await orchestrator.load_all()
            await orchestrator.load_all()
            await orchestrator.manual_refresh()

        asyncio.run(scenario())

        assert len(notifier.delivered) == 1
        assert notifier.delivered[0].title == "BTC Price Alert!"
        assert evaluator.triggered_rules()[0].symbol == "bitcoin"


class TestSentimentAndPreferences:
    """Test sentiment loading and preference restore."""

    def test_load_sentiment(self, orchestrator, source):
        """Test that the index lands in view state."""
        assert asyncio.run(orchestrator.load_sentiment()) == source.sentiment
        assert orchestrator.state.sentiment == source.sentiment

    def test_sentiment_failure_keeps_previous(self, orchestrator, source):
        """Test that a failed refresh leaves the previous reading."""
        async def scenario():
            await orchestrator.load_sentiment()
            source.failures["sentiment"] = _no_data("sentiment")
            return await orchestrator.load_sentiment()

        assert asyncio.run(scenario()) is None
        assert orchestrator.state.sentiment == source.sentiment

    def test_preferences_restored_and_saved(self, source, store, clock, fast_config, backend):
        """Test last coin and view mode round trip through preferences."""
        preferences = PreferenceStore(backend)
        preferences.set_last_coin("solana")
        preferences.set_view_mode(ViewMode.WATCHLIST)

        orchestrator = SyncOrchestrator(
            source, store, clock=clock, config=fast_config, preferences=preferences,
        )
        assert orchestrator.selection.symbol == "solana"
        assert orchestrator.state.view_mode == ViewMode.WATCHLIST

        async def scenario():
            orchestrator.select_symbol("ethereum")
            await orchestrator.drain()

        asyncio.run(scenario())
        orchestrator.set_view_mode(ViewMode.SINGLE)

        assert preferences.get_last_coin(["bitcoin", "ethereum", "solana"]) == "ethereum"
        assert preferences.get_view_mode() == ViewMode.SINGLE
