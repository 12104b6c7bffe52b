"""Integration tests: gateway, in-process client, orchestrator and alerts together."""

import asyncio
from unittest.mock import Mock

import pytest

from crypto_tracker.alerts.evaluator import AlertEvaluator
from crypto_tracker.alerts.models import AlertCondition, AlertSpec
from crypto_tracker.alerts.repository import AlertRepository
from crypto_tracker.cache.keys import candles_key, prices_key
from crypto_tracker.cache.store import FreshnessStore
from crypto_tracker.config.defaults import get_default_config
from crypto_tracker.errors import UpstreamRateLimited, UpstreamUnavailable
from crypto_tracker.gateway.client import GatewayClient
from crypto_tracker.gateway.provider import UpstreamClient
from crypto_tracker.gateway.service import FetchGateway
from crypto_tracker.gateway.shared_cache import InMemorySharedCache
from crypto_tracker.notifications.sinks import MemoryNotifier
from crypto_tracker.persistence.kv_store import MemoryBackend
from crypto_tracker.sync.orchestrator import RATE_LIMITED_ERROR, SyncOrchestrator


@pytest.fixture
def upstream(markets_payload, ohlc_payload, fear_greed_payload):
    upstream = Mock(spec=UpstreamClient)
    upstream.fetch_markets.return_value = markets_payload
    upstream.fetch_ohlc.return_value = ohlc_payload
    upstream.fetch_fear_greed.return_value = fear_greed_payload
    return upstream


@pytest.fixture
def gateway(upstream, clock):
    return FetchGateway(upstream=upstream, shared_cache=InMemorySharedCache(), clock=clock)


def _client(gateway, clock, backend=None, alert_evaluator=None) -> SyncOrchestrator:
    store = FreshnessStore.from_config(backend or MemoryBackend(), get_default_config().cache, clock=clock)
    return SyncOrchestrator(GatewayClient(gateway), store, clock=clock, alert_evaluator=alert_evaluator)


@pytest.mark.integration
class TestEndToEnd:
    """Full read path from provider payloads to view state."""

    def test_cold_start(self, gateway, upstream, clock):
        """Test a first load populating both caches and the view."""
        backend = MemoryBackend()
        orchestrator = _client(gateway, clock, backend=backend)

        async def scenario():
            await orchestrator.start()
            await orchestrator.stop()

        asyncio.run(scenario())

        state = orchestrator.state
        assert state.price_for("bitcoin") == 50000.0
        assert len(state.candles) == 3
        assert state.sentiment.current.value == 72
        assert not state.is_loading
        assert not state.is_stale
        assert state.error is None
        assert state.last_updated_at == clock.now_ms()
        assert orchestrator.store.get(prices_key()).is_fresh
        assert orchestrator.store.get(candles_key("bitcoin", 1)).is_fresh
        upstream.fetch_ohlc.assert_called_once_with("bitcoin", 1)

    def test_second_client_served_from_shared_cache(self, gateway, upstream, clock):
        """Test that another client within the TTL causes no upstream call."""
        first = _client(gateway, clock)
        second = _client(gateway, clock)

        async def scenario():
            await first.load_all()
            clock.advance_seconds(30)
            await second.load_all()

        asyncio.run(scenario())

        assert upstream.fetch_markets.call_count == 1
        assert upstream.fetch_ohlc.call_count == 1
        assert second.state.prices == first.state.prices

    def test_outage_serves_last_known_data(self, gateway, upstream, clock):
        """Test that an outage after the fresh window degrades to stale."""
        orchestrator = _client(gateway, clock)

        async def scenario():
            await orchestrator.load_all()
            written_at = orchestrator.store.get(prices_key()).written_at

            clock.advance_seconds(120)
            upstream.fetch_markets.side_effect = UpstreamUnavailable("HTTP 503", status_code=503)
            upstream.fetch_ohlc.side_effect = UpstreamUnavailable("HTTP 503", status_code=503)
            await orchestrator.load_all()
            await orchestrator.drain()
            return written_at

        written_at = asyncio.run(scenario())

        state = orchestrator.state
        assert state.is_stale
        assert state.error is None
        assert state.price_for("bitcoin") == 50000.0
        # Stale answers never re-stamp the client cache.
        lookup = orchestrator.store.get(prices_key())
        assert lookup.written_at == written_at
        assert lookup.is_stale

    def test_rate_limited_cold_start(self, gateway, upstream, clock):
        """Test the user-visible error when nothing is cached anywhere."""
        upstream.fetch_markets.side_effect = UpstreamRateLimited("HTTP 429", retry_after=30.0)
        upstream.fetch_ohlc.side_effect = UpstreamRateLimited("HTTP 429", retry_after=30.0)
        orchestrator = _client(gateway, clock)

        asyncio.run(orchestrator.load_all())

        assert orchestrator.state.prices is None
        assert orchestrator.state.error == RATE_LIMITED_ERROR
        assert not orchestrator.state.is_loading

    def test_recovery_after_outage(self, gateway, upstream, clock, markets_payload):
        """Test that the next successful cycle clears staleness."""
        orchestrator = _client(gateway, clock)

        async def scenario():
            await orchestrator.load_all()
            clock.advance_seconds(120)
            upstream.fetch_markets.side_effect = UpstreamUnavailable("timeout")
            await orchestrator.load_all()
            await orchestrator.drain()
            assert orchestrator.state.is_stale

            upstream.fetch_markets.side_effect = None
            markets_payload[0]["current_price"] = 51000.0
            upstream.fetch_markets.return_value = markets_payload
            await orchestrator.manual_refresh()
            await orchestrator.drain()

        asyncio.run(scenario())

        assert not orchestrator.state.is_stale
        assert orchestrator.state.price_for("bitcoin") == 51000.0

    def test_alert_fires_from_committed_prices(self, gateway, clock):
        """Test that a committed snapshot triggers a matching rule exactly once."""
        notifier = MemoryNotifier()
        evaluator = AlertEvaluator(AlertRepository(MemoryBackend()), notifiers=[notifier], clock=clock)
        rule = evaluator.add_rule(AlertSpec("bitcoin", 49000.0, AlertCondition.ABOVE))
        evaluator.add_rule(AlertSpec("ethereum", 2000.0, AlertCondition.BELOW))
        orchestrator = _client(gateway, clock, alert_evaluator=evaluator)

        async def scenario():
            await orchestrator.load_all()
            await orchestrator.manual_refresh()

        asyncio.run(scenario())

        assert [n.tag for n in notifier.delivered] == [rule.id]
        assert [r.id for r in evaluator.triggered_rules()] == [rule.id]
        assert len(evaluator.active_rules()) == 1
