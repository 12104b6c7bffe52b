#!/usr/bin/env python3
"""
Basic Usage Example - Crypto Tracker

Wires the full read path against the live providers and runs it for a
couple of minutes. It shows how to:
- Load configuration and set up logging
- Put a shared Fetch Gateway behind an in-process client
- Drive view state with the sync orchestrator
- Register a price alert and receive its notification

Run: python examples/basic_usage.py
"""

import asyncio

from crypto_tracker.alerts.evaluator import AlertEvaluator
from crypto_tracker.alerts.models import AlertCondition, AlertSpec
from crypto_tracker.alerts.repository import AlertRepository
from crypto_tracker.cache.store import FreshnessStore
from crypto_tracker.config.defaults import TrackerConfig
from crypto_tracker.config.loader import ConfigLoader
from crypto_tracker.gateway.client import GatewayClient
from crypto_tracker.gateway.service import FetchGateway
from crypto_tracker.logging.config import configure_from_params
from crypto_tracker.notifications.sinks import StdoutNotifier
from crypto_tracker.persistence.kv_store import SqliteBackend
from crypto_tracker.persistence.preferences import PreferenceStore
from crypto_tracker.sync.orchestrator import SyncOrchestrator
from crypto_tracker.sync.state import ViewState


def print_state(state: ViewState) -> None:
    """Print the parts of view state a UI would render."""
    print(f"📊 Last updated: {state.last_updated_label()}  "
          f"loading={state.is_loading} stale={state.is_stale} next refresh in {state.refresh_countdown}s")
    if state.error:
        print(f"  ⚠️  {state.error}")
    if state.prices is not None:
        for symbol in state.prices:
            point = state.prices.get(symbol)
            print(f"  {symbol:<10} ${point.price:>12,.2f}  24h {point.change_24h:+.2f}%  7d {point.change_7d:+.2f}%")
    if state.candles:
        print(f"  {len(state.candles)} candles, last close ${state.candles.last.close:,.2f}")
    if state.sentiment is not None:
        current = state.sentiment.current
        print(f"  Fear & Greed: {current.value} ({current.classification})")
    print()


async def run(config: TrackerConfig) -> None:
    backend = SqliteBackend(config.storage.db_path)
    namespace = config.cache.namespace

    gateway = FetchGateway(config=config)
    store = FreshnessStore.from_config(backend, config.cache)
    evaluator = AlertEvaluator(
        AlertRepository(backend, namespace),
        notifiers=[StdoutNotifier()],
        market=config.market,
    )
    orchestrator = SyncOrchestrator(
        GatewayClient(gateway),
        store,
        config=config,
        alert_evaluator=evaluator,
        preferences=PreferenceStore(backend, namespace),
    )

    print("1. Initial load (served from cache when this script ran recently)...")
    await orchestrator.start()
    print_state(orchestrator.state)

    bitcoin = orchestrator.state.price_for("bitcoin")
    if bitcoin and not evaluator.active_rules():
        print("2. Adding an alert just below the current Bitcoin price...")
        evaluator.add_rule(AlertSpec("bitcoin", round(bitcoin * 0.999, 2), AlertCondition.ABOVE))

    print("3. Switching to Ethereum, 7 day range...")
    orchestrator.select_symbol("ethereum")
    orchestrator.select_range(7)
    await asyncio.sleep(1)
    print_state(orchestrator.state)

    print("4. Watching auto-refresh for two minutes...")
    for _ in range(4):
        await asyncio.sleep(30)
        print_state(orchestrator.state)

    await orchestrator.stop()
    print("✅ Demo completed.")


def main():
    config = ConfigLoader.create().load()
    configure_from_params(config.logging)
    asyncio.run(run(config))


if __name__ == "__main__":
    main()
