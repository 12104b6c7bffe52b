"""Pytest configuration and shared fixtures."""

from dataclasses import replace
from typing import Any, Dict, List

import pytest

from crypto_tracker.cache.store import FreshnessStore
from crypto_tracker.config.defaults import SyncParams, TrackerConfig, get_default_config
from crypto_tracker.persistence.kv_store import MemoryBackend
from crypto_tracker.utils.time import ManualClock

# 2023-11-14T22:13:20Z
START_MS = 1_700_000_000_000


@pytest.fixture
def clock() -> ManualClock:
    """Manual clock starting at a fixed epoch."""
    return ManualClock(start_ms=START_MS)


@pytest.fixture
def backend() -> MemoryBackend:
    """Unbounded in-memory key-value register."""
    return MemoryBackend()


@pytest.fixture
def store(backend, clock) -> FreshnessStore:
    """Freshness Store with the default 60s/900s policies."""
    return FreshnessStore.from_config(backend, get_default_config().cache, clock=clock)


@pytest.fixture
def fast_config() -> TrackerConfig:
    """Default configuration with timers short enough for tests."""
    return replace(
        get_default_config(),
        sync=SyncParams(debounce_ms=10, auto_refresh_ms=60_000, countdown_tick_ms=1_000),
    )


@pytest.fixture
def markets_payload() -> List[Dict[str, Any]]:
    """Sample /coins/markets response for the three tracked coins."""
    return [
        {
            "id": "bitcoin",
            "symbol": "btc",
            "current_price": 50000.0,
            "price_change_percentage_24h": 2.5,
            "price_change_percentage_7d_in_currency": -1.25,
        },
        {
            "id": "ethereum",
            "symbol": "eth",
            "current_price": 3000.0,
            "price_change_percentage_24h": -0.5,
            "price_change_percentage_7d_in_currency": 4.0,
        },
        {
            "id": "solana",
            "symbol": "sol",
            "current_price": 100.0,
            "price_change_percentage_24h": None,
            "price_change_percentage_7d_in_currency": None,
        },
    ]


@pytest.fixture
def ohlc_payload() -> List[List[float]]:
    """Sample /coins/{id}/ohlc response, deliberately out of order."""
    return [
        [START_MS - 1_800_000, 49900.0, 50100.0, 49800.0, 50000.0],
        [START_MS - 3_600_000, 49500.0, 50000.0, 49400.0, 49900.0],
        [START_MS, 50000.0, 50200.0, 49950.0, 50150.0],
    ]


@pytest.fixture
def fear_greed_payload() -> Dict[str, Any]:
    """Sample alternative.me /fng response with eight daily readings."""
    values = [72, 65, 60, 55, 50, 45, 40, 30]
    classifications = [
        "Greed", "Greed", "Greed", "Greed", "Neutral", "Fear", "Fear", "Fear",
    ]
    return {
        "name": "Fear and Greed Index",
        "data": [
            {
                "value": str(value),
                "value_classification": label,
                "timestamp": str(START_MS // 1000 - day * 86_400),
            }
            for day, (value, label) in enumerate(zip(values, classifications))
        ],
    }
