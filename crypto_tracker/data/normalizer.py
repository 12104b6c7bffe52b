"""
Provider payload normalization.

Converts raw JSON bodies from the market data provider into canonical
models. Any structural problem raises MalformedPayloadError for the whole
payload: a batch is either normalized completely or rejected, so a broken
response can never be partially written over a good snapshot.
"""

import math
from typing import Any

import structlog

from ..errors import MalformedPayloadError
from .models import (
    Candle,
    CandleSeries,
    FearGreedIndex,
    FearGreedReading,
    PricePoint,
    PriceSnapshot,
)

logger = structlog.get_logger(__name__)


def _optional_number(value: Any, field_name: str, coin_id: str) -> float:
    """Provider nulls become 0.0; anything non-numeric is malformed."""
    if value is None:
        return 0.0
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise MalformedPayloadError(
            f"Non-numeric {field_name} for {coin_id}",
            raw_data=repr(value)[:200],
            expected_format="number",
        )
    if not math.isfinite(value):
        raise MalformedPayloadError(
            f"Non-finite {field_name} for {coin_id}",
            raw_data=repr(value),
            expected_format="finite number",
        )
    return float(value)


def normalize_markets_payload(payload: Any) -> PriceSnapshot:
    """
    Normalize a /coins/markets response into a PriceSnapshot.

    Args:
        payload: Decoded JSON body, expected to be a list of coin objects

    Returns:
        Snapshot containing exactly the coins present in the payload

    Raises:
        MalformedPayloadError: If the payload or any coin entry is unusable
    """
    if not isinstance(payload, list):
        raise MalformedPayloadError(
            "Markets payload is not a list",
            raw_data=repr(payload)[:200],
            expected_format="list[object]",
        )

    prices: dict[str, PricePoint] = {}
    for entry in payload:
        if not isinstance(entry, dict) or not isinstance(entry.get("id"), str):
            raise MalformedPayloadError(
                "Markets entry without a coin id",
                raw_data=repr(entry)[:200],
                expected_format="{id: str, current_price: number}",
            )

        coin_id = entry["id"]
        prices[coin_id] = PricePoint(
            price=_optional_number(entry.get("current_price"), "current_price", coin_id),
            change_24h=_optional_number(
                entry.get("price_change_percentage_24h"), "price_change_percentage_24h", coin_id
            ),
            change_7d=_optional_number(
                entry.get("price_change_percentage_7d_in_currency"),
                "price_change_percentage_7d_in_currency",
                coin_id,
            ),
        )

    return PriceSnapshot(prices)


def normalize_ohlc_payload(payload: Any) -> CandleSeries:
    """
    Normalize a /coins/{id}/ohlc response into a CandleSeries.

    Rows are sorted by open time; when the provider repeats an open time the
    later row wins.

    Raises:
        MalformedPayloadError: If the payload is not a list of 5-number rows
    """
    if not isinstance(payload, list):
        raise MalformedPayloadError(
            "OHLC payload is not a list",
            raw_data=repr(payload)[:200],
            expected_format="list[[time, open, high, low, close]]",
        )

    by_open_time: dict[int, Candle] = {}
    for row in payload:
        if (
            not isinstance(row, (list, tuple))
            or len(row) < 5
            or not all(isinstance(v, (int, float)) and not isinstance(v, bool) for v in row[:5])
        ):
            raise MalformedPayloadError(
                "OHLC row is not [time, open, high, low, close]",
                raw_data=repr(row)[:200],
                expected_format="[number, number, number, number, number]",
            )
        candle = Candle.from_row(list(row[:5]))
        by_open_time[candle.open_time_ms] = candle

    ordered = tuple(by_open_time[ts] for ts in sorted(by_open_time))
    if len(ordered) != len(payload):
        logger.debug("Collapsed duplicate OHLC rows", received=len(payload), kept=len(ordered))

    return CandleSeries(ordered)


def _reading(entry: Any, with_timestamp: bool = False) -> FearGreedReading:
    try:
        reading = FearGreedReading(
            value=int(entry["value"]),
            classification=str(entry["value_classification"]),
            timestamp_ms=int(entry["timestamp"]) * 1000 if with_timestamp else None,
        )
    except (KeyError, TypeError, ValueError) as e:
        raise MalformedPayloadError(
            f"Unusable Fear & Greed entry: {e}",
            raw_data=repr(entry)[:200],
            expected_format="{value, value_classification, timestamp}",
        ) from e
    return reading


def normalize_fear_greed_payload(payload: Any) -> FearGreedIndex:
    """
    Normalize an alternative.me /fng response.

    Uses index 0 as current, index 1 as yesterday and index 7 as last week,
    falling back to the oldest available entry and then to current.
    """
    data = payload.get("data") if isinstance(payload, dict) else None
    if not isinstance(data, list) or not data:
        raise MalformedPayloadError(
            "No Fear & Greed data returned",
            raw_data=repr(payload)[:200],
            expected_format="{data: [...]}",
        )

    current = _reading(data[0], with_timestamp=True)
    yesterday = _reading(data[1]) if len(data) > 1 else FearGreedReading(
        current.value, current.classification
    )
    last_week = _reading(data[7] if len(data) > 7 else data[-1])

    return FearGreedIndex(current=current, yesterday=yesterday, last_week=last_week)
