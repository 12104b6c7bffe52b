"""
Canonical data models for normalized market data.

This module defines immutable data structures that represent clean,
validated market data after normalization from the provider's payloads.
Each model converts to and from plain JSON-compatible data so it can be
stored in the key-value register and passed across the gateway boundary.
"""

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Iterator, Mapping, Optional


@dataclass(frozen=True)
class PricePoint:
    """Spot price and percentage changes for one coin."""
    price: float
    change_24h: float = 0.0
    change_7d: float = 0.0

    def to_dict(self) -> dict[str, float]:
        return {
            "price": self.price,
            "change_24h": self.change_24h,
            "change_7d": self.change_7d,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "PricePoint":
        return cls(
            price=float(data["price"]),
            change_24h=float(data.get("change_24h", 0.0)),
            change_7d=float(data.get("change_7d", 0.0)),
        )


@dataclass(frozen=True)
class PriceSnapshot:
    """
    Complete set of current prices for all tracked coins.

    A snapshot is always replaced as a whole. Coins missing from a newer
    snapshot are gone, never carried over from an older one.
    """
    prices: Mapping[str, PricePoint] = field(default_factory=dict)

    def __post_init__(self):
        object.__setattr__(self, "prices", MappingProxyType(dict(self.prices)))

    def __contains__(self, symbol: object) -> bool:
        return symbol in self.prices

    def __iter__(self) -> Iterator[str]:
        return iter(self.prices)

    def __len__(self) -> int:
        return len(self.prices)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, PriceSnapshot):
            return NotImplemented
        return dict(self.prices) == dict(other.prices)

    def __hash__(self) -> int:
        return hash(tuple(sorted(self.prices.items())))

    def get(self, symbol: str) -> Optional[PricePoint]:
        return self.prices.get(symbol)

    def price_of(self, symbol: str) -> Optional[float]:
        point = self.prices.get(symbol)
        return point.price if point is not None else None

    @property
    def symbols(self) -> list[str]:
        return list(self.prices)

    def to_dict(self) -> dict[str, dict[str, float]]:
        return {symbol: point.to_dict() for symbol, point in self.prices.items()}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "PriceSnapshot":
        if not isinstance(data, Mapping):
            raise TypeError(f"Expected a mapping of prices, got {type(data).__name__}")
        return cls({symbol: PricePoint.from_dict(point) for symbol, point in data.items()})


@dataclass(frozen=True)
class Candle:
    """Single OHLC bar keyed by its open time."""
    open_time_ms: int
    open: float
    high: float
    low: float
    close: float

    def to_row(self) -> list[float]:
        return [self.open_time_ms, self.open, self.high, self.low, self.close]

    @classmethod
    def from_row(cls, row: list[Any]) -> "Candle":
        return cls(
            open_time_ms=int(row[0]),
            open=float(row[1]),
            high=float(row[2]),
            low=float(row[3]),
            close=float(row[4]),
        )


@dataclass(frozen=True)
class CandleSeries:
    """OHLC bars ordered by open time, ascending."""
    candles: tuple[Candle, ...] = ()

    def __len__(self) -> int:
        return len(self.candles)

    def __iter__(self) -> Iterator[Candle]:
        return iter(self.candles)

    def __bool__(self) -> bool:
        return bool(self.candles)

    @property
    def last(self) -> Optional[Candle]:
        return self.candles[-1] if self.candles else None

    def to_rows(self) -> list[list[float]]:
        return [candle.to_row() for candle in self.candles]

    @classmethod
    def from_rows(cls, rows: list[list[Any]]) -> "CandleSeries":
        return cls(tuple(Candle.from_row(row) for row in rows))


@dataclass(frozen=True)
class FearGreedReading:
    """One Fear & Greed index value."""
    value: int
    classification: str
    timestamp_ms: Optional[int] = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"value": self.value, "classification": self.classification}
        if self.timestamp_ms is not None:
            data["timestamp_ms"] = self.timestamp_ms
        return data

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "FearGreedReading":
        return cls(
            value=int(data["value"]),
            classification=str(data["classification"]),
            timestamp_ms=data.get("timestamp_ms"),
        )


@dataclass(frozen=True)
class FearGreedIndex:
    """Current market sentiment with daily and weekly comparisons."""
    current: FearGreedReading
    yesterday: FearGreedReading
    last_week: FearGreedReading

    def to_dict(self) -> dict[str, Any]:
        return {
            "current": self.current.to_dict(),
            "yesterday": self.yesterday.to_dict(),
            "last_week": self.last_week.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "FearGreedIndex":
        return cls(
            current=FearGreedReading.from_dict(data["current"]),
            yesterday=FearGreedReading.from_dict(data["yesterday"]),
            last_week=FearGreedReading.from_dict(data["last_week"]),
        )
