"""Cache keys derived from a data kind and its parameters."""

from dataclasses import dataclass

PRICES = "prices"
OHLC = "ohlc"
SENTIMENT = "sentiment"


@dataclass(frozen=True)
class CacheKey:
    """Identifies one cached payload, e.g. ("ohlc", ("bitcoin", "7"))."""
    kind: str
    params: tuple[str, ...] = ()

    def render(self, prefix: str = "") -> str:
        parts = [self.kind, *self.params]
        return prefix + "-".join(parts)

    def __str__(self) -> str:
        return self.render()


def prices_key() -> CacheKey:
    """Batch spot prices for all tracked coins."""
    return CacheKey(PRICES)


def candles_key(symbol: str, range_days: int) -> CacheKey:
    """OHLC candles for one coin and range."""
    return CacheKey(OHLC, (symbol, str(range_days)))


def sentiment_key() -> CacheKey:
    return CacheKey(SENTIMENT)
