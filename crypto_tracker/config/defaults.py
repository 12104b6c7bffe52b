"""Default configuration parameters for the crypto tracker."""

from dataclasses import dataclass, field
from typing import Optional


@dataclass(frozen=True)
class TTLParams:
    """Fresh/stale thresholds for one cache kind."""
    fresh_ttl_ms: int = 60_000           # Serve without refresh below this age
    stale_ttl_ms: int = 900_000          # Serve and revalidate below this age


@dataclass(frozen=True)
class CacheParams:
    """Client and server cache parameters."""
    prices: TTLParams = field(default_factory=TTLParams)
    ohlc: TTLParams = field(default_factory=TTLParams)
    namespace: str = "crypto-tracker-"


@dataclass(frozen=True)
class SentimentParams:
    """Fear & Greed index parameters."""
    ttl_ms: int = 300_000                # Data updates once daily
    refresh_interval_ms: int = 300_000
    limit: int = 8                       # Enough history for a weekly comparison


@dataclass(frozen=True)
class SyncParams:
    """Client-side scheduling parameters."""
    debounce_ms: int = 300               # Quiet period after a selection switch
    auto_refresh_ms: int = 60_000
    countdown_tick_ms: int = 1_000


@dataclass(frozen=True)
class ProviderParams:
    """Upstream market data provider endpoints."""
    base_url: str = "https://api.coingecko.com/api/v3"
    sentiment_url: str = "https://api.alternative.me/fng/"
    vs_currency: str = "usd"
    timeout_seconds: int = 10
    user_agent: str = "crypto-tracker/0.1"


@dataclass(frozen=True)
class CoinInfo:
    """Supported coin with its display name and ticker."""
    id: str
    name: str
    symbol: str


@dataclass(frozen=True)
class MarketParams:
    """Coins and candle ranges the tracker supports."""
    coins: tuple[CoinInfo, ...] = (
        CoinInfo(id="bitcoin", name="Bitcoin", symbol="BTC"),
        CoinInfo(id="ethereum", name="Ethereum", symbol="ETH"),
        CoinInfo(id="solana", name="Solana", symbol="SOL"),
    )
    ranges: tuple[int, ...] = (1, 7)     # Candle ranges in days
    default_range: int = 1

    @property
    def coin_ids(self) -> list[str]:
        return [coin.id for coin in self.coins]

    def get_coin(self, coin_id: str) -> Optional[CoinInfo]:
        for coin in self.coins:
            if coin.id == coin_id:
                return coin
        return None


@dataclass(frozen=True)
class StorageParams:
    """Client-side persistence parameters."""
    db_path: str = "crypto_tracker.db"


@dataclass(frozen=True)
class LoggingParams:
    """structlog output settings."""
    level: str = "INFO"
    format_json: bool = False            # JSON lines instead of the console renderer
    include_caller: bool = False


@dataclass(frozen=True)
class TrackerConfig:
    """Complete configuration."""
    cache: CacheParams
    sentiment: SentimentParams
    sync: SyncParams
    provider: ProviderParams
    market: MarketParams
    storage: StorageParams
    logging: LoggingParams


def get_default_config() -> TrackerConfig:
    """Get the default configuration instance."""
    return TrackerConfig(
        cache=CacheParams(),
        sentiment=SentimentParams(),
        sync=SyncParams(),
        provider=ProviderParams(),
        market=MarketParams(),
        storage=StorageParams(),
        logging=LoggingParams(),
    )
