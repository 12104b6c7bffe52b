"""UI-facing state written by the sync orchestrator."""

from dataclasses import dataclass
from datetime import tzinfo
from typing import Optional

from ..data.models import CandleSeries, FearGreedIndex, PriceSnapshot
from ..persistence.preferences import ViewMode
from ..utils.time import format_clock_time


@dataclass
class ViewState:
    """What the dashboard currently shows."""

    prices: Optional[PriceSnapshot] = None
    candles: Optional[CandleSeries] = None
    sentiment: Optional[FearGreedIndex] = None

    # Indicators
    is_loading: bool = False         # Blocking spinner, cold start only
    is_stale: bool = False           # Subtle "updating..." badge
    error: Optional[str] = None

    # "Last updated" stamp
    last_updated_at: Optional[int] = None
    last_updated_from_cache: bool = False

    refresh_countdown: int = 0       # Seconds until the next auto refresh
    is_visible: bool = True
    view_mode: ViewMode = ViewMode.SINGLE

    def mark_updated(self, timestamp_ms: int, from_cache: bool = False) -> None:
        self.last_updated_at = timestamp_ms
        self.last_updated_from_cache = from_cache

    def last_updated_label(self, tz: Optional[tzinfo] = None) -> str:
        if self.last_updated_at is None:
            return "--"
        label = format_clock_time(self.last_updated_at, tz=tz)
        return f"{label} (cached)" if self.last_updated_from_cache else label

    def price_for(self, symbol: str) -> Optional[float]:
        return self.prices.price_of(symbol) if self.prices is not None else None
