"""What the orchestrator needs from the Fetch Gateway."""

from typing import Protocol

from ..data.models import CandleSeries, FearGreedIndex, PriceSnapshot
from ..gateway.service import GatewayResponse


class DataSource(Protocol):
    """
    Async view of the gateway.

    Implementations raise NoDataAvailable when neither the upstream nor a
    cached value can answer, and UnsupportedSymbolError/UnsupportedRangeError
    for invalid requests. GatewayClient is the in-process implementation.
    """

    async def fetch_prices(self, force_refresh: bool = False) -> GatewayResponse[PriceSnapshot]:
        ...

    async def fetch_candles(
        self,
        symbol: str,
        range_days: int,
        force_refresh: bool = False,
    ) -> GatewayResponse[CandleSeries]:
        ...

    async def fetch_fear_greed(self) -> GatewayResponse[FearGreedIndex]:
        ...
