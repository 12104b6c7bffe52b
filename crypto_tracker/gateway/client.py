"""Async adapter that lets the client-side orchestrator call the gateway."""

import asyncio

from ..data.models import CandleSeries, FearGreedIndex, PriceSnapshot
from .service import FetchGateway, GatewayResponse


class GatewayClient:
    """
    In-process DataSource backed by a FetchGateway.

    The gateway does blocking HTTP, so each call runs in a worker thread and
    its completion is resumed on the caller's event loop.
    """

    def __init__(self, gateway: FetchGateway):
        self.gateway = gateway

    async def fetch_prices(self, force_refresh: bool = False) -> GatewayResponse[PriceSnapshot]:
        return await asyncio.to_thread(self.gateway.fetch_prices, force_refresh)

    async def fetch_candles(
        self,
        symbol: str,
        range_days: int,
        force_refresh: bool = False,
    ) -> GatewayResponse[CandleSeries]:
        return await asyncio.to_thread(self.gateway.fetch_candles, symbol, range_days, force_refresh)

    async def fetch_fear_greed(self) -> GatewayResponse[FearGreedIndex]:
        return await asyncio.to_thread(self.gateway.fetch_fear_greed)
