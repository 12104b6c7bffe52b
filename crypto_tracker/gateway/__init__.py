"""Fetch Gateway: upstream provider access behind a shared server-side cache."""
from .client import GatewayClient
from .provider import UpstreamClient
from .service import FetchGateway, GatewayResponse
from .shared_cache import InMemorySharedCache, SharedCache, SharedEntry

__all__ = [
    "FetchGateway",
    "GatewayClient",
    "GatewayResponse",
    "InMemorySharedCache",
    "SharedCache",
    "SharedEntry",
    "UpstreamClient",
]
