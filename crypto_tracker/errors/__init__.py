"""
Error classification for the market data sync engine.

Storage errors are absorbed at the Freshness Store boundary, upstream errors
are absorbed by the Fetch Gateway whenever any cached value exists, and
NoDataAvailable is the only failure that reaches the user.
"""

from .storage import (
    StorageError,
    CacheUnavailable,
)
from .upstream import (
    UpstreamError,
    UpstreamRateLimited,
    UpstreamUnavailable,
    MalformedPayloadError,
    NoDataAvailable,
    UnsupportedSymbolError,
    UnsupportedRangeError,
)

__all__ = [
    # Storage
    "StorageError",
    "CacheUnavailable",
    # Upstream
    "UpstreamError",
    "UpstreamRateLimited",
    "UpstreamUnavailable",
    "MalformedPayloadError",
    "NoDataAvailable",
    # Request validation
    "UnsupportedSymbolError",
    "UnsupportedRangeError",
]
