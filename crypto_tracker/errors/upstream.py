"""
Upstream provider and data availability error classifications.

The Fetch Gateway downgrades UpstreamError subclasses to a staleness flag
whenever it holds any cached value. Only when nothing is cached does the
failure escape, wrapped in NoDataAvailable.
"""

from typing import Any, Dict, Optional


class UpstreamError(Exception):
    """Base class for failures talking to the market data provider."""

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.context = context or {}
        self.recoverable = True


class UpstreamRateLimited(UpstreamError):
    """Provider answered with a rate-limit response (HTTP 429)."""

    def __init__(self, message: str, retry_after: Optional[float] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.retry_after = retry_after


class UpstreamUnavailable(UpstreamError):
    """Network error, non-2xx status, or an unusable response body."""

    def __init__(self, message: str, status_code: Optional[int] = None,
                 url: Optional[str] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.status_code = status_code
        self.url = url


class MalformedPayloadError(UpstreamUnavailable):
    """Response body parsed but did not have the expected shape."""

    def __init__(self, message: str, raw_data: Optional[str] = None,
                 expected_format: Optional[str] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.raw_data = raw_data
        self.expected_format = expected_format


class NoDataAvailable(Exception):
    """No cached value exists anywhere and the upstream call failed."""

    def __init__(self, message: str, kind: Optional[str] = None,
                 cause: Optional[UpstreamError] = None):
        super().__init__(message)
        self.kind = kind
        self.cause = cause
        self.recoverable = False

    @property
    def rate_limited(self) -> bool:
        return isinstance(self.cause, UpstreamRateLimited)

    @property
    def status_code(self) -> int:
        """HTTP status a server boundary should answer with."""
        return 429 if self.rate_limited else 500


class UnsupportedSymbolError(ValueError):
    """Requested coin is not in the configured coin list."""

    def __init__(self, symbol: str):
        super().__init__(f"Unsupported coin: {symbol}")
        self.symbol = symbol
        self.status_code = 400


class UnsupportedRangeError(ValueError):
    """Requested candle range is not one of the configured ranges."""

    def __init__(self, range_days: Any):
        super().__init__(f"Unsupported range: {range_days}")
        self.range_days = range_days
        self.status_code = 400
