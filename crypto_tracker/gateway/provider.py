"""HTTP client for the upstream market data provider."""

import socket
from http.client import HTTPException
from typing import Any, Optional
from urllib.error import HTTPError, URLError
from urllib.parse import urlencode
from urllib.request import Request, urlopen

import orjson
import structlog

from ..config.defaults import ProviderParams
from ..errors import MalformedPayloadError, UpstreamRateLimited, UpstreamUnavailable

RATE_LIMIT_STATUS = 429


def _retry_after(headers: Any) -> Optional[float]:
    value = headers.get("Retry-After") if headers is not None else None
    try:
        return float(value) if value is not None else None
    except ValueError:
        return None


class UpstreamClient:
    """
    Read-only JSON client for the provider's GET endpoints.

    Every call ends in exactly one of three outcomes: a decoded JSON body,
    UpstreamRateLimited, or UpstreamUnavailable.
    """

    def __init__(self, config: Optional[ProviderParams] = None):
        self.config = config or ProviderParams()
        self.logger = structlog.get_logger("gateway.upstream")

    def get_json(self, url: str, params: Optional[dict[str, Any]] = None) -> Any:
        """
        Perform a GET request and decode the JSON response.

        Args:
            url: Endpoint URL
            params: Query parameters

        Returns:
            Decoded JSON body

        Raises:
            UpstreamRateLimited: Provider answered 429
            UpstreamUnavailable: Network or protocol error, other non-2xx, or invalid JSON
        """
        if params:
            url = f"{url}?{urlencode(params)}"

        req = Request(
            url,
            headers={
                'Accept': 'application/json',
                'User-Agent': self.config.user_agent,
            },
            method='GET'
        )

        try:
            with urlopen(req, timeout=self.config.timeout_seconds) as response:
                status = response.getcode()
                body = response.read()

        except HTTPError as e:
            if e.code == RATE_LIMIT_STATUS:
                self.logger.warning("Upstream rate limited", url=url)
                raise UpstreamRateLimited(
                    "Rate limited by provider",
                    retry_after=_retry_after(e.headers),
                    context={"url": url},
                ) from e

            self.logger.warning("Upstream HTTP error", url=url, error_code=e.code, error_reason=e.reason)
            raise UpstreamUnavailable(f"HTTP {e.code}: {e.reason}", status_code=e.code, url=url) from e

        except (OSError, URLError, socket.timeout, HTTPException) as e:
            self.logger.warning("Upstream network error", url=url, error=str(e))
            raise UpstreamUnavailable(f"Network error: {e}", url=url) from e

        if status == RATE_LIMIT_STATUS:
            raise UpstreamRateLimited("Rate limited by provider", context={"url": url})

        if not 200 <= status < 300:
            raise UpstreamUnavailable(f"HTTP {status}", status_code=status, url=url)

        try:
            return orjson.loads(body)
        except orjson.JSONDecodeError as e:
            self.logger.warning("Upstream returned invalid JSON", url=url, error=str(e))
            raise MalformedPayloadError(
                "Response body is not JSON",
                raw_data=body[:200].decode("utf-8", errors="replace"),
                expected_format="json",
                url=url,
            ) from e

    def fetch_markets(self, coin_ids: list[str]) -> Any:
        """Batch quote for several coins in one call."""
        return self.get_json(
            f"{self.config.base_url}/coins/markets",
            {
                "vs_currency": self.config.vs_currency,
                "ids": ",".join(coin_ids),
                "price_change_percentage": "24h,7d",
            },
        )

    def fetch_ohlc(self, coin_id: str, range_days: int) -> Any:
        """Historical OHLC rows for one coin."""
        return self.get_json(
            f"{self.config.base_url}/coins/{coin_id}/ohlc",
            {"vs_currency": self.config.vs_currency, "days": range_days},
        )

    def fetch_fear_greed(self, limit: int) -> Any:
        """Fear & Greed history, newest first."""
        return self.get_json(self.config.sentiment_url, {"limit": limit})
