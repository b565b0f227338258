"""Alpha Vantage client for market quotes.

Free tier: 25 requests/day, 5 per minute. Quotes are cached for an hour
upstream of this client, so it is called sparingly.
"""

import logging
from typing import Any

import pandas as pd

from indicator_hub.config import Settings
from indicator_hub.data.http import ProviderHttpClient
from indicator_hub.errors import CredentialMissingError, DataUnusableError, ProviderRequestError


logger = logging.getLogger(__name__)


class RateLimitedError(ProviderRequestError):
    """Alpha Vantage answered 200 with a rate-limit note instead of data."""

    def __init__(self, message: str) -> None:
        super().__init__(429, message)


class AlphaVantageClient(ProviderHttpClient):
    """Fetches data from the Alpha Vantage API.

    The key is optional at startup; requests without one fail with
    ``CredentialMissingError`` so callers fall back per indicator.
    """

    PROVIDER = "Alpha Vantage"
    CREDENTIAL_PARAM = "apikey"

    def __init__(self, settings: Settings | None = None, **kwargs: Any) -> None:
        super().__init__(settings, **kwargs)
        if not self.settings.has_alpha_vantage():
            logger.warning("ALPHA_VANTAGE_API_KEY not set")

    @property
    def credential(self) -> str:
        return self.settings.alpha_vantage_api_key

    def _request(self, params: dict[str, Any], timeout: float | None = None) -> dict:
        """Make API request and surface in-body errors."""
        if not self.settings.has_alpha_vantage():
            raise CredentialMissingError("ALPHA_VANTAGE_API_KEY")

        data = self._get_json(self.settings.alpha_vantage_base_url, params, timeout)
        if not isinstance(data, dict):
            raise ProviderRequestError(200, "Unexpected response format")

        # Check for API errors
        if "Error Message" in data:
            raise ProviderRequestError(200, data["Error Message"])
        for key in ("Note", "Information"):
            if key in data:
                logger.warning(f"API {key}: {data[key]}")
                raise RateLimitedError(data[key])

        return data

    def fetch_quote(self, symbol: str, timeout: float | None = None) -> dict:
        """
        Fetch the latest GLOBAL_QUOTE for a symbol.

        Args:
            symbol: Stock or ETF symbol (e.g., "SPY")

        Returns:
            The "Global Quote" object, possibly empty for unknown symbols
        """
        logger.info(f"Fetching quote for {symbol}...")
        data = self._request({"function": "GLOBAL_QUOTE", "symbol": symbol}, timeout)
        return data.get("Global Quote") or {}

    def fetch_daily_series(self, symbol: str, outputsize: str = "compact") -> pd.DataFrame:
        """
        Fetch daily closes for a symbol.

        Args:
            symbol: Stock or ETF symbol
            outputsize: "compact" (last 100 days) or "full"

        Returns:
            DataFrame with date index and value column, ascending
        """
        logger.info(f"Fetching daily series for {symbol} ({outputsize})...")
        data = self._request({
            "function": "TIME_SERIES_DAILY",
            "symbol": symbol,
            "outputsize": outputsize,
        })

        key = "Time Series (Daily)"
        if key not in data:
            raise DataUnusableError(f"No daily series for {symbol}")

        df = pd.DataFrame.from_dict(data[key], orient="index")
        if "4. close" not in df.columns:
            raise DataUnusableError(f"Daily series for {symbol} has no close prices")
        df.index = pd.to_datetime(df.index)
        df = pd.DataFrame({"value": pd.to_numeric(df["4. close"], errors="coerce")}).dropna()
        return df.sort_index()
