"""FRED API client with credential hygiene and request spacing."""

import logging
from typing import Any

import pandas as pd

from indicator_hub.config import Settings
from indicator_hub.data.http import ProviderHttpClient, redact_url
from indicator_hub.errors import ProviderError, ProviderRequestError


logger = logging.getLogger(__name__)

__all__ = ["FredClient", "observations_frame", "redact_url"]


def observations_frame(payload: dict) -> pd.DataFrame:
    """
    Convert a FRED observations payload into a DataFrame.

    FRED reports missing values as ".", which become NaN and are dropped.

    Returns:
        DataFrame with date index and value column, in payload order
    """
    observations = payload.get("observations") or []
    if not observations:
        return pd.DataFrame(columns=["value"])

    df = pd.DataFrame(observations)
    if "date" not in df.columns or "value" not in df.columns:
        return pd.DataFrame(columns=["value"])

    df["date"] = pd.to_datetime(df["date"], errors="coerce")
    df["value"] = pd.to_numeric(df["value"], errors="coerce")
    df = df[["date", "value"]].dropna()
    df.set_index("date", inplace=True)
    return df


class FredClient(ProviderHttpClient):
    """Issues authenticated GET requests to the FRED API.

    Construction fails with ``CredentialMissingError`` when FRED_API_KEY is
    not configured.
    """

    PROVIDER = "FRED"
    CREDENTIAL_PARAM = "api_key"
    VALIDATION_SERIES = "UNRATE"

    def __init__(self, settings: Settings | None = None, **kwargs: Any) -> None:
        super().__init__(settings, **kwargs)
        self.settings.validate()

    @property
    def credential(self) -> str:
        return self.settings.fred_api_key

    def _request(self, endpoint: str, params: dict[str, Any], timeout: float | None = None) -> dict:
        url = f"{self.settings.fred_base_url}{endpoint}"
        return self._get_json(url, {**params, "file_type": "json"}, timeout)

    def fetch_series(
        self,
        series_id: str,
        limit: int = 10,
        sort_order: str = "desc",
        observation_start: str = "2000-01-01",
        timeout: float | None = None,
        **extra: Any,
    ) -> dict:
        """
        Fetch observations for a series.

        Args:
            series_id: FRED series ID
            limit: Maximum number of observations
            sort_order: "asc" or "desc"
            observation_start: Earliest observation date (YYYY-MM-DD)
            timeout: Per-request timeout in seconds (default from settings)
            extra: Additional FRED query parameters; credentials are ignored

        Returns:
            Raw FRED observations payload
        """
        params = {
            **extra,
            "series_id": series_id,
            "limit": limit,
            "sort_order": sort_order,
            "observation_start": observation_start,
        }
        return self._request("/series/observations", params, timeout)

    def fetch_series_info(self, series_id: str, timeout: float | None = None) -> dict:
        """Fetch metadata for a series from FRED."""
        return self._request("/series", {"series_id": series_id}, timeout)

    def fetch_bulk(self, series_ids: list[str], **options: Any) -> dict[str, dict]:
        """
        Fetch several series one at a time, in the order given.

        Requests are spaced by ``request_spacing_seconds``. A failed series
        is logged and skipped; the result holds only successes.
        """
        results: dict[str, dict] = {}
        failed: list[str] = []

        for series_id in series_ids:
            try:
                results[series_id] = self.fetch_series(series_id, **options)
            except ProviderError as e:
                logger.warning(f"Failed to fetch series {series_id}: {e}")
                failed.append(series_id)

        if failed:
            logger.warning(f"Failed to fetch {len(failed)} series: {failed}")

        return results

    def validate_credential(self) -> bool:
        """
        Check the configured API key with one minimal request.

        Returns False when FRED rejects the key. Network failures and other
        errors are re-raised; they say nothing about the key.
        """
        try:
            self._request("/series", {"series_id": self.VALIDATION_SERIES, "limit": 1})
        except ProviderRequestError as e:
            if e.status_code in (401, 403):
                return False
            if e.status_code == 400 and "api_key" in e.message.lower():
                return False
            raise
        return True
