"""Shared HTTP plumbing for provider clients."""

import logging
import re
import time
from typing import Any, Callable

import httpx

from indicator_hub.config import Settings
from indicator_hub.errors import ProviderRequestError, RequestTimeout


logger = logging.getLogger(__name__)

_CREDENTIAL_PATTERN = re.compile(r"(api_?key=)[^&\s]+", re.IGNORECASE)
_CREDENTIAL_PARAMS = ("api_key", "apikey")


def redact_url(url: str) -> str:
    """Replace any credential in ``url`` so it is safe to log."""
    return _CREDENTIAL_PATTERN.sub(r"\1***REDACTED***", url)


def build_query(params: dict[str, Any], credential_name: str, credential: str) -> dict[str, str]:
    """Build query params with the configured credential appended last.

    Any credential the caller slipped into ``params`` is dropped.
    """
    query = {
        key: str(value)
        for key, value in params.items()
        if key.lower() not in _CREDENTIAL_PARAMS and value is not None
    }
    query[credential_name] = credential
    return query


def error_message(response: httpx.Response) -> str:
    """Extract the provider's structured error message, if any."""
    fallback = response.reason_phrase or "HTTP error"
    try:
        data = response.json()
    except ValueError:
        return fallback
    if isinstance(data, dict):
        for key in ("error_message", "Error Message", "message"):
            if data.get(key):
                return str(data[key])
    return fallback


class ProviderHttpClient:
    """Lazy httpx client with per-instance request spacing and typed errors."""

    USER_AGENT = "indicator-hub/0.1"
    PROVIDER = "provider"
    CREDENTIAL_PARAM = "api_key"

    def __init__(
        self,
        settings: Settings | None = None,
        transport: httpx.BaseTransport | None = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.settings = settings or Settings()
        self._transport = transport
        self._client: httpx.Client | None = None
        self._sleep = sleep
        self._clock = clock
        self._last_request_at: float | None = None

    @property
    def client(self) -> httpx.Client:
        """Lazy-initialize HTTP client."""
        if self._client is None:
            self._client = httpx.Client(
                timeout=self.settings.request_timeout_seconds,
                headers={"User-Agent": self.USER_AGENT, "Accept": "application/json"},
                transport=self._transport,
            )
        return self._client

    def close(self) -> None:
        """Close HTTP client."""
        if self._client is not None:
            self._client.close()
            self._client = None

    def __enter__(self):
        return self

    def __exit__(self, *args) -> None:
        self.close()

    @property
    def credential(self) -> str:
        raise NotImplementedError

    @property
    def spacing_seconds(self) -> float:
        return self.settings.request_spacing_seconds

    def _respect_spacing(self) -> None:
        """Block until the minimum spacing since the last request has passed."""
        if self._last_request_at is not None:
            elapsed = self._clock() - self._last_request_at
            if elapsed < self.spacing_seconds:
                delay = self.spacing_seconds - elapsed
                logger.debug(f"{self.PROVIDER}: rate limiting, delaying {delay:.2f}s")
                self._sleep(delay)
        self._last_request_at = self._clock()

    def _get_json(self, url: str, params: dict[str, Any], timeout: float | None = None) -> Any:
        """
        Make a spaced, authenticated GET request and decode the JSON body.

        Raises:
            RequestTimeout: the request exceeded ``timeout`` seconds
            ProviderRequestError: non-2xx status, transport failure or bad JSON
        """
        timeout = timeout or self.settings.request_timeout_seconds
        query = build_query(params, self.CREDENTIAL_PARAM, self.credential)

        self._respect_spacing()
        logger.debug(f"GET {redact_url(str(httpx.URL(url, params=query)))}")

        try:
            response = self.client.get(url, params=query, timeout=timeout)
        except httpx.TimeoutException:
            raise RequestTimeout(timeout) from None
        except httpx.HTTPError as e:
            raise ProviderRequestError(
                0, f"Network request failed: {redact_url(str(e))}"
            ) from None

        if not response.is_success:
            raise ProviderRequestError(response.status_code, error_message(response))

        try:
            return response.json()
        except ValueError:
            raise ProviderRequestError(
                response.status_code, f"Invalid JSON response from {self.PROVIDER}"
            ) from None
