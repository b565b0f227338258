"""Provider adapters and the resilient indicator read path."""

import logging
import math
import time
from datetime import date, datetime, timezone
from typing import TYPE_CHECKING, Callable

import pandas as pd

from indicator_hub.config import (
    ALPHA_VANTAGE_PROVIDER,
    FRED_PROVIDER,
    INDICATORS,
    IndicatorSpec,
    Settings,
)
from indicator_hub.data.alphavantage_client import AlphaVantageClient, RateLimitedError
from indicator_hub.data.cache import TimeSeriesCache
from indicator_hub.data.fallback import ResilienceResolver
from indicator_hub.data.fred_client import FredClient, observations_frame
from indicator_hub.errors import (
    DataUnusableError,
    IndicatorHubError,
    ProviderRequestError,
    RequestTimeout,
)
from indicator_hub.indicators.correlation import normalize_series
from indicator_hub.models import (
    DEGRADED,
    DOWN,
    HEALTHY,
    IndicatorObservation,
    MetricDataPoint,
    MetricValue,
)

if TYPE_CHECKING:
    from indicator_hub.monitoring.health import HealthAggregator


logger = logging.getLogger(__name__)


def format_value(value: float | None, fmt: str) -> str:
    """Display text for a value. NaN and None render as 'N/A'."""
    if value is None or (isinstance(value, float) and math.isnan(value)):
        return "N/A"
    if fmt == "percent":
        return f"{value:.2f}%"
    if fmt == "index":
        return f"{value:.1f}"
    if fmt == "thousands":
        return f"{round(value / 1000)}K"
    if fmt == "millions":
        # JOLTS reports in thousands
        return f"{value / 1000:.1f}M"
    if fmt == "currency":
        return f"${value:,.2f}"
    if fmt == "grouped":
        return f"{value:,.0f}"
    return f"{value:.2f}"


def latest_observation(df: pd.DataFrame) -> IndicatorObservation:
    """Newest observation from a date-indexed frame, with change from prior."""
    if df.empty:
        raise DataUnusableError("No valid observations")
    df = df.sort_index(ascending=False)
    current = float(df["value"].iloc[0])
    change = None
    if len(df) > 1:
        change = current - float(df["value"].iloc[1])
    return IndicatorObservation(df.index[0].date(), current, change)


def frame_to_points(df: pd.DataFrame) -> list[MetricDataPoint]:
    """Date-indexed value frame to an ascending, de-duplicated point list."""
    points = [
        MetricDataPoint.from_date(idx.date(), float(val))
        for idx, val in df["value"].items()
        if pd.notna(val)
    ]
    return normalize_series(points)


def failure_state(error: Exception) -> str:
    """Health state implied by a failed live call."""
    if isinstance(error, RateLimitedError):
        return DEGRADED
    if isinstance(error, RequestTimeout):
        return DOWN
    if isinstance(error, ProviderRequestError):
        # Alpha Vantage reports bad calls in a 200 body
        if 200 <= error.status_code < 300:
            return DEGRADED
        return DOWN
    return DEGRADED


class IndicatorService:
    """Resolves catalog indicators through cache, live fetch and fallback."""

    HISTORY_LIMIT = 1000

    def __init__(
        self,
        settings: Settings,
        fred: FredClient,
        alpha_vantage: AlphaVantageClient,
        resolver: ResilienceResolver,
        indicator_cache: TimeSeriesCache,
        market_cache: TimeSeriesCache,
        health: "HealthAggregator | None" = None,
        catalog: dict[str, IndicatorSpec] | None = None,
        timer: Callable[[], float] = time.perf_counter,
        now: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ) -> None:
        self.settings = settings
        self.fred = fred
        self.alpha_vantage = alpha_vantage
        self.resolver = resolver
        self.indicator_cache = indicator_cache
        self.market_cache = market_cache
        self.health = health
        self.catalog = INDICATORS if catalog is None else catalog
        self._timer = timer
        self._now = now

    def _cache_for(self, spec: IndicatorSpec) -> TimeSeriesCache:
        if spec.provider == ALPHA_VANTAGE_PROVIDER:
            return self.market_cache
        return self.indicator_cache

    def _record(self, provider: str, started: float, error: Exception | None = None) -> None:
        if self.health is None:
            return
        latency_ms = (self._timer() - started) * 1000
        if error is None:
            self.health.record_observation(provider, HEALTHY, latency_ms)
        else:
            self.health.record_observation(provider, failure_state(error), latency_ms, str(error))

    # --- provider adapters -------------------------------------------------

    def _fetch_fred_value(self, spec: IndicatorSpec) -> MetricValue:
        payload = self.fred.fetch_series(spec.identifier, limit=10, sort_order="desc")
        observation = latest_observation(observations_frame(payload))
        return MetricValue(
            value=observation.value,
            formatted_text=format_value(observation.value, spec.fmt),
            date=observation.date.isoformat(),
            change=observation.change_from_previous,
            source=FRED_PROVIDER,
            last_updated=self._now(),
        )

    def _fetch_quote_value(self, spec: IndicatorSpec) -> MetricValue:
        quote = self.alpha_vantage.fetch_quote(spec.identifier)
        if not quote:
            raise DataUnusableError(f"No quote returned for {spec.identifier}")

        price = pd.to_numeric(quote.get("05. price"), errors="coerce")
        if pd.isna(price):
            raise DataUnusableError(f"Quote for {spec.identifier} has no price")
        change = pd.to_numeric(quote.get("09. change"), errors="coerce")
        trading_day = quote.get("07. latest trading day") or self._now().date().isoformat()

        return MetricValue(
            value=float(price),
            formatted_text=format_value(float(price), spec.fmt),
            date=trading_day,
            change=None if pd.isna(change) else float(change),
            source=ALPHA_VANTAGE_PROVIDER,
            last_updated=self._now(),
        )

    def _fetch_live(self, spec: IndicatorSpec) -> MetricValue:
        started = self._timer()
        try:
            if spec.provider == FRED_PROVIDER:
                value = self._fetch_fred_value(spec)
            else:
                value = self._fetch_quote_value(spec)
        except IndicatorHubError as e:
            self._record(spec.provider, started, e)
            raise
        self._record(spec.provider, started)
        return value

    # --- public read path --------------------------------------------------

    def get_value(self, name: str) -> MetricValue:
        """Resolve one indicator. Never raises."""
        spec = self.catalog.get(name)
        if spec is None:
            logger.warning(f"Unknown indicator requested: {name}")
            return self.resolver.fallback(name, f"Unknown indicator: {name}")

        tier = self._cache_for(spec)
        cached = tier.get(name)
        if cached is not None:
            logger.debug(f"Using cached data for {name}")
            return cached

        logger.info(f"Fetching {name} ({spec.provider} {spec.identifier})...")
        result = self.resolver.with_resilience(lambda: self._fetch_live(spec), name)
        if not result.is_fallback:
            tier.set(name, result)
        else:
            logger.warning(f"Using fallback data for {name}: {result.source}")
        return result

    def get_bulk(self, names: list[str]) -> dict[str, MetricValue]:
        """Resolve indicators one at a time, in order."""
        return {name: self.get_value(name) for name in names}

    def _fred_history(self, spec: IndicatorSpec, since: date, limit: int) -> pd.DataFrame:
        # newest first so ``limit`` keeps the most recent observations
        payload = self.fred.fetch_series(
            spec.identifier,
            limit=limit,
            sort_order="desc",
            observation_start=since.isoformat(),
        )
        return observations_frame(payload)

    def _quote_history(self, spec: IndicatorSpec, since: date, limit: int) -> pd.DataFrame:
        outputsize = "compact" if limit <= 100 else "full"
        df = self.alpha_vantage.fetch_daily_series(spec.identifier, outputsize=outputsize)
        df = df[df.index >= pd.Timestamp(since)]
        return df.sort_index().tail(limit)

    def get_history(self, name: str, since: date, limit: int | None = None) -> list[MetricDataPoint]:
        """
        Historical points for one indicator, ascending and de-duplicated.

        Returns an empty list when the indicator is unknown or the provider
        fails; the failure is recorded against the provider's health.
        """
        spec = self.catalog.get(name)
        if spec is None:
            logger.warning(f"Unknown indicator requested: {name}")
            return []

        limit = limit or self.HISTORY_LIMIT
        started = self._timer()
        try:
            if spec.provider == FRED_PROVIDER:
                df = self._fred_history(spec, since, limit)
            else:
                df = self._quote_history(spec, since, limit)
        except IndicatorHubError as e:
            logger.warning(f"Could not fetch history for {name}: {e}")
            self._record(spec.provider, started, e)
            return []
        self._record(spec.provider, started)

        return frame_to_points(df)[-limit:]
