"""Retry and fallback cascade for indicator fetches.

Every read goes through ``ResilienceResolver.with_resilience``, which turns
any failure into degraded-but-valid data:

    live fetch -> cached copy -> static seed -> "no data" sentinel
"""

import logging
import time
from dataclasses import replace
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Callable

from indicator_hub.data.cache import TimeSeriesCache
from indicator_hub.models import MetricValue


logger = logging.getLogger(__name__)

MAX_DATA_AGE = timedelta(days=7)


class UsabilityDecision(Enum):
    """What the resolver should do with one attempt's result."""
    USABLE = "usable"
    RETRY = "retry"
    FALLBACK = "fallback"


def _as_utc(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt


def evaluate_usability(
    result: MetricValue | None, now: datetime | None = None
) -> UsabilityDecision:
    """
    Judge one fetch result.

    - RETRY: nothing came back, the value is missing, or it carries an error
    - FALLBACK: the data is older than MAX_DATA_AGE; another attempt will
      return the same old print
    - USABLE: anything else
    """
    if result is None or result.value is None:
        return UsabilityDecision.RETRY
    if result.error:
        return UsabilityDecision.RETRY
    if result.last_updated is not None:
        now = now or datetime.now(timezone.utc)
        if _as_utc(now) - _as_utc(result.last_updated) > MAX_DATA_AGE:
            return UsabilityDecision.FALLBACK
    return UsabilityDecision.USABLE


def _seed(value: float, formatted: str, day: str, change: float, origin: str) -> MetricValue:
    return MetricValue(
        value=value,
        formatted_text=formatted,
        date=day,
        change=change,
        source=f"{origin} (Fallback)",
        is_fallback=True,
        last_updated=datetime.fromisoformat(day).replace(tzinfo=timezone.utc),
    )


# Last-resort values for critical indicators
STATIC_SEEDS: dict[str, MetricValue] = {
    "Unemployment Rate (U-3)": _seed(3.9, "3.9%", "2024-12-01", -0.1, "BLS"),
    "Fed Funds Rate": _seed(5.25, "5.25%", "2024-12-01", 0.0, "Federal Reserve"),
    "10-Year Treasury Yield": _seed(4.45, "4.45%", "2024-12-01", 0.05, "Treasury"),
    "VIX Index": _seed(18.5, "18.5", "2024-12-01", -0.8, "CBOE"),
    "S&P 500": _seed(4750.0, "4,750", "2024-12-01", 25.5, "Market Data"),
    "Core CPI": _seed(3.2, "3.2%", "2024-11-01", -0.1, "BLS"),
    "Manufacturing PMI": _seed(48.7, "48.7", "2024-11-01", -0.3, "ISM"),
    "Initial Jobless Claims": _seed(225000.0, "225K", "2024-12-01", -5000.0, "DOL"),
}


class ResilienceResolver:
    """Wraps fetch operations with bounded retries and a fallback cascade."""

    SENTINEL_SOURCE = "Error (No Fallback)"

    def __init__(
        self,
        cache: TimeSeriesCache,
        seeds: dict[str, MetricValue] | None = None,
        sleep: Callable[[float], None] = time.sleep,
        now: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ) -> None:
        self.cache = cache
        self.seeds = STATIC_SEEDS if seeds is None else seeds
        self._sleep = sleep
        self._now = now

    def with_resilience(
        self,
        operation: Callable[[], MetricValue | None],
        key: str,
        retries: int = 2,
        retry_delay_ms: int = 1000,
    ) -> MetricValue:
        """
        Run ``operation`` until it yields usable data, then cache and return it.

        Makes at most ``retries + 1`` attempts, sleeping
        ``retry_delay_ms * attempt`` between them. Never raises: when every
        attempt fails the result comes from ``fallback``.
        """
        last_error: str | None = None

        for attempt in range(1, retries + 2):
            try:
                result = operation()
            except Exception as e:
                logger.warning(f"Data fetch attempt {attempt} failed for {key}: {e}")
                last_error = str(e) or type(e).__name__
                decision = UsabilityDecision.RETRY
            else:
                decision = evaluate_usability(result, self._now())
                if decision is UsabilityDecision.USABLE:
                    self.cache.set(key, result)
                    return result
                last_error = (result.error if result is not None else None) or (
                    f"Unusable data on attempt {attempt} ({decision.value})"
                )
                logger.warning(f"Data fetch attempt {attempt} for {key}: {last_error}")

            if decision is UsabilityDecision.FALLBACK:
                break
            if attempt <= retries:
                self._sleep(retry_delay_ms * attempt / 1000)

        logger.warning(f"All fetch attempts failed for {key}, using fallback data")
        return self.fallback(key, last_error)

    def fallback(self, key: str, error: str | None = None) -> MetricValue:
        """Best available substitute for ``key``: cached, seeded, or sentinel."""
        cached = self.cache.get(key)
        if cached is not None:
            return replace(cached, source=f"{cached.source} (cached)", is_fallback=True)

        seed = self.seeds.get(key)
        if seed is not None:
            return replace(seed)

        return MetricValue(
            value=None,
            formatted_text="N/A",
            date="",
            source=self.SENTINEL_SOURCE,
            is_fallback=True,
            error=error or "Unknown error",
            last_updated=self._now(),
        )
