"""Data freshness classification.

State is derived on every call from the last update time and the
indicator's expected cadence; nothing is stored.
"""

from dataclasses import dataclass
from datetime import datetime, time as dtime, timedelta, timezone
from typing import Callable
from zoneinfo import ZoneInfo

import pandas as pd

from indicator_hub.models import FreshnessStatus


@dataclass(frozen=True)
class FreshnessThresholds:
    """Upper bounds in hours for each state."""

    fresh: float
    aging: float
    stale: float


FRESHNESS_THRESHOLDS: dict[str, FreshnessThresholds] = {
    "daily": FreshnessThresholds(fresh=6, aging=24, stale=48),
    "weekly": FreshnessThresholds(fresh=24, aging=96, stale=168),
    "monthly": FreshnessThresholds(fresh=72, aging=336, stale=672),
    "quarterly": FreshnessThresholds(fresh=168, aging=720, stale=2160),
}

MARKET_OPEN = dtime(9, 30)
MARKET_CLOSE = dtime(16, 0)

MARKET_DEPENDENT_METRICS = frozenset({"VIX Index", "S&P 500", "Dollar Index"})


def _as_utc(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt


class FreshnessClassifier:
    """Classifies metric staleness as fresh, aging, stale or unknown."""

    def __init__(
        self,
        market_timezone: str = "America/New_York",
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ) -> None:
        self.market_tz = ZoneInfo(market_timezone)
        self._clock = clock

    def _now(self) -> datetime:
        return _as_utc(self._clock())

    def is_market_hours(self, at: datetime | None = None) -> bool:
        """True between 09:30 and 16:00 on a weekday, exchange time."""
        local = _as_utc(at or self._now()).astimezone(self.market_tz)
        if local.weekday() >= 5:
            return False
        return MARKET_OPEN <= local.time() < MARKET_CLOSE

    def next_expected_update(
        self, last_updated: datetime | None, frequency: str, market_dependent: bool = False
    ) -> datetime | None:
        """
        Advance ``last_updated`` by one period.

        Market-dependent daily metrics land on the next weekday at market
        open, exchange time.
        """
        if last_updated is None:
            return None
        last_updated = _as_utc(last_updated)

        if frequency == "daily":
            if not market_dependent:
                return last_updated + timedelta(days=1)
            local = last_updated.astimezone(self.market_tz) + timedelta(days=1)
            while local.weekday() >= 5:
                local += timedelta(days=1)
            opening = datetime.combine(local.date(), MARKET_OPEN, tzinfo=self.market_tz)
            return opening.astimezone(timezone.utc)
        if frequency == "weekly":
            return last_updated + timedelta(weeks=1)
        if frequency == "monthly":
            return (pd.Timestamp(last_updated) + pd.DateOffset(months=1)).to_pydatetime()
        if frequency == "quarterly":
            return (pd.Timestamp(last_updated) + pd.DateOffset(months=3)).to_pydatetime()
        return None

    def calculate_freshness(
        self,
        metric_name: str,
        last_updated: datetime | None,
        expected_frequency: str,
        market_dependent: bool = False,
    ) -> FreshnessStatus:
        """Determine the freshness status of one metric."""
        market_hours = self.is_market_hours() if market_dependent else None

        if last_updated is None:
            return FreshnessStatus(
                metric_name=metric_name,
                last_updated=None,
                expected_frequency=expected_frequency,
                state="unknown",
                hours_stale=0.0,
                next_expected_update=None,
                is_market_hours=market_hours,
            )

        thresholds = FRESHNESS_THRESHOLDS.get(expected_frequency)
        if thresholds is None:
            raise ValueError(
                f"Unknown frequency {expected_frequency!r}; "
                f"expected one of {sorted(FRESHNESS_THRESHOLDS)}"
            )

        hours_old = (self._now() - _as_utc(last_updated)).total_seconds() / 3600

        if hours_old <= thresholds.fresh:
            state = "fresh"
        elif hours_old <= thresholds.aging:
            state = "aging"
        else:
            state = "stale"

        # Outside trading hours a daily market print is expected to be 12-16h old
        if market_dependent and not market_hours and expected_frequency == "daily":
            if hours_old < 24:
                state = "fresh"

        return FreshnessStatus(
            metric_name=metric_name,
            last_updated=last_updated,
            expected_frequency=expected_frequency,
            state=state,
            hours_stale=hours_old,
            next_expected_update=self.next_expected_update(
                last_updated, expected_frequency, market_dependent
            ),
            is_market_hours=market_hours,
        )

    def format_time_since(self, when: datetime | None) -> str:
        """Human-readable age, e.g. '3h ago'."""
        if when is None:
            return "Never"
        minutes = int((self._now() - _as_utc(when)).total_seconds() // 60)
        hours = minutes // 60
        days = hours // 24
        if minutes < 1:
            return "Just now"
        if minutes < 60:
            return f"{minutes}m ago"
        if hours < 24:
            return f"{hours}h ago"
        if days < 7:
            return f"{days}d ago"
        if days < 30:
            return f"{days // 7}w ago"
        return f"{days // 30}mo ago"

    def format_next_update(self, when: datetime | None) -> str:
        """Human-readable time until the next expected update."""
        if when is None:
            return "Unknown"
        seconds = (_as_utc(when) - self._now()).total_seconds()
        if seconds < 0:
            return "Overdue"
        hours = int(seconds // 3600)
        if hours < 1:
            return "Soon"
        if hours < 24:
            return f"{hours}h"
        if hours // 24 < 7:
            return f"{hours // 24}d"
        return _as_utc(when).date().isoformat()

    @staticmethod
    def is_market_dependent_metric(metric_name: str) -> bool:
        return metric_name in MARKET_DEPENDENT_METRICS
