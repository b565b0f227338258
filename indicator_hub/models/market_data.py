"""Data models for indicator values, series and provider status."""

from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Any


@dataclass(frozen=True)
class IndicatorObservation:
    """Single observation parsed from a provider response."""

    date: date
    value: float | None
    change_from_previous: float | None = None


@dataclass(frozen=True)
class MetricValue:
    """Resolved, display-ready indicator value.

    Copied with ``dataclasses.replace`` between layers, never mutated.
    """

    value: float | None
    formatted_text: str
    date: str
    change: float | None = None
    source: str = ""
    is_fallback: bool = False
    error: str | None = None
    last_updated: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        """Serialize for the UI/API layer."""
        return {
            "value": self.value,
            "formatted": self.formatted_text,
            "date": self.date,
            "change": self.change,
            "source": self.source,
            "isFallback": self.is_fallback,
            "error": self.error,
            "lastUpdated": self.last_updated.isoformat() if self.last_updated else None,
        }


@dataclass
class CacheEntry:
    """Cached value with its insertion time."""

    key: str
    payload: MetricValue
    inserted_at_epoch_ms: int


@dataclass(frozen=True)
class MetricDataPoint:
    """Atomic unit consumed by the correlation engine."""

    timestamp_epoch_ms: int
    value: float

    @classmethod
    def from_date(cls, day: date, value: float) -> "MetricDataPoint":
        """Build a point stamped at UTC midnight of ``day``."""
        stamp = datetime(day.year, day.month, day.day, tzinfo=timezone.utc)
        return cls(int(stamp.timestamp() * 1000), float(value))


@dataclass(frozen=True)
class CorrelationResult:
    """Pearson correlation between two metrics."""

    metric_a: str
    metric_b: str
    correlation: float
    sample_size: int  # aligned pairs actually used
    strength: str
    direction: str  # positive or negative
    p_value: float | None = None


@dataclass(frozen=True)
class CorrelationMatrix:
    """Full pairwise correlation view over a set of metrics."""

    metrics: list[str]
    matrix: list[list[float]]
    correlations: list[CorrelationResult]  # sorted by |r| descending
    timestamp: datetime


@dataclass(frozen=True)
class FreshnessStatus:
    """Staleness of one metric relative to its update cadence."""

    metric_name: str
    last_updated: datetime | None
    expected_frequency: str
    state: str  # fresh, aging, stale, unknown
    hours_stale: float
    next_expected_update: datetime | None
    is_market_hours: bool | None = None


# Provider health states
HEALTHY = "healthy"
DEGRADED = "degraded"
DOWN = "down"
UNKNOWN = "unknown"


@dataclass
class ProviderHealth:
    """Live status of one upstream provider.

    Mutated in place by the health aggregator only.
    """

    provider_name: str
    state: str = UNKNOWN  # healthy, degraded, down, unknown
    last_checked_at: datetime | None = None
    last_success_at: datetime | None = None
    latency_ms: float | None = None
    consecutive_failures: int = 0
    error_message: str | None = None
    success_rate: float = 100.0


@dataclass(frozen=True)
class HealthSnapshot:
    """Point-in-time copy of every provider's health."""

    providers: dict[str, ProviderHealth]
    overall: str
    last_updated: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
