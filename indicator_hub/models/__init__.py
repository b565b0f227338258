"""Data models."""

from indicator_hub.models.market_data import (
    DEGRADED,
    DOWN,
    HEALTHY,
    UNKNOWN,
    CacheEntry,
    CorrelationMatrix,
    CorrelationResult,
    FreshnessStatus,
    HealthSnapshot,
    IndicatorObservation,
    MetricDataPoint,
    MetricValue,
    ProviderHealth,
)

__all__ = [
    "DEGRADED",
    "DOWN",
    "HEALTHY",
    "UNKNOWN",
    "CacheEntry",
    "CorrelationMatrix",
    "CorrelationResult",
    "FreshnessStatus",
    "HealthSnapshot",
    "IndicatorObservation",
    "MetricDataPoint",
    "MetricValue",
    "ProviderHealth",
]
