"""Provider clients, caching and the resilient read path."""

from .fred_client import FredClient
from .alphavantage_client import AlphaVantageClient
from .cache import TimeSeriesCache
from .fallback import ResilienceResolver, UsabilityDecision, evaluate_usability
from .service import IndicatorService

__all__ = [
    "FredClient",
    "AlphaVantageClient",
    "TimeSeriesCache",
    "ResilienceResolver",
    "UsabilityDecision",
    "evaluate_usability",
    "IndicatorService",
]
