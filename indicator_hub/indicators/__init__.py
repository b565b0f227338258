"""Correlation and freshness calculations."""

from indicator_hub.indicators.correlation import (
    COARSE_BANDING,
    STANDARD_BANDING,
    build_correlation_matrix,
    filter_by_strength,
)
from indicator_hub.indicators.freshness import FreshnessClassifier

__all__ = [
    "COARSE_BANDING",
    "STANDARD_BANDING",
    "build_correlation_matrix",
    "filter_by_strength",
    "FreshnessClassifier",
]
