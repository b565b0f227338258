"""Configuration."""

from indicator_hub.config.settings import (
    ALPHA_VANTAGE_PROVIDER,
    FRED_PROVIDER,
    INDICATORS,
    IndicatorSpec,
    Settings,
)

__all__ = [
    "ALPHA_VANTAGE_PROVIDER",
    "FRED_PROVIDER",
    "INDICATORS",
    "IndicatorSpec",
    "Settings",
]
