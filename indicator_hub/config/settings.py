"""Configuration settings for the indicator hub."""

from dataclasses import dataclass, field
import os

from dotenv import load_dotenv

from indicator_hub.errors import CredentialMissingError


load_dotenv()


FRED_PROVIDER = "FRED"
ALPHA_VANTAGE_PROVIDER = "Alpha Vantage"


@dataclass(frozen=True)
class IndicatorSpec:
    """Where an indicator comes from and how it is displayed."""

    name: str
    provider: str  # FRED_PROVIDER or ALPHA_VANTAGE_PROVIDER
    identifier: str  # FRED series ID or quote symbol
    frequency: str  # daily, weekly, monthly, quarterly
    market_dependent: bool = False
    fmt: str = "plain"  # see data.service.format_value
    origin: str = ""  # agency named in fallback labels


INDICATORS: dict[str, IndicatorSpec] = {
    spec.name: spec
    for spec in [
        IndicatorSpec("Real GDP Growth Rate", FRED_PROVIDER, "A191RL1Q225SBEA", "quarterly", fmt="percent", origin="BEA"),
        IndicatorSpec("Manufacturing PMI", FRED_PROVIDER, "NAPM", "monthly", fmt="index", origin="ISM"),
        IndicatorSpec("Industrial Production Index", FRED_PROVIDER, "INDPRO", "monthly", fmt="index", origin="Federal Reserve"),
        IndicatorSpec("Capacity Utilization", FRED_PROVIDER, "TCU", "monthly", fmt="percent", origin="Federal Reserve"),
        IndicatorSpec("Unemployment Rate (U-3)", FRED_PROVIDER, "UNRATE", "monthly", fmt="percent", origin="BLS"),
        IndicatorSpec("Initial Jobless Claims", FRED_PROVIDER, "ICSA", "weekly", fmt="thousands", origin="DOL"),
        IndicatorSpec("Job Openings (JOLTS)", FRED_PROVIDER, "JTSJOL", "monthly", fmt="millions", origin="BLS"),
        IndicatorSpec("Labor Force Participation Rate", FRED_PROVIDER, "CIVPART", "monthly", fmt="percent", origin="BLS"),
        IndicatorSpec("Core CPI", FRED_PROVIDER, "CORESTICKM159SFRBATL", "monthly", fmt="percent", origin="BLS"),
        IndicatorSpec("5Y5Y Forward Inflation", FRED_PROVIDER, "T5YIFR", "daily", fmt="percent", origin="Federal Reserve"),
        IndicatorSpec("Fed Funds Rate", FRED_PROVIDER, "DFF", "daily", fmt="percent", origin="Federal Reserve"),
        IndicatorSpec("10-Year Treasury Yield", FRED_PROVIDER, "DGS10", "daily", fmt="percent", origin="Treasury"),
        IndicatorSpec("Dollar Index (Trade Weighted)", FRED_PROVIDER, "DTWEXBGS", "daily", fmt="index", origin="Federal Reserve"),
        IndicatorSpec("Leading Index", FRED_PROVIDER, "USSLIND", "monthly", fmt="index", origin="Conference Board"),
        IndicatorSpec("Chicago Fed National Activity Index", FRED_PROVIDER, "CFNAI", "monthly", fmt="index", origin="Chicago Fed"),
        # VIX and DXY are not quotable directly, so ETF proxies are used
        IndicatorSpec("VIX Index", ALPHA_VANTAGE_PROVIDER, "VIXY", "daily", market_dependent=True, fmt="plain", origin="CBOE"),
        IndicatorSpec("S&P 500", ALPHA_VANTAGE_PROVIDER, "SPY", "daily", market_dependent=True, fmt="currency", origin="Market Data"),
        IndicatorSpec("Gold Price", ALPHA_VANTAGE_PROVIDER, "GLD", "daily", market_dependent=True, fmt="currency", origin="Market Data"),
        IndicatorSpec("Dollar Index", ALPHA_VANTAGE_PROVIDER, "UUP", "daily", market_dependent=True, fmt="plain", origin="Market Data"),
    ]
}


def _env_float(name: str, default: float) -> float:
    """Read a positive float from the environment."""
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {raw!r}") from None
    if value <= 0:
        raise ValueError(f"{name} must be positive, got {raw!r}")
    return value


@dataclass
class Settings:
    """Application settings."""

    fred_api_key: str = field(default_factory=lambda: os.getenv("FRED_API_KEY", "").strip())
    fred_base_url: str = field(
        default_factory=lambda: os.getenv("FRED_BASE_URL", "").strip()
        or "https://api.stlouisfed.org/fred"
    )
    alpha_vantage_api_key: str = field(
        default_factory=lambda: os.getenv("ALPHA_VANTAGE_API_KEY", "").strip()
    )
    alpha_vantage_base_url: str = field(
        default_factory=lambda: os.getenv("ALPHA_VANTAGE_BASE_URL", "").strip()
        or "https://www.alphavantage.co/query"
    )
    request_timeout_seconds: float = field(
        default_factory=lambda: _env_float("REQUEST_TIMEOUT_SECONDS", 10.0)
    )
    request_spacing_seconds: float = field(
        default_factory=lambda: _env_float("REQUEST_SPACING_SECONDS", 1.0)
    )
    indicator_cache_ttl_seconds: float = 15 * 60
    market_cache_ttl_seconds: float = 60 * 60
    fallback_cache_ttl_seconds: float = 24 * 60 * 60
    health_check_interval_seconds: float = field(
        default_factory=lambda: _env_float("HEALTH_CHECK_INTERVAL_SECONDS", 30 * 60)
    )
    market_timezone: str = "America/New_York"
    log_level: str = field(default_factory=lambda: os.getenv("LOG_LEVEL", "INFO").upper())

    def validate(self) -> None:
        """Validate required settings."""
        if not self.fred_api_key:
            raise CredentialMissingError(
                "FRED_API_KEY",
                "Get one at: https://fred.stlouisfed.org/docs/api/api_key.html",
            )

    def has_alpha_vantage(self) -> bool:
        """Check if Alpha Vantage API key is configured."""
        return bool(self.alpha_vantage_api_key)
