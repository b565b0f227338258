"""Composition root and CLI.

``IndicatorHub`` wires every component explicitly so each instance, and
each test, owns its own caches, clients and health board.
"""

import logging
from datetime import date, datetime, timedelta
from typing import Callable

import httpx

from indicator_hub.config import (
    ALPHA_VANTAGE_PROVIDER,
    FRED_PROVIDER,
    INDICATORS,
    Settings,
)
from indicator_hub.data import (
    AlphaVantageClient,
    FredClient,
    IndicatorService,
    ResilienceResolver,
    TimeSeriesCache,
)
from indicator_hub.errors import CredentialMissingError
from indicator_hub.indicators.correlation import (
    BANDINGS,
    STANDARD_BANDING,
    StrengthBanding,
    build_correlation_matrix,
    filter_by_strength,
    prepare_metric_data,
)
from indicator_hub.indicators.freshness import FreshnessClassifier
from indicator_hub.models import (
    CorrelationMatrix,
    CorrelationResult,
    FreshnessStatus,
    HealthSnapshot,
    MetricDataPoint,
    MetricValue,
)
from indicator_hub.monitoring.health import (
    HealthAggregator,
    alpha_vantage_probe,
    fred_probe,
)


logger = logging.getLogger(__name__)


class IndicatorHub:
    """Data-access interface for the UI/API layer."""

    def __init__(
        self,
        settings: Settings | None = None,
        transport: httpx.BaseTransport | None = None,
        sleep: Callable[[float], None] | None = None,
    ) -> None:
        self.settings = settings or Settings()
        self.settings.validate()

        client_kwargs = {"transport": transport}
        if sleep is not None:
            client_kwargs["sleep"] = sleep
        self.fred = FredClient(self.settings, **client_kwargs)
        self.alpha_vantage = AlphaVantageClient(self.settings, **client_kwargs)

        self.indicator_cache = TimeSeriesCache(self.settings.indicator_cache_ttl_seconds)
        self.market_cache = TimeSeriesCache(self.settings.market_cache_ttl_seconds)
        self.fallback_cache = TimeSeriesCache(self.settings.fallback_cache_ttl_seconds)

        resolver_kwargs = {"sleep": sleep} if sleep is not None else {}
        self.resolver = ResilienceResolver(self.fallback_cache, **resolver_kwargs)

        self.health = HealthAggregator(
            {
                FRED_PROVIDER: fred_probe(self.fred),
                ALPHA_VANTAGE_PROVIDER: alpha_vantage_probe(self.alpha_vantage),
            },
            interval_seconds=self.settings.health_check_interval_seconds,
        )
        self.service = IndicatorService(
            self.settings,
            self.fred,
            self.alpha_vantage,
            self.resolver,
            self.indicator_cache,
            self.market_cache,
            health=self.health,
        )
        self.freshness = FreshnessClassifier(self.settings.market_timezone)

    def close(self) -> None:
        self.health.stop()
        self.fred.close()
        self.alpha_vantage.close()

    def __enter__(self) -> "IndicatorHub":
        return self

    def __exit__(self, *args) -> None:
        self.close()

    # --- values ------------------------------------------------------------

    def get_indicator_value(self, name: str) -> MetricValue:
        return self.service.get_value(name)

    def get_bulk_indicator_values(self, names: list[str]) -> dict[str, MetricValue]:
        return self.service.get_bulk(names)

    def get_historical_series(
        self, name: str, since_date: date, limit: int | None = None
    ) -> list[MetricDataPoint]:
        return self.service.get_history(name, since_date, limit)

    # --- analysis ----------------------------------------------------------

    def compute_correlation_matrix(
        self,
        metric_data: dict[str, list[MetricDataPoint]],
        banding: StrengthBanding = STANDARD_BANDING,
    ) -> CorrelationMatrix:
        return build_correlation_matrix(metric_data, banding)

    def correlate_indicators(
        self,
        names: list[str],
        since_date: date | None = None,
        min_strength: str = "weak",
        banding: str = "standard",
    ) -> tuple[CorrelationMatrix, list[CorrelationResult]]:
        """
        Fetch histories, correlate them and filter by minimum strength.

        Series with fewer than 5 points are left out before alignment.

        Returns:
            The full matrix and the pairs at or above ``min_strength``

        Raises:
            ValueError: ``banding`` is not "standard" or "coarse"
        """
        policy = BANDINGS.get(banding)
        if policy is None:
            raise ValueError(f"Unknown banding {banding!r}; expected one of {sorted(BANDINGS)}")
        since_date = since_date or date.today() - timedelta(days=90)
        raw = {name: self.get_historical_series(name, since_date) for name in names}
        prepared = prepare_metric_data(raw)
        skipped = sorted(set(names) - set(prepared))
        if skipped:
            logger.info(f"Skipping series with insufficient data: {skipped}")
        matrix = build_correlation_matrix(prepared, policy)
        return matrix, filter_by_strength(matrix.correlations, min_strength, policy)

    def compute_freshness(
        self,
        name: str,
        last_updated: datetime | None,
        frequency: str | None = None,
        market_dependent: bool | None = None,
    ) -> FreshnessStatus:
        """Freshness for ``name``; cadence defaults come from the catalog."""
        spec = INDICATORS.get(name)
        if frequency is None:
            frequency = spec.frequency if spec else "daily"
        if market_dependent is None:
            market_dependent = (
                spec.market_dependent if spec else self.freshness.is_market_dependent_metric(name)
            )
        return self.freshness.calculate_freshness(name, last_updated, frequency, market_dependent)

    # --- health ------------------------------------------------------------

    def get_provider_health(self) -> HealthSnapshot:
        return self.health.snapshot()

    def subscribe_health(self, callback: Callable[[HealthSnapshot], None]) -> Callable[[], None]:
        return self.health.subscribe(callback)

    def check_health_now(self) -> HealthSnapshot:
        return self.health.check_now()

    def start_monitoring(self) -> None:
        self.health.start()


def main() -> None:
    """CLI entry point."""
    import argparse
    import sys

    parser = argparse.ArgumentParser(description="Resolve economic and market indicators")
    parser.add_argument(
        "--indicator",
        type=str,
        help="Resolve a single indicator by name",
    )
    parser.add_argument(
        "--all",
        action="store_true",
        help="Resolve every indicator in the catalog",
    )
    parser.add_argument(
        "--health",
        action="store_true",
        help="Run one provider health check and exit",
    )
    parser.add_argument(
        "--list",
        action="store_true",
        help="List available indicators and exit",
    )
    args = parser.parse_args()

    if args.list:
        for name, spec in INDICATORS.items():
            print(f"{name:40} | {spec.provider:13} | {spec.identifier:22} | {spec.frequency}")
        return

    try:
        settings = Settings()
    except ValueError as e:
        print(f"Configuration error: {e}")
        sys.exit(1)

    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s - %(levelname)s - %(message)s",
    )

    try:
        hub = IndicatorHub(settings)
    except CredentialMissingError as e:
        print(f"Configuration error: {e}")
        sys.exit(1)

    with hub:
        if args.health:
            snapshot = hub.check_health_now()
            print(f"\nOverall: {snapshot.overall} - {HealthAggregator.describe(snapshot.overall)}")
            print("-" * 70)
            for name, status in snapshot.providers.items():
                latency = f"{status.latency_ms:.0f}ms" if status.latency_ms is not None else "N/A"
                print(
                    f"{name:15} | {status.state:9} | {latency:>8} | "
                    f"failures: {status.consecutive_failures} | {status.error_message or ''}"
                )
            return

        if args.indicator:
            if args.indicator not in INDICATORS:
                print(f"Unknown indicator: {args.indicator}")
                print(f"Available: {', '.join(INDICATORS)}")
                sys.exit(1)
            names = [args.indicator]
        elif args.all:
            names = list(INDICATORS)
        else:
            parser.print_help()
            return

        for name, value in hub.get_bulk_indicator_values(names).items():
            flag = " [fallback]" if value.is_fallback else ""
            print(f"{name:40} | {value.formatted_text:>12} | {value.date:10} | {value.source}{flag}")


if __name__ == "__main__":
    main()
