"""Upstream provider health monitoring.

A single timer thread probes every provider on an interval. Live-fetch call
sites feed the same status model through ``record_observation``.
"""

import logging
import threading
import time
from collections import deque
from dataclasses import dataclass, replace
from datetime import datetime, timedelta, timezone
from typing import Callable

from indicator_hub.data.alphavantage_client import AlphaVantageClient, RateLimitedError
from indicator_hub.data.fred_client import FredClient
from indicator_hub.models import (
    DEGRADED,
    DOWN,
    HEALTHY,
    UNKNOWN,
    HealthSnapshot,
    ProviderHealth,
)


logger = logging.getLogger(__name__)

SUCCESS_RATE_WINDOW = timedelta(hours=24)

STATUS_DESCRIPTIONS = {
    HEALTHY: "All systems operational",
    DEGRADED: "Some issues detected",
    DOWN: "Service unavailable",
    UNKNOWN: "Status unknown",
}


@dataclass(frozen=True)
class ProbeOutcome:
    """What a probe concluded about its provider."""

    state: str  # healthy or degraded; a raised exception means down
    message: str | None = None


HealthListener = Callable[[HealthSnapshot], None]
Probe = Callable[[], ProbeOutcome]


def fred_probe(client: FredClient, series_id: str = "GDP") -> Probe:
    """Cheap metadata request; healthy when FRED returns a series list."""

    def probe() -> ProbeOutcome:
        data = client.fetch_series_info(series_id)
        if isinstance(data.get("seriess"), list):
            return ProbeOutcome(HEALTHY)
        return ProbeOutcome(DEGRADED, "Unexpected response format")

    return probe


def alpha_vantage_probe(client: AlphaVantageClient, symbol: str = "SPY") -> Probe:
    """Single quote request; rate limiting or an empty quote is degraded."""

    def probe() -> ProbeOutcome:
        try:
            quote = client.fetch_quote(symbol)
        except RateLimitedError as e:
            return ProbeOutcome(DEGRADED, f"Rate limited: {e.message}")
        if quote.get("05. price"):
            return ProbeOutcome(HEALTHY)
        return ProbeOutcome(DEGRADED, "Unexpected response format")

    return probe


def derive_overall(states: list[str]) -> str:
    """
    healthy only if all are healthy, down only if all are down, else degraded.

    Before any provider has been probed or observed every state is unknown,
    and so is the overall verdict. Once a single provider reports, a
    remaining unknown counts against healthy.
    """
    if not states or all(s == UNKNOWN for s in states):
        return UNKNOWN
    if all(s == HEALTHY for s in states):
        return HEALTHY
    if all(s == DOWN for s in states):
        return DOWN
    return DEGRADED


class HealthAggregator:
    """Tracks per-provider health and derives one overall verdict."""

    def __init__(
        self,
        probes: dict[str, Probe],
        interval_seconds: float = 30 * 60,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
        timer: Callable[[], float] = time.perf_counter,
    ) -> None:
        self.probes = dict(probes)
        self.interval_seconds = interval_seconds
        self._clock = clock
        self._timer = timer
        self._status = {name: ProviderHealth(provider_name=name) for name in self.probes}
        self._history: dict[str, deque[tuple[datetime, bool]]] = {
            name: deque() for name in self.probes
        }
        self._overall = UNKNOWN
        self._last_updated = self._clock()
        self._listeners: list[HealthListener] = []
        self._lock = threading.Lock()
        self._schedule_lock = threading.Lock()
        self._thread_timer: threading.Timer | None = None
        self._running = False

    # --- subscriptions -----------------------------------------------------

    def subscribe(self, callback: HealthListener) -> Callable[[], None]:
        """Register a listener; returns a function that unregisters it."""
        with self._lock:
            self._listeners.append(callback)

        def unsubscribe() -> None:
            with self._lock:
                if callback in self._listeners:
                    self._listeners.remove(callback)

        return unsubscribe

    def _notify_listeners(self, snapshot: HealthSnapshot) -> None:
        with self._lock:
            listeners = list(self._listeners)
        for callback in listeners:
            try:
                callback(snapshot)
            except Exception:
                logger.exception("Error notifying health status listener")

    # --- status model ------------------------------------------------------

    def snapshot(self) -> HealthSnapshot:
        """Copy of the current status board."""
        with self._lock:
            return self._snapshot_locked()

    def _snapshot_locked(self) -> HealthSnapshot:
        return HealthSnapshot(
            providers={name: replace(status) for name, status in self._status.items()},
            overall=self._overall,
            last_updated=self._last_updated,
        )

    def _update_locked(
        self,
        provider: str,
        state: str,
        latency_ms: float | None,
        error_message: str | None = None,
    ) -> None:
        status = self._status.get(provider)
        if status is None:
            status = self._status[provider] = ProviderHealth(provider_name=provider)
            self._history[provider] = deque()
        now = self._clock()

        if state == HEALTHY:
            status.consecutive_failures = 0
            status.last_success_at = now
        elif state == DOWN:
            status.consecutive_failures += 1

        status.state = state
        status.last_checked_at = now
        status.latency_ms = latency_ms
        status.error_message = error_message

        history = self._history[provider]
        history.append((now, state == HEALTHY))
        while history and now - history[0][0] > SUCCESS_RATE_WINDOW:
            history.popleft()
        status.success_rate = 100.0 * sum(ok for _, ok in history) / len(history)

    def _refresh_overall_locked(self) -> HealthSnapshot:
        self._overall = derive_overall([s.state for s in self._status.values()])
        self._last_updated = self._clock()
        return self._snapshot_locked()

    def record_observation(
        self,
        provider: str,
        state: str,
        latency_ms: float | None,
        error_message: str | None = None,
    ) -> HealthSnapshot:
        """
        Record the outcome of a live API call made outside the probe cycle.

        The caller classifies the outcome the way a probe would: down for
        timeouts, transport failures and non-2xx responses, degraded for
        rate limiting or unusable payloads.
        """
        if state not in (HEALTHY, DEGRADED, DOWN):
            raise ValueError(f"Unknown health state {state!r}")
        with self._lock:
            self._update_locked(provider, state, latency_ms, error_message)
            snapshot = self._refresh_overall_locked()
        self._notify_listeners(snapshot)
        return snapshot

    # --- probing -----------------------------------------------------------

    def _run_probe(self, name: str, probe: Probe) -> tuple[str, float, str | None]:
        start = self._timer()
        try:
            outcome = probe()
        except Exception as e:
            latency_ms = (self._timer() - start) * 1000
            logger.warning(f"Health check for {name} failed: {e}")
            return DOWN, latency_ms, str(e) or type(e).__name__
        latency_ms = (self._timer() - start) * 1000
        return outcome.state, latency_ms, outcome.message

    def check_now(self) -> HealthSnapshot:
        """Probe every provider once and notify listeners."""
        results = {name: self._run_probe(name, probe) for name, probe in self.probes.items()}

        with self._lock:
            for name, (state, latency_ms, message) in results.items():
                self._update_locked(name, state, latency_ms, message)
            snapshot = self._refresh_overall_locked()

        logger.info(
            f"Health check complete: overall={snapshot.overall} "
            + ", ".join(f"{n}={s.state}" for n, s in snapshot.providers.items())
        )
        self._notify_listeners(snapshot)
        return snapshot

    # --- scheduling --------------------------------------------------------

    def _tick(self) -> None:
        try:
            self.check_now()
        except Exception:
            logger.exception("Scheduled health check failed")
        finally:
            self._schedule_next()

    def _schedule_next(self) -> None:
        with self._schedule_lock:
            if not self._running:
                return
            self._thread_timer = threading.Timer(self.interval_seconds, self._tick)
            self._thread_timer.daemon = True
            self._thread_timer.start()

    def start(self, interval_seconds: float | None = None, run_immediately: bool = True) -> None:
        """Start periodic checks, restarting the timer if already running."""
        self.stop()
        if interval_seconds is not None:
            self.interval_seconds = interval_seconds
        with self._schedule_lock:
            self._running = True
        logger.info(f"Starting health monitoring every {self.interval_seconds:g}s")
        if run_immediately:
            threading.Thread(target=self._tick, daemon=True).start()
        else:
            self._schedule_next()

    def stop(self) -> None:
        """Stop periodic checks."""
        with self._schedule_lock:
            self._running = False
            if self._thread_timer is not None:
                self._thread_timer.cancel()
                self._thread_timer = None

    @property
    def is_running(self) -> bool:
        return self._running

    @staticmethod
    def describe(state: str) -> str:
        return STATUS_DESCRIPTIONS.get(state, "Unknown status")
