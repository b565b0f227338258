"""Shared test fixtures for indicator hub tests.

Nothing here touches the network: provider traffic goes through
``httpx.MockTransport`` and all clocks and sleeps are injected.
"""

import json
from datetime import date, datetime, timedelta, timezone

import httpx
import pytest

from indicator_hub.config import Settings
from indicator_hub.models import MetricDataPoint


@pytest.fixture
def settings():
    """Settings with fake keys and no request spacing."""
    return Settings(
        fred_api_key="test-fred-key",
        fred_base_url="https://fred.test/fred",
        alpha_vantage_api_key="test-av-key",
        alpha_vantage_base_url="https://av.test/query",
        request_timeout_seconds=5.0,
        request_spacing_seconds=0.001,
        log_level="INFO",
    )


class FakeSleep:
    """Records requested delays instead of sleeping."""

    def __init__(self):
        self.calls = []

    def __call__(self, seconds):
        self.calls.append(seconds)


@pytest.fixture
def fake_sleep():
    return FakeSleep()


class ManualClock:
    """Clock that only moves when told to."""

    def __init__(self, start):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        if isinstance(self.now, datetime):
            self.now += timedelta(**kwargs)
        else:
            self.now += timedelta(**kwargs).total_seconds()


@pytest.fixture
def epoch_clock():
    """Seconds-since-epoch clock starting at 2024-06-03 12:00 UTC."""
    return ManualClock(datetime(2024, 6, 3, 12, 0, tzinfo=timezone.utc).timestamp())


def json_response(payload, status_code=200):
    return httpx.Response(status_code, content=json.dumps(payload).encode(),
                          headers={"Content-Type": "application/json"})


class RecordingHandler:
    """MockTransport handler that replays responses and keeps the requests."""

    def __init__(self, responder):
        self.responder = responder
        self.requests = []

    def __call__(self, request):
        self.requests.append(request)
        return self.responder(request)

    @property
    def transport(self):
        return httpx.MockTransport(self)


def fred_observations(values, start=date(2024, 1, 1), step_days=1):
    """Build a FRED observations payload, oldest first."""
    observations = []
    for i, value in enumerate(values):
        day = start + timedelta(days=i * step_days)
        observations.append({"date": day.isoformat(), "value": str(value)})
    return {"observations": observations}


def global_quote(symbol, price, change="1.25", day="2024-06-03"):
    return {
        "Global Quote": {
            "01. symbol": symbol,
            "05. price": str(price),
            "07. latest trading day": day,
            "09. change": change,
        }
    }


def daily_points(values, start=date(2024, 1, 1), step_days=1):
    """MetricDataPoints at UTC midnight, one per ``step_days``."""
    return [
        MetricDataPoint.from_date(start + timedelta(days=i * step_days), v)
        for i, v in enumerate(values)
    ]
