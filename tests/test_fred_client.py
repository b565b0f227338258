"""Tests for the FRED client and shared HTTP plumbing."""

import httpx
import pytest

from conftest import RecordingHandler, fred_observations, json_response
from indicator_hub.config import Settings
from indicator_hub.data.fred_client import FredClient, observations_frame
from indicator_hub.data.http import build_query, redact_url
from indicator_hub.errors import CredentialMissingError, ProviderRequestError, RequestTimeout


class TestRedaction:
    """Tests for credential redaction."""

    def test_redacts_fred_key(self):
        url = "https://api.stlouisfed.org/fred/series?series_id=GDP&api_key=secret123&file_type=json"
        redacted = redact_url(url)
        assert "secret123" not in redacted
        assert "api_key=***REDACTED***" in redacted
        assert "series_id=GDP" in redacted

    def test_redacts_alpha_vantage_key(self):
        redacted = redact_url("https://www.alphavantage.co/query?function=GLOBAL_QUOTE&apikey=abc")
        assert redacted.endswith("apikey=***REDACTED***")

    def test_url_without_key_unchanged(self):
        url = "https://example.com/path?x=1"
        assert redact_url(url) == url


class TestBuildQuery:
    """Tests for query construction."""

    def test_caller_credential_is_replaced(self):
        query = build_query({"series_id": "GDP", "api_key": "smuggled"}, "api_key", "real")
        assert query == {"series_id": "GDP", "api_key": "real"}

    def test_credential_appended_last(self):
        query = build_query({"b": 2, "a": 1}, "apikey", "k")
        assert list(query) == ["b", "a", "apikey"]

    def test_none_values_dropped(self):
        assert build_query({"limit": None}, "api_key", "k") == {"api_key": "k"}


class TestObservationsFrame:
    """Tests for FRED payload parsing."""

    def test_missing_values_dropped(self):
        payload = {"observations": [
            {"date": "2024-01-01", "value": "1.5"},
            {"date": "2024-01-02", "value": "."},
            {"date": "2024-01-03", "value": "2.5"},
        ]}
        df = observations_frame(payload)
        assert list(df["value"]) == [1.5, 2.5]

    def test_empty_payload(self):
        assert observations_frame({}).empty


class TestFredClient:
    """Tests for FredClient requests and error mapping."""

    def test_requires_api_key(self):
        with pytest.raises(CredentialMissingError, match="FRED_API_KEY"):
            FredClient(Settings(fred_api_key=""))

    def test_fetch_series_sends_expected_params(self, settings, fake_sleep):
        handler = RecordingHandler(lambda request: json_response(fred_observations([1, 2])))
        with FredClient(settings, transport=handler.transport, sleep=fake_sleep) as client:
            payload = client.fetch_series("UNRATE", limit=5, api_key="ignored")

        assert len(payload["observations"]) == 2
        request = handler.requests[0]
        assert request.url.path == "/fred/series/observations"
        params = request.url.params
        assert params["series_id"] == "UNRATE"
        assert params["limit"] == "5"
        assert params["sort_order"] == "desc"
        assert params["file_type"] == "json"
        assert params["api_key"] == "test-fred-key"
        assert request.headers["Accept"] == "application/json"

    def test_non_2xx_carries_provider_message(self, settings, fake_sleep):
        handler = RecordingHandler(
            lambda request: json_response({"error_message": "Bad series"}, status_code=400)
        )
        client = FredClient(settings, transport=handler.transport, sleep=fake_sleep)
        with pytest.raises(ProviderRequestError) as exc_info:
            client.fetch_series("NOPE")
        assert exc_info.value.status_code == 400
        assert exc_info.value.message == "Bad series"

    def test_invalid_json(self, settings, fake_sleep):
        handler = RecordingHandler(lambda request: httpx.Response(200, content=b"<html>"))
        client = FredClient(settings, transport=handler.transport, sleep=fake_sleep)
        with pytest.raises(ProviderRequestError, match="Invalid JSON"):
            client.fetch_series("UNRATE")

    def test_timeout_maps_to_request_timeout(self, settings, fake_sleep):
        def responder(request):
            raise httpx.ReadTimeout("slow", request=request)

        client = FredClient(settings, transport=RecordingHandler(responder).transport, sleep=fake_sleep)
        with pytest.raises(RequestTimeout, match="timed out after 5s"):
            client.fetch_series("UNRATE")

    def test_network_error_has_status_zero_and_no_key(self, settings, fake_sleep):
        def responder(request):
            raise httpx.ConnectError(f"cannot reach {request.url}", request=request)

        client = FredClient(settings, transport=RecordingHandler(responder).transport, sleep=fake_sleep)
        with pytest.raises(ProviderRequestError) as exc_info:
            client.fetch_series("UNRATE")
        assert exc_info.value.status_code == 0
        assert "test-fred-key" not in str(exc_info.value)

    def test_requests_are_spaced(self, fake_sleep):
        spaced = Settings(fred_api_key="k", fred_base_url="https://fred.test/fred",
                          request_spacing_seconds=1.0)
        ticks = iter([100.0, 100.25, 101.0])
        handler = RecordingHandler(lambda request: json_response(fred_observations([1])))
        client = FredClient(spaced, transport=handler.transport, sleep=fake_sleep,
                            clock=lambda: next(ticks))

        client.fetch_series("A")
        client.fetch_series("B")

        assert fake_sleep.calls == [pytest.approx(0.75)]

    def test_fetch_bulk_skips_failures(self, settings, fake_sleep):
        def responder(request):
            if request.url.params["series_id"] == "BAD":
                return json_response({"error_message": "Bad series"}, status_code=400)
            return json_response(fred_observations([3]))

        client = FredClient(settings, transport=RecordingHandler(responder).transport, sleep=fake_sleep)
        results = client.fetch_bulk(["GDP", "BAD", "UNRATE"])
        assert list(results) == ["GDP", "UNRATE"]

    @pytest.mark.parametrize("status,message,expected", [
        (200, None, True),
        (401, "Unauthorized", False),
        (400, "Bad Request.  The value for variable api_key is not registered.", False),
    ])
    def test_validate_credential(self, settings, fake_sleep, status, message, expected):
        body = {"seriess": []} if status == 200 else {"error_message": message}
        handler = RecordingHandler(lambda request: json_response(body, status_code=status))
        client = FredClient(settings, transport=handler.transport, sleep=fake_sleep)
        assert client.validate_credential() is expected

    def test_validate_credential_reraises_server_errors(self, settings, fake_sleep):
        handler = RecordingHandler(lambda request: json_response({}, status_code=500))
        client = FredClient(settings, transport=handler.transport, sleep=fake_sleep)
        with pytest.raises(ProviderRequestError):
            client.validate_credential()
