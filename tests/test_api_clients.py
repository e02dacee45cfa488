"""
Tests for the HTTP adapters, with ``requests`` patched out.
"""

import pendulum
import pytest
import requests

from slotkeeper.adapters import booking_api_client, supabase_client
from slotkeeper.adapters.booking_api_client import BookingApiClient
from slotkeeper.adapters.supabase_client import SupabaseClient
from slotkeeper.config import AppConfig
from slotkeeper.domain.exceptions import (
    BookingCreationError,
    BookingValidationError,
    BusyQueryError,
    DataSourceError,
    ProviderNotFoundError,
    SlotNoLongerAvailableError,
)
from slotkeeper.domain.models import BookingRequest, Duration, Requester


class FakeResponse:
    """Just enough of ``requests.Response`` for the adapters."""

    def __init__(self, status_code=200, payload=None):
        self.status_code = status_code
        self._payload = payload

    @property
    def ok(self):
        return self.status_code < 400

    def json(self):
        if isinstance(self._payload, Exception):
            raise self._payload
        return self._payload

    def raise_for_status(self):
        if not self.ok:
            raise requests.exceptions.HTTPError(f"HTTP {self.status_code}")


class RecordingGet:
    def __init__(self, response=None, error=None):
        self.response = response
        self.error = error
        self.calls = []

    def __call__(self, url, headers=None, params=None, timeout=None):
        self.calls.append({"url": url, "headers": headers, "params": params, "timeout": timeout})
        if self.error is not None:
            raise self.error
        return self.response


class TestSupabaseClient:
    """Tests for template and reservation reads."""

    def test_get_template(self, monkeypatch):
        fake = RecordingGet(FakeResponse(payload=[{"availability": {"Lunes": [True]}}]))
        monkeypatch.setattr(supabase_client.requests, "get", fake)
        client = SupabaseClient("https://xyz.supabase.co/", "key", timeout_seconds=5)

        assert client.get_template("p-1") == {"Lunes": [True]}
        call = fake.calls[0]
        assert call["url"] == "https://xyz.supabase.co/rest/v1/profiles"
        assert call["params"]["user_id"] == "eq.p-1"
        assert call["headers"]["apikey"] == "key"
        assert call["timeout"] == 5

    def test_unknown_provider(self, monkeypatch):
        monkeypatch.setattr(supabase_client.requests, "get", RecordingGet(FakeResponse(payload=[])))

        with pytest.raises(ProviderNotFoundError):
            SupabaseClient("https://x", "key").get_template("ghost")

    def test_template_transport_error(self, monkeypatch):
        fake = RecordingGet(error=requests.exceptions.Timeout("slow"))
        monkeypatch.setattr(supabase_client.requests, "get", fake)

        with pytest.raises(DataSourceError):
            SupabaseClient("https://x", "key").get_template("p-1")

    def test_get_busy_intervals(self, monkeypatch):
        """Test that reservations are read from the bookings table the booking API fills."""
        rows = [
            {"scheduled_time": "10:00:00", "duration": 60, "status": "confirmed"},
            {"scheduled_time": None, "duration": 60, "status": "pending"},
            {"scheduled_time": "15:30", "duration": 90, "status": "pending"},
        ]
        fake = RecordingGet(FakeResponse(payload=rows))
        monkeypatch.setattr(supabase_client.requests, "get", fake)

        busy = SupabaseClient("https://x", "key").get_busy_intervals("p-1", pendulum.date(2030, 1, 7))

        assert [(b.start_time, b.duration_minutes) for b in busy] == [("10:00:00", 60), ("15:30", 90)]
        call = fake.calls[0]
        assert call["url"] == "https://x/rest/v1/bookings"
        assert call["params"] == {
            "select": "scheduled_time,duration,status",
            "lawyer_id": "eq.p-1",
            "scheduled_date": "eq.2030-01-07",
            "status": "not.in.(cancelled)",
        }

    @pytest.mark.parametrize(
        "fake",
        [
            RecordingGet(error=requests.exceptions.ConnectionError("refused")),
            RecordingGet(FakeResponse(status_code=500, payload={})),
            RecordingGet(FakeResponse(payload={"not": "a list"})),
            RecordingGet(FakeResponse(payload=ValueError("bad json"))),
        ],
    )
    def test_busy_query_failures(self, monkeypatch, fake):
        monkeypatch.setattr(supabase_client.requests, "get", fake)

        with pytest.raises(BusyQueryError):
            SupabaseClient("https://x", "key").get_busy_intervals("p-1", pendulum.date(2030, 1, 7))


def _request():
    return BookingRequest(
        provider_id="p-1",
        requester=Requester(name="Marta", email="marta@example.com"),
        date=pendulum.date(2030, 1, 7),
        time="10:00",
        duration=Duration.NINETY_MINUTES,
        total=66000,
    )


class TestBookingApiClient:
    """Tests for booking creation."""

    def _patch_post(self, monkeypatch, response=None, error=None):
        calls = []

        def fake_post(url, headers=None, json=None, timeout=None):
            calls.append({"url": url, "headers": headers, "json": json, "timeout": timeout})
            if error is not None:
                raise error
            return response

        monkeypatch.setattr(booking_api_client.requests, "post", fake_post)
        return calls

    def test_success(self, monkeypatch):
        calls = self._patch_post(
            monkeypatch,
            FakeResponse(
                payload={
                    "booking_id": 42,
                    "payment_link": "https://pay.example.com/42",
                    "expires_at": "2030-01-01T12:30:00-03:00",
                }
            ),
        )

        confirmation = BookingApiClient("https://app.example.com/", api_key="tok").create_booking(_request())

        assert confirmation.booking_id == "42"
        assert confirmation.payment_url == "https://pay.example.com/42"
        assert confirmation.expires_at == pendulum.datetime(2030, 1, 1, 15, 30, tz="UTC")
        assert calls[0]["url"] == "https://app.example.com/api/bookings/create"
        assert calls[0]["json"]["lawyer_id"] == "p-1"
        assert calls[0]["json"]["price"] == 66000
        assert calls[0]["headers"]["Authorization"] == "Bearer tok"

    def test_missing_expiry_is_none(self, monkeypatch):
        self._patch_post(monkeypatch, FakeResponse(payload={"booking_id": "b", "payment_link": "u"}))

        assert BookingApiClient("https://x").create_booking(_request()).expires_at is None

    @pytest.mark.parametrize(
        "status, error",
        [
            (409, SlotNoLongerAvailableError),
            (400, BookingValidationError),
            (422, BookingValidationError),
            (500, BookingCreationError),
        ],
    )
    def test_error_statuses(self, monkeypatch, status, error):
        self._patch_post(monkeypatch, FakeResponse(status_code=status, payload={"error": "nope"}))

        with pytest.raises(error, match="nope"):
            BookingApiClient("https://x").create_booking(_request())

    def test_missing_payment_link(self, monkeypatch):
        self._patch_post(monkeypatch, FakeResponse(payload={"booking_id": "b"}))

        with pytest.raises(BookingCreationError):
            BookingApiClient("https://x").create_booking(_request())

    def test_transport_error(self, monkeypatch):
        self._patch_post(monkeypatch, error=requests.exceptions.ConnectionError("refused"))

        with pytest.raises(BookingCreationError):
            BookingApiClient("https://x").create_booking(_request())


def test_booking_client_from_config():
    config = AppConfig(api={"base_url": "https://app.example.com/", "api_key": "tok", "timeout_seconds": 3})

    client = BookingApiClient.from_config(config)

    assert client.base_url == "https://app.example.com"
    assert client.timeout == 3
    assert client.headers["Authorization"] == "Bearer tok"


def test_booking_client_from_config_requires_api():
    with pytest.raises(ValueError, match="api"):
        BookingApiClient.from_config(AppConfig())
