"""
Tests for the calendar provider adapters.
"""

from typing import Any, Dict, List

import pendulum
import pytest
import requests

from estateslots.adapters import google_authenticator, google_calendar_client, graph_client
from estateslots.adapters.google_authenticator import GoogleAuthenticator
from estateslots.adapters.google_calendar_client import GoogleCalendarClient
from estateslots.adapters.graph_client import GraphCalendarClient
from estateslots.adapters.mock_calendar_client import MockCalendarClient
from estateslots.domain.exceptions import AuthenticationError, CalendarAPIError, InvalidIntervalError
from estateslots.domain.calculator import AvailabilityCalculator
from estateslots.domain.models import BusinessHours, Interval, Slot, ViewingRequest

TZ = "Europe/Warsaw"


def _at(clock: str, day: str = "2024-11-25"):
    return pendulum.parse(f"{day} {clock}", tz=TZ)


class FakeResponse:
    """Stand-in for requests.Response."""

    def __init__(self, payload: Dict[str, Any], status_code: int = 200):
        self._payload = payload
        self.status_code = status_code

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.exceptions.HTTPError(f"{self.status_code} Error")

    def json(self):
        return self._payload


class RecordingGet:
    """Serves queued responses and records each call."""

    def __init__(self, responses: List[FakeResponse]):
        self._responses = list(responses)
        self.calls: List[Dict[str, Any]] = []

    def __call__(self, url, headers=None, params=None, timeout=None):
        self.calls.append({"url": url, "headers": headers, "params": params})
        return self._responses.pop(0)


class TestGoogleCalendarClient:
    """Tests for GoogleCalendarClient."""

    def test_list_events_maps_payload(self, monkeypatch):
        fake_get = RecordingGet([
            FakeResponse({
                "items": [
                    {
                        "id": "a",
                        "summary": "Client meeting",
                        "start": {"dateTime": "2024-11-25T10:00:00+01:00"},
                        "end": {"dateTime": "2024-11-25T11:30:00+01:00"},
                    },
                    {
                        "id": "b",
                        "status": "cancelled",
                        "start": {"dateTime": "2024-11-25T09:00:00Z"},
                        "end": {"dateTime": "2024-11-25T10:00:00Z"},
                    },
                ],
                "nextPageToken": "page-2",
            }),
            FakeResponse({
                "items": [
                    {
                        "id": "c",
                        "summary": "Office day",
                        "start": {"date": "2024-11-25"},
                        "end": {"date": "2024-11-26"},
                    },
                ],
            }),
        ])
        monkeypatch.setattr(google_calendar_client.requests, "get", fake_get)

        events = GoogleCalendarClient("token").list_events(
            "primary", _at("00:00"), _at("00:00", day="2024-11-26"), TZ
        )

        assert [e.event_id for e in events] == ["a", "b", "c"]
        assert events[0].start == _at("10:00")
        assert events[0].end == _at("11:30")
        assert not events[0].is_all_day
        assert events[1].is_cancelled
        assert events[1].start == _at("10:00")
        assert events[2].is_all_day
        assert events[2].start == _at("00:00")
        assert events[2].end == _at("00:00", day="2024-11-26")

        assert fake_get.calls[0]["params"]["singleEvents"] == "true"
        assert fake_get.calls[1]["params"]["pageToken"] == "page-2"
        assert fake_get.calls[0]["headers"]["Authorization"] == "Bearer token"

    def test_transparent_events_are_skipped(self, monkeypatch):
        fake_get = RecordingGet([FakeResponse({"items": [
            {
                "id": "focus",
                "transparency": "transparent",
                "start": {"dateTime": "2024-11-25T09:00:00+01:00"},
                "end": {"dateTime": "2024-11-25T12:00:00+01:00"},
            },
            {
                "id": "meeting",
                "transparency": "opaque",
                "start": {"dateTime": "2024-11-25T13:00:00+01:00"},
                "end": {"dateTime": "2024-11-25T14:00:00+01:00"},
            },
        ]})])
        monkeypatch.setattr(google_calendar_client.requests, "get", fake_get)

        events = GoogleCalendarClient("token").list_events("primary", _at("00:00"), _at("23:00"), TZ)

        assert [e.event_id for e in events] == ["meeting"]

    def test_list_calendars(self, monkeypatch):
        fake_get = RecordingGet([
            FakeResponse({
                "items": [
                    {"id": "agent@example.com", "summary": "agent@example.com", "primary": True},
                ],
                "nextPageToken": "page-2",
            }),
            FakeResponse({
                "items": [
                    {"id": "abc@group.calendar.google.com", "summary": "Team", "summaryOverride": "Viewings"},
                ],
            }),
        ])
        monkeypatch.setattr(google_calendar_client.requests, "get", fake_get)

        calendars = GoogleCalendarClient("token").list_calendars()

        assert calendars == [
            {"id": "agent@example.com", "name": "agent@example.com", "primary": True},
            {"id": "abc@group.calendar.google.com", "name": "Viewings", "primary": False},
        ]
        assert fake_get.calls[0]["url"].endswith("/users/me/calendarList")
        assert fake_get.calls[1]["params"]["pageToken"] == "page-2"

    def test_list_calendars_http_error(self, monkeypatch):
        fake_get = RecordingGet([FakeResponse({}, status_code=403)])
        monkeypatch.setattr(google_calendar_client.requests, "get", fake_get)

        with pytest.raises(CalendarAPIError):
            GoogleCalendarClient("token").list_calendars()

    def test_calendar_id_is_quoted(self, monkeypatch):
        fake_get = RecordingGet([FakeResponse({"items": []})])
        monkeypatch.setattr(google_calendar_client.requests, "get", fake_get)

        GoogleCalendarClient("token").list_events(
            "agent@example.com", _at("00:00"), _at("23:00"), TZ
        )

        assert fake_get.calls[0]["url"].endswith("/calendars/agent%40example.com/events")

    def test_missing_times_raise_calendar_error(self, monkeypatch):
        fake_get = RecordingGet([FakeResponse({"items": [{"id": "x", "start": {}}]})])
        monkeypatch.setattr(google_calendar_client.requests, "get", fake_get)

        with pytest.raises(CalendarAPIError, match="x"):
            GoogleCalendarClient("token").list_events("primary", _at("00:00"), _at("23:00"), TZ)

    def test_inverted_event_fails_batch(self, monkeypatch):
        fake_get = RecordingGet([FakeResponse({"items": [{
            "id": "bad",
            "start": {"dateTime": "2024-11-25T12:00:00+01:00"},
            "end": {"dateTime": "2024-11-25T11:00:00+01:00"},
        }]})])
        monkeypatch.setattr(google_calendar_client.requests, "get", fake_get)

        with pytest.raises(InvalidIntervalError):
            GoogleCalendarClient("token").list_events("primary", _at("00:00"), _at("23:00"), TZ)

    def test_http_error_raises_calendar_error(self, monkeypatch):
        fake_get = RecordingGet([FakeResponse({}, status_code=401)])
        monkeypatch.setattr(google_calendar_client.requests, "get", fake_get)

        with pytest.raises(CalendarAPIError):
            GoogleCalendarClient("token").list_events("primary", _at("00:00"), _at("23:00"), TZ)

    def test_create_event_payload(self, monkeypatch):
        captured = {}

        def fake_post(url, headers=None, json=None, timeout=None):
            captured["url"] = url
            captured["json"] = json
            return FakeResponse({"id": "new-event"})

        monkeypatch.setattr(google_calendar_client.requests, "post", fake_post)
        request = ViewingRequest(
            slot=Slot(start=_at("11:00"), end=_at("12:00")),
            property_address="Marszalkowska 15",
            client_name="Jan Kowalski",
            client_email="jan@example.com",
        )

        event_id = GoogleCalendarClient("token").create_event("primary", request, TZ)

        assert event_id == "new-event"
        body = captured["json"]
        assert body["summary"] == "Property viewing: Marszalkowska 15"
        assert body["location"] == "Marszalkowska 15"
        assert body["attendees"] == [{"email": "jan@example.com", "displayName": "Jan Kowalski"}]
        assert body["start"]["timeZone"] == TZ
        assert {"method": "popup", "minutes": 30} in body["reminders"]["overrides"]


class TestGoogleAuthenticator:
    """Tests for GoogleAuthenticator."""

    def test_refresh_and_cache(self, monkeypatch):
        calls = []

        def fake_post(url, data=None, timeout=None):
            calls.append(data)
            return FakeResponse({"access_token": f"token-{len(calls)}", "expires_in": 3600})

        monkeypatch.setattr(google_authenticator.requests, "post", fake_post)
        authenticator = GoogleAuthenticator("id", "secret", "refresh")

        assert authenticator.get_access_token() == "token-1"
        assert authenticator.get_access_token() == "token-1"
        assert calls[0]["grant_type"] == "refresh_token"

        authenticator.clear_cache()
        assert authenticator.get_access_token() == "token-2"
        assert authenticator.get_access_token(force_refresh=True) == "token-3"

    def test_missing_credentials(self):
        with pytest.raises(AuthenticationError):
            GoogleAuthenticator("id", "secret", "").get_access_token()

    def test_rejected_refresh(self, monkeypatch):
        def fake_post(url, data=None, timeout=None):
            return FakeResponse({"error": "invalid_grant"}, status_code=400)

        monkeypatch.setattr(google_authenticator.requests, "post", fake_post)

        with pytest.raises(AuthenticationError):
            GoogleAuthenticator("id", "secret", "refresh").get_access_token()


class TestGraphCalendarClient:
    """Tests for GraphCalendarClient."""

    def test_list_events_maps_payload(self, monkeypatch):
        fake_get = RecordingGet([
            FakeResponse({
                "value": [
                    {
                        "id": "m1",
                        "subject": "Client meeting",
                        "isAllDay": False,
                        "isCancelled": False,
                        "showAs": "busy",
                        "start": {"dateTime": "2024-11-25T10:00:00.0000000", "timeZone": TZ},
                        "end": {"dateTime": "2024-11-25T11:00:00.0000000", "timeZone": TZ},
                    },
                    {
                        "id": "m2",
                        "showAs": "free",
                        "start": {"dateTime": "2024-11-25T12:00:00.0000000", "timeZone": TZ},
                        "end": {"dateTime": "2024-11-25T13:00:00.0000000", "timeZone": TZ},
                    },
                ],
                "@odata.nextLink": "https://graph.microsoft.com/v1.0/me/calendar/calendarView?$skip=2",
            }),
            FakeResponse({
                "value": [
                    {
                        "id": "m3",
                        "isAllDay": True,
                        "isCancelled": True,
                        "start": {"dateTime": "2024-11-25T00:00:00.0000000", "timeZone": "UTC"},
                        "end": {"dateTime": "2024-11-26T00:00:00.0000000", "timeZone": "UTC"},
                    },
                ],
            }),
        ])
        monkeypatch.setattr(graph_client.requests, "get", fake_get)

        events = GraphCalendarClient("token").list_events(
            "primary", _at("00:00"), _at("00:00", day="2024-11-26"), TZ
        )

        assert [e.event_id for e in events] == ["m1", "m3"]
        assert events[0].start == _at("10:00")
        assert events[1].is_all_day
        assert events[1].is_cancelled
        assert events[1].start == _at("00:00")
        assert events[1].end == _at("00:00", day="2024-11-26")

        assert fake_get.calls[0]["url"].endswith("/me/calendar/calendarView")
        assert fake_get.calls[0]["headers"]["Prefer"] == f'outlook.timezone="{TZ}"'
        assert fake_get.calls[1]["params"] is None

    def test_utc_all_day_event_stays_on_its_own_day(self, monkeypatch):
        """An all-day event on Sunday sent in UTC must not block Monday."""
        fake_get = RecordingGet([FakeResponse({"value": [{
            "id": "sunday",
            "isAllDay": True,
            "showAs": "oof",
            "start": {"dateTime": "2024-11-24T00:00:00.0000000", "timeZone": "UTC"},
            "end": {"dateTime": "2024-11-25T00:00:00.0000000", "timeZone": "UTC"},
        }]})])
        monkeypatch.setattr(graph_client.requests, "get", fake_get)

        events = GraphCalendarClient("token").list_events(
            "primary", _at("00:00", day="2024-11-24"), _at("00:00", day="2024-11-26"), TZ
        )

        assert events[0].start == _at("00:00", day="2024-11-24")
        assert events[0].end == _at("00:00")

        calculator = AvailabilityCalculator(BusinessHours(timezone=TZ))
        result = calculator.availability_for_day(pendulum.date(2024, 11, 25), events)

        assert result.free == [Interval(start=_at("09:00"), end=_at("18:00"))]

    def test_list_calendars(self, monkeypatch):
        fake_get = RecordingGet([
            FakeResponse({
                "value": [{"id": "AAMk1", "name": "Calendar", "isDefaultCalendar": True}],
                "@odata.nextLink": "https://graph.microsoft.com/v1.0/me/calendars?$skip=1",
            }),
            FakeResponse({"value": [{"id": "AAMk2", "name": "Viewings"}]}),
        ])
        monkeypatch.setattr(graph_client.requests, "get", fake_get)

        calendars = GraphCalendarClient("token").list_calendars()

        assert calendars == [
            {"id": "AAMk1", "name": "Calendar", "primary": True},
            {"id": "AAMk2", "name": "Viewings", "primary": False},
        ]
        assert fake_get.calls[0]["url"].endswith("/me/calendars")
        assert fake_get.calls[1]["params"] is None

    def test_named_calendar_path(self):
        client = GraphCalendarClient("token")

        assert client._calendar_path("primary").endswith("/me/calendar")
        assert client._calendar_path("AAMkAD=").endswith("/me/calendars/AAMkAD%3D")


class TestMockCalendarClient:
    """Tests for MockCalendarClient."""

    def test_sample_events_relative_to_today(self):
        today = pendulum.date(2024, 11, 25)
        client = MockCalendarClient(today=today, timezone=TZ)

        events = client.list_events("primary", _at("00:00"), _at("00:00", day="2024-11-26"), TZ)

        assert len(events) == 1
        assert events[0].start == _at("10:00")
        assert events[0].end == _at("11:30")

    def test_list_calendars(self):
        client = MockCalendarClient(today=pendulum.date(2024, 11, 25), timezone=TZ)

        assert client.list_calendars() == [{"id": "primary", "name": "Mock Agent", "primary": True}]

    def test_created_viewing_becomes_busy(self):
        client = MockCalendarClient(today=pendulum.date(2024, 11, 25), timezone=TZ)
        request = ViewingRequest(
            slot=Slot(start=_at("15:00", day="2024-12-02"), end=_at("16:00", day="2024-12-02")),
            property_address="Pulawska 1",
            client_name="Anna Nowak",
            client_email="anna@example.com",
        )

        event_id = client.create_event("primary", request, TZ)
        events = client.list_events(
            "primary", _at("00:00", day="2024-12-02"), _at("00:00", day="2024-12-03"), TZ
        )

        assert event_id
        assert [e.event_id for e in events] == [event_id]
