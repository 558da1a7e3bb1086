"""
Google Calendar API v3 client for fetching events and creating viewings.
"""

import logging
from typing import Any, Dict, List, Optional
from urllib.parse import quote

import pendulum
import requests
from pendulum import DateTime

from ..domain.exceptions import CalendarAPIError
from ..domain.models import BusyEvent, ViewingRequest

logger = logging.getLogger(__name__)


class GoogleCalendarClient:
    """
    Client for Google Calendar event operations.

    Uses the /calendars/{id}/events endpoint with recurring events expanded
    into single instances.
    """

    CALENDAR_API_ENDPOINT = "https://www.googleapis.com/calendar/v3"

    # transparency values that leave the agent bookable
    NON_BLOCKING_TRANSPARENCY = {"transparent"}

    def __init__(self, access_token: str):
        """
        Initialize the Google Calendar client.

        Args:
            access_token: Valid Google OAuth2 access token
        """
        self.access_token = access_token
        self.headers = {
            "Authorization": f"Bearer {access_token}",
            "Content-Type": "application/json"
        }

    def _events_url(self, calendar_id: str) -> str:
        return f"{self.CALENDAR_API_ENDPOINT}/calendars/{quote(calendar_id, safe='')}/events"

    def list_events(
        self,
        calendar_id: str,
        time_min: DateTime,
        time_max: DateTime,
        timezone: str = "Europe/Warsaw"
    ) -> List[BusyEvent]:
        """
        Get all events of a calendar between two instants.

        Events marked "transparent" (shown as available) are skipped since
        they never block a viewing.

        Args:
            calendar_id: Google calendar id ("primary" for the agent's own)
            time_min: Start of the time window
            time_max: End of the time window
            timezone: IANA timezone the results are converted to

        Returns:
            List of BusyEvent objects in provider order

        Raises:
            CalendarAPIError: If the API call fails or returns an unusable event
            InvalidIntervalError: If an event ends before it starts
        """
        params: Dict[str, Any] = {
            "singleEvents": "true",
            "orderBy": "startTime",
            "timeMin": time_min.to_iso8601_string(),
            "timeMax": time_max.to_iso8601_string(),
            "timeZone": timezone,
        }
        events: List[BusyEvent] = []

        while True:
            data = self._get(self._events_url(calendar_id), params)

            for item in data.get("items", []):
                if item.get("transparency") in self.NON_BLOCKING_TRANSPARENCY:
                    logger.debug("Skipping transparent event %s", item.get("id"))
                    continue
                events.append(self._parse_event(item, timezone))

            page_token = data.get("nextPageToken")
            if not page_token:
                break
            params["pageToken"] = page_token

        logger.debug("Fetched %d events from Google calendar %s", len(events), calendar_id)
        return events

    def create_event(
        self,
        calendar_id: str,
        request: ViewingRequest,
        timezone: str = "Europe/Warsaw"
    ) -> str:
        """
        Create a property viewing event and return its id.

        Raises:
            CalendarAPIError: If the API call fails
        """
        payload = self._build_viewing_payload(request, timezone)

        try:
            response = requests.post(
                self._events_url(calendar_id),
                headers=self.headers,
                json=payload,
                timeout=30
            )
            response.raise_for_status()
            data = response.json()
        except requests.exceptions.RequestException as e:
            raise CalendarAPIError(f"Failed to create Google Calendar event: {e}") from e

        logger.info("Created viewing %s in Google calendar %s", data.get("id"), calendar_id)
        return data.get("id", "")

    def list_calendars(self) -> List[Dict[str, Any]]:
        """
        List the calendars on the agent's calendar list.

        Returns:
            Dicts with ``id``, ``name`` and ``primary`` keys

        Raises:
            CalendarAPIError: If the API call fails
        """
        params: Dict[str, Any] = {}
        calendars: List[Dict[str, Any]] = []

        while True:
            data = self._get(f"{self.CALENDAR_API_ENDPOINT}/users/me/calendarList", params)

            for item in data.get("items", []):
                calendars.append({
                    "id": item.get("id", ""),
                    "name": item.get("summaryOverride") or item.get("summary", ""),
                    "primary": bool(item.get("primary", False)),
                })

            page_token = data.get("nextPageToken")
            if not page_token:
                break
            params["pageToken"] = page_token

        return calendars

    def test_connection(self) -> Dict[str, Any]:
        """
        Test the connection and authentication by fetching the primary calendar.

        Raises:
            CalendarAPIError: If connection test fails
        """
        return self._get(f"{self.CALENDAR_API_ENDPOINT}/calendars/primary", {})

    def _get(self, url: str, params: Dict[str, Any]) -> Dict[str, Any]:
        try:
            response = requests.get(url, headers=self.headers, params=params, timeout=30)
            response.raise_for_status()
            return response.json()
        except requests.exceptions.RequestException as e:
            raise CalendarAPIError(f"Failed to fetch data from Google Calendar: {e}") from e

    def _parse_event(self, item: Dict[str, Any], timezone: str) -> BusyEvent:
        """
        Map one Google event resource onto a BusyEvent.

        All-day events carry ``start.date``/``end.date`` (end exclusive);
        timed events carry ``start.dateTime``/``end.dateTime``.
        """
        event_id = item.get("id", "")

        try:
            start_info = item["start"]
            end_info = item["end"]
            is_all_day = "dateTime" not in start_info and "date" in start_info

            if is_all_day:
                start = pendulum.parse(start_info["date"], tz=timezone)
                end = pendulum.parse(end_info["date"], tz=timezone)
            else:
                start = self._parse_datetime(start_info["dateTime"], timezone)
                end = self._parse_datetime(end_info["dateTime"], timezone)

        except (KeyError, TypeError, ValueError) as e:
            raise CalendarAPIError(f"Could not parse Google event {event_id or '<unknown>'}: {e}") from e

        return BusyEvent(
            start=start,
            end=end,
            is_all_day=is_all_day,
            is_cancelled=item.get("status") == "cancelled",
            summary=item.get("summary", ""),
            event_id=event_id,
        )

    def _parse_datetime(self, datetime_str: str, timezone: str) -> DateTime:
        dt = pendulum.parse(datetime_str)

        if isinstance(dt, DateTime):
            return dt.in_timezone(timezone)

        raise ValueError(f"Could not parse datetime: {datetime_str}")

    @staticmethod
    def _build_viewing_payload(request: ViewingRequest, timezone: str) -> Dict[str, Any]:
        attendee: Dict[str, Optional[str]] = {"email": request.client_email}
        if request.client_name:
            attendee["displayName"] = request.client_name

        return {
            "summary": request.summary(),
            "description": request.description(),
            "location": request.property_address,
            "start": {
                "dateTime": request.slot.start.to_iso8601_string(),
                "timeZone": timezone,
            },
            "end": {
                "dateTime": request.slot.end.to_iso8601_string(),
                "timeZone": timezone,
            },
            "attendees": [attendee],
            "reminders": {
                "useDefault": False,
                "overrides": [
                    {"method": "email", "minutes": 60},
                    {"method": "popup", "minutes": 30},
                ],
            },
        }
