"""
Microsoft Graph API client for calendar events.
"""

import logging
from typing import Any, Dict, List, Optional
from urllib.parse import quote

import pendulum
import requests
from pendulum import Date, DateTime

from ..domain.exceptions import CalendarAPIError
from ..domain.models import BusyEvent, ViewingRequest

logger = logging.getLogger(__name__)


class GraphCalendarClient:
    """
    Client for Microsoft Graph calendar operations.

    Uses the /calendarView endpoint, which expands recurring meetings into
    the occurrences that fall inside the requested window.
    """

    GRAPH_API_ENDPOINT = "https://graph.microsoft.com/v1.0"

    # showAs values that leave the agent bookable
    NON_BLOCKING_STATUSES = {"free"}

    def __init__(self, access_token: str):
        """
        Initialize the Graph API client.

        Args:
            access_token: Valid Microsoft Graph access token
        """
        self.access_token = access_token
        self.headers = {
            "Authorization": f"Bearer {access_token}",
            "Content-Type": "application/json"
        }

    def _calendar_path(self, calendar_id: str) -> str:
        if calendar_id in ("", "primary"):
            return f"{self.GRAPH_API_ENDPOINT}/me/calendar"
        return f"{self.GRAPH_API_ENDPOINT}/me/calendars/{quote(calendar_id, safe='')}"

    def list_events(
        self,
        calendar_id: str,
        time_min: DateTime,
        time_max: DateTime,
        timezone: str = "Europe/Warsaw"
    ) -> List[BusyEvent]:
        """
        Get the events of a calendar between two instants.

        Events shown as "free" are skipped since they never block a viewing.

        Raises:
            CalendarAPIError: If the API call fails or returns an unusable event
            InvalidIntervalError: If an event ends before it starts
        """
        url: Optional[str] = f"{self._calendar_path(calendar_id)}/calendarView"
        params: Optional[Dict[str, Any]] = {
            "startDateTime": time_min.to_iso8601_string(),
            "endDateTime": time_max.to_iso8601_string(),
            "$select": "id,subject,start,end,isAllDay,isCancelled,showAs",
            "$top": 100,
        }
        headers = dict(self.headers)
        headers["Prefer"] = f'outlook.timezone="{timezone}"'

        events: List[BusyEvent] = []

        while url:
            try:
                response = requests.get(url, headers=headers, params=params, timeout=30)
                response.raise_for_status()
                data = response.json()
            except requests.exceptions.RequestException as e:
                raise CalendarAPIError(f"Failed to fetch events from Microsoft Graph: {e}") from e

            for item in data.get("value", []):
                if str(item.get("showAs", "")).lower() in self.NON_BLOCKING_STATUSES:
                    logger.debug("Skipping free event %s", item.get("id"))
                    continue
                events.append(self._parse_event(item, timezone))

            # nextLink already carries the query string
            url = data.get("@odata.nextLink")
            params = None

        logger.debug("Fetched %d events from Graph calendar %s", len(events), calendar_id)
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
        payload = {
            "subject": request.summary(),
            "body": {"contentType": "text", "content": request.description()},
            "location": {"displayName": request.property_address},
            "start": {
                "dateTime": request.slot.start.in_timezone(timezone).format("YYYY-MM-DDTHH:mm:ss"),
                "timeZone": timezone,
            },
            "end": {
                "dateTime": request.slot.end.in_timezone(timezone).format("YYYY-MM-DDTHH:mm:ss"),
                "timeZone": timezone,
            },
            "attendees": [
                {
                    "emailAddress": {"address": request.client_email, "name": request.client_name},
                    "type": "required",
                }
            ],
            "isReminderOn": True,
            "reminderMinutesBeforeStart": 30,
        }

        try:
            response = requests.post(
                f"{self._calendar_path(calendar_id)}/events",
                headers=self.headers,
                json=payload,
                timeout=30
            )
            response.raise_for_status()
            data = response.json()
        except requests.exceptions.RequestException as e:
            raise CalendarAPIError(f"Failed to create Microsoft Graph event: {e}") from e

        logger.info("Created viewing %s in Graph calendar %s", data.get("id"), calendar_id)
        return data.get("id", "")

    def _parse_event(self, item: Dict[str, Any], timezone: str) -> BusyEvent:
        """
        Parse one Graph event into our domain model.

        Event format:
        {
            "id": "AAMk...",
            "subject": "...",
            "isAllDay": false,
            "isCancelled": false,
            "showAs": "busy",
            "start": {"dateTime": "2024-11-25T10:00:00.0000000", "timeZone": "..."},
            "end": {"dateTime": "2024-11-25T11:00:00.0000000", "timeZone": "..."}
        }
        """
        event_id = item.get("id", "")
        is_all_day = bool(item.get("isAllDay", False))

        try:
            if is_all_day:
                # Only the date counts; Graph may report midnight in another zone
                start = self._parse_date(item["start"]["dateTime"], timezone)
                end = self._parse_date(item["end"]["dateTime"], timezone)
            else:
                start = self._parse_datetime(
                    item["start"]["dateTime"], item["start"].get("timeZone", timezone)
                ).in_timezone(timezone)
                end = self._parse_datetime(
                    item["end"]["dateTime"], item["end"].get("timeZone", timezone)
                ).in_timezone(timezone)
        except (KeyError, TypeError, ValueError) as e:
            raise CalendarAPIError(f"Could not parse Graph event {event_id or '<unknown>'}: {e}") from e

        return BusyEvent(
            start=start,
            end=end,
            is_all_day=is_all_day,
            is_cancelled=bool(item.get("isCancelled", False)),
            summary=item.get("subject", ""),
            event_id=event_id,
        )

    def _parse_datetime(self, datetime_str: str, timezone: str) -> DateTime:
        """
        Parse a Graph wall-clock datetime given in ``timezone``.

        Graph returns seven fractional digits, which are trimmed first.
        """
        if "." in datetime_str:
            datetime_str = datetime_str.split(".", 1)[0]

        dt = pendulum.parse(datetime_str, tz=timezone)

        if isinstance(dt, DateTime):
            return dt

        raise ValueError(f"Could not parse datetime: {datetime_str}")

    def _parse_date(self, datetime_str: str, timezone: str) -> DateTime:
        """Midnight in ``timezone`` of the date part of a Graph datetime."""
        day = pendulum.parse(datetime_str[:10], exact=True)

        if isinstance(day, Date):
            return pendulum.datetime(day.year, day.month, day.day, tz=timezone)

        raise ValueError(f"Could not parse date: {datetime_str}")

    def list_calendars(self) -> List[Dict[str, Any]]:
        """
        List the calendars of the signed-in user.

        Returns:
            Dicts with ``id``, ``name`` and ``primary`` keys

        Raises:
            CalendarAPIError: If the API call fails
        """
        url: Optional[str] = f"{self.GRAPH_API_ENDPOINT}/me/calendars"
        params: Optional[Dict[str, Any]] = {"$select": "id,name,isDefaultCalendar"}
        calendars: List[Dict[str, Any]] = []

        while url:
            try:
                response = requests.get(url, headers=self.headers, params=params, timeout=30)
                response.raise_for_status()
                data = response.json()
            except requests.exceptions.RequestException as e:
                raise CalendarAPIError(f"Failed to list Microsoft Graph calendars: {e}") from e

            for item in data.get("value", []):
                calendars.append({
                    "id": item.get("id", ""),
                    "name": item.get("name", ""),
                    "primary": bool(item.get("isDefaultCalendar", False)),
                })

            url = data.get("@odata.nextLink")
            params = None

        return calendars

    def test_connection(self) -> Dict[str, Any]:
        """
        Test the connection and authentication by fetching user profile.

        Raises:
            CalendarAPIError: If connection test fails
        """
        url = f"{self.GRAPH_API_ENDPOINT}/me"

        try:
            response = requests.get(url, headers=self.headers, timeout=10)
            response.raise_for_status()
            return response.json()
        except requests.exceptions.RequestException as e:
            raise CalendarAPIError(f"Connection test failed: {e}") from e
