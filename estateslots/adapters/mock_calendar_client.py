"""
Offline calendar client for trying the tool without a calendar account.
"""

import json
import logging
import uuid
from pathlib import Path
from typing import Any, Dict, List, Optional

import pendulum
from pendulum import Date, DateTime

from ..domain.exceptions import CalendarAPIError
from ..domain.models import BusyEvent, ViewingRequest

logger = logging.getLogger(__name__)

DEFAULT_DATA_FILE = Path(__file__).parent / "mock_calendar_data.json"


class MockCalendarClient:
    """
    Mock client that serves sample agent events from a JSON file.

    Sample events are stored relative to a reference day (``day_offset``
    plus ``HH:mm`` clock times) so the calendar always looks current.
    Viewings created through this client are kept in memory only.
    """

    def __init__(
        self,
        today: Optional[Date] = None,
        data_file: Optional[Path] = None,
        timezone: str = "Europe/Warsaw",
    ):
        """
        Initialize the mock client.

        Args:
            today: Reference day for relative sample events (defaults to today)
            data_file: Optional JSON file replacing the packaged sample data
            timezone: Timezone the sample clock times are interpreted in
        """
        self.timezone = timezone
        self.today = today or pendulum.today(timezone).date()
        self.data_file = data_file or DEFAULT_DATA_FILE
        self.events: List[BusyEvent] = self._load_calendar_data()
        self.created: List[ViewingRequest] = []

    def _load_calendar_data(self) -> List[BusyEvent]:
        """Load mock calendar data from JSON file."""
        if not self.data_file.exists():
            logger.warning("Mock calendar data %s not found, using an empty calendar", self.data_file)
            return []

        try:
            with open(self.data_file, "r", encoding="utf-8") as f:
                raw_events = json.load(f)
        except json.JSONDecodeError as exc:
            raise CalendarAPIError(f"Invalid mock calendar data in {self.data_file}: {exc}") from exc

        return [self._build_event(raw) for raw in raw_events]

    def _build_event(self, raw: Dict[str, Any]) -> BusyEvent:
        day = self.today.add(days=int(raw.get("day_offset", 0)))
        midnight = pendulum.datetime(day.year, day.month, day.day, tz=self.timezone)
        is_all_day = bool(raw.get("all_day", False))

        if is_all_day:
            start, end = midnight, midnight.add(days=1)
        else:
            start = self._at_clock(midnight, raw["start"])
            end = self._at_clock(midnight, raw["end"])

        return BusyEvent(
            start=start,
            end=end,
            is_all_day=is_all_day,
            is_cancelled=raw.get("status") == "cancelled",
            summary=raw.get("summary", ""),
            event_id=str(raw.get("id", "")),
        )

    @staticmethod
    def _at_clock(midnight: DateTime, clock: str) -> DateTime:
        hour, minute = (int(part) for part in clock.split(":"))
        return midnight.set(hour=hour, minute=minute)

    def list_events(
        self,
        calendar_id: str,
        time_min: DateTime,
        time_max: DateTime,
        timezone: str = "Europe/Warsaw"
    ) -> List[BusyEvent]:
        """Return sample events overlapping the requested window."""
        return [
            event for event in self.events
            if event.start < time_max and event.end > time_min
        ]

    def create_event(
        self,
        calendar_id: str,
        request: ViewingRequest,
        timezone: str = "Europe/Warsaw"
    ) -> str:
        """Record a viewing in memory so later queries see it as busy."""
        event_id = uuid.uuid4().hex[:9]
        self.created.append(request)
        self.events.append(
            BusyEvent(
                start=request.slot.start,
                end=request.slot.end,
                summary=request.summary(),
                event_id=event_id,
            )
        )
        return event_id

    def list_calendars(self) -> List[Dict[str, Any]]:
        """The mock account has a single primary calendar."""
        return [{"id": "primary", "name": "Mock Agent", "primary": True}]

    def test_connection(self) -> Dict[str, Any]:
        """
        Mock connection test.

        Returns:
            Mock calendar profile data
        """
        return {
            "id": "primary",
            "summary": "Mock Agent",
            "timeZone": self.timezone,
        }
