"""
Application service for agent availability and viewing bookings.

The service fetches a day's events through a calendar client adapter and
delegates the availability calculation to the domain-level
``AvailabilityCalculator``. The CLI stays thin and the calendar dependency
can be replaced by a stub in tests via a simple protocol.
"""

from __future__ import annotations

import logging
from typing import List, Optional, Protocol

import pendulum
from pendulum import Date, DateTime

from ..domain.calculator import AvailabilityCalculator
from ..domain.exceptions import SlotUnavailableError
from ..domain.models import BusyEvent, DayAvailability, ViewingRequest

logger = logging.getLogger(__name__)


class CalendarClientProtocol(Protocol):
    """Protocol describing the calendar client behaviour needed by the service."""

    def list_events(
        self,
        calendar_id: str,
        time_min: DateTime,
        time_max: DateTime,
        timezone: str,
    ) -> List[BusyEvent]:
        """Return the calendar's events overlapping the window."""

    def create_event(
        self,
        calendar_id: str,
        request: ViewingRequest,
        timezone: str,
    ) -> str:
        """Create the viewing and return the provider's event id."""


class AgentAvailabilityService:
    """
    Orchestrates event retrieval, availability calculation and booking.
    """

    def __init__(
        self,
        calendar_client: CalendarClientProtocol,
        calculator: AvailabilityCalculator,
        timezone: str,
    ) -> None:
        self._calendar_client = calendar_client
        self._calculator = calculator
        self._timezone = timezone

    def fetch_events(self, *, calendar_id: str, day: Date) -> List[BusyEvent]:
        """Fetch every event touching the given calendar day."""
        day_start = pendulum.datetime(day.year, day.month, day.day, tz=self._timezone)
        day_end = day_start.add(days=1)

        events = self._calendar_client.list_events(
            calendar_id=calendar_id,
            time_min=day_start,
            time_max=day_end,
            timezone=self._timezone,
        )
        logger.debug("Fetched %d events for %s on %s", len(events), calendar_id, day)
        return events

    def get_day_availability(
        self,
        *,
        calendar_id: str,
        day: Date,
        now: Optional[DateTime] = None,
        slot_duration_minutes: Optional[int] = None,
        slot_step_minutes: Optional[int] = None,
    ) -> DayAvailability:
        """
        Retrieve the day's events and compute free ranges and slots.
        """
        if not self._calculator.business_hours.is_open_on(day):
            return self._calculator.availability_for_day(day, [], now=now)

        events = self.fetch_events(calendar_id=calendar_id, day=day)

        return self._calculator.availability_for_day(
            day,
            events,
            now=now,
            slot_duration_minutes=slot_duration_minutes,
            slot_step_minutes=slot_step_minutes,
        )

    def book_viewing(
        self,
        *,
        calendar_id: str,
        request: ViewingRequest,
        now: Optional[DateTime] = None,
    ) -> str:
        """
        Create a viewing after re-checking that its slot is still free.

        Raises:
            SlotUnavailableError: If the slot is in the past, outside business
                hours or clashes with an existing event
        """
        slot = request.slot

        if now is not None and slot.start < now:
            raise SlotUnavailableError(f"Slot {slot} has already started")

        day = slot.start.in_timezone(self._timezone).date()
        events = self.fetch_events(calendar_id=calendar_id, day=day)

        if not self._calculator.is_slot_free(slot, events):
            raise SlotUnavailableError(f"Slot {slot} is no longer available")

        event_id = self._calendar_client.create_event(
            calendar_id=calendar_id,
            request=request,
            timezone=self._timezone,
        )
        logger.info("Booked viewing %s at %s for %s", event_id, slot, request.client_email)
        return event_id
