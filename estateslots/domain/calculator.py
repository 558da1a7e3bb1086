"""
Day-level availability calculation combining extraction, resolution and slots.
"""

import logging
from typing import Iterable, Optional

from pendulum import Date, DateTime

from .availability import resolve_availability
from .busy_time import extract_busy_intervals
from .models import AvailabilityPolicy, BusinessHours, BusyEvent, DayAvailability, Slot
from .slots import quantize_slots

logger = logging.getLogger(__name__)


class AvailabilityCalculator:
    """
    Calculates an agent's free time and bookable viewing slots for a day.

    Holds configuration only; every call is a pure function of its arguments.
    """

    def __init__(
        self,
        business_hours: BusinessHours,
        policy: Optional[AvailabilityPolicy] = None,
    ):
        self.business_hours = business_hours
        self.policy = policy or AvailabilityPolicy()

    def availability_for_day(
        self,
        day: Date,
        events: Iterable[BusyEvent],
        now: Optional[DateTime] = None,
        slot_duration_minutes: Optional[int] = None,
        slot_step_minutes: Optional[int] = None,
    ) -> DayAvailability:
        """
        Resolve free intervals and slots for one day.

        Args:
            day: The calendar day to resolve
            events: Events already on the calendar for that day
            now: Current instant; slots starting before it are hidden
            slot_duration_minutes: Override of the policy slot length
            slot_step_minutes: Override of the policy slot step

        Returns:
            DayAvailability for the day
        """
        window = self.business_hours.window_for_day(day)

        if window is None:
            logger.debug("Agency closed on %s", day)
            return DayAvailability(day=day, window=None)

        busy = extract_busy_intervals(
            events,
            window,
            all_day_means_fully_busy=self.policy.all_day_means_fully_busy,
        )
        free = resolve_availability(
            window,
            busy,
            minimum_free_gap_minutes=self.policy.minimum_free_gap_minutes,
        )
        if slot_duration_minutes is None:
            slot_duration_minutes = self.policy.slot_duration_minutes
        if slot_step_minutes is None:
            slot_step_minutes = self.policy.slot_step_minutes

        slots = quantize_slots(
            free,
            duration_minutes=slot_duration_minutes,
            step_minutes=slot_step_minutes,
            not_before=now,
        )

        logger.debug(
            "%s: %d busy, %d free, %d slots", day, len(busy), len(free), len(slots)
        )

        return DayAvailability(day=day, window=window, busy=busy, free=free, slots=slots)

    def is_slot_free(self, slot: Slot, events: Iterable[BusyEvent]) -> bool:
        """
        Check that a slot lies inside business hours and clashes with no
        active event of its day.
        """
        day = slot.start.in_timezone(self.business_hours.timezone).date()
        window = self.business_hours.window_for_day(day)

        if window is None or not window.as_interval().contains(slot):
            return False

        busy = extract_busy_intervals(
            events,
            window,
            all_day_means_fully_busy=self.policy.all_day_means_fully_busy,
        )

        return not any(slot.overlaps(interval) for interval in busy)
