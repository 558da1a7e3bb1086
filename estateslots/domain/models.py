"""
Domain models for availability and viewing slot calculations.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import time, timedelta
from typing import List, Optional, Tuple, Union

import pendulum
from pendulum import Date, DateTime

from .exceptions import InvalidIntervalError


@dataclass(frozen=True)
class Interval:
    """
    Represents an immutable half-open time range ``[start, end)``.

    Invariant: start must be before end.
    """
    start: DateTime
    end: DateTime

    def __post_init__(self):
        if self.start >= self.end:
            raise InvalidIntervalError(
                f"Start time {self.start} must be before end time {self.end}"
            )

    @property
    def duration(self) -> timedelta:
        return timedelta(seconds=(self.end - self.start).total_seconds())

    def duration_minutes(self) -> int:
        """Return the duration in whole minutes."""
        return int(self.duration.total_seconds() // 60)

    def overlaps(self, other: "Interval") -> bool:
        """Check if this range overlaps with another. Touching ends do not count."""
        return self.start < other.end and other.start < self.end

    def contains(self, other: "Interval") -> bool:
        """Check if another range lies completely inside this one."""
        return self.start <= other.start and other.end <= self.end

    def clip(self, window: Union["Interval", "BusinessWindow"]) -> Optional["Interval"]:
        """
        Return the part of this range that lies inside ``window``.
        Returns None if the two are disjoint.
        """
        if isinstance(window, BusinessWindow):
            window = window.as_interval()

        if not self.overlaps(window):
            return None

        return Interval(
            start=max(self.start, window.start),
            end=min(self.end, window.end),
        )

    def __str__(self) -> str:
        return f"{self.start.format('DD.MM.YYYY HH:mm')} - {self.end.format('HH:mm')}"


@dataclass(frozen=True)
class BusyEvent:
    """
    A calendar commitment as reported by a calendar provider.

    ``summary`` and ``event_id`` are carried for logging only and never take
    part in availability calculations.
    """
    start: DateTime
    end: DateTime
    is_all_day: bool = False
    is_cancelled: bool = False
    summary: str = ""
    event_id: str = ""

    def __post_init__(self):
        if self.start >= self.end:
            raise InvalidIntervalError(
                f"Event {self.event_id or self.summary or '<unnamed>'} "
                f"starts at {self.start} but ends at {self.end}"
            )

    def as_interval(self) -> Interval:
        return Interval(start=self.start, end=self.end)


@dataclass(frozen=True)
class BusinessWindow:
    """Bounds within which availability is computed for one calendar day."""
    day_start: DateTime
    day_end: DateTime

    def __post_init__(self):
        if self.day_start >= self.day_end:
            raise InvalidIntervalError(
                f"Business window start {self.day_start} must be before end {self.day_end}"
            )

    def as_interval(self) -> Interval:
        return Interval(start=self.day_start, end=self.day_end)

    def calendar_day(self) -> Interval:
        """The full calendar day (midnight to midnight) the window opens on."""
        midnight = self.day_start.start_of("day")
        return Interval(start=midnight, end=midnight.add(days=1))


@dataclass(frozen=True)
class Slot(Interval):
    """
    A fixed-length bookable appointment carved out of a free interval.
    """

    def format_display(self) -> str:
        """
        Format the slot for display.
        Format: Weekday, DD.MM.YYYY | HH:mm - HH:mm
        """
        date_str = self.start.format("dddd, DD.MM.YYYY", locale="en")
        time_str = f"{self.start.format('HH:mm')} - {self.end.format('HH:mm')}"
        return f"{date_str} | {time_str} ({self.duration_minutes()} min)"


@dataclass(frozen=True)
class BusinessHours:
    """
    Configuration for the agency's opening hours.
    """
    open_time: time = time(9, 0)
    close_time: time = time(18, 0)
    closed_weekdays: Tuple[int, ...] = ()  # 0=Monday, 6=Sunday
    timezone: str = "Europe/Warsaw"

    def is_open_on(self, day: Date) -> bool:
        """Check if the agency takes viewings on a given date."""
        return day.weekday() not in self.closed_weekdays

    def window_for_day(self, day: Date) -> Optional[BusinessWindow]:
        """
        Get the business window for a specific day.
        Returns None if the agency is closed that day.
        """
        if not self.is_open_on(day):
            return None

        day_start = pendulum.datetime(
            day.year, day.month, day.day,
            self.open_time.hour, self.open_time.minute,
            tz=self.timezone,
        )
        day_end = pendulum.datetime(
            day.year, day.month, day.day,
            self.close_time.hour, self.close_time.minute,
            tz=self.timezone,
        )

        return BusinessWindow(day_start=day_start, day_end=day_end)


@dataclass(frozen=True)
class AvailabilityPolicy:
    """Tunable rules applied when resolving availability and cutting slots."""
    minimum_free_gap_minutes: int = 30
    slot_duration_minutes: int = 60
    slot_step_minutes: int = 30
    all_day_means_fully_busy: bool = True

    def __post_init__(self):
        if self.minimum_free_gap_minutes < 0:
            raise ValueError("minimum_free_gap_minutes must not be negative")
        if self.slot_duration_minutes <= 0:
            raise ValueError("slot_duration_minutes must be greater than zero")
        if self.slot_step_minutes <= 0:
            raise ValueError("slot_step_minutes must be greater than zero")


@dataclass
class DayAvailability:
    """
    Result of resolving one calendar day.

    ``window`` is None when the agency is closed; all lists are then empty.
    """
    day: Date
    window: Optional[BusinessWindow]
    busy: List[Interval] = field(default_factory=list)
    free: List[Interval] = field(default_factory=list)
    slots: List[Slot] = field(default_factory=list)

    @property
    def is_open(self) -> bool:
        return self.window is not None

    @property
    def has_availability(self) -> bool:
        return bool(self.free)


@dataclass(frozen=True)
class ViewingRequest:
    """A property viewing to be placed in the agent's calendar."""
    slot: Slot
    property_address: str
    client_name: str
    client_email: str
    notes: str = ""

    def summary(self) -> str:
        return f"Property viewing: {self.property_address}"

    def description(self) -> str:
        lines = [f"Client: {self.client_name}"]
        if self.notes:
            lines.append(self.notes)
        return "\n".join(lines)
