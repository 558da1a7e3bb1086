"""
Domain layer - Pure business logic without external dependencies.
"""

from .availability import resolve_availability
from .busy_time import extract_busy_intervals
from .calculator import AvailabilityCalculator
from .exceptions import (
    AuthenticationError,
    CalendarAPIError,
    EstateSlotsError,
    InvalidIntervalError,
    SlotUnavailableError,
)
from .models import (
    AvailabilityPolicy,
    BusinessHours,
    BusinessWindow,
    BusyEvent,
    DayAvailability,
    Interval,
    Slot,
    ViewingRequest,
)
from .slots import quantize_slots

__all__ = [
    "AvailabilityCalculator",
    "AvailabilityPolicy",
    "AuthenticationError",
    "BusinessHours",
    "BusinessWindow",
    "BusyEvent",
    "CalendarAPIError",
    "DayAvailability",
    "EstateSlotsError",
    "Interval",
    "InvalidIntervalError",
    "Slot",
    "SlotUnavailableError",
    "ViewingRequest",
    "extract_busy_intervals",
    "quantize_slots",
    "resolve_availability",
]
