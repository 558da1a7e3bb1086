"""
Domain-specific exception hierarchy for the estateslots application.
"""


class EstateSlotsError(Exception):
    """Base class for all application-level errors."""


class InvalidIntervalError(EstateSlotsError, ValueError):
    """Raised when a time range does not start strictly before it ends."""


class CalendarAPIError(EstateSlotsError):
    """Raised when calendar data cannot be fetched or parsed."""


class AuthenticationError(EstateSlotsError):
    """Raised when authentication or token handling fails."""


class SlotUnavailableError(EstateSlotsError):
    """Raised when a requested viewing slot is no longer bookable."""
