"""
Adapters layer - External integrations (Google Calendar, Microsoft Graph).
"""

from .google_authenticator import GoogleAuthenticator
from .google_calendar_client import GoogleCalendarClient
from .graph_authenticator import GraphAuthenticator
from .graph_client import GraphCalendarClient
from .mock_calendar_client import MockCalendarClient

__all__ = [
    "GoogleAuthenticator",
    "GoogleCalendarClient",
    "GraphAuthenticator",
    "GraphCalendarClient",
    "MockCalendarClient",
]
