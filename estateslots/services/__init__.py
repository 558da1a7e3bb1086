"""
Service layer helpers that orchestrate adapters and domain logic.
"""

from .availability_service import AgentAvailabilityService, CalendarClientProtocol

__all__ = ["AgentAvailabilityService", "CalendarClientProtocol"]
