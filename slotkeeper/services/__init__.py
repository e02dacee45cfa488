"""
Service layer helpers that orchestrate adapters and domain logic.
"""

from .availability import (
    AvailabilityResult,
    AvailabilityService,
    BusyIntervalSourceProtocol,
    TemplateSourceProtocol,
)
from .booking import BookingClientProtocol, BookingOrchestrator, BookingState

__all__ = [
    "AvailabilityResult",
    "AvailabilityService",
    "BookingClientProtocol",
    "BookingOrchestrator",
    "BookingState",
    "BusyIntervalSourceProtocol",
    "TemplateSourceProtocol",
]
