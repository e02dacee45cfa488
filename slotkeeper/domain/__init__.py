"""
Domain layer - Pure business logic without external dependencies.
"""

from .date_range import DateRangeEnumerator
from .fees import compute_fee
from .holidays import HolidayCalendar
from .models import (
    BusinessHours,
    BusyInterval,
    CandidateSlot,
    Closed,
    DayResolution,
    Duration,
    Fee,
    LegacyOpen,
    OpenHours,
)
from .slot_calculator import SlotCalculator
from .template import WeeklyTemplate, resolve_day

__all__ = [
    "BusinessHours",
    "BusyInterval",
    "CandidateSlot",
    "Closed",
    "DateRangeEnumerator",
    "DayResolution",
    "Duration",
    "Fee",
    "HolidayCalendar",
    "LegacyOpen",
    "OpenHours",
    "SlotCalculator",
    "WeeklyTemplate",
    "compute_fee",
    "resolve_day",
]
