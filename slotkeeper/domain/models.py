"""
Domain models for slot generation, reservations and bookings.
"""

from dataclasses import dataclass, replace
from enum import IntEnum
from typing import Any, Dict, Mapping, Optional, Tuple, Union

from pendulum import Date, DateTime

from .exceptions import InvalidDurationError


def parse_hhmm(value: str) -> int:
    """
    Parse ``HH:MM`` or ``HH:MM:SS`` into a 4-digit ``HHMM`` integer.

    Seconds are accepted and ignored.
    """
    parts = str(value).strip().split(":")
    if len(parts) not in (2, 3) or not all(part.isdigit() for part in parts):
        raise ValueError(f"Invalid time {value!r}, expected HH:MM")

    hour, minute = int(parts[0]), int(parts[1])
    if not 0 <= hour <= 23 or not 0 <= minute <= 59:
        raise ValueError(f"Invalid time {value!r}, out of range")

    return hour * 100 + minute


def add_minutes_hhmm(hhmm: int, minutes: int) -> int:
    """
    Add minutes to an ``HHMM`` integer, carrying at 60 rather than 100.

    The result is not wrapped at midnight, so it stays comparable to
    other values from the same day.
    """
    hour, minute = divmod(hhmm, 100)
    minute += minutes
    hour += minute // 60
    minute %= 60
    return hour * 100 + minute


def format_hhmm(hhmm: int) -> str:
    """Format an ``HHMM`` integer as ``HH:MM``."""
    hour, minute = divmod(hhmm, 100)
    return f"{hour:02d}:{minute:02d}"


def is_saturday(day: Date) -> bool:
    return day.isoweekday() == 6


def is_sunday(day: Date) -> bool:
    return day.isoweekday() == 7


class Duration(IntEnum):
    """Offered session lengths in minutes."""

    HALF_HOUR = 30
    ONE_HOUR = 60
    NINETY_MINUTES = 90
    TWO_HOURS = 120

    @classmethod
    def parse(cls, value: Any) -> "Duration":
        """
        Validate a requested duration at the input boundary.

        Raises:
            InvalidDurationError: If the value is not 30, 60, 90 or 120
        """
        allowed = [member.value for member in cls]
        if isinstance(value, bool) or (isinstance(value, float) and not value.is_integer()):
            raise InvalidDurationError(f"Duration must be one of {allowed} minutes, got {value!r}")
        try:
            return cls(int(value))
        except (TypeError, ValueError) as exc:
            raise InvalidDurationError(
                f"Duration must be one of {allowed} minutes, got {value!r}"
            ) from exc

    @property
    def step_minutes(self) -> int:
        """Grid step: the duration itself from one hour up, otherwise half-hours."""
        return self.value if self.value >= 60 else 30

    @property
    def is_sub_hour(self) -> bool:
        return self.value < 60


@dataclass(frozen=True)
class BusinessHours:
    """
    Opening bounds of a bookable day.

    Invariant: opening_hour is before both closing hours. Template hour
    indexes are counted from opening_hour.
    """
    opening_hour: int = 9
    closing_hour: int = 18
    saturday_closing_hour: int = 14

    def __post_init__(self):
        if not self.opening_hour < min(self.closing_hour, self.saturday_closing_hour):
            raise ValueError(
                f"Opening hour {self.opening_hour} must be before closing hours "
                f"{self.closing_hour}/{self.saturday_closing_hour}"
            )

    def closing_hour_for(self, day: Date) -> int:
        """Return the closing hour of the main grid for a given date."""
        if is_saturday(day):
            return self.saturday_closing_hour
        return self.closing_hour

    def hour_index(self, hour: int) -> int:
        """Position of an hour within a day template."""
        return hour - self.opening_hour


@dataclass(frozen=True)
class CandidateSlot:
    """
    A bookable start time offered for selection.

    Ephemeral: recomputed per query, never persisted.
    """
    time: str
    available: bool = True

    @property
    def hhmm(self) -> int:
        return parse_hhmm(self.time)

    @property
    def hour(self) -> int:
        return self.hhmm // 100

    @property
    def minute(self) -> int:
        return self.hhmm % 100

    def mark_unavailable(self) -> "CandidateSlot":
        return replace(self, available=False)


@dataclass(frozen=True)
class BusyInterval:
    """
    A committed reservation occupying part of a provider's day.

    ``start_time`` is civil wall-clock time as ``HH:MM`` or ``HH:MM:SS``.
    """
    start_time: str
    duration_minutes: int

    def __post_init__(self):
        parse_hhmm(self.start_time)
        if self.duration_minutes <= 0:
            raise ValueError(f"Busy interval duration must be positive, got {self.duration_minutes}")

    @property
    def start_hhmm(self) -> int:
        return parse_hhmm(self.start_time)

    @property
    def end_hhmm(self) -> int:
        return add_minutes_hhmm(self.start_hhmm, self.duration_minutes)

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> "BusyInterval":
        """
        Build a busy interval from a storage row.

        Accepts the column names used by the reservation tables
        (``scheduled_time``/``duration``, ``time``/``duration``) as well as
        ``start_time``/``duration_minutes``.

        Raises:
            ValueError: If the row lacks a start time or a usable duration
        """
        start = _first_present(record, ("start_time", "startTime", "scheduled_time", "time"))
        duration = _first_present(record, ("duration_minutes", "durationMinutes", "duration"))
        if start is None or duration is None:
            raise ValueError(f"Busy record is missing start time or duration: {dict(record)}")

        try:
            minutes = int(duration)
        except (TypeError, ValueError) as exc:
            raise ValueError(f"Busy record has invalid duration {duration!r}") from exc

        return cls(start_time=str(start), duration_minutes=minutes)


def _first_present(record: Mapping[str, Any], keys: Tuple[str, ...]) -> Any:
    for key in keys:
        value = record.get(key)
        if value is not None:
            return value
    return None


@dataclass(frozen=True)
class Closed:
    """The provider offers no hours on this day."""


@dataclass(frozen=True)
class LegacyOpen:
    """The provider never stored a template; every grid slot stays open."""


@dataclass(frozen=True)
class OpenHours:
    """Explicit hourly flags for a day, index 0 being the opening hour."""
    hours: Tuple[bool, ...]

    def is_open_at(self, index: int) -> bool:
        return 0 <= index < len(self.hours) and self.hours[index]

    @property
    def any_open(self) -> bool:
        return any(self.hours)


DayResolution = Union[Closed, LegacyOpen, OpenHours]

CLOSED = Closed()
LEGACY_OPEN = LegacyOpen()


@dataclass(frozen=True)
class Fee:
    """Price breakdown for one session. Derived, never stored on its own."""
    lawyer_fee: int
    service_fee: int

    @property
    def total(self) -> int:
        return self.lawyer_fee + self.service_fee


@dataclass(frozen=True)
class Requester:
    """Identity of the client asking for a booking."""
    name: str
    email: str


@dataclass(frozen=True)
class BookingRequest:
    """Payload submitted to the booking-creation collaborator."""
    provider_id: str
    requester: Requester
    date: Date
    time: str
    duration: Duration
    total: int

    def to_payload(self) -> Dict[str, Any]:
        """Serialize with the field names the booking API expects."""
        return {
            "lawyer_id": self.provider_id,
            "user_email": self.requester.email,
            "user_name": self.requester.name,
            "scheduled_date": self.date.isoformat(),
            "scheduled_time": self.time,
            "duration": int(self.duration),
            "price": self.total,
        }


@dataclass(frozen=True)
class BookingConfirmation:
    """Successful booking creation: where to send the client to pay."""
    booking_id: str
    payment_url: str
    expires_at: Optional[DateTime] = None
