"""
Booking orchestration, from slot selection to the payment redirect.

The orchestrator only ever offers what ``AvailabilityService`` computed;
it never decides on its own that a window is free. The final overlap check
belongs to the booking collaborator, which must commit the reservation
atomically and answer ``SlotNoLongerAvailableError`` when it loses a race.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import List, Optional, Protocol

from pendulum import Date, DateTime

from ..domain.exceptions import (
    BookingError,
    BookingStateError,
    BookingValidationError,
    SlotNoLongerAvailableError,
)
from ..domain.fees import DEFAULT_SERVICE_FEE_RATE, Number, compute_fee
from ..domain.models import BookingConfirmation, BookingRequest, Duration, Fee, Requester
from .availability import AvailabilityResult, AvailabilityService

logger = logging.getLogger(__name__)


class BookingState(str, Enum):
    SELECTING = "selecting"
    CONFIRMING = "confirming"
    REDIRECTED = "redirected"
    PAID = "paid"
    EXPIRED = "expired"
    CANCELLED = "cancelled"


TERMINAL_STATES = frozenset({BookingState.PAID, BookingState.EXPIRED, BookingState.CANCELLED})


class BookingClientProtocol(Protocol):
    """Booking-creation collaborator."""

    def create_booking(self, request: BookingRequest) -> BookingConfirmation:
        """
        Commit a reservation and return where the client pays.

        Raises:
            SlotNoLongerAvailableError: If the window was taken meanwhile
            BookingValidationError: If the request is rejected as malformed
            BookingCreationError: For any other failure
        """


class BookingOrchestrator:
    """
    State machine for one client booking one provider.

    States: Selecting -> Confirming -> Redirected -> Paid | Expired | Cancelled.
    A failed confirmation drops back to Selecting with the error kept in
    ``last_error`` and re-raised to the caller.
    """

    def __init__(
        self,
        availability: AvailabilityService,
        booking_client: BookingClientProtocol,
        *,
        provider_id: str,
        hourly_rate: Number,
        requester: Requester,
        duration_minutes: int = 60,
        service_fee_rate: Number = DEFAULT_SERVICE_FEE_RATE,
    ) -> None:
        self._availability = availability
        self._booking_client = booking_client
        self.provider_id = provider_id
        self.hourly_rate = hourly_rate
        self.requester = requester
        self.service_fee_rate = service_fee_rate
        self.duration = Duration.parse(duration_minutes)

        self._state = BookingState.SELECTING
        self.selected_date: Optional[Date] = None
        self.selected_time: Optional[str] = None
        self.last_result: Optional[AvailabilityResult] = None
        self.confirmation: Optional[BookingConfirmation] = None
        self.last_error: Optional[BookingError] = None

    @property
    def state(self) -> BookingState:
        return self._state

    @property
    def fee(self) -> Fee:
        return compute_fee(self.hourly_rate, self.duration, self.service_fee_rate)

    @property
    def slots_verified(self) -> bool:
        """False until slots were computed with a successful reservation query."""
        return self.last_result is not None and not self.last_result.degraded

    def available_dates(self, today: Date) -> List[Date]:
        return self._availability.bookable_dates(provider_id=self.provider_id, today=today)

    def select_duration(self, duration_minutes: int, now: DateTime) -> Optional[AvailabilityResult]:
        """Change the session length, recomputing slots for the selected date."""
        self._require(BookingState.SELECTING)
        self.duration = Duration.parse(duration_minutes)
        self.selected_time = None

        if self.selected_date is None:
            self.last_result = None
            return None

        return self.select_date(self.selected_date, now)

    def select_date(self, day: Date, now: DateTime) -> AvailabilityResult:
        """
        Pick a date; any previously chosen time is discarded.

        Raises:
            BookingValidationError: If the date is past, beyond the horizon,
                a Sunday, a holiday or closed for the provider
        """
        self._require(BookingState.SELECTING)
        template = self._availability.load_template(self.provider_id)
        today = now.date()
        last_day = today.add(days=self._availability.horizon_days - 1)

        if day > last_day or not self._availability.is_selectable(day, today, template):
            raise BookingValidationError(f"{day} cannot be booked with provider {self.provider_id}")

        self.selected_date = day
        self.selected_time = None
        self.last_result = self._availability.find_slots(
            provider_id=self.provider_id,
            day=day,
            duration_minutes=self.duration,
            now=now,
            template=template,
        )
        return self.last_result

    def select_time(self, time: str) -> None:
        """
        Pick a start time from the last computed slot list.

        Raises:
            BookingStateError: If no date has been selected yet
            BookingValidationError: If the time is not offered that day
            SlotNoLongerAvailableError: If the slot is marked unavailable
        """
        self._require(BookingState.SELECTING)
        if self.last_result is None:
            raise BookingStateError("Select a date before choosing a time")

        slot = self.last_result.find(time)
        if slot is None:
            raise BookingValidationError(f"{time} is not offered on {self.last_result.day}")
        if not slot.available:
            raise SlotNoLongerAvailableError(f"{time} on {self.last_result.day} is already taken")

        self.selected_time = time

    def confirm(self) -> BookingConfirmation:
        """
        Submit the selection to the booking collaborator.

        Raises:
            BookingStateError: If date and time are not both selected
            BookingError: Whatever the collaborator raised, after the
                orchestrator returned to Selecting
        """
        self._require(BookingState.SELECTING)
        if self.selected_date is None or self.selected_time is None:
            raise BookingStateError("Select a date and a time before confirming")

        request = BookingRequest(
            provider_id=self.provider_id,
            requester=self.requester,
            date=self.selected_date,
            time=self.selected_time,
            duration=self.duration,
            total=self.fee.total,
        )

        self._state = BookingState.CONFIRMING
        try:
            confirmation = self._booking_client.create_booking(request)
        except BookingError as exc:
            logger.warning(
                "Booking for provider %s at %s %s failed: %s",
                self.provider_id,
                request.date,
                request.time,
                exc,
            )
            self._state = BookingState.SELECTING
            self.selected_time = None
            self.confirmation = None
            self.last_error = exc
            raise

        self._state = BookingState.REDIRECTED
        self.confirmation = confirmation
        self.last_error = None
        return confirmation

    def mark_paid(self) -> None:
        self._finish(BookingState.PAID)

    def mark_expired(self) -> None:
        self._finish(BookingState.EXPIRED)

    def cancel(self) -> None:
        self._finish(BookingState.CANCELLED)

    def _finish(self, target: BookingState) -> None:
        self._require(BookingState.REDIRECTED)
        self._state = target

    def _require(self, expected: BookingState) -> None:
        if self._state != expected:
            raise BookingStateError(
                f"Operation requires state {expected.value}, current state is {self._state.value}"
            )
