"""
Core business logic for building the bookable slots of a day.

This is the heart of the application - pure domain logic without any
external dependencies (no API calls, no database, no I/O).
"""

from typing import Iterable, List, Optional, Sequence

from pendulum import Date, DateTime

from .models import (
    BusinessHours,
    BusyInterval,
    CandidateSlot,
    Closed,
    DayResolution,
    Duration,
    LegacyOpen,
    OpenHours,
    add_minutes_hhmm,
    format_hhmm,
    is_saturday,
)

DEFAULT_LEAD_TIME_MINUTES = 15


def intervals_overlap(start_a: int, end_a: int, start_b: int, end_b: int) -> bool:
    """Half-open overlap test on ``HHMM`` integers: touching ends do not clash."""
    return start_a < end_b and end_a > start_b


def window_is_free(start_hhmm: int, duration_minutes: int, busy_intervals: Iterable[BusyInterval]) -> bool:
    """Check that ``[start, start + duration)`` clashes with no busy interval."""
    end_hhmm = add_minutes_hhmm(start_hhmm, duration_minutes)
    return not any(
        intervals_overlap(start_hhmm, end_hhmm, busy.start_hhmm, busy.end_hhmm)
        for busy in busy_intervals
    )


class SlotCalculator:
    """
    Builds the candidate slots for a date and narrows them down.

    Algorithm:
    1. Generate the grid from opening to closing, stepping by the duration
    2. Keep only slots whose hour the day template marks as open
    3. Mark slots that overlap a committed reservation as unavailable
    4. Drop same-day slots starting inside the lead time

    Every step takes its inputs explicitly; nothing is cached between calls.
    """

    def __init__(
        self,
        business_hours: BusinessHours | None = None,
        lead_time_minutes: int = DEFAULT_LEAD_TIME_MINUTES,
    ):
        self.business_hours = business_hours or BusinessHours()
        self.lead_time_minutes = lead_time_minutes

    def calculate(
        self,
        day: Date,
        duration_minutes: int,
        resolution: DayResolution,
        busy_intervals: Optional[Sequence[BusyInterval]],
        now: DateTime,
    ) -> List[CandidateSlot]:
        """
        Run the whole chain for one date.

        Passing ``None`` as busy intervals skips the conflict step, which is
        how a failed reservation query degrades.
        """
        slots = self.generate(day, duration_minutes)
        slots = self.apply_template(slots, resolution)
        if busy_intervals is not None:
            slots = self.apply_busy_intervals(slots, busy_intervals, duration_minutes)
        return self.apply_lead_time(slots, day, now)

    def generate(self, day: Date, duration_minutes: int) -> List[CandidateSlot]:
        """
        Generate the raw grid of start times for a date.

        The grid runs from the opening hour up to (excluding) the closing
        hour, which is earlier on Saturdays. Sub-hour durations step by 30
        minutes, longer ones by their own length. Outside Saturday one
        extended final slot follows at the weekday closing time (two for
        sub-hour durations).

        Example for 60 minutes on a weekday:
        09:00, 10:00, ..., 17:00, 18:00
        """
        duration = Duration.parse(duration_minutes)
        opening = self.business_hours.opening_hour * 100
        closing = self.business_hours.closing_hour_for(day) * 100

        slots: List[CandidateSlot] = []
        current = opening

        while current < closing:
            slots.append(CandidateSlot(time=format_hhmm(current)))
            current = add_minutes_hhmm(current, duration.step_minutes)

        if not is_saturday(day):
            extended = [closing]
            if duration.is_sub_hour:
                extended.append(add_minutes_hhmm(closing, 30))
            slots.extend(CandidateSlot(time=format_hhmm(start)) for start in extended)

        return slots

    def apply_template(self, slots: Sequence[CandidateSlot], resolution: DayResolution) -> List[CandidateSlot]:
        """
        Restrict slots to the hours the resolved day template allows.

        A slot is kept by the hour it starts in; hours beyond the end of the
        stored flags count as closed.
        """
        if isinstance(resolution, LegacyOpen):
            return list(slots)

        if isinstance(resolution, Closed):
            return []

        if isinstance(resolution, OpenHours):
            return [
                slot for slot in slots
                if resolution.is_open_at(self.business_hours.hour_index(slot.hour))
            ]

        raise TypeError(f"Unknown day resolution: {resolution!r}")

    def apply_busy_intervals(
        self,
        slots: Sequence[CandidateSlot],
        busy_intervals: Iterable[BusyInterval],
        duration_minutes: int,
    ) -> List[CandidateSlot]:
        """
        Mark slots whose session window overlaps a reservation as unavailable.

        Times are compared as ``HHMM`` integers; session ends are computed
        with minute carry so 09:30 + 60 is 1030, never 0990.
        """
        duration = Duration.parse(duration_minutes)
        busy = list(busy_intervals)
        result: List[CandidateSlot] = []

        for slot in slots:
            if window_is_free(slot.hhmm, duration.value, busy):
                result.append(slot)
            else:
                result.append(slot.mark_unavailable())

        return result

    def apply_lead_time(self, slots: Sequence[CandidateSlot], day: Date, now: DateTime) -> List[CandidateSlot]:
        """
        Drop same-day slots that start before ``now`` plus the lead time.

        Dates other than today are returned untouched.
        """
        if day != now.date():
            return list(slots)

        cutoff = now.add(minutes=self.lead_time_minutes)

        return [
            slot for slot in slots
            if now.set(hour=slot.hour, minute=slot.minute, second=0, microsecond=0) >= cutoff
        ]
