"""
Tests for the slot calculator core business logic.
"""

import random

import pendulum
import pytest

from slotkeeper.domain.models import CLOSED, LEGACY_OPEN, BusyInterval, CandidateSlot, OpenHours
from slotkeeper.domain.slot_calculator import SlotCalculator, intervals_overlap, window_is_free

TZ = "America/Santiago"
MONDAY = pendulum.date(2030, 1, 7)
SATURDAY = pendulum.date(2030, 1, 12)


def _times(slots):
    return [slot.time for slot in slots]


class TestGenerate:
    """Tests for raw grid generation."""

    def test_weekday_one_hour(self):
        """Test hourly grid with the extended closing slot."""
        slots = SlotCalculator().generate(MONDAY, 60)

        assert _times(slots) == [
            "09:00", "10:00", "11:00", "12:00", "13:00",
            "14:00", "15:00", "16:00", "17:00", "18:00",
        ]
        assert all(slot.available for slot in slots)

    def test_weekday_half_hour(self):
        """Test half-hour grid with two extended slots."""
        times = _times(SlotCalculator().generate(MONDAY, 30))

        assert times[0] == "09:00"
        assert times[1] == "09:30"
        assert times[-4:] == ["17:00", "17:30", "18:00", "18:30"]
        assert len(times) == 20

    def test_weekday_ninety_minutes(self):
        """Test that long sessions step by their own length."""
        times = _times(SlotCalculator().generate(MONDAY, 90))

        assert times == ["09:00", "10:30", "12:00", "13:30", "15:00", "16:30", "18:00"]

    def test_weekday_two_hours(self):
        times = _times(SlotCalculator().generate(MONDAY, 120))

        assert times == ["09:00", "11:00", "13:00", "15:00", "17:00", "18:00"]

    def test_saturday_closes_early_without_extension(self):
        """Test Saturday grid ends before 14:00 with no extended slot."""
        assert _times(SlotCalculator().generate(SATURDAY, 60)) == [
            "09:00", "10:00", "11:00", "12:00", "13:00",
        ]
        assert _times(SlotCalculator().generate(SATURDAY, 30))[-1] == "13:30"

    def test_invalid_duration(self):
        with pytest.raises(ValueError):
            SlotCalculator().generate(MONDAY, 45)


class TestApplyTemplate:
    """Tests for template filtering."""

    def test_legacy_keeps_everything(self):
        calculator = SlotCalculator()
        slots = calculator.generate(MONDAY, 60)

        assert calculator.apply_template(slots, LEGACY_OPEN) == slots

    def test_closed_drops_everything(self):
        calculator = SlotCalculator()

        assert calculator.apply_template(calculator.generate(MONDAY, 60), CLOSED) == []

    def test_open_hours_filter_by_start_hour(self):
        """Test that slots are kept by the hour they start in."""
        calculator = SlotCalculator()
        hours = OpenHours((True, True, True, False, False, True, True, True, False, False))

        kept = calculator.apply_template(calculator.generate(MONDAY, 60), hours)

        assert _times(kept) == ["09:00", "10:00", "11:00", "14:00", "15:00", "16:00"]

    def test_half_hour_slots_follow_their_hour(self):
        calculator = SlotCalculator()
        hours = OpenHours((False, True))

        kept = calculator.apply_template(calculator.generate(MONDAY, 30), hours)

        assert _times(kept) == ["10:00", "10:30"]

    def test_extended_slot_needs_last_flag(self):
        """Test that the 18:00 slot maps to template index 9."""
        calculator = SlotCalculator()

        kept = calculator.apply_template(calculator.generate(MONDAY, 30), OpenHours((True,) * 10))

        assert _times(kept)[-2:] == ["18:00", "18:30"]

    def test_short_template_closes_missing_hours(self):
        calculator = SlotCalculator()

        kept = calculator.apply_template(calculator.generate(MONDAY, 60), OpenHours((True, True)))

        assert _times(kept) == ["09:00", "10:00"]

    def test_unknown_resolution(self):
        with pytest.raises(TypeError):
            SlotCalculator().apply_template([], "open")


class TestApplyBusyIntervals:
    """Tests for conflict marking."""

    def test_touching_intervals_do_not_clash(self):
        """Test the half-open rule: a session ending at 10:00 fits before a 10:00 booking."""
        calculator = SlotCalculator()
        busy = [BusyInterval(start_time="10:00", duration_minutes=60)]

        result = calculator.apply_busy_intervals(calculator.generate(MONDAY, 60), busy, 60)
        status = {slot.time: slot.available for slot in result}

        assert status["09:00"] is True
        assert status["10:00"] is False
        assert status["11:00"] is True

    def test_minute_carry_in_session_end(self):
        """Test that 09:30 + 60 reaches 10:30 and clashes with a 10:15 booking."""
        calculator = SlotCalculator()
        busy = [BusyInterval(start_time="10:15:00", duration_minutes=30)]

        result = calculator.apply_busy_intervals([CandidateSlot("09:30")], busy, 60)

        assert result[0].available is False

    def test_slots_are_marked_not_removed(self):
        calculator = SlotCalculator()
        slots = calculator.generate(MONDAY, 90)
        busy = [BusyInterval(start_time="12:00", duration_minutes=120)]

        result = calculator.apply_busy_intervals(slots, busy, 90)

        assert _times(result) == _times(slots)
        assert [slot.time for slot in result if not slot.available] == ["12:00", "13:30"]

    def test_no_overlap_matches_brute_force(self):
        """Test overlap marking against a minute-by-minute occupancy check."""
        rng = random.Random(20301)
        calculator = SlotCalculator()

        for _ in range(200):
            duration = rng.choice([30, 60, 90, 120])
            busy = [
                BusyInterval(
                    start_time=f"{rng.randint(8, 19):02d}:{rng.choice([0, 15, 30, 45]):02d}",
                    duration_minutes=rng.choice([15, 30, 45, 60, 90, 120]),
                )
                for _ in range(rng.randint(0, 4))
            ]
            occupied = set()
            for interval in busy:
                start = interval.start_hhmm // 100 * 60 + interval.start_hhmm % 100
                occupied.update(range(start, start + interval.duration_minutes))

            result = calculator.apply_busy_intervals(calculator.generate(MONDAY, duration), busy, duration)

            for slot in result:
                start = slot.hour * 60 + slot.minute
                clashes = any(minute in occupied for minute in range(start, start + duration))
                assert slot.available is not clashes, (slot, duration, busy)


class TestApplyLeadTime:
    """Tests for the same-day lead time."""

    def test_other_days_untouched(self):
        calculator = SlotCalculator()
        slots = calculator.generate(MONDAY, 60)
        now = pendulum.datetime(2030, 1, 6, 23, 59, tz=TZ)

        assert calculator.apply_lead_time(slots, MONDAY, now) == slots

    @pytest.mark.parametrize(
        "now_minute, kept",
        [
            (44, True),   # 11:00 is 16 minutes away
            (45, True),   # exactly the lead time
            (46, False),  # 14 minutes away
        ],
    )
    def test_boundary(self, now_minute, kept):
        calculator = SlotCalculator()
        now = pendulum.datetime(2030, 1, 7, 10, now_minute, tz=TZ)

        result = calculator.apply_lead_time([CandidateSlot("11:00")], MONDAY, now)

        assert (len(result) == 1) is kept

    def test_past_slots_dropped(self):
        calculator = SlotCalculator()
        now = pendulum.datetime(2030, 1, 7, 12, 10, tz=TZ)

        result = calculator.apply_lead_time(calculator.generate(MONDAY, 60), MONDAY, now)

        assert _times(result)[0] == "13:00"

    def test_custom_lead_time(self):
        calculator = SlotCalculator(lead_time_minutes=0)
        now = pendulum.datetime(2030, 1, 7, 11, 0, tz=TZ)

        assert _times(calculator.apply_lead_time([CandidateSlot("11:00")], MONDAY, now)) == ["11:00"]


class TestCalculate:
    """Tests for the full chain."""

    def test_none_busy_skips_conflicts(self):
        calculator = SlotCalculator()
        now = pendulum.datetime(2030, 1, 1, 9, 0, tz=TZ)

        slots = calculator.calculate(MONDAY, 60, LEGACY_OPEN, None, now)

        assert len(slots) == 10
        assert all(slot.available for slot in slots)

    def test_chain_order(self):
        calculator = SlotCalculator()
        now = pendulum.datetime(2030, 1, 7, 9, 50, tz=TZ)
        busy = [BusyInterval(start_time="11:00", duration_minutes=60)]

        slots = calculator.calculate(MONDAY, 60, OpenHours((True, True, True)), busy, now)

        assert [(slot.time, slot.available) for slot in slots] == [("11:00", False)]


def test_intervals_overlap_is_half_open():
    assert intervals_overlap(900, 1000, 930, 1030)
    assert not intervals_overlap(900, 1000, 1000, 1100)
    assert not intervals_overlap(1100, 1200, 1000, 1100)


def test_window_is_free():
    busy = [BusyInterval(start_time="12:00", duration_minutes=30)]

    assert window_is_free(1130, 30, busy)
    assert not window_is_free(1130, 60, busy)
    assert window_is_free(1130, 60, [])
