"""
Tests for weekly templates and day resolution.
"""

import json

import pendulum
import pytest

from slotkeeper.domain.exceptions import TemplateParseError
from slotkeeper.domain.models import CLOSED, LEGACY_OPEN, OpenHours
from slotkeeper.domain.template import WeeklyTemplate, normalize_day_key, resolve_day

MONDAY = pendulum.date(2026, 10, 19)
TUESDAY = pendulum.date(2026, 10, 20)
WEDNESDAY = pendulum.date(2026, 10, 21)
SUNDAY = pendulum.date(2026, 10, 25)


class TestNormalizeDayKey:
    """Tests for day name normalization."""

    @pytest.mark.parametrize("name", ["Miércoles", "miercoles", "MIERCOLES ", " Miércoles!"])
    def test_accent_case_and_punctuation_insensitive(self, name):
        assert normalize_day_key(name) == "miercoles"

    def test_none_is_empty(self):
        assert normalize_day_key(None) == ""


class TestFromRaw:
    """Tests for interpreting stored template values."""

    @pytest.mark.parametrize("raw", [None, "", "   ", {}, "{}", b""])
    def test_empty_values_are_legacy(self, raw):
        """Test that absent templates become the legacy template."""
        assert WeeklyTemplate.from_raw(raw).is_empty

    def test_json_string(self):
        """Test that templates stored as JSON text are decoded."""
        raw = json.dumps({"Lunes": [True, False]})

        template = WeeklyTemplate.from_raw(raw)

        assert template.hours_for("lunes") == (True, False)

    def test_invalid_json_raises(self):
        with pytest.raises(TemplateParseError):
            WeeklyTemplate.from_raw("{Lunes: [true")

    def test_non_mapping_raises(self):
        with pytest.raises(TemplateParseError):
            WeeklyTemplate.from_raw([True, False])

    def test_non_list_entries_ignored(self):
        """Test that day entries which are not lists are dropped."""
        template = WeeklyTemplate.from_raw({"Lunes": "all day", "Martes": [True]})

        assert template.hours_for("Lunes") is None
        assert template.hours_for("Martes") == (True,)

    def test_only_literal_true_is_open(self):
        """Test that truthy non-boolean flags do not count as open."""
        template = WeeklyTemplate.from_raw({"Lunes": [True, 1, "true", None, False]})

        assert template.hours_for("Lunes") == (True, False, False, False, False)


class TestResolveDay:
    """Tests for tri-state day resolution."""

    def test_absent_template_is_legacy_open(self):
        assert resolve_day(None, "Martes") is LEGACY_OPEN
        assert resolve_day(WeeklyTemplate.legacy(), "Sábado") is LEGACY_OPEN

    def test_absent_template_closed_on_sunday(self):
        assert resolve_day(None, "Domingo") is CLOSED
        assert resolve_day(WeeklyTemplate.legacy(), "Sunday") is CLOSED

    def test_unlisted_day_in_partial_template_is_closed(self):
        """Test that a template with only Monday closes Tuesday."""
        template = WeeklyTemplate({"Lunes": [True] * 10})

        assert resolve_day(template, "Martes") is CLOSED
        assert resolve_day(template, "Lunes") == OpenHours((True,) * 10)

    def test_resolve_date_prefers_spanish_then_english(self):
        template = WeeklyTemplate({"Monday": [False, True], "Martes": [True]})

        assert template.resolve_date(MONDAY) == OpenHours((False, True))
        assert template.resolve_date(TUESDAY) == OpenHours((True,))
        assert template.resolve_date(WEDNESDAY) is CLOSED

    def test_resolve_date_on_legacy_template(self):
        legacy = WeeklyTemplate.legacy()

        assert legacy.resolve_date(WEDNESDAY) is LEGACY_OPEN
        assert legacy.resolve_date(SUNDAY) is CLOSED

    def test_explicit_sunday_entry_is_honoured(self):
        """Test that a populated template resolves Sunday from its own flags."""
        template = WeeklyTemplate({"Domingo": [True]})

        assert template.resolve_date(SUNDAY) == OpenHours((True,))


def test_equality_ignores_key_spelling():
    assert WeeklyTemplate({"Miércoles": [True]}) == WeeklyTemplate({"miercoles": [True]})
    assert WeeklyTemplate({"Lunes": [True]}).to_dict() == {"lunes": [True]}
