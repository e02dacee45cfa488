"""
Weekly availability templates and tri-state day resolution.

A template maps day names to hourly flags, index 0 being the opening
hour. Resolving a day yields one of three outcomes:

- ``LegacyOpen``: the provider never stored a template, so every day but
  Sunday keeps the full grid.
- ``Closed``: a template exists but has no entry for the day.
- ``OpenHours``: the template has explicit flags for the day.
"""

import json
import unicodedata
from typing import Any, Dict, Mapping, Optional, Sequence, Tuple

from pendulum import Date

from .exceptions import TemplateParseError
from .models import CLOSED, LEGACY_OPEN, DayResolution, OpenHours

SPANISH_DAY_NAMES = ("Lunes", "Martes", "Miércoles", "Jueves", "Viernes", "Sábado", "Domingo")
ENGLISH_DAY_NAMES = ("Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday")

SUNDAY_KEYS = frozenset({"domingo", "sunday"})


def normalize_day_key(value: Optional[str]) -> str:
    """
    Normalize a day name for comparison.

    Diacritics are stripped, the name is lower-cased and anything that is
    not a letter is dropped, so "Miércoles", "miercoles " and "MIERCOLES"
    all compare equal.
    """
    decomposed = unicodedata.normalize("NFD", (value or "").lower())
    without_marks = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    return "".join(ch for ch in without_marks if "a" <= ch <= "z")


class WeeklyTemplate:
    """
    A provider's recurring weekly availability, keyed by normalized day name.

    Consumed read-only: instances are built once per request and passed
    explicitly through every step of the pipeline.
    """

    def __init__(self, days: Optional[Mapping[str, Sequence[bool]]] = None):
        self._days: Dict[str, Tuple[bool, ...]] = {}

        for name, hours in (days or {}).items():
            key = normalize_day_key(str(name))
            if not key or not isinstance(hours, (list, tuple)):
                continue
            self._days[key] = tuple(flag is True for flag in hours)

    @classmethod
    def legacy(cls) -> "WeeklyTemplate":
        """The absent template: every non-Sunday day is open."""
        return cls()

    @classmethod
    def from_raw(cls, raw: Any) -> "WeeklyTemplate":
        """
        Interpret a stored template value.

        Stored values may be a mapping, a JSON document holding a mapping,
        or empty. Day entries that are not lists are ignored.

        Raises:
            TemplateParseError: If the value is neither empty nor a mapping
        """
        if isinstance(raw, bytes):
            raw = raw.decode("utf-8", errors="replace")

        if isinstance(raw, str):
            if not raw.strip():
                return cls.legacy()
            try:
                raw = json.loads(raw)
            except ValueError as exc:
                raise TemplateParseError(f"Template is not valid JSON: {exc}") from exc

        if raw is None:
            return cls.legacy()

        if not isinstance(raw, Mapping):
            raise TemplateParseError(
                f"Template must be a mapping of day names, got {type(raw).__name__}"
            )

        return cls(raw)

    @property
    def is_empty(self) -> bool:
        return not self._days

    def hours_for(self, day_name: str) -> Optional[Tuple[bool, ...]]:
        """Stored flags for a day name, or None if the day is not listed."""
        return self._days.get(normalize_day_key(day_name))

    def resolve(self, day_name: str) -> DayResolution:
        return resolve_day(self, day_name)

    def resolve_date(self, day: Date) -> DayResolution:
        """
        Resolve a calendar date, trying the Spanish weekday name first and
        the English one second.
        """
        index = day.isoweekday() - 1
        if self.is_empty:
            return resolve_day(self, SPANISH_DAY_NAMES[index])

        for name in (SPANISH_DAY_NAMES[index], ENGLISH_DAY_NAMES[index]):
            hours = self.hours_for(name)
            if hours is not None:
                return OpenHours(hours)

        return CLOSED

    def to_dict(self) -> Dict[str, list]:
        return {key: list(hours) for key, hours in self._days.items()}

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, WeeklyTemplate):
            return NotImplemented
        return self._days == other._days

    def __repr__(self) -> str:
        return f"WeeklyTemplate({self.to_dict()!r})"


def resolve_day(template: Optional[WeeklyTemplate], day_name: str) -> DayResolution:
    """
    Resolve one day of a template into Closed, LegacyOpen or OpenHours.

    An absent or empty template is legacy-open except on Sunday. Within a
    populated template an unlisted day is closed.
    """
    if template is None or template.is_empty:
        if normalize_day_key(day_name) in SUNDAY_KEYS:
            return CLOSED
        return LEGACY_OPEN

    hours = template.hours_for(day_name)
    if hours is None:
        return CLOSED

    return OpenHours(hours)
