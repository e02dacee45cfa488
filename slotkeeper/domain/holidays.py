"""
Holiday calendar for the operating jurisdiction (Chile).
"""

from datetime import date
from typing import Iterable, List

CHILEAN_HOLIDAYS: List[str] = [
    # 2025
    "2025-01-01",  # Año Nuevo
    "2025-04-18",  # Viernes Santo
    "2025-04-19",  # Sábado Santo
    "2025-05-01",  # Día del Trabajo
    "2025-05-21",  # Día de las Glorias Navales
    "2025-06-20",  # Día Nacional de los Pueblos Indígenas
    "2025-06-29",  # San Pedro y San Pablo
    "2025-07-16",  # Día de la Virgen del Carmen
    "2025-08-15",  # Asunción de la Virgen
    "2025-09-18",  # Independencia Nacional
    "2025-09-19",  # Día de las Glorias del Ejército
    "2025-10-12",  # Encuentro de Dos Mundos
    "2025-10-31",  # Día de las Iglesias Evangélicas y Protestantes
    "2025-11-01",  # Día de Todos los Santos
    "2025-11-16",  # Elecciones Presidenciales y Parlamentarias
    "2025-12-08",  # Inmaculada Concepción
    "2025-12-14",  # Segunda Vuelta Presidencial
    "2025-12-25",  # Navidad
    # 2026
    "2026-01-01",  # Año Nuevo
    "2026-04-03",  # Viernes Santo
    "2026-04-04",  # Sábado Santo
    "2026-05-01",  # Día del Trabajo
    "2026-05-21",  # Día de las Glorias Navales
    "2026-06-21",  # Día Nacional de los Pueblos Indígenas
    "2026-06-29",  # San Pedro y San Pablo
    "2026-07-16",  # Día de la Virgen del Carmen
    "2026-08-15",  # Asunción de la Virgen
    "2026-09-18",  # Independencia Nacional
    "2026-09-19",  # Día de las Glorias del Ejército
    "2026-10-12",  # Encuentro de Dos Mundos
    "2026-10-31",  # Día de las Iglesias Evangélicas y Protestantes
    "2026-11-01",  # Día de Todos los Santos
    "2026-12-08",  # Inmaculada Concepción
    "2026-12-25",  # Navidad
]


class HolidayCalendar:
    """
    Pure predicate over a static, annually updated list of holidays.
    """

    def __init__(self, holidays: Iterable[date] = ()):
        self._holidays = frozenset(_as_plain_date(day) for day in holidays)

    @classmethod
    def chile(cls, extra: Iterable[date] = ()) -> "HolidayCalendar":
        """Built-in Chilean calendar, optionally extended with extra dates."""
        builtin = [date.fromisoformat(value) for value in CHILEAN_HOLIDAYS]
        return cls([*builtin, *extra])

    def is_holiday(self, day: date) -> bool:
        return _as_plain_date(day) in self._holidays

    def holidays_between(self, start: date, end: date) -> List[date]:
        """Holidays within ``[start, end]``, sorted."""
        first, last = _as_plain_date(start), _as_plain_date(end)
        return sorted(day for day in self._holidays if first <= day <= last)

    def __len__(self) -> int:
        return len(self._holidays)


def _as_plain_date(value: date) -> date:
    # pendulum Date/DateTime and datetime all reduce to the civil date
    return date(value.year, value.month, value.day)
