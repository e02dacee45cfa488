"""
Mock template and reservation source for running without a backend.
"""

import json
import logging
from pathlib import Path
from typing import Any, Dict, List

from pendulum import Date

from ..domain.exceptions import ProviderNotFoundError
from ..domain.models import BusyInterval
from ..domain.template import SPANISH_DAY_NAMES, normalize_day_key

logger = logging.getLogger(__name__)

DEFAULT_DATA_FILE = Path(__file__).parent / "mock_provider_data.json"


class MockDataSource:
    """
    Serves provider templates and reservations from a JSON fixture.

    Reservations either name a fixed ``date`` or a ``weekday`` on which they
    recur every week, so the fixture stays useful whatever today is.
    """

    def __init__(self, data_file: Path | None = None):
        """
        Initialize the mock source.

        Args:
            data_file: Optional fixture path, defaults to the bundled mock_provider_data.json
        """
        self.data_file = data_file or DEFAULT_DATA_FILE
        self._load_data()

    def _load_data(self):
        """Load mock provider data from JSON file."""
        if self.data_file.exists():
            with open(self.data_file, "r", encoding="utf-8") as f:
                data = json.load(f)
        else:
            # Fallback to empty if file doesn't exist
            data = {}

        self.providers: Dict[str, Dict[str, Any]] = data.get("providers", {})
        self.appointments: List[Dict[str, Any]] = data.get("appointments", [])

    def get_template(self, provider_id: str) -> Any:
        if provider_id not in self.providers:
            raise ProviderNotFoundError(f"Provider not found: {provider_id}")
        return self.providers[provider_id].get("availability")

    def get_busy_intervals(self, provider_id: str, day: Date) -> List[BusyInterval]:
        weekday_key = normalize_day_key(SPANISH_DAY_NAMES[day.isoweekday() - 1])
        busy: List[BusyInterval] = []

        for appointment in self.appointments:
            if appointment.get("provider_id") != provider_id:
                continue

            on_date = appointment.get("date") == day.isoformat()
            on_weekday = normalize_day_key(appointment.get("weekday")) == weekday_key
            if not (on_date or on_weekday):
                continue

            try:
                busy.append(BusyInterval.from_record(appointment))
            except ValueError as e:
                # Skip invalid fixture rows
                logger.warning("Skipping invalid mock appointment %s: %s", appointment, e)

        return busy

    def list_providers(self) -> List[Dict[str, Any]]:
        return [
            {"provider_id": provider_id, **{k: v for k, v in info.items() if k != "availability"}}
            for provider_id, info in sorted(self.providers.items())
        ]
