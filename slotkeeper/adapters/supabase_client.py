"""
Supabase (PostgREST) client for provider templates and committed reservations.
"""

import logging
from typing import Any, Dict, List

import requests
from pendulum import Date

from ..domain.exceptions import BusyQueryError, DataSourceError, ProviderNotFoundError
from ..domain.models import BusyInterval

logger = logging.getLogger(__name__)


class SupabaseClient:
    """
    Read-only client for the two external read boundaries.

    Templates come from ``profiles.availability``; reservations come from
    ``bookings`` rows of the provider on the requested date, cancelled ones
    excluded; that is the table the booking API writes to. Every request
    carries a bounded timeout.
    """

    REST_PATH = "/rest/v1"
    INACTIVE_STATUSES = ("cancelled",)

    def __init__(self, base_url: str, api_key: str, timeout_seconds: float = 10.0):
        """
        Initialize the client.

        Args:
            base_url: Project URL, e.g. https://xyz.supabase.co
            api_key: Anon or service key sent as ``apikey`` and bearer token
            timeout_seconds: Per-request timeout
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout_seconds
        self.headers = {
            "apikey": api_key,
            "Authorization": f"Bearer {api_key}",
            "Accept": "application/json",
        }

    def get_template(self, provider_id: str) -> Any:
        """
        Fetch the raw stored availability of a provider.

        Returns:
            The ``availability`` column as stored (mapping, JSON text or None)

        Raises:
            ProviderNotFoundError: If no profile matches the id
            DataSourceError: If the API call fails
        """
        params = {"select": "availability", "user_id": f"eq.{provider_id}"}

        try:
            rows = self._get("profiles", params)
        except (requests.exceptions.RequestException, ValueError) as e:
            raise DataSourceError(f"Failed to fetch template for provider {provider_id}: {e}") from e

        if not rows:
            raise ProviderNotFoundError(f"Provider not found: {provider_id}")

        return rows[0].get("availability")

    def get_busy_intervals(self, provider_id: str, day: Date) -> List[BusyInterval]:
        """
        Fetch committed reservations of a provider on a date.

        Raises:
            BusyQueryError: If the API call fails
        """
        params = {
            "select": "scheduled_time,duration,status",
            "lawyer_id": f"eq.{provider_id}",
            "scheduled_date": f"eq.{day.isoformat()}",
            "status": f"not.in.({','.join(self.INACTIVE_STATUSES)})",
        }

        try:
            rows = self._get("bookings", params)
        except (requests.exceptions.RequestException, ValueError) as e:
            raise BusyQueryError(f"Failed to fetch reservations for provider {provider_id} on {day}: {e}") from e

        return self._parse_busy_rows(rows)

    def _get(self, table: str, params: Dict[str, str]) -> List[Dict[str, Any]]:
        response = requests.get(
            f"{self.base_url}{self.REST_PATH}/{table}",
            headers=self.headers,
            params=params,
            timeout=self.timeout,
        )
        response.raise_for_status()
        data = response.json()

        if not isinstance(data, list):
            raise ValueError(f"Unexpected response shape from {table}: {type(data).__name__}")

        return data

    def _parse_busy_rows(self, rows: List[Dict[str, Any]]) -> List[BusyInterval]:
        busy: List[BusyInterval] = []

        for row in rows:
            try:
                busy.append(BusyInterval.from_record(row))
            except ValueError as e:
                logger.warning("Skipping unparseable reservation row %s: %s", row, e)

        return busy
