"""
HTTP client for the booking-creation API.
"""

from typing import Any, Dict, Optional

import pendulum
import requests
from pendulum import DateTime

from ..domain.exceptions import BookingCreationError, BookingValidationError, SlotNoLongerAvailableError
from ..domain.models import BookingConfirmation, BookingRequest


class BookingApiClient:
    """
    Submits confirmed selections to ``POST /api/bookings/create``.

    The server owns the transactional overlap check and the provisional
    hold; this client only maps its answers onto the booking error types:
    409 means the window was taken, 400/422 a rejected request, anything
    else a creation failure.
    """

    CREATE_PATH = "/api/bookings/create"

    def __init__(self, base_url: str, api_key: str = "", timeout_seconds: float = 10.0):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout_seconds
        self.headers = {"Content-Type": "application/json"}
        if api_key:
            self.headers["Authorization"] = f"Bearer {api_key}"

    @classmethod
    def from_config(cls, config) -> "BookingApiClient":
        """
        Build a client from the ``api`` config section.

        Raises:
            ValueError: If no ``api`` section is configured
        """
        if config.api is None:
            raise ValueError("No 'api' section configured for the booking service.")
        return cls(
            base_url=config.api.base_url,
            api_key=config.api.api_key,
            timeout_seconds=config.api.timeout_seconds,
        )

    def create_booking(self, request: BookingRequest) -> BookingConfirmation:
        """
        Create a booking and return the payment redirect target.

        Raises:
            SlotNoLongerAvailableError: If the server lost the window to another booking
            BookingValidationError: If the server rejected the request
            BookingCreationError: On transport errors or unexpected answers
        """
        try:
            response = requests.post(
                f"{self.base_url}{self.CREATE_PATH}",
                headers=self.headers,
                json=request.to_payload(),
                timeout=self.timeout,
            )
        except requests.exceptions.RequestException as e:
            raise BookingCreationError(f"Failed to reach booking service: {e}") from e

        data = self._json_body(response)
        message = data.get("error") or f"Booking service answered HTTP {response.status_code}"

        if response.status_code == 409:
            raise SlotNoLongerAvailableError(message)
        if response.status_code in (400, 422):
            raise BookingValidationError(message)
        if not response.ok:
            raise BookingCreationError(message)

        payment_link = data.get("payment_link")
        booking_id = data.get("booking_id")
        if not payment_link or not booking_id:
            raise BookingCreationError("Booking service did not return a payment link")

        return BookingConfirmation(
            booking_id=str(booking_id),
            payment_url=payment_link,
            expires_at=self._parse_expiry(data.get("expires_at")),
        )

    @staticmethod
    def _parse_expiry(value: Any) -> Optional[DateTime]:
        if not value:
            return None
        try:
            parsed = pendulum.parse(str(value))
        except ValueError:
            return None
        return parsed if isinstance(parsed, DateTime) else None

    @staticmethod
    def _json_body(response: requests.Response) -> Dict[str, Any]:
        try:
            data = response.json()
        except ValueError:
            return {}
        return data if isinstance(data, dict) else {}
