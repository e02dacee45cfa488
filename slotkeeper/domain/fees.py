"""
Session pricing.
"""

from decimal import ROUND_HALF_UP, Decimal
from typing import Dict, Union

from .models import Duration, Fee

DURATION_MULTIPLIERS: Dict[Duration, Decimal] = {
    Duration.HALF_HOUR: Decimal("0.5"),
    Duration.ONE_HOUR: Decimal("1"),
    Duration.NINETY_MINUTES: Decimal("1.5"),
    Duration.TWO_HOURS: Decimal("2"),
}

DEFAULT_SERVICE_FEE_RATE = Decimal("0.10")

Number = Union[int, float, str, Decimal]


def compute_fee(
    hourly_rate: Number,
    duration_minutes: Union[int, Duration],
    service_fee_rate: Number = DEFAULT_SERVICE_FEE_RATE,
) -> Fee:
    """
    Price a session.

    The provider fee and the service fee are each rounded to whole units
    (half up) before being added, so the total can differ from rounding
    the unrounded sum.

    Example:
        40000/h for 90 minutes -> 60000 + 6000 = 66000

    Raises:
        InvalidDurationError: If the duration is not offered
        ValueError: If the hourly rate is negative
    """
    duration = Duration.parse(duration_minutes)
    rate = Decimal(str(hourly_rate))
    if rate < 0:
        raise ValueError(f"Hourly rate must not be negative, got {hourly_rate}")

    lawyer_fee = _round_half_up(rate * DURATION_MULTIPLIERS[duration])
    service_fee = _round_half_up(Decimal(lawyer_fee) * Decimal(str(service_fee_rate)))

    return Fee(lawyer_fee=lawyer_fee, service_fee=service_fee)


def _round_half_up(value: Decimal) -> int:
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))
