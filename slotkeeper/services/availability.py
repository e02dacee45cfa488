"""
Application services for computing a provider's bookable slots.

The service coordinates the two external read boundaries (stored weekly
template and committed reservations) and delegates the computation to the
domain-level ``SlotCalculator`` and ``DateRangeEnumerator``. Depending on
protocols rather than concrete adapters keeps the HTTP client, the local
booking store and test stubs interchangeable.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, List, Optional, Protocol

from pendulum import Date, DateTime

from ..domain.date_range import DateRangeEnumerator
from ..domain.exceptions import BusyQueryError, TemplateParseError
from ..domain.models import BusyInterval, CandidateSlot, Duration
from ..domain.slot_calculator import SlotCalculator
from ..domain.template import WeeklyTemplate

if TYPE_CHECKING:
    from ..config import AppConfig

logger = logging.getLogger(__name__)


class TemplateSourceProtocol(Protocol):
    """Read-only access to a provider's stored weekly template."""

    def get_template(self, provider_id: str) -> Any:
        """Return the raw stored template; None when the provider never set one."""


class BusyIntervalSourceProtocol(Protocol):
    """Read-only access to committed reservations."""

    def get_busy_intervals(self, provider_id: str, day: Date) -> List[BusyInterval]:
        """Return the reservations of a provider on a date."""


@dataclass(frozen=True)
class AvailabilityResult:
    """
    Slots computed for one date.

    ``degraded`` is set when reservations could not be fetched: the slots
    then passed the template and lead-time filters only, and must not be
    treated as verified free. The booking collaborator rechecks at commit.
    """
    day: Date
    duration: Duration
    slots: List[CandidateSlot] = field(default_factory=list)
    degraded: bool = False

    @property
    def available_slots(self) -> List[CandidateSlot]:
        return [slot for slot in self.slots if slot.available]

    def find(self, time: str) -> Optional[CandidateSlot]:
        for slot in self.slots:
            if slot.time == time:
                return slot
        return None


class AvailabilityService:
    """
    Runs the per-request slot pipeline:
    template -> grid -> template filter -> conflicts -> lead time.

    Stateless: the template is fetched per call unless the caller passes one
    in, and nothing is cached on the instance.
    """

    def __init__(
        self,
        template_source: TemplateSourceProtocol,
        busy_source: BusyIntervalSourceProtocol,
        slot_calculator: SlotCalculator,
        date_enumerator: DateRangeEnumerator,
    ) -> None:
        self._template_source = template_source
        self._busy_source = busy_source
        self._slot_calculator = slot_calculator
        self._date_enumerator = date_enumerator

    @classmethod
    def from_config(
        cls,
        config: "AppConfig",
        template_source: TemplateSourceProtocol,
        busy_source: BusyIntervalSourceProtocol,
    ) -> "AvailabilityService":
        calculator = SlotCalculator(
            business_hours=config.build_business_hours(),
            lead_time_minutes=config.schedule.lead_time_minutes,
        )
        enumerator = DateRangeEnumerator(
            holiday_calendar=config.build_holiday_calendar(),
            horizon_days=config.schedule.horizon_days,
        )
        return cls(template_source, busy_source, calculator, enumerator)

    def load_template(self, provider_id: str) -> WeeklyTemplate:
        """
        Fetch and interpret a provider's template.

        A malformed template falls back to the legacy default. A missing
        provider (``ProviderNotFoundError``) propagates.
        """
        raw = self._template_source.get_template(provider_id)

        try:
            return WeeklyTemplate.from_raw(raw)
        except TemplateParseError as exc:
            logger.warning(
                "Malformed availability template for provider %s, using legacy default: %s",
                provider_id,
                exc,
            )
            return WeeklyTemplate.legacy()

    def bookable_dates(
        self,
        *,
        provider_id: str,
        today: Date,
        template: WeeklyTemplate | None = None,
        horizon_days: int | None = None,
    ) -> List[Date]:
        """Dates on the rolling horizon the provider can be booked on."""
        if template is None:
            template = self.load_template(provider_id)

        return self._date_enumerator.enumerate(today, template, horizon_days=horizon_days)

    @property
    def horizon_days(self) -> int:
        return self._date_enumerator.horizon_days

    def is_selectable(self, day: Date, today: Date, template: WeeklyTemplate) -> bool:
        """Not in the past, not a Sunday or holiday, and open in the template."""
        return day >= today and self._date_enumerator.is_bookable(day, template)

    def find_slots(
        self,
        *,
        provider_id: str,
        day: Date,
        duration_minutes: int,
        now: DateTime,
        template: WeeklyTemplate | None = None,
    ) -> AvailabilityResult:
        """
        Compute the selectable slots of a provider on one date.

        Dates that cannot be booked (past, Sunday, holiday or closed in the
        template) yield an empty result without querying reservations.

        Raises:
            InvalidDurationError: If the duration is not offered
            ProviderNotFoundError: If the provider does not exist
        """
        duration = Duration.parse(duration_minutes)
        if template is None:
            template = self.load_template(provider_id)

        if not self.is_selectable(day, now.date(), template):
            return AvailabilityResult(day=day, duration=duration)

        calculator = self._slot_calculator
        slots = calculator.generate(day, duration)
        slots = calculator.apply_template(slots, template.resolve_date(day))

        degraded = False
        if slots:
            busy_intervals = self.fetch_busy_intervals(provider_id, day)
            if busy_intervals is None:
                degraded = True
            else:
                slots = calculator.apply_busy_intervals(slots, busy_intervals, duration)

        slots = calculator.apply_lead_time(slots, day, now)

        return AvailabilityResult(day=day, duration=duration, slots=slots, degraded=degraded)

    def fetch_busy_intervals(self, provider_id: str, day: Date) -> Optional[List[BusyInterval]]:
        """
        Fetch reservations for a date, or None when the query failed.

        Failure is absorbed here so the read path stays available.
        """
        try:
            return list(self._busy_source.get_busy_intervals(provider_id, day))
        except BusyQueryError as exc:
            logger.warning(
                "Busy interval query failed for provider %s on %s, serving unverified slots: %s",
                provider_id,
                day,
                exc,
            )
            return None
