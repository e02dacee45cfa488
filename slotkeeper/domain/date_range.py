"""
Rolling calendar horizon of bookable dates.
"""

from typing import List

from pendulum import Date

from .holidays import HolidayCalendar
from .models import Closed, OpenHours, is_sunday
from .template import WeeklyTemplate

DEFAULT_HORIZON_DAYS = 30


class DateRangeEnumerator:
    """
    Yields the dates a client may pick, starting today.

    A date is skipped when it is a Sunday, a holiday, or a day the provider's
    template resolves to Closed or to hours that are all off. Legacy-open
    days are never skipped for template reasons.
    """

    def __init__(self, holiday_calendar: HolidayCalendar, horizon_days: int = DEFAULT_HORIZON_DAYS):
        if horizon_days < 1:
            raise ValueError(f"Horizon must be at least one day, got {horizon_days}")
        self.holiday_calendar = holiday_calendar
        self.horizon_days = horizon_days

    def enumerate(self, today: Date, template: WeeklyTemplate, horizon_days: int | None = None) -> List[Date]:
        """Bookable dates in ``today .. today + horizon - 1``."""
        horizon = self.horizon_days if horizon_days is None else horizon_days
        return [
            day
            for day in (today.add(days=offset) for offset in range(horizon))
            if self.is_bookable(day, template)
        ]

    def is_bookable(self, day: Date, template: WeeklyTemplate) -> bool:
        if is_sunday(day) or self.holiday_calendar.is_holiday(day):
            return False

        resolution = template.resolve_date(day)
        if isinstance(resolution, Closed):
            return False
        if isinstance(resolution, OpenHours) and not resolution.any_open:
            return False

        return True
