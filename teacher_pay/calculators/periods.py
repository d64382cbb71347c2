"""
Period Resolver

Normalizes billing period bounds and matches dates to academic periods or seasons.
All bounds are inclusive and day-granular.
"""

import calendar
from datetime import date
from typing import Iterable, TypeVar

from ..errors import NoPeriodForDate, NoPreviousPeriod
from ..models import AcademicPeriod, PeriodBounds, parse_day

P = TypeVar("P", bound=AcademicPeriod)


class PeriodResolver:
    """Resolves canonical period bounds."""

    def current_month_bounds(self, reference_date) -> PeriodBounds:
        """First and last calendar day of the month containing reference_date."""
        day = parse_day(reference_date)
        last_day = calendar.monthrange(day.year, day.month)[1]
        return PeriodBounds(start=day.replace(day=1), end=day.replace(day=last_day))

    def resolve_bounds(self, start=None, end=None, today: date | None = None) -> PeriodBounds:
        """
        Build bounds from optional explicit dates.

        Missing bounds default to the month containing ``today``.
        """
        month = self.current_month_bounds(today or date.today())
        bounds = PeriodBounds(
            start=parse_day(start) if start is not None else month.start,
            end=parse_day(end) if end is not None else month.end,
        )
        if bounds.start > bounds.end:
            raise ValueError(f"Period start {bounds.start} is after period end {bounds.end}")
        return bounds

    def period_containing(self, day, periods: Iterable[P]) -> P:
        """
        Return the first period whose [start, end] contains the day.

        Raises NoPeriodForDate when nothing matches; callers must not skip it.
        """
        target = parse_day(day)
        for period in periods:
            if period.start <= target <= period.end:
                return period
        raise NoPeriodForDate(target)

    def previous_period(self, current: P, periods: Iterable[P]) -> P:
        """
        The latest period ending strictly before ``current`` starts.

        Periods may have gaps between them; contiguity is not checked.
        """
        candidates = [p for p in periods if p.end < current.start and p.id != current.id]
        if not candidates:
            raise NoPreviousPeriod(current)
        return max(candidates, key=lambda p: (p.end, p.start))
