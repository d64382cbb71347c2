"""
Rate Resolver

Prices a single completed class through an ordered chain of rate tiers.
The first tier that produces an amount wins. Amounts are left unrounded;
rounding happens once, at reporting time.
"""

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal

from ..models import ClassRecord, RateTable

MINUTES_PER_HOUR = Decimal("60")


def quantize_money(value: Decimal) -> Decimal:
    """Round to 2 decimal places using ROUND_HALF_UP."""
    return value.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


def quantize_hours(value: Decimal) -> Decimal:
    """Round hours to one decimal place."""
    return value.quantize(Decimal("0.1"), rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class RateResolution:
    amount: Decimal
    source: str


class OverrideTier:
    """Teacher + course override: flat per-class amount, duration ignored."""

    name = "override"

    def resolve(self, record: ClassRecord, duration_minutes: int, rates: RateTable) -> Decimal | None:
        return rates.override_for(record.teacher_id, record.course_id)


class CourseDefaultTier:
    """Course default per-class payment: flat, duration ignored."""

    name = "course_default"

    def resolve(self, record: ClassRecord, duration_minutes: int, rates: RateTable) -> Decimal | None:
        course = rates.courses.get(record.course_id)
        if course is None:
            return None
        return course.default_payment_per_class


class RankFormulaTier:
    """Hourly formula scaled by the teacher's rank multiplier (1.0 without a rank)."""

    name = "rank_formula"

    def __init__(self, base_hourly_rate: Decimal):
        self.base_hourly_rate = base_hourly_rate

    def resolve(self, record: ClassRecord, duration_minutes: int, rates: RateTable) -> Decimal:
        hours = Decimal(duration_minutes) / MINUTES_PER_HOUR
        return hours * self.base_hourly_rate * rates.multiplier_for(record.teacher_id)


class RateResolver:
    """Resolves the per-class payment for a completed class."""

    BASE_HOURLY_RATE = Decimal("10")

    def __init__(self):
        # Order is precedence
        self.tiers = [
            OverrideTier(),
            CourseDefaultTier(),
            RankFormulaTier(self.BASE_HOURLY_RATE),
        ]

    def resolve(self, record: ClassRecord, duration_minutes: int, rates: RateTable) -> RateResolution:
        for tier in self.tiers:
            amount = tier.resolve(record, duration_minutes, rates)
            if amount is not None:
                return RateResolution(amount=amount, source=tier.name)
        # Unreachable while RankFormulaTier closes the chain
        raise ValueError(f"No rate tier matched class {record.id}")

    def effective_duration(self, record: ClassRecord, rates: RateTable) -> tuple[int, str]:
        """
        Duration used for pricing and hour totals.

        Realized call duration when the call log has one, else the course's
        nominal class duration.
        """
        if record.call_duration_minutes:
            return record.call_duration_minutes, "call_log"
        course = rates.courses.get(record.course_id)
        return (course.class_duration_minutes if course else 0), "course"
