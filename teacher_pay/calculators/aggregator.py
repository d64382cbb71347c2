"""
Payment Aggregator

Folds payable classes into per-teacher totals and a platform-wide summary.
Both computations are pure reads over the records they are given.
"""

from decimal import Decimal
from typing import Iterable

from ..models import (
    ClassRecord,
    ClassStatus,
    PeriodBounds,
    PeriodSummary,
    PricedClass,
    RateTable,
    TeacherPaymentTotal,
)
from .payability import PayabilityFilter
from .rates import RateResolver, quantize_hours, quantize_money


class PaymentAggregator:
    """Computes teacher payment totals for a period."""

    def __init__(self, rate_resolver: RateResolver | None = None, payability: PayabilityFilter | None = None):
        self.rate_resolver = rate_resolver or RateResolver()
        self.payability = payability or PayabilityFilter()

    def price_classes(
        self, records: Iterable[ClassRecord], bounds: PeriodBounds, rates: RateTable
    ) -> list[PricedClass]:
        """
        Price every payable completed class within the bounds.

        Steps:
        1. Keep COMPLETED classes whose day falls in the bounds
        2. Drop classes failing the payability filter
        3. Resolve duration and rate for the rest
        """
        priced = []
        for record in records:
            if record.status != ClassStatus.COMPLETED or not bounds.contains(record.day):
                continue
            if not self.payability.is_payable(record):
                continue

            duration, duration_source = self.rate_resolver.effective_duration(record, rates)
            resolution = self.rate_resolver.resolve(record, duration, rates)
            course = rates.courses.get(record.course_id)

            priced.append(PricedClass(
                record=record,
                course_title=course.title if course else record.course_id,
                duration_minutes=duration,
                duration_source=duration_source,
                amount=resolution.amount,
                rate_source=resolution.source,
            ))
        return priced

    def compute_teacher_payments(
        self, records: Iterable[ClassRecord], bounds: PeriodBounds, rates: RateTable
    ) -> list[TeacherPaymentTotal]:
        """Per-teacher totals, sorted by total amount descending."""
        totals: dict[str, TeacherPaymentTotal] = {}
        # Unrounded accumulators, rounded once per teacher below
        hours: dict[str, Decimal] = {}
        amounts: dict[str, Decimal] = {}

        for priced in self.price_classes(records, bounds, rates):
            teacher_id = priced.record.teacher_id
            if teacher_id not in totals:
                totals[teacher_id] = self._new_total(teacher_id, bounds, rates)
                hours[teacher_id] = Decimal("0")
                amounts[teacher_id] = Decimal("0")

            total = totals[teacher_id]
            total.total_classes += 1
            total.classes.append(priced)
            hours[teacher_id] += priced.hours
            amounts[teacher_id] += priced.amount

        for teacher_id, total in totals.items():
            total.total_hours = quantize_hours(hours[teacher_id])
            total.total_amount = quantize_money(amounts[teacher_id])
            total.average_per_class = (
                quantize_money(amounts[teacher_id] / total.total_classes)
                if total.total_classes > 0 else Decimal("0.00")
            )
            total.classes.sort(key=lambda p: (p.record.day, p.record.time_slot, p.record.id), reverse=True)

        return sorted(totals.values(), key=lambda t: (-t.total_amount, t.teacher_id))

    def compute_period_summary(
        self, records: Iterable[ClassRecord], bounds: PeriodBounds, rates: RateTable
    ) -> PeriodSummary:
        """Platform-wide scalars for the period."""
        teachers = set()
        total_classes = 0
        total_hours = Decimal("0")
        total_payment = Decimal("0")

        for priced in self.price_classes(records, bounds, rates):
            teachers.add(priced.record.teacher_id)
            total_classes += 1
            total_hours += priced.hours
            total_payment += priced.amount

        return PeriodSummary(
            total_teachers=len(teachers),
            total_classes=total_classes,
            total_hours=quantize_hours(total_hours),
            total_payment=quantize_money(total_payment),
            average_per_teacher=quantize_money(total_payment / len(teachers)) if teachers else Decimal("0.00"),
            average_per_class=quantize_money(total_payment / total_classes) if total_classes else Decimal("0.00"),
        )

    def _new_total(self, teacher_id: str, bounds: PeriodBounds, rates: RateTable) -> TeacherPaymentTotal:
        teacher = rates.teachers.get(teacher_id)
        rank = teacher.rank if teacher else None
        return TeacherPaymentTotal(
            teacher_id=teacher_id,
            teacher_name=teacher.name if teacher else "",
            teacher_email=teacher.email if teacher else "",
            rank_name=rank.name if rank else None,
            rate_multiplier=rates.multiplier_for(teacher_id),
            bounds=bounds,
        )
