"""
Output Builder

Converts engine results into JSON-ready dictionaries at reporting precision.
"""

from datetime import date, datetime
from decimal import Decimal

from .models import (
    ConfirmationStats,
    ExcludedClass,
    Incentive,
    PaymentConfirmation,
    PeriodBounds,
    PeriodSummary,
    PricedClass,
    Teacher,
    TeacherPaymentTotal,
)
from .calculators.rates import quantize_hours, quantize_money


def to_money(value: Decimal) -> float:
    """Convert Decimal to float with 2 decimal places."""
    return float(quantize_money(value))


def to_hours(value: Decimal) -> float:
    return float(quantize_hours(value))


def _iso(value: date | datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


class OutputBuilder:
    """Builds API response payloads."""

    def bounds(self, bounds: PeriodBounds) -> dict:
        return {"start": _iso(bounds.start), "end": _iso(bounds.end)}

    def period_summary(self, summary: PeriodSummary, bounds: PeriodBounds) -> dict:
        return {
            "period": self.bounds(bounds),
            "total_teachers": summary.total_teachers,
            "total_classes": summary.total_classes,
            "total_hours": to_hours(summary.total_hours),
            "total_payment": to_money(summary.total_payment),
            "average_payment_per_teacher": to_money(summary.average_per_teacher),
            "average_payment_per_class": to_money(summary.average_per_class),
        }

    def teacher_payment(self, total: TeacherPaymentTotal) -> dict:
        return {
            "teacher_id": total.teacher_id,
            "teacher_name": total.teacher_name,
            "teacher_email": total.teacher_email,
            "rank_name": total.rank_name,
            "rate_multiplier": float(total.rate_multiplier),
            "period": self.bounds(total.bounds),
            "total_classes": total.total_classes,
            "total_hours": to_hours(total.total_hours),
            "total_payment": to_money(total.total_amount),
            "average_per_class": to_money(total.average_per_class),
            "classes": [self.priced_class(p) for p in total.classes],
        }

    def priced_class(self, priced: PricedClass) -> dict:
        record = priced.record
        return {
            "id": record.id,
            "day": record.day,
            "time_slot": record.time_slot,
            "student_id": record.student_id,
            "course_id": record.course_id,
            "course_name": priced.course_title,
            "duration": priced.duration_minutes,
            "duration_source": priced.duration_source,
            "payment": to_money(priced.amount),
            "rate_source": priced.rate_source,
            "is_payable": record.is_payable,
            "completed_at": _iso(record.completed_at),
        }

    def excluded_class(self, excluded: ExcludedClass) -> dict:
        record = excluded.record
        return {
            "id": record.id,
            "teacher_id": record.teacher_id,
            "student_id": record.student_id,
            "day": record.day,
            "time_slot": record.time_slot,
            "reason": excluded.reason,
        }

    def teacher(self, teacher: Teacher) -> dict:
        return {
            "id": teacher.id,
            "name": teacher.name,
            "email": teacher.email,
            "rank_name": teacher.rank.name if teacher.rank else None,
        }

    def incentive(self, incentive: Incentive) -> dict:
        return {
            "id": incentive.id,
            "teacher_id": incentive.teacher_id,
            "period_id": incentive.period_id,
            "type": incentive.type.value,
            "percentage": float(incentive.percentage),
            "base_amount": to_money(incentive.base_amount),
            "bonus_amount": to_money(incentive.bonus_amount),
            "retention_rate": float(incentive.retention_rate) if incentive.retention_rate is not None else None,
            "paid": incentive.paid,
            "paid_at": _iso(incentive.paid_at),
            "created_at": _iso(incentive.created_at),
        }

    def confirmation(self, confirmation: PaymentConfirmation) -> dict:
        return {
            "id": confirmation.id,
            "teacher_id": confirmation.teacher_id,
            "period_start": _iso(confirmation.period_start),
            "period_end": _iso(confirmation.period_end),
            "amount": to_money(confirmation.amount),
            "confirmed_at": _iso(confirmation.confirmed_at),
            "has_proof": confirmation.has_proof,
            "proof_url": confirmation.proof_url,
            "notes": confirmation.notes,
            "status": confirmation.status.value,
            "created_at": _iso(confirmation.created_at),
            "updated_at": _iso(confirmation.updated_at),
        }

    def confirmation_stats(self, stats: ConfirmationStats) -> dict:
        return {
            "total": stats.total,
            "pending": stats.pending,
            "approved": stats.approved,
            "rejected": stats.rejected,
            "total_amount_approved": to_money(stats.total_amount_approved),
        }
