"""
Retention / Incentive Calculator

Builds incentive records. Retention bonuses compare a teacher's distinct
students across two consecutive periods; perfect attendance is a flat bonus;
manual incentives are granted ad hoc by an administrator.
"""

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Iterable

from ..models import Incentive, IncentiveType

HUNDRED = Decimal("100")


class IncentiveCalculator:
    """Computes incentive percentages and bonus amounts."""

    # (minimum retention rate, bonus percentage), highest band first
    RETENTION_BANDS = (
        (Decimal("90"), Decimal("10")),
        (Decimal("80"), Decimal("5")),
    )
    PERFECT_ATTENDANCE_PERCENTAGE = Decimal("3")

    def retention_rate(self, previous_students: Iterable[str], current_students: Iterable[str]) -> Decimal | None:
        """
        Percentage of previous-period students still present in the current period.

        Returns None when there was nobody in the previous period: retention is
        undefined there, not zero.
        """
        previous = set(previous_students)
        if not previous:
            return None
        retained = previous & set(current_students)
        return Decimal(len(retained)) / Decimal(len(previous)) * HUNDRED

    def retention_bonus_percentage(self, rate: Decimal | None) -> Decimal | None:
        """Map a retention rate to its bonus band. None means no incentive."""
        if rate is None:
            return None
        for minimum, percentage in self.RETENTION_BANDS:
            if rate >= minimum:
                return percentage
        return None

    @staticmethod
    def bonus_amount(base_amount: Decimal, percentage: Decimal) -> Decimal:
        return base_amount * percentage / HUNDRED

    def build_retention_incentive(
        self,
        teacher_id: str,
        period_id: str,
        retention_rate: Decimal,
        base_amount: Decimal,
        now: datetime | None = None,
    ) -> Incentive | None:
        percentage = self.retention_bonus_percentage(retention_rate)
        if percentage is None:
            return None
        incentive = self._build(teacher_id, period_id, IncentiveType.RETENTION, percentage, base_amount, now)
        incentive.retention_rate = retention_rate
        return incentive

    def build_perfect_attendance_incentive(
        self, teacher_id: str, period_id: str, base_amount: Decimal, now: datetime | None = None
    ) -> Incentive:
        return self._build(
            teacher_id,
            period_id,
            IncentiveType.PERFECT_ATTENDANCE,
            self.PERFECT_ATTENDANCE_PERCENTAGE,
            base_amount,
            now,
        )

    def build_manual_incentive(
        self,
        teacher_id: str,
        period_id: str,
        incentive_type: IncentiveType,
        percentage: Decimal,
        base_amount: Decimal,
        now: datetime | None = None,
    ) -> Incentive:
        return self._build(teacher_id, period_id, incentive_type, percentage, base_amount, now)

    def _build(
        self,
        teacher_id: str,
        period_id: str,
        incentive_type: IncentiveType,
        percentage: Decimal,
        base_amount: Decimal,
        now: datetime | None,
    ) -> Incentive:
        return Incentive(
            id=str(uuid.uuid4()),
            teacher_id=teacher_id,
            period_id=period_id,
            type=incentive_type,
            percentage=percentage,
            base_amount=base_amount,
            bonus_amount=self.bonus_amount(base_amount, percentage),
            paid=False,
            created_at=now or datetime.now(),
        )
