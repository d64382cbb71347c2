"""
Payability Filter

A completed class is payable only when both the teacher and the student left
an attendance mark and no administrator excluded it manually.
"""

from typing import Iterable

from ..models import ClassRecord, ClassStatus, ExcludedClass


class PayabilityFilter:
    """Decides which completed classes are eligible for payment."""

    def is_payable(self, record: ClassRecord) -> bool:
        return self.exclusion_reason(record) is None

    def exclusion_reason(self, record: ClassRecord) -> str | None:
        """Return why a class is not payable, or None when it is."""
        if record.status != ClassStatus.COMPLETED:
            return "not_completed"
        if not record.is_payable:
            return "manually_excluded"
        if not record.teacher_attended:
            return "missing_teacher_attendance"
        if not record.student_attended:
            return "missing_student_attendance"
        return None

    def audit(self, records: Iterable[ClassRecord]) -> tuple[list[ClassRecord], list[ExcludedClass]]:
        """Split records into payable and excluded (with reasons)."""
        payable = []
        excluded = []
        for record in records:
            reason = self.exclusion_reason(record)
            if reason is None:
                payable.append(record)
            else:
                excluded.append(ExcludedClass(record=record, reason=reason))
        return payable, excluded
