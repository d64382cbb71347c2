"""
Payment Service - Main Orchestrator

Exposes the engine's operations to callers (HTTP layer, jobs, shell).
Every computation re-reads the store; nothing is cached between calls.

Pipeline for payment reads:
1. Normalize period bounds
2. Fetch completed classes in the period
3. Drop non-payable classes
4. Price each remaining class
5. Fold into teacher totals / period summary
"""

import logging
from datetime import date, datetime
from decimal import Decimal

from .calculators import IncentiveCalculator, PayabilityFilter, PaymentAggregator, PeriodResolver, RateResolver
from .confirmations import ConfirmationWorkflow
from .errors import InvalidIncentiveInput, PermissionDenied
from .models import (
    AcademicPeriod,
    Caller,
    ClassRecord,
    ClassStatus,
    ConfirmationStats,
    ConfirmationStatus,
    ExcludedClass,
    Incentive,
    IncentiveType,
    PaymentConfirmation,
    PeriodBounds,
    PeriodSummary,
    RateTable,
    Season,
    Teacher,
    TeacherPaymentTotal,
)
from .store import PaymentStore
from .validators import InputValidator

logger = logging.getLogger(__name__)


class PaymentService:
    """Entry point for every payment and incentive operation."""

    def __init__(self, store: PaymentStore, clock=None):
        self.store = store
        self.clock = clock or datetime.now
        self.validator = InputValidator()
        self.period_resolver = PeriodResolver()
        self.rate_resolver = RateResolver()
        self.payability = PayabilityFilter()
        self.aggregator = PaymentAggregator(self.rate_resolver, self.payability)
        self.incentive_calculator = IncentiveCalculator()
        self.confirmations = ConfirmationWorkflow(store)

    # =========================================================================
    # PERIODS
    # =========================================================================

    def resolve_bounds(self, start=None, end=None) -> PeriodBounds:
        return self.period_resolver.resolve_bounds(start, end, today=self.clock().date())

    def get_period_for_date(self, day) -> AcademicPeriod:
        return self.period_resolver.period_containing(day, self.store.list_academic_periods())

    def get_season_for_date(self, day) -> Season:
        return self.period_resolver.period_containing(day, self.store.list_seasons())

    # =========================================================================
    # PAYMENTS (reads)
    # =========================================================================

    def get_period_summary(self, bounds: PeriodBounds) -> PeriodSummary:
        records = self.store.list_class_records(bounds=bounds, status=ClassStatus.COMPLETED)
        return self.aggregator.compute_period_summary(records, bounds, self._load_rates())

    def get_teacher_payment_details(
        self, bounds: PeriodBounds, teacher_id: str | None = None
    ) -> list[TeacherPaymentTotal]:
        records = self.store.list_class_records(bounds=bounds, teacher_id=teacher_id, status=ClassStatus.COMPLETED)
        return self.aggregator.compute_teacher_payments(records, bounds, self._load_rates())

    def get_payable_classes_report(
        self, bounds: PeriodBounds, teacher_id: str | None = None
    ) -> tuple[list[TeacherPaymentTotal], list[ExcludedClass]]:
        """Payment details plus the completed classes that were excluded, for auditing."""
        records = self.store.list_class_records(bounds=bounds, teacher_id=teacher_id, status=ClassStatus.COMPLETED)
        _, excluded = self.payability.audit(records)
        totals = self.aggregator.compute_teacher_payments(records, bounds, self._load_rates())
        return totals, excluded

    def get_active_teachers(self) -> list[Teacher]:
        return self.store.list_teachers(active_only=True)

    # =========================================================================
    # PAYABILITY (mutation)
    # =========================================================================

    def set_class_manual_payability(self, caller: Caller, class_id: str, is_payable: bool) -> ClassRecord:
        self._require_admin(caller, "set class payability")
        record = self.store.set_class_payable(class_id, bool(is_payable))
        logger.info(f"Class {class_id} marked {'payable' if record.is_payable else 'not payable'} by {caller.user_id}")
        return record

    # =========================================================================
    # INCENTIVES
    # =========================================================================

    def run_retention_incentives(
        self, caller: Caller, period_id: str, previous_period_id: str | None = None
    ) -> list[Incentive]:
        """
        Create RETENTION incentives for the period.

        The previous period is either given or the latest one ending before
        this period starts. Teachers with no students in the previous period
        are skipped; so are teachers already holding a retention incentive
        for this period.
        """
        self._require_admin(caller, "run retention incentives")
        period = self._get_period(period_id)
        if previous_period_id:
            previous = self._get_period(previous_period_id)
        else:
            previous = self.period_resolver.previous_period(period, self.store.list_academic_periods())

        current_bookings = self.store.list_class_records(bounds=period.bounds)
        previous_bookings = self.store.list_class_records(bounds=previous.bounds)
        base_amounts = self._base_amounts(period)
        already_rewarded = self._rewarded_teachers(period.id, IncentiveType.RETENTION)
        now = self.clock()

        created = []
        for teacher in self.store.list_teachers(active_only=True):
            if teacher.id in already_rewarded:
                logger.info(f"Teacher {teacher.id} already has a retention incentive for {period.id}")
                continue

            previous_students = {b.student_id for b in previous_bookings if b.teacher_id == teacher.id}
            current_students = {b.student_id for b in current_bookings if b.teacher_id == teacher.id}

            rate = self.incentive_calculator.retention_rate(previous_students, current_students)
            if rate is None:
                continue

            incentive = self.incentive_calculator.build_retention_incentive(
                teacher.id, period.id, rate, base_amounts.get(teacher.id, Decimal("0.00")), now
            )
            if incentive is None:
                continue
            created.append(self.store.add_incentive(incentive))

        logger.info(
            f"Created {len(created)} retention incentives for period {period.id} (compared with {previous.id})"
        )
        return created

    def run_perfect_attendance_incentives(self, caller: Caller, period_id: str) -> list[Incentive]:
        self._require_admin(caller, "run perfect attendance incentives")
        period = self._get_period(period_id)
        base_amounts = self._base_amounts(period)
        already_rewarded = self._rewarded_teachers(period.id, IncentiveType.PERFECT_ATTENDANCE)
        now = self.clock()

        created = []
        for teacher in self.store.list_teachers(active_only=True):
            if teacher.id in already_rewarded or not self.store.has_perfect_attendance(teacher.id, period):
                continue
            incentive = self.incentive_calculator.build_perfect_attendance_incentive(
                teacher.id, period.id, base_amounts.get(teacher.id, Decimal("0.00")), now
            )
            created.append(self.store.add_incentive(incentive))

        logger.info(f"Created {len(created)} perfect attendance incentives for period {period.id}")
        return created

    def create_manual_incentive(
        self,
        caller: Caller,
        teacher_id: str,
        period_id: str,
        incentive_type,
        percentage,
        base_amount,
    ) -> Incentive:
        self._require_admin(caller, "create incentive")
        normalized_type, pct, base = self.validator.validate_manual_incentive(
            teacher_exists=self.store.get_teacher(teacher_id) is not None,
            period_exists=self.store.get_academic_period(period_id) is not None,
            incentive_type=incentive_type,
            percentage=percentage,
            base_amount=base_amount,
        )
        incentive = self.incentive_calculator.build_manual_incentive(
            teacher_id, period_id, normalized_type, pct, base, self.clock()
        )
        self.store.add_incentive(incentive)
        logger.info(f"Manual {normalized_type.value} incentive {incentive.id} created for teacher {teacher_id}")
        return incentive

    def mark_incentives_paid(self, caller: Caller, incentive_ids: list[str]) -> int:
        self._require_admin(caller, "mark incentives paid")
        ids = self.validator.validate_incentive_ids(incentive_ids)
        count = self.store.mark_incentives_paid(ids, self.clock())
        logger.info(f"Marked {count} of {len(ids)} selected incentives as paid")
        return count

    def get_teacher_incentives(self, teacher_id: str) -> list[Incentive]:
        incentives = self.store.list_incentives(teacher_id=teacher_id)
        return sorted(incentives, key=lambda i: (i.created_at or datetime.min, i.id), reverse=True)

    # =========================================================================
    # CONFIRMATIONS
    # =========================================================================

    def check_confirmation_exists(self, teacher_id: str, bounds: PeriodBounds) -> PaymentConfirmation | None:
        return self.confirmations.check_exists(teacher_id, bounds)

    def create_confirmation(
        self,
        caller: Caller,
        teacher_id: str,
        amount,
        bounds: PeriodBounds,
        proof_url: str | None = None,
        has_proof: bool | None = None,
        notes: str | None = None,
    ) -> PaymentConfirmation:
        """Raises DuplicateConfirmation (carrying the existing record) on a second create."""
        self._require_admin(caller, "create payment confirmation")
        value = self.validator.validate_confirmation(
            teacher_exists=self.store.get_teacher(teacher_id) is not None,
            amount=amount,
            bounds=bounds,
        )
        return self.confirmations.create(
            teacher_id, value, bounds, proof_url=proof_url, has_proof=has_proof, notes=notes, now=self.clock()
        )

    def update_confirmation_status(
        self, caller: Caller, confirmation_id: str, status, notes: str | None = None
    ) -> PaymentConfirmation:
        self._require_admin(caller, "update payment confirmation")
        try:
            new_status = ConfirmationStatus(status)
        except ValueError:
            raise ValueError(f"Invalid confirmation status: {status}")
        return self.confirmations.update_status(confirmation_id, new_status, notes, now=self.clock())

    def get_confirmation(self, confirmation_id: str) -> PaymentConfirmation:
        return self.confirmations.get(confirmation_id)

    def get_confirmations(
        self,
        teacher_id: str | None = None,
        period_start: date | None = None,
        period_end: date | None = None,
        status=None,
    ) -> list[PaymentConfirmation]:
        return self.confirmations.search(teacher_id, period_start, period_end, status)

    def get_teacher_payment_history(self, teacher_id: str) -> list[PaymentConfirmation]:
        return self.confirmations.history(teacher_id)

    def get_confirmation_stats(self) -> ConfirmationStats:
        return self.confirmations.stats()

    # =========================================================================
    # HELPERS
    # =========================================================================

    def _require_admin(self, caller: Caller | None, action: str) -> None:
        if caller is None or not caller.is_admin:
            user = caller.user_id if caller else None
            logger.warning(f"Refused to {action}: caller {user} is not an administrator")
            raise PermissionDenied(f"Only administrators can {action}")

    def _load_rates(self) -> RateTable:
        return RateTable(
            overrides={(o.teacher_id, o.course_id): o.payment_per_class for o in self.store.list_rate_overrides()},
            courses={c.id: c for c in self.store.list_courses()},
            teachers={t.id: t for t in self.store.list_teachers()},
        )

    def _get_period(self, period_id: str) -> AcademicPeriod:
        period = self.store.get_academic_period(period_id)
        if period is None:
            raise InvalidIncentiveInput(f"Unknown period: {period_id}")
        return period

    def _base_amounts(self, period: AcademicPeriod) -> dict[str, Decimal]:
        """Each teacher's payable total for the period: the base for percentage bonuses."""
        return {t.teacher_id: t.total_amount for t in self.get_teacher_payment_details(period.bounds)}

    def _rewarded_teachers(self, period_id: str, incentive_type: IncentiveType) -> set[str]:
        return {i.teacher_id for i in self.store.list_incentives(period_id=period_id, incentive_type=incentive_type)}
