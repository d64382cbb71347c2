"""
Confirmation Workflow

Records that a computed payment for a (teacher, period) pair was presented
and acknowledged. A confirmation keeps the amount that was presented; it is
never re-derived from later recomputation.

States:
    PENDING -> APPROVED
    PENDING -> REJECTED
Both APPROVED and REJECTED are terminal.
"""

import logging
import uuid
from datetime import date, datetime
from decimal import Decimal

from .errors import ConfirmationNotFound
from .models import ConfirmationStats, ConfirmationStatus, PaymentConfirmation, PeriodBounds
from .store import PaymentStore

logger = logging.getLogger(__name__)


class ConfirmationWorkflow:
    """Creates and transitions payment confirmations."""

    TRANSITIONS = {
        ConfirmationStatus.PENDING: {ConfirmationStatus.APPROVED, ConfirmationStatus.REJECTED},
        ConfirmationStatus.APPROVED: set(),
        ConfirmationStatus.REJECTED: set(),
    }

    def __init__(self, store: PaymentStore):
        self.store = store

    def check_exists(self, teacher_id: str, bounds: PeriodBounds) -> PaymentConfirmation | None:
        return self.store.find_confirmation(teacher_id, bounds.start, bounds.end)

    def create(
        self,
        teacher_id: str,
        amount: Decimal,
        bounds: PeriodBounds,
        proof_url: str | None = None,
        has_proof: bool | None = None,
        notes: str | None = None,
        now: datetime | None = None,
    ) -> PaymentConfirmation:
        """
        Create a PENDING confirmation.

        The store performs the existence check and the insert as one unit and
        raises DuplicateConfirmation when the (teacher, bounds) pair is taken.
        """
        now = now or datetime.now()
        confirmation = PaymentConfirmation(
            id=str(uuid.uuid4()),
            teacher_id=teacher_id,
            period_start=bounds.start,
            period_end=bounds.end,
            amount=amount,
            confirmed_at=now,
            has_proof=bool(proof_url) if has_proof is None else has_proof,
            proof_url=proof_url,
            notes=notes,
            status=ConfirmationStatus.PENDING,
            created_at=now,
            updated_at=now,
        )
        created = self.store.create_confirmation(confirmation)
        logger.info(
            f"Payment confirmation {created.id} created for teacher {teacher_id} "
            f"({bounds.start} - {bounds.end}): {amount}"
        )
        return created

    def update_status(
        self,
        confirmation_id: str,
        status: ConfirmationStatus,
        notes: str | None = None,
        now: datetime | None = None,
    ) -> PaymentConfirmation:
        new_status = ConfirmationStatus(status)
        allowed_from = {source for source, targets in self.TRANSITIONS.items() if new_status in targets}

        # Check and write happen under the store lock
        updated = self.store.transition_confirmation(
            confirmation_id, allowed_from, new_status, notes, now or datetime.now()
        )
        logger.info(f"Payment confirmation {confirmation_id} moved to {new_status.value}")
        return updated

    def get(self, confirmation_id: str) -> PaymentConfirmation:
        confirmation = self.store.get_confirmation(confirmation_id)
        if confirmation is None:
            raise ConfirmationNotFound(f"Confirmation {confirmation_id} not found")
        return confirmation

    def search(
        self,
        teacher_id: str | None = None,
        period_start: date | None = None,
        period_end: date | None = None,
        status: ConfirmationStatus | None = None,
    ) -> list[PaymentConfirmation]:
        """
        Filter confirmations, newest confirmed first.

        When both bounds are given, only confirmations lying entirely within
        them are returned.
        """
        results = []
        for confirmation in self.store.list_confirmations():
            if teacher_id and confirmation.teacher_id != teacher_id:
                continue
            if period_start and period_end:
                if confirmation.period_start < period_start or confirmation.period_end > period_end:
                    continue
            if status and confirmation.status != ConfirmationStatus(status):
                continue
            results.append(confirmation)
        return sorted(results, key=lambda c: (c.confirmed_at, c.id), reverse=True)

    def history(self, teacher_id: str) -> list[PaymentConfirmation]:
        return self.search(teacher_id=teacher_id)

    def stats(self) -> ConfirmationStats:
        stats = ConfirmationStats()
        for confirmation in self.store.list_confirmations():
            stats.total += 1
            if confirmation.status == ConfirmationStatus.PENDING:
                stats.pending += 1
            elif confirmation.status == ConfirmationStatus.APPROVED:
                stats.approved += 1
                stats.total_amount_approved += confirmation.amount
            else:
                stats.rejected += 1
        return stats
