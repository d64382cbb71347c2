"""
Unit Tests for the Confirmation Workflow
"""

from datetime import date, datetime, timedelta
from decimal import Decimal

import pytest

from teacher_pay.confirmations import ConfirmationWorkflow
from teacher_pay.errors import ConfirmationNotFound, DuplicateConfirmation, InvalidStatusTransition
from teacher_pay.models import ConfirmationStatus, PeriodBounds
from teacher_pay.store import InMemoryStore

MARCH = PeriodBounds(date(2025, 3, 1), date(2025, 3, 31))
APRIL = PeriodBounds(date(2025, 4, 1), date(2025, 4, 30))


class TestCreateConfirmation:
    @pytest.fixture
    def workflow(self):
        return ConfirmationWorkflow(InMemoryStore())

    def test_created_pending(self, workflow):
        confirmation = workflow.create("t1", Decimal("36.00"), MARCH)

        assert confirmation.status == ConfirmationStatus.PENDING
        assert confirmation.period_start == date(2025, 3, 1)
        assert confirmation.period_end == date(2025, 3, 31)
        assert confirmation.has_proof is False

    def test_proof_url_implies_proof(self, workflow):
        confirmation = workflow.create("t1", Decimal("36"), MARCH, proof_url="https://files.example.com/p.pdf")
        assert confirmation.has_proof is True

    def test_duplicate_raises_with_existing(self, workflow):
        first = workflow.create("t1", Decimal("36"), MARCH)

        with pytest.raises(DuplicateConfirmation) as exc:
            workflow.create("t1", Decimal("40"), MARCH)

        assert exc.value.existing.id == first.id
        assert exc.value.existing.amount == Decimal("36")
        assert len(workflow.search(teacher_id="t1")) == 1

    def test_same_teacher_other_period_is_allowed(self, workflow):
        workflow.create("t1", Decimal("36"), MARCH)
        workflow.create("t1", Decimal("30"), APRIL)
        assert len(workflow.history("t1")) == 2

    def test_check_exists(self, workflow):
        assert workflow.check_exists("t1", MARCH) is None
        created = workflow.create("t1", Decimal("36"), MARCH)
        assert workflow.check_exists("t1", MARCH).id == created.id


class TestStatusTransitions:
    @pytest.fixture
    def workflow(self):
        return ConfirmationWorkflow(InMemoryStore())

    def test_pending_to_approved(self, workflow):
        created = workflow.create("t1", Decimal("36"), MARCH, notes="initial")
        updated = workflow.update_status(created.id, ConfirmationStatus.APPROVED)

        assert updated.status == ConfirmationStatus.APPROVED
        assert updated.notes == "initial"
        assert workflow.get(created.id).status == ConfirmationStatus.APPROVED

    def test_pending_to_rejected_with_notes(self, workflow):
        created = workflow.create("t1", Decimal("36"), MARCH)
        updated = workflow.update_status(created.id, "REJECTED", notes="wrong amount")

        assert updated.status == ConfirmationStatus.REJECTED
        assert updated.notes == "wrong amount"

    def test_terminal_states_cannot_change(self, workflow):
        created = workflow.create("t1", Decimal("36"), MARCH)
        workflow.update_status(created.id, ConfirmationStatus.APPROVED)

        with pytest.raises(InvalidStatusTransition):
            workflow.update_status(created.id, ConfirmationStatus.REJECTED)

    def test_cannot_move_back_to_pending(self, workflow):
        created = workflow.create("t1", Decimal("36"), MARCH)
        with pytest.raises(InvalidStatusTransition):
            workflow.update_status(created.id, ConfirmationStatus.PENDING)

    def test_amount_is_never_recomputed(self, workflow):
        created = workflow.create("t1", Decimal("36"), MARCH)
        updated = workflow.update_status(created.id, ConfirmationStatus.APPROVED)
        assert updated.amount == Decimal("36")

    def test_unknown_confirmation(self, workflow):
        with pytest.raises(ConfirmationNotFound):
            workflow.update_status("missing", ConfirmationStatus.APPROVED)


class TestQueries:
    @pytest.fixture
    def workflow(self):
        workflow = ConfirmationWorkflow(InMemoryStore())
        base = datetime(2025, 4, 1, 9, 0)
        a = workflow.create("t1", Decimal("36"), MARCH, now=base)
        workflow.create("t2", Decimal("50"), MARCH, now=base + timedelta(hours=1))
        c = workflow.create("t1", Decimal("40"), APRIL, now=base + timedelta(days=31))
        workflow.update_status(a.id, ConfirmationStatus.APPROVED)
        workflow.update_status(c.id, ConfirmationStatus.REJECTED)
        return workflow

    def test_newest_first(self, workflow):
        assert [c.amount for c in workflow.history("t1")] == [Decimal("40"), Decimal("36")]

    def test_filter_by_bounds(self, workflow):
        results = workflow.search(period_start=MARCH.start, period_end=MARCH.end)
        assert {c.teacher_id for c in results} == {"t1", "t2"}
        assert all(c.period_end <= MARCH.end for c in results)

    def test_filter_by_status(self, workflow):
        results = workflow.search(status=ConfirmationStatus.PENDING)
        assert [c.teacher_id for c in results] == ["t2"]

    def test_stats(self, workflow):
        stats = workflow.stats()

        assert stats.total == 3
        assert stats.pending == 1
        assert stats.approved == 1
        assert stats.rejected == 1
        assert stats.total_amount_approved == Decimal("36")
