"""
Shared fixtures for the Teacher Payments Engine tests.

Run with: python -m pytest tests/ -v
"""

from datetime import date, datetime
from decimal import Decimal

import pytest

from teacher_pay import Caller, InMemoryStore, PaymentService
from teacher_pay.models import (
    AcademicPeriod,
    AttendanceSide,
    ClassRecord,
    ClassStatus,
    Course,
    RateOverride,
    Teacher,
    TeacherRank,
)

BOTH_SIDES = frozenset({AttendanceSide.TEACHER, AttendanceSide.STUDENT})

FIXED_NOW = datetime(2025, 3, 15, 12, 0, 0)


@pytest.fixture
def make_class():
    """Factory for class records; completed with both attendance marks by default."""
    counter = {"n": 0}

    def _make(
        teacher_id="t1",
        student_id="s1",
        course_id="c1",
        day="2025-03-10",
        time_slot="10:00",
        status=ClassStatus.COMPLETED,
        call_duration_minutes=None,
        is_payable=True,
        attendance=BOTH_SIDES,
        class_id=None,
    ):
        counter["n"] += 1
        return ClassRecord(
            id=class_id or f"class-{counter['n']}",
            teacher_id=teacher_id,
            student_id=student_id,
            course_id=course_id,
            day=day,
            time_slot=time_slot,
            status=status,
            call_duration_minutes=call_duration_minutes,
            is_payable=is_payable,
            attendance=frozenset(attendance),
        )

    return _make


@pytest.fixture
def store():
    """Two teachers, one nominal 60-minute course without default rate, two periods."""
    s = InMemoryStore()
    s.add_teacher(Teacher(id="t1", name="Ana Torres", email="ana@example.com",
                          rank=TeacherRank(name="Senior", rate_multiplier=Decimal("1.2"))))
    s.add_teacher(Teacher(id="t2", name="Bruno Diaz", email="bruno@example.com"))
    s.add_teacher(Teacher(id="t3", name="Carla Ruiz", is_active=False))
    s.add_course(Course(id="c1", title="Conversation", class_duration_minutes=60))
    s.add_course(Course(id="c2", title="Business English", class_duration_minutes=45,
                        default_payment_per_class=Decimal("8.50")))
    s.add_academic_period(AcademicPeriod(id="feb", name="February", start=date(2025, 2, 1), end=date(2025, 2, 28)))
    s.add_academic_period(AcademicPeriod(id="mar", name="March", start=date(2025, 3, 1), end=date(2025, 3, 31)))
    return s


@pytest.fixture
def service(store):
    return PaymentService(store, clock=lambda: FIXED_NOW)


@pytest.fixture
def admin():
    return Caller(user_id="admin-1", roles=frozenset({"ADMIN"}))


@pytest.fixture
def teacher_caller():
    return Caller(user_id="t1", roles=frozenset({"TEACHER"}))


@pytest.fixture
def override_c2_for_t1():
    return RateOverride(teacher_id="t1", course_id="c2", payment_per_class=Decimal("15"))
