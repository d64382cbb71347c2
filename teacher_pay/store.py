"""
Data-access ports for the Teacher Payments Engine.

The engine reads class, rate and period data and writes incentive and
confirmation records through ``PaymentStore``. ``InMemoryStore`` is the
bundled adapter: it backs the HTTP app (optionally seeded from JSON) and
the test suite.
"""

import copy
import logging
import threading
from abc import ABC, abstractmethod
from dataclasses import replace
from datetime import date, datetime

from .errors import ClassNotFound, ConfirmationNotFound, DuplicateConfirmation, InvalidStatusTransition
from .models import (
    AcademicPeriod,
    AttendanceMark,
    ClassRecord,
    ClassStatus,
    ConfirmationStatus,
    Course,
    Incentive,
    IncentiveType,
    PaymentConfirmation,
    PeriodBounds,
    RateOverride,
    Season,
    Teacher,
)

logger = logging.getLogger(__name__)


class PaymentStore(ABC):
    """Read/write ports the engine depends on."""

    # -- class records ------------------------------------------------------

    @abstractmethod
    def list_class_records(
        self,
        bounds: PeriodBounds | None = None,
        teacher_id: str | None = None,
        status: ClassStatus | None = None,
    ) -> list[ClassRecord]:
        ...

    @abstractmethod
    def get_class_record(self, class_id: str) -> ClassRecord | None:
        ...

    @abstractmethod
    def set_class_payable(self, class_id: str, is_payable: bool) -> ClassRecord:
        ...

    # -- rate configuration -------------------------------------------------

    @abstractmethod
    def list_courses(self) -> list[Course]:
        ...

    @abstractmethod
    def list_rate_overrides(self) -> list[RateOverride]:
        ...

    @abstractmethod
    def get_teacher(self, teacher_id: str) -> Teacher | None:
        ...

    @abstractmethod
    def list_teachers(self, active_only: bool = False) -> list[Teacher]:
        ...

    # -- periods ------------------------------------------------------------

    @abstractmethod
    def list_academic_periods(self) -> list[AcademicPeriod]:
        ...

    @abstractmethod
    def get_academic_period(self, period_id: str) -> AcademicPeriod | None:
        ...

    @abstractmethod
    def list_seasons(self) -> list[Season]:
        ...

    @abstractmethod
    def has_perfect_attendance(self, teacher_id: str, period: AcademicPeriod) -> bool:
        ...

    # -- incentives ---------------------------------------------------------

    @abstractmethod
    def add_incentive(self, incentive: Incentive) -> Incentive:
        ...

    @abstractmethod
    def list_incentives(
        self,
        teacher_id: str | None = None,
        period_id: str | None = None,
        incentive_type: IncentiveType | None = None,
    ) -> list[Incentive]:
        ...

    @abstractmethod
    def mark_incentives_paid(self, incentive_ids: list[str], paid_at: datetime) -> int:
        """Atomically flip unpaid incentives to paid. Returns how many changed."""

    # -- confirmations ------------------------------------------------------

    @abstractmethod
    def create_confirmation(self, confirmation: PaymentConfirmation) -> PaymentConfirmation:
        """Insert unless one exists for the same teacher and bounds (DuplicateConfirmation)."""

    @abstractmethod
    def find_confirmation(self, teacher_id: str, period_start: date, period_end: date) -> PaymentConfirmation | None:
        ...

    @abstractmethod
    def get_confirmation(self, confirmation_id: str) -> PaymentConfirmation | None:
        ...

    @abstractmethod
    def list_confirmations(self) -> list[PaymentConfirmation]:
        ...

    @abstractmethod
    def transition_confirmation(
        self,
        confirmation_id: str,
        allowed_from: set[ConfirmationStatus],
        new_status: ConfirmationStatus,
        notes: str | None,
        now: datetime,
    ) -> PaymentConfirmation:
        """
        Move a confirmation to ``new_status`` if its current status is in
        ``allowed_from``; the check and the write happen as one unit.
        Raises InvalidStatusTransition otherwise.
        """


class InMemoryStore(PaymentStore):
    """
    Thread-safe in-memory store.

    Every write runs under a single lock; reads hand out copies so callers
    never share mutable state with the store.
    """

    def __init__(self):
        self._lock = threading.RLock()
        self._classes: dict[str, ClassRecord] = {}
        self._courses: dict[str, Course] = {}
        self._overrides: dict[tuple[str, str], RateOverride] = {}
        self._teachers: dict[str, Teacher] = {}
        self._periods: dict[str, AcademicPeriod] = {}
        self._seasons: dict[str, Season] = {}
        self._perfect_attendance: set[tuple[str, str]] = set()
        self._incentives: dict[str, Incentive] = {}
        self._confirmations: dict[str, PaymentConfirmation] = {}
        self._confirmation_keys: dict[tuple[str, date, date], str] = {}

    @classmethod
    def from_dict(cls, data: dict) -> "InMemoryStore":
        """Build a store from a JSON-style snapshot."""
        store = cls()
        for item in data.get("teachers", []):
            store.add_teacher(Teacher.from_dict(item))
        for item in data.get("courses", []):
            store.add_course(Course.from_dict(item))
        for item in data.get("rate_overrides", []):
            store.add_rate_override(RateOverride.from_dict(item))
        for item in data.get("classes", []):
            store.add_class_record(ClassRecord.from_dict(item))
        for item in data.get("attendance", []):
            store.add_attendance_mark(AttendanceMark.from_dict(item))
        for item in data.get("academic_periods", []):
            store.add_academic_period(AcademicPeriod.from_dict(item))
        for item in data.get("seasons", []):
            store.add_season(Season.from_dict(item))
        for item in data.get("perfect_attendance", []):
            store.set_perfect_attendance(item["teacher_id"], item["period_id"])
        logger.info(
            f"Loaded store: {len(store._teachers)} teachers, {len(store._classes)} classes, "
            f"{len(store._periods)} periods"
        )
        return store

    # -- seeding ------------------------------------------------------------

    def add_teacher(self, teacher: Teacher) -> None:
        with self._lock:
            self._teachers[teacher.id] = teacher

    def add_course(self, course: Course) -> None:
        with self._lock:
            self._courses[course.id] = course

    def add_rate_override(self, override: RateOverride) -> None:
        # One override per (teacher, course); a newer one replaces the old
        with self._lock:
            self._overrides[(override.teacher_id, override.course_id)] = override

    def add_class_record(self, record: ClassRecord) -> None:
        with self._lock:
            self._classes[record.id] = record

    def add_attendance_mark(self, mark: AttendanceMark) -> None:
        with self._lock:
            record = self._classes.get(mark.class_id)
            if record is None:
                raise ClassNotFound(f"Class {mark.class_id} not found")
            self._classes[mark.class_id] = replace(record, attendance=record.attendance | {mark.side})

    def add_academic_period(self, period: AcademicPeriod) -> None:
        with self._lock:
            self._periods[period.id] = period

    def add_season(self, season: Season) -> None:
        with self._lock:
            self._seasons[season.id] = season

    def set_perfect_attendance(self, teacher_id: str, period_id: str) -> None:
        with self._lock:
            self._perfect_attendance.add((teacher_id, period_id))

    # -- class records ------------------------------------------------------

    def list_class_records(self, bounds=None, teacher_id=None, status=None):
        with self._lock:
            records = list(self._classes.values())
        return [
            copy.copy(r)
            for r in records
            if (bounds is None or bounds.contains(r.day))
            and (teacher_id is None or r.teacher_id == teacher_id)
            and (status is None or r.status == status)
        ]

    def get_class_record(self, class_id):
        with self._lock:
            record = self._classes.get(class_id)
            return copy.copy(record) if record else None

    def set_class_payable(self, class_id, is_payable):
        with self._lock:
            record = self._classes.get(class_id)
            if record is None:
                raise ClassNotFound(f"Class {class_id} not found")
            updated = replace(record, is_payable=is_payable)
            self._classes[class_id] = updated
            return copy.copy(updated)

    # -- rate configuration -------------------------------------------------

    def list_courses(self):
        with self._lock:
            return [copy.copy(c) for c in self._courses.values()]

    def list_rate_overrides(self):
        with self._lock:
            return list(self._overrides.values())

    def get_teacher(self, teacher_id):
        with self._lock:
            teacher = self._teachers.get(teacher_id)
            return copy.deepcopy(teacher) if teacher else None

    def list_teachers(self, active_only=False):
        with self._lock:
            teachers = [copy.deepcopy(t) for t in self._teachers.values()]
        if active_only:
            teachers = [t for t in teachers if t.is_active]
        return sorted(teachers, key=lambda t: (t.name, t.id))

    # -- periods ------------------------------------------------------------

    def list_academic_periods(self):
        with self._lock:
            return sorted((copy.copy(p) for p in self._periods.values()), key=lambda p: (p.start, p.end))

    def get_academic_period(self, period_id):
        with self._lock:
            period = self._periods.get(period_id)
            return copy.copy(period) if period else None

    def list_seasons(self):
        with self._lock:
            return sorted((copy.copy(s) for s in self._seasons.values()), key=lambda s: (s.start, s.end))

    def has_perfect_attendance(self, teacher_id, period):
        with self._lock:
            return (teacher_id, period.id) in self._perfect_attendance

    # -- incentives ---------------------------------------------------------

    def add_incentive(self, incentive):
        with self._lock:
            self._incentives[incentive.id] = copy.copy(incentive)
        return incentive

    def list_incentives(self, teacher_id=None, period_id=None, incentive_type=None):
        with self._lock:
            incentives = [copy.copy(i) for i in self._incentives.values()]
        return [
            i
            for i in incentives
            if (teacher_id is None or i.teacher_id == teacher_id)
            and (period_id is None or i.period_id == period_id)
            and (incentive_type is None or i.type == incentive_type)
        ]

    def mark_incentives_paid(self, incentive_ids, paid_at):
        with self._lock:
            # Collect first, then apply, so the count always matches what changed
            to_pay = [
                incentive_id
                for incentive_id in dict.fromkeys(incentive_ids)
                if incentive_id in self._incentives and not self._incentives[incentive_id].paid
            ]
            for incentive_id in to_pay:
                self._incentives[incentive_id] = replace(self._incentives[incentive_id], paid=True, paid_at=paid_at)
            return len(to_pay)

    # -- confirmations ------------------------------------------------------

    def create_confirmation(self, confirmation):
        key = (confirmation.teacher_id, confirmation.period_start, confirmation.period_end)
        with self._lock:
            existing_id = self._confirmation_keys.get(key)
            if existing_id is not None:
                raise DuplicateConfirmation(copy.copy(self._confirmations[existing_id]))
            self._confirmations[confirmation.id] = copy.copy(confirmation)
            self._confirmation_keys[key] = confirmation.id
        return confirmation

    def find_confirmation(self, teacher_id, period_start, period_end):
        with self._lock:
            existing_id = self._confirmation_keys.get((teacher_id, period_start, period_end))
            if existing_id is None:
                return None
            return copy.copy(self._confirmations[existing_id])

    def get_confirmation(self, confirmation_id):
        with self._lock:
            confirmation = self._confirmations.get(confirmation_id)
            return copy.copy(confirmation) if confirmation else None

    def list_confirmations(self):
        with self._lock:
            return [copy.copy(c) for c in self._confirmations.values()]

    def transition_confirmation(self, confirmation_id, allowed_from, new_status, notes, now):
        with self._lock:
            current = self._confirmations.get(confirmation_id)
            if current is None:
                raise ConfirmationNotFound(f"Confirmation {confirmation_id} not found")
            if current.status not in allowed_from:
                raise InvalidStatusTransition(
                    f"Cannot move confirmation {confirmation_id} from {current.status.value} to {new_status.value}"
                )
            updated = replace(current, status=new_status, notes=notes or current.notes, updated_at=now)
            self._confirmations[confirmation_id] = updated
            return copy.copy(updated)
