"""
Domain Models for the Teacher Payments Engine

These dataclasses provide type-safe representations of all business entities.
All monetary values use Decimal for precision; all period bounds are
day-granular ``datetime.date`` values, inclusive on both ends.
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum


def parse_day(value) -> date:
    """Normalize a date, datetime or 'YYYY-MM-DD' string to a calendar day."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        return datetime.strptime(value[:10], "%Y-%m-%d").date()
    raise ValueError(f"Cannot interpret {value!r} as a calendar day")


def _decimal_or_none(value) -> Decimal | None:
    return Decimal(str(value)) if value is not None else None


def _datetime_or_none(value) -> datetime | None:
    if value is None or isinstance(value, datetime):
        return value
    return datetime.fromisoformat(value)


# =============================================================================
# ENUMS
# =============================================================================


class ClassStatus(str, Enum):
    SCHEDULED = "SCHEDULED"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class AttendanceSide(str, Enum):
    TEACHER = "TEACHER"
    STUDENT = "STUDENT"


class IncentiveType(str, Enum):
    RETENTION = "RETENTION"
    PERFECT_ATTENDANCE = "PERFECT_ATTENDANCE"
    MANUAL = "MANUAL"


class ConfirmationStatus(str, Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


# =============================================================================
# PERIODS
# =============================================================================


@dataclass(frozen=True)
class PeriodBounds:
    """An inclusive calendar-day range."""

    start: date
    end: date

    def contains(self, day) -> bool:
        return self.start <= parse_day(day) <= self.end

    @classmethod
    def from_dict(cls, data: dict) -> "PeriodBounds":
        return cls(start=parse_day(data["start"]), end=parse_day(data["end"]))


@dataclass
class AcademicPeriod:
    """A named billing/academic period."""

    id: str
    name: str
    start: date
    end: date

    @property
    def bounds(self) -> PeriodBounds:
        return PeriodBounds(self.start, self.end)

    @classmethod
    def from_dict(cls, data: dict) -> "AcademicPeriod":
        return cls(
            id=data["id"],
            name=data.get("name", data["id"]),
            start=parse_day(data["start"]),
            end=parse_day(data["end"]),
        )


@dataclass
class Season(AcademicPeriod):
    """A season groups several academic periods; matched to dates the same way."""


# =============================================================================
# INPUT MODELS (read from the store)
# =============================================================================


@dataclass
class TeacherRank:
    name: str
    rate_multiplier: Decimal = Decimal("1")

    @classmethod
    def from_dict(cls, data: dict) -> "TeacherRank":
        multiplier = Decimal(str(data.get("rate_multiplier", 1)))
        if not multiplier.is_finite() or multiplier < 0:
            raise ValueError(f"rate_multiplier for rank {data['name']} must be >= 0, got: {multiplier}")
        return cls(name=data["name"], rate_multiplier=multiplier)


@dataclass
class Teacher:
    id: str
    name: str
    email: str = ""
    is_active: bool = True
    rank: TeacherRank | None = None

    @classmethod
    def from_dict(cls, data: dict) -> "Teacher":
        rank = data.get("rank")
        return cls(
            id=data["id"],
            name=data.get("name", ""),
            email=data.get("email", ""),
            is_active=data.get("is_active", True),
            rank=TeacherRank.from_dict(rank) if rank else None,
        )


@dataclass
class Course:
    """Course configuration relevant to pricing."""

    id: str
    title: str
    class_duration_minutes: int
    default_payment_per_class: Decimal | None = None  # None = no course default rate

    @classmethod
    def from_dict(cls, data: dict) -> "Course":
        return cls(
            id=data["id"],
            title=data.get("title", data["id"]),
            class_duration_minutes=int(data["class_duration_minutes"]),
            default_payment_per_class=_decimal_or_none(data.get("default_payment_per_class")),
        )


@dataclass(frozen=True)
class RateOverride:
    """Teacher + course specific flat per-class payment."""

    teacher_id: str
    course_id: str
    payment_per_class: Decimal

    @classmethod
    def from_dict(cls, data: dict) -> "RateOverride":
        return cls(
            teacher_id=data["teacher_id"],
            course_id=data["course_id"],
            payment_per_class=Decimal(str(data["payment_per_class"])),
        )


@dataclass(frozen=True)
class AttendanceMark:
    class_id: str
    side: AttendanceSide

    @classmethod
    def from_dict(cls, data: dict) -> "AttendanceMark":
        return cls(class_id=data["class_id"], side=AttendanceSide(data["side"]))


@dataclass
class ClassRecord:
    """A booked class between one teacher and one student."""

    id: str
    teacher_id: str
    student_id: str
    course_id: str
    day: str  # YYYY-MM-DD on the local calendar
    time_slot: str
    status: ClassStatus
    call_duration_minutes: int | None = None  # realized duration from the call log
    is_payable: bool = True  # admin can force-exclude a class
    attendance: frozenset = field(default_factory=frozenset)
    completed_at: datetime | None = None

    @property
    def teacher_attended(self) -> bool:
        return AttendanceSide.TEACHER in self.attendance

    @property
    def student_attended(self) -> bool:
        return AttendanceSide.STUDENT in self.attendance

    @classmethod
    def from_dict(cls, data: dict) -> "ClassRecord":
        call_duration = data.get("call_duration_minutes")
        return cls(
            id=data["id"],
            teacher_id=data["teacher_id"],
            student_id=data["student_id"],
            course_id=data["course_id"],
            day=data["day"],
            time_slot=data.get("time_slot", ""),
            status=ClassStatus(data.get("status", ClassStatus.SCHEDULED.value)),
            call_duration_minutes=int(call_duration) if call_duration is not None else None,
            is_payable=data.get("is_payable", True),
            attendance=frozenset(AttendanceSide(side) for side in data.get("attendance", [])),
            completed_at=_datetime_or_none(data.get("completed_at")),
        )


@dataclass
class RateTable:
    """Everything the rate resolver needs, loaded once per computation."""

    overrides: dict[tuple[str, str], Decimal] = field(default_factory=dict)
    courses: dict[str, Course] = field(default_factory=dict)
    teachers: dict[str, Teacher] = field(default_factory=dict)

    def override_for(self, teacher_id: str, course_id: str) -> Decimal | None:
        return self.overrides.get((teacher_id, course_id))

    def multiplier_for(self, teacher_id: str) -> Decimal:
        teacher = self.teachers.get(teacher_id)
        if teacher is None or teacher.rank is None:
            return Decimal("1")
        return teacher.rank.rate_multiplier


# =============================================================================
# OUTPUT / RESULT MODELS
# =============================================================================


@dataclass
class PricedClass:
    """A payable class with its resolved duration and rate (unrounded)."""

    record: ClassRecord
    course_title: str
    duration_minutes: int
    duration_source: str  # 'call_log' or 'course'
    amount: Decimal
    rate_source: str

    @property
    def hours(self) -> Decimal:
        return Decimal(self.duration_minutes) / Decimal("60")


@dataclass
class TeacherPaymentTotal:
    """Per-teacher payable totals for a period. Computed on demand, never stored."""

    teacher_id: str
    teacher_name: str
    teacher_email: str
    rank_name: str | None
    rate_multiplier: Decimal
    bounds: PeriodBounds
    total_classes: int = 0
    total_hours: Decimal = Decimal("0")
    total_amount: Decimal = Decimal("0")
    average_per_class: Decimal = Decimal("0")
    classes: list[PricedClass] = field(default_factory=list)


@dataclass
class PeriodSummary:
    total_teachers: int = 0
    total_classes: int = 0
    total_hours: Decimal = Decimal("0")
    total_payment: Decimal = Decimal("0")
    average_per_teacher: Decimal = Decimal("0")
    average_per_class: Decimal = Decimal("0")


@dataclass
class ExcludedClass:
    """A completed class left out of payment, with the reason."""

    record: ClassRecord
    reason: str


@dataclass
class Incentive:
    id: str
    teacher_id: str
    period_id: str
    type: IncentiveType
    percentage: Decimal
    base_amount: Decimal
    bonus_amount: Decimal
    paid: bool = False
    paid_at: datetime | None = None
    created_at: datetime | None = None
    retention_rate: Decimal | None = None


@dataclass
class PaymentConfirmation:
    """Record of a payment amount presented to and acknowledged for a teacher."""

    id: str
    teacher_id: str
    period_start: date
    period_end: date
    amount: Decimal
    confirmed_at: datetime
    has_proof: bool = False
    proof_url: str | None = None
    notes: str | None = None
    status: ConfirmationStatus = ConfirmationStatus.PENDING
    created_at: datetime | None = None
    updated_at: datetime | None = None


@dataclass
class ConfirmationStats:
    total: int = 0
    pending: int = 0
    approved: int = 0
    rejected: int = 0
    total_amount_approved: Decimal = Decimal("0")


@dataclass
class Caller:
    """Identity of whoever invokes the engine, as verified upstream."""

    user_id: str | None = None
    roles: frozenset = field(default_factory=frozenset)

    @property
    def is_admin(self) -> bool:
        return "ADMIN" in self.roles
