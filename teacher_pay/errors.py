"""
Error taxonomy for the Teacher Payments Engine.

Only genuinely exceptional conditions raise; an empty period is a valid,
zero-valued result.
"""


class PaymentEngineError(Exception):
    """Base class for every error the engine raises on purpose."""


class NoPeriodForDate(PaymentEngineError):
    """A date could not be matched to any known period."""

    def __init__(self, day, message: str | None = None):
        self.day = day
        super().__init__(message or f"No period contains {day}")


class NoPreviousPeriod(NoPeriodForDate):
    """No period ends before the start of the given period."""

    def __init__(self, period):
        self.period = period
        super().__init__(period.start, f"No period ends before {period.start} (period {period.id})")


class DuplicateConfirmation(PaymentEngineError):
    """A confirmation already exists for this (teacher, period_start, period_end)."""

    def __init__(self, existing):
        self.existing = existing
        super().__init__(
            f"Payment for teacher {existing.teacher_id} between "
            f"{existing.period_start} and {existing.period_end} is already confirmed ({existing.id})"
        )


class InvalidIncentiveInput(PaymentEngineError, ValueError):
    """Rejected before persistence."""


class InvalidStatusTransition(PaymentEngineError, ValueError):
    pass


class PermissionDenied(PaymentEngineError):
    """A mutation was invoked without confirmed administrator privileges."""


class ConfirmationNotFound(PaymentEngineError, LookupError):
    pass


class ClassNotFound(PaymentEngineError, LookupError):
    pass
