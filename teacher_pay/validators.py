"""
Input Validation for the Teacher Payments Engine

Validates admin-supplied data before anything is persisted.
Raises InvalidIncentiveInput or ValueError with clear messages.
"""

from decimal import Decimal, InvalidOperation

from .errors import InvalidIncentiveInput
from .models import IncentiveType, PeriodBounds


def to_decimal(value, field_name: str) -> Decimal:
    try:
        result = Decimal(str(value))
    except (InvalidOperation, ValueError, TypeError):
        raise ValueError(f"{field_name} must be a number, got: {value!r}")
    if not result.is_finite():
        raise ValueError(f"{field_name} must be a finite number, got: {value!r}")
    return result


class InputValidator:
    """Validates incentive and confirmation input according to business rules."""

    def validate_manual_incentive(
        self,
        teacher_exists: bool,
        period_exists: bool,
        incentive_type,
        percentage,
        base_amount,
    ) -> tuple[IncentiveType, Decimal, Decimal]:
        """
        Validate a manual incentive. Returns the normalized (type, percentage, base).
        """
        if not teacher_exists:
            raise InvalidIncentiveInput("Unknown teacher for incentive")
        if not period_exists:
            raise InvalidIncentiveInput("Unknown period for incentive")

        try:
            normalized_type = IncentiveType(incentive_type)
        except ValueError:
            raise InvalidIncentiveInput(f"Invalid incentive type: {incentive_type}")

        try:
            pct = to_decimal(percentage, "percentage")
            base = to_decimal(base_amount, "base_amount")
        except ValueError as e:
            raise InvalidIncentiveInput(str(e))

        if not (0 <= pct <= 100):
            raise InvalidIncentiveInput(f"percentage must be between 0 and 100, got: {pct}")
        if base < 0:
            raise InvalidIncentiveInput(f"base_amount cannot be negative, got: {base}")

        return normalized_type, pct, base

    def validate_incentive_ids(self, incentive_ids) -> list[str]:
        if not incentive_ids:
            raise InvalidIncentiveInput("No incentives selected to mark as paid")
        return list(dict.fromkeys(incentive_ids))

    def validate_confirmation(self, teacher_exists: bool, amount, bounds: PeriodBounds) -> Decimal:
        """Validate confirmation input. Returns the normalized amount."""
        if not teacher_exists:
            raise ValueError("Unknown teacher for payment confirmation")

        value = to_decimal(amount, "amount")
        if value < 0:
            raise ValueError(f"amount cannot be negative, got: {value}")

        if bounds.start > bounds.end:
            raise ValueError(f"period_start {bounds.start} is after period_end {bounds.end}")

        return value
