"""
Calculators Package

Provides all computation components for teacher payments and incentives.
"""

from .aggregator import PaymentAggregator
from .incentives import IncentiveCalculator
from .payability import PayabilityFilter
from .periods import PeriodResolver
from .rates import RateResolver

__all__ = [
    "PeriodResolver",
    "RateResolver",
    "PayabilityFilter",
    "PaymentAggregator",
    "IncentiveCalculator",
]
