"""
TEACHER PAYMENTS ENGINE
Payment, incentive and confirmation computation for tutoring teachers.
"""

from .models import Caller, PeriodBounds
from .service import PaymentService
from .store import InMemoryStore, PaymentStore

__all__ = ['PaymentService', 'PaymentStore', 'InMemoryStore', 'Caller', 'PeriodBounds']
