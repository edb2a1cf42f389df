from __future__ import annotations

from decimal import Decimal

from .base import PayrollCalculator
from ...workers.model import Worker


class StandardPayrollCalculator(PayrollCalculator):
    """Standard rule: the full daily rate for a completed day."""

    def daily_amount(self, worker: Worker, efficiency_score: int) -> Decimal:
        return self.daily_rate(worker)
