from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal

from .base import PayrollCalculator
from ...core.constants import CENTS
from ...workers.model import Worker


class EfficiencyWeightedCalculator(PayrollCalculator):
    """Daily rate scaled by the day's efficiency score (score / 100)."""

    def daily_amount(self, worker: Worker, efficiency_score: int) -> Decimal:
        score = min(max(int(efficiency_score), 0), 100)
        return (self.daily_rate(worker) * Decimal(score) / Decimal(100)).quantize(CENTS, rounding=ROUND_HALF_UP)
