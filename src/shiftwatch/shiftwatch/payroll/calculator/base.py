from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal

from ...common.datetime_utils import minute_of_day
from ...core.constants import CENTS, WEEKS_PER_MONTH
from ...schedules.model import WorkSchedule
from ...workers.model import Worker


class PayrollCalculator(ABC):
    """Calculator interface (Strategy Pattern for payroll)."""

    @abstractmethod
    def daily_amount(self, worker: Worker, efficiency_score: int) -> Decimal:
        raise NotImplementedError

    @staticmethod
    def daily_rate(worker: Worker) -> Decimal:
        """Monthly salary spread over the worker's working days (4 weeks a month)."""
        days_per_month = len(worker.schedule.working_days) * WEEKS_PER_MONTH
        if not days_per_month or not worker.monthly_salary:
            return Decimal("0.00")
        return (Decimal(worker.monthly_salary) / Decimal(days_per_month)).quantize(CENTS, rounding=ROUND_HALF_UP)

    def worked_minutes(self, clock_in: datetime, clock_out: datetime, schedule: WorkSchedule) -> int:
        """(out - in) minus scheduled breaks falling inside the shift, not below 0."""
        minutes = int((clock_out - clock_in).total_seconds() // 60)
        if clock_in.date() == clock_out.date():
            minutes -= schedule.break_minutes_between(minute_of_day(clock_in), minute_of_day(clock_out))
        return max(minutes, 0)
