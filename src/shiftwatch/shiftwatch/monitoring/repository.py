from __future__ import annotations

from datetime import date
from typing import Optional, Protocol

from .model import MonitoringPlan


class MonitoringPlanRepository(Protocol):
    def get(self, worker_id: int, work_date: date) -> Optional[MonitoringPlan]:
        raise NotImplementedError

    def save(self, plan: MonitoringPlan) -> None:
        """Insert or replace the plan stored for (worker_id, work_date)."""

        raise NotImplementedError
