from __future__ import annotations

from datetime import date

from ..attendance.repository import AttendanceRepository
from ..core.exceptions import NotFoundError
from ..monitoring.repository import MonitoringPlanRepository
from ..workers.repository import WorkerRepository
from .scorer import score


class EfficiencyService:
    """Read-only: recompute a worker's day score from stored records."""

    def __init__(self, attendance: AttendanceRepository, plans: MonitoringPlanRepository, workers: WorkerRepository):
        self._attendance = attendance
        self._plans = plans
        self._workers = workers

    def planned_capture_count(self, worker_id: int, work_date: date) -> int:
        plan = self._plans.get(int(worker_id), work_date)
        return plan.planned_count if plan else 0

    def get_efficiency_score(self, worker_id: int, work_date: date) -> int:
        if not self._workers.get_by_id(int(worker_id)):
            raise NotFoundError(f"Worker {worker_id} does not exist")
        record = self._attendance.get_for_worker_and_date(int(worker_id), work_date)
        return score(record, self.planned_capture_count(worker_id, work_date))
