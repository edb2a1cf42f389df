from __future__ import annotations

import logging
from dataclasses import replace
from decimal import Decimal
from typing import Optional

from ..common.validators import require_amount
from ..core.exceptions import NotFoundError
from ..monitoring.scheduler import DailyMonitoringScheduler
from ..schedules.model import WorkSchedule
from .model import Payer, Worker
from .repository import PayerRepository, WorkerRepository

logger = logging.getLogger(__name__)


class WorkerService:
    """Worker lifecycle changes that must reach the monitoring scheduler."""

    def __init__(self, workers: WorkerRepository, scheduler: DailyMonitoringScheduler):
        self._workers = workers
        self._scheduler = scheduler

    def get(self, worker_id: int) -> Worker:
        worker = self._workers.get_by_id(int(worker_id))
        if not worker:
            raise NotFoundError(f"Worker {worker_id} does not exist")
        return worker

    def deactivate(self, worker_id: int) -> int:
        """Mark inactive and cancel outstanding captures. Returns cancelled timer count."""
        worker = self.get(worker_id)
        if worker.is_active:
            self._workers.set_active(worker.worker_id, is_active=False)
            logger.info("Worker %s deactivated", worker.worker_id)
        return self._scheduler.cancel_worker(worker.worker_id)

    def reassign(
        self,
        worker_id: int,
        *,
        payer_id: Optional[int] = None,
        schedule: Optional[WorkSchedule] = None,
    ) -> Worker:
        """Move a worker to another payer and/or schedule.

        Today's captures are cancelled; the next day start plans afresh.
        """
        worker = self.get(worker_id)
        updated = replace(
            worker,
            payer_id=int(payer_id) if payer_id is not None else worker.payer_id,
            schedule=schedule or worker.schedule,
        )
        self._workers.save(updated)
        self._scheduler.cancel_worker(worker.worker_id)
        logger.info("Worker %s reassigned", worker.worker_id)
        return updated


class PayerService:
    def __init__(self, payers: PayerRepository):
        self._payers = payers

    def get(self, payer_id: int) -> Payer:
        payer = self._payers.get_by_id(int(payer_id))
        if not payer:
            raise NotFoundError(f"Payer {payer_id} does not exist")
        return payer

    def top_up(self, payer_id: int, amount) -> Payer:
        payer = self.get(payer_id)
        value: Decimal = require_amount(amount, "Top-up amount")
        self._payers.credit(payer.payer_id, value)
        logger.info("Payer %s topped up by %s", payer.payer_id, value)
        return self.get(payer.payer_id)
