from __future__ import annotations

import logging
from dataclasses import replace
from datetime import date, datetime, timedelta
from typing import Optional

from ..common.datetime_utils import minute_of_day, now_local
from ..common.locks import KeyedLocks
from ..common.validators import require_non_empty
from ..core.exceptions import NotFoundError, ValidationError
from ..monitoring.model import MonitoringEvent
from ..payroll.calculator.base import PayrollCalculator
from ..payroll.calculator.standard_calculator import StandardPayrollCalculator
from ..workers.model import Worker
from ..workers.repository import WorkerRepository
from .model import AttendanceRecord, ProgressReport
from .repository import AttendanceRepository

logger = logging.getLogger(__name__)


class AttendanceService:
    """Clock-in/out, progress reports and monitoring event appends.

    Every mutation of a record happens under the (worker_id, work_date)
    lock shared with the monitoring scheduler.
    """

    def __init__(
        self,
        attendance: AttendanceRepository,
        workers: WorkerRepository,
        locks: KeyedLocks,
        *,
        calculator: Optional[PayrollCalculator] = None,
    ):
        self._attendance = attendance
        self._workers = workers
        self._locks = locks
        self._calculator = calculator or StandardPayrollCalculator()

    def _require_worker(self, worker_id: int) -> Worker:
        worker = self._workers.get_by_id(int(worker_id))
        if not worker:
            raise NotFoundError(f"Worker {worker_id} does not exist")
        return worker

    def _get_or_new(self, worker_id: int, work_date: date) -> AttendanceRecord:
        return self._attendance.get_for_worker_and_date(worker_id, work_date) or AttendanceRecord(
            worker_id=worker_id, work_date=work_date
        )

    def get_record(self, worker_id: int, work_date: date) -> Optional[AttendanceRecord]:
        return self._attendance.get_for_worker_and_date(int(worker_id), work_date)

    def clock_in(self, worker_id: int, *, now: datetime | None = None) -> AttendanceRecord:
        now = now or now_local()
        today = now.date()

        worker = self._require_worker(worker_id)
        if not worker.is_active:
            raise ValidationError("Inactive workers cannot clock in")

        with self._locks.hold((worker.worker_id, today)):
            record = self._get_or_new(worker.worker_id, today)
            if record.clock_in_time is not None:
                raise ValidationError("Already clocked in today")
            record = replace(record, clock_in_time=now)
            self._attendance.save(record)

        logger.info("Worker %s clocked in at %s", worker.worker_id, now.isoformat())
        return record

    def clock_out(self, worker_id: int, *, now: datetime | None = None) -> AttendanceRecord:
        now = now or now_local()
        today = now.date()

        worker = self._require_worker(worker_id)
        with self._locks.hold((worker.worker_id, today)):
            record = self._attendance.get_for_worker_and_date(worker.worker_id, today)
            if not record or record.clock_in_time is None:
                raise ValidationError("Not clocked in today")
            if record.clock_out_time is not None:
                raise ValidationError("Already clocked out today")
            if now < record.clock_in_time:
                raise ValidationError("Clock-out cannot be before clock-in")

            minutes = self._calculator.worked_minutes(record.clock_in_time, now, worker.schedule)
            record = replace(record, clock_out_time=now, working_minutes=minutes)
            self._attendance.save(record)

        logger.info("Worker %s clocked out at %s (%s min)", worker.worker_id, now.isoformat(), minutes)
        return record

    def submit_progress_report(
        self,
        worker_id: int,
        summary: str,
        *,
        tasks_completed: int = 0,
        now: datetime | None = None,
    ) -> ProgressReport:
        now = now or now_local()
        worker = self._require_worker(worker_id)
        summary = require_non_empty(summary, "Summary")
        if int(tasks_completed) < 0:
            raise ValidationError("Completed task count cannot be negative")

        report = ProgressReport(
            worker_id=worker.worker_id,
            work_date=now.date(),
            summary=summary,
            submitted_at=now,
            tasks_completed=int(tasks_completed),
        )
        with self._locks.hold((worker.worker_id, now.date())):
            record = self._get_or_new(worker.worker_id, now.date())
            self._attendance.save(replace(record, progress_reports=record.progress_reports + (report,)))
        return report

    def append_event(
        self,
        worker_id: int,
        work_date: date,
        event: MonitoringEvent,
        *,
        already_locked: bool = False,
    ) -> AttendanceRecord:
        """Append a monitoring event, creating the day's record lazily.

        Pass already_locked=True when the caller holds the (worker, day) lock.
        """
        if already_locked:
            return self._append(int(worker_id), work_date, event)
        with self._locks.hold((int(worker_id), work_date)):
            return self._append(int(worker_id), work_date, event)

    def _append(self, worker_id: int, work_date: date, event: MonitoringEvent) -> AttendanceRecord:
        record = self._get_or_new(worker_id, work_date).with_event(event)
        self._attendance.save(record)
        return record

    def has_clocked_in(self, worker_id: int, work_date: date) -> bool:
        record = self._attendance.get_for_worker_and_date(int(worker_id), work_date)
        return bool(record and record.clock_in_time is not None)

    def in_break(self, worker: Worker, at: datetime) -> bool:
        minute = minute_of_day(at)
        return any(b.covers(minute) for b in worker.schedule.breaks)

    def prune_event_detail(self, *, retention_days: int, today: date | None = None) -> int:
        """Drop monitoring event detail older than the retention window.

        Summary counters stay on the record. Returns how many records were pruned.
        """
        today = today or now_local().date()
        cutoff = today - timedelta(days=int(retention_days))
        pruned = 0
        for stale in self._attendance.list_with_events_before(cutoff):
            with self._locks.hold((stale.worker_id, stale.work_date)):
                current = self._attendance.get_for_worker_and_date(stale.worker_id, stale.work_date)
                if current and current.events:
                    self._attendance.save(current.pruned())
                    pruned += 1
        logger.info("Pruned monitoring detail for %s attendance records before %s", pruned, cutoff)
        return pruned
