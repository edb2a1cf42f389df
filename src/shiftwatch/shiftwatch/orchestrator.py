from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Callable, Optional

from apscheduler.job import Job
from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.base import BaseScheduler

from .attendance.repository import AttendanceRepository
from .attendance.service import AttendanceService
from .common.datetime_utils import at_minute
from .core.constants import DEFAULT_RETENTION_DAYS, DEFAULT_SWEEP_INTERVAL_MINUTES
from .core.enums import NotificationKind
from .core.exceptions import DomainError
from .efficiency.service import EfficiencyService
from .monitoring.scheduler import DailyMonitoringScheduler
from .monitoring.timers import TimerService, new_background_scheduler
from .notifications.outbox import Outbox, OutboxDrainer
from .payments.escalation import EscalationSweeper, SweepReport
from .payments.service import PaymentService
from .workers.repository import PayerRepository, WorkerRepository

logger = logging.getLogger(__name__)

_WEEKDAYS = ("mon", "tue", "wed", "thu", "fri", "sat", "sun")
_JOB_IDS = ("day_start", "end_of_day", "sweep", "cleanup")


@dataclass(frozen=True)
class OrchestratorSettings:
    day_start_minute: int = 0
    end_of_day_minute: int = 18 * 60
    sweep_interval: timedelta = timedelta(minutes=DEFAULT_SWEEP_INTERVAL_MINUTES)
    retention_days: int = DEFAULT_RETENTION_DAYS
    cleanup_weekday: int = 6


@dataclass
class EndOfDayReport:
    work_date: date
    created: list[int] = field(default_factory=list)
    skipped: list[int] = field(default_factory=list)
    failed: list[int] = field(default_factory=list)


class DailyOrchestrator:
    """The only process-wide scheduled entry point.

    Fixed wall-clock triggers: day start (plan monitoring), end of day
    (create payments, efficiency reports), periodic sweep (escalation plus
    outbox delivery) and a weekly retention cleanup. Every trigger is safe
    to re-invoke.
    """

    def __init__(
        self,
        *,
        workers: WorkerRepository,
        payers: PayerRepository,
        attendance_repo: AttendanceRepository,
        attendance: AttendanceService,
        scheduler: DailyMonitoringScheduler,
        efficiency: EfficiencyService,
        payments: PaymentService,
        sweeper: EscalationSweeper,
        outbox: Outbox,
        drainer: OutboxDrainer,
        timers: TimerService,
        jobs: Optional[BaseScheduler] = None,
        settings: Optional[OrchestratorSettings] = None,
    ):
        self._workers = workers
        self._payers = payers
        self._attendance_repo = attendance_repo
        self._attendance = attendance
        self._scheduler = scheduler
        self._efficiency = efficiency
        self._payments = payments
        self._sweeper = sweeper
        self._outbox = outbox
        self._drainer = drainer
        self._timers = timers
        self._jobs = jobs or new_background_scheduler()
        self._settings = settings or OrchestratorSettings()

    # -- triggers ---------------------------------------------------------

    def trigger_day_start(self, work_date: date) -> dict[int, int]:
        logger.info("Day start for %s", work_date)
        return self._scheduler.start_day(work_date)

    def trigger_end_of_day(self, work_date: date) -> EndOfDayReport:
        logger.info("End of day for %s", work_date)
        report = EndOfDayReport(work_date=work_date)
        rows_by_payer: dict[int, list[dict]] = {}

        for worker in self._workers.list_active():
            if not worker.schedule.works_on(work_date):
                continue
            try:
                record = self._attendance_repo.get_for_worker_and_date(worker.worker_id, work_date)
                score = self._efficiency.get_efficiency_score(worker.worker_id, work_date)
                rows_by_payer.setdefault(worker.payer_id, []).append(
                    {
                        "worker_id": worker.worker_id,
                        "worker_name": worker.full_name,
                        "efficiency": score,
                        "status": _attendance_status(record),
                        "working_hours": str(record.working_hours) if record else "0.00",
                        "progress_reports": len(record.progress_reports) if record else 0,
                    }
                )

                if not record or not record.is_complete:
                    logger.info("Skipping payment for worker %s - incomplete attendance", worker.worker_id)
                    report.skipped.append(worker.worker_id)
                    continue
                payment = self._payments.create(worker.worker_id, work_date)
                report.created.append(payment.payment_id)
            except DomainError as exc:
                logger.warning("Payment for worker %s on %s not created: %s", worker.worker_id, work_date, exc)
                report.failed.append(worker.worker_id)
            except Exception:
                logger.exception("Payment pass failed for worker %s on %s", worker.worker_id, work_date)
                report.failed.append(worker.worker_id)

        for payer_id, rows in rows_by_payer.items():
            payer = self._payers.get_by_id(payer_id)
            recipient = payer.contact_ref if payer and payer.contact_ref else f"payer:{payer_id}"
            self._outbox.append(
                recipient,
                NotificationKind.EFFICIENCY_REPORT,
                {"date": work_date.isoformat(), "workers": rows},
            )

        self._drainer.drain()
        return report

    def trigger_sweep(self, now: datetime) -> SweepReport:
        report = self._sweeper.sweep(now)
        self._drainer.drain()
        return report

    def trigger_cleanup(self, today: date) -> int:
        return self._attendance.prune_event_detail(retention_days=self._settings.retention_days, today=today)

    def get_efficiency_score(self, worker_id: int, work_date: date) -> int:
        return self._efficiency.get_efficiency_score(worker_id, work_date)

    # -- wall-clock wiring -----------------------------------------------

    def start(self) -> None:
        """Register the recurring jobs and catch up after a restart."""
        now = self._timers.now()

        # Overdue payments are recomputed from persisted deadlines.
        self._safe("sweep", lambda: self.trigger_sweep(now))
        if now >= at_minute(now.date(), self._settings.day_start_minute):
            self._safe("day_start", lambda: self.trigger_day_start(now.date()))

        day_start = divmod(self._settings.day_start_minute, 60)
        end_of_day = divmod(self._settings.end_of_day_minute, 60)
        self._jobs.add_job(
            self._run_day_start, "cron", hour=day_start[0], minute=day_start[1],
            id="day_start", replace_existing=True,
        )
        self._jobs.add_job(
            self._run_end_of_day, "cron", hour=end_of_day[0], minute=end_of_day[1],
            id="end_of_day", replace_existing=True,
        )
        self._jobs.add_job(
            self._run_sweep, "interval", seconds=int(self._settings.sweep_interval.total_seconds()),
            id="sweep", replace_existing=True,
        )
        self._jobs.add_job(
            self._run_cleanup, "cron", day_of_week=_WEEKDAYS[self._settings.cleanup_weekday], hour=0, minute=0,
            id="cleanup", replace_existing=True,
        )
        if not self._jobs.running:
            self._jobs.start()
        logger.info("Orchestrator started")

    def stop(self) -> None:
        for job_id in _JOB_IDS:
            try:
                self._jobs.remove_job(job_id)
            except JobLookupError:
                pass
        self._scheduler.shutdown()
        logger.info("Orchestrator stopped")

    def armed(self) -> dict[str, Job]:
        return {job.id: job for job in self._jobs.get_jobs() if job.id in _JOB_IDS}

    def _safe(self, name: str, fn: Callable[[], object]) -> None:
        try:
            fn()
        except Exception:
            logger.exception("Trigger %s failed", name)

    def _run_day_start(self) -> None:
        self._safe("day_start", lambda: self.trigger_day_start(self._timers.now().date()))

    def _run_end_of_day(self) -> None:
        self._safe("end_of_day", lambda: self.trigger_end_of_day(self._timers.now().date()))

    def _run_sweep(self) -> None:
        self._safe("sweep", lambda: self.trigger_sweep(self._timers.now()))

    def _run_cleanup(self) -> None:
        self._safe("cleanup", lambda: self.trigger_cleanup(self._timers.now().date()))


def _attendance_status(record) -> str:
    if record is None or record.clock_in_time is None:
        return "absent"
    if record.clock_out_time is None:
        return "working (no clock out)"
    return "present"
