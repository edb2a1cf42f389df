from __future__ import annotations

import logging
import threading
import uuid
from datetime import date, datetime
from typing import Optional

from ..attendance.service import AttendanceService
from ..common.locks import KeyedLocks
from ..core.constants import DEFAULT_CAPTURE_TARGET_COUNT
from ..core.enums import MonitoringOutcome
from ..workers.model import Worker
from ..workers.repository import WorkerRepository
from .capture import PresenceCapture
from .model import MonitoringEvent, MonitoringPlan
from .planner import MonitoringWindowPlanner
from .repository import MonitoringPlanRepository
from .timers import TimerHandle, TimerService, TimerState

logger = logging.getLogger(__name__)


class DailyMonitoringScheduler:
    """Plans and fires random presence checks per worker per day.

    Outstanding timers live in a registry keyed by (worker_id, work_date).
    Plan and attendance mutations for one key share a single lock with
    AttendanceService; different workers never contend.
    """

    def __init__(
        self,
        workers: WorkerRepository,
        plans: MonitoringPlanRepository,
        attendance: AttendanceService,
        capture: PresenceCapture,
        timers: TimerService,
        locks: KeyedLocks,
        *,
        planner: Optional[MonitoringWindowPlanner] = None,
        target_count: int = DEFAULT_CAPTURE_TARGET_COUNT,
    ):
        self._workers = workers
        self._plans = plans
        self._attendance = attendance
        self._capture = capture
        self._timers = timers
        self._locks = locks
        self._planner = planner or MonitoringWindowPlanner()
        self._target_count = int(target_count)

        self._registry_lock = threading.Lock()
        self._registry: dict[tuple[int, date], list[TimerHandle]] = {}

    # -- registry ---------------------------------------------------------

    def outstanding(self, worker_id: int, work_date: date) -> list[TimerHandle]:
        with self._registry_lock:
            handles = self._registry.get((int(worker_id), work_date), [])
            return [h for h in handles if h.state == TimerState.SCHEDULED]

    def _swap_timers(self, key: tuple[int, date], handles: list[TimerHandle]) -> list[TimerHandle]:
        with self._registry_lock:
            previous = self._registry.pop(key, [])
            if handles:
                self._registry[key] = handles
            return previous

    def _drop_timers(self, worker_id: int, *, keep_date: Optional[date] = None) -> int:
        """Cancel every registered timer for a worker (optionally sparing one day)."""
        with self._registry_lock:
            keys = [k for k in self._registry if k[0] == worker_id and k[1] != keep_date]
            handles = [h for k in keys for h in self._registry.pop(k)]
        return sum(1 for h in handles if h.cancel())

    # -- day start --------------------------------------------------------

    def start_day(self, work_date: date) -> dict[int, int]:
        """Plan today's captures for every active worker scheduled to work.

        Returns {worker_id: planned capture count}. Safe to re-invoke: a live
        plan for the date is kept and only missing timers are re-armed.
        """
        scheduled: dict[int, int] = {}
        for worker in self._workers.list_active():
            if not worker.schedule.works_on(work_date):
                continue
            try:
                plan = self.plan_worker(worker, work_date)
            except Exception:
                # One worker's bad schedule or store error must not stop the others.
                logger.exception("Could not schedule monitoring for worker %s on %s", worker.worker_id, work_date)
                continue
            if plan is not None:
                scheduled[worker.worker_id] = plan.planned_count
        logger.info("Monitoring scheduled for %s workers on %s", len(scheduled), work_date)
        return scheduled

    def plan_worker(self, worker: Worker, work_date: date) -> Optional[MonitoringPlan]:
        key = (worker.worker_id, work_date)
        self._drop_timers(worker.worker_id, keep_date=work_date)

        with self._locks.hold(key):
            plan = self._plans.get(worker.worker_id, work_date)
            if plan is None or plan.cancelled:
                instants = self._planner.plan_day(worker.schedule, work_date, self._target_count)
                plan = MonitoringPlan(
                    plan_id=uuid.uuid4().hex,
                    worker_id=worker.worker_id,
                    work_date=work_date,
                    instants=tuple(instants),
                    created_at=self._timers.now(),
                )
                self._plans.save(plan)
                logger.debug(
                    "Worker %s captures on %s: %s",
                    worker.worker_id,
                    work_date,
                    ", ".join(i.strftime("%H:%M") for i in plan.instants),
                )

        if self.outstanding(worker.worker_id, work_date):
            return plan

        now = self._timers.now()
        handles = [
            self._timers.schedule(
                instant,
                self._make_callback(worker.worker_id, work_date, plan.plan_id, instant),
                name=f"capture:{worker.worker_id}:{instant.isoformat()}",
            )
            for instant in plan.pending_instants()
            if instant >= now.replace(second=0, microsecond=0)
        ]
        for stale in self._swap_timers(key, handles):
            stale.cancel()
        return plan

    def _make_callback(self, worker_id: int, work_date: date, plan_id: str, instant: datetime):
        def callback():
            self.fire(worker_id, work_date, plan_id, instant)

        return callback

    # -- firing -----------------------------------------------------------

    def fire(self, worker_id: int, work_date: date, plan_id: str, instant: datetime) -> Optional[MonitoringEvent]:
        """Run one capture instant. Returns the appended event, if any.

        Firings for a cancelled or superseded plan, or an instant already
        fired, are absorbed without side effects.
        """
        key = (worker_id, work_date)
        with self._locks.hold(key):
            plan = self._plans.get(worker_id, work_date)
            if plan is None or plan.plan_id != plan_id or plan.cancelled or instant in plan.fired:
                logger.debug("Ignoring stale capture for worker %s at %s", worker_id, instant)
                return None
            self._plans.save(plan.mark_fired(instant))

            worker = self._workers.get_by_id(worker_id)
            if worker is None or not worker.is_active:
                logger.info("Worker %s is no longer active, capture skipped", worker_id)
                return None

            now = self._timers.now()
            if self._attendance.in_break(worker, now):
                logger.info("Worker %s is on break at %s, capture skipped", worker_id, now.strftime("%H:%M"))
                return None

            if not self._attendance.has_clocked_in(worker_id, work_date):
                event = MonitoringEvent(timestamp=now, outcome=MonitoringOutcome.ABSENT, note="not clocked in")
                self._attendance.append_event(worker_id, work_date, event, already_locked=True)
                return event

        # The capture call runs outside the record lock.
        event = self._capture_event(worker_id)

        with self._locks.hold(key):
            plan = self._plans.get(worker_id, work_date)
            if plan is None or plan.plan_id != plan_id or plan.cancelled:
                logger.info("Plan for worker %s was cancelled during capture; result dropped", worker_id)
                return None
            self._attendance.append_event(worker_id, work_date, event, already_locked=True)

        logger.info("Worker %s capture at %s: %s", worker_id, instant.strftime("%H:%M"), event.outcome.value)
        return event

    def _capture_event(self, worker_id: int) -> MonitoringEvent:
        try:
            result = self._capture.capture_presence(worker_id)
        except Exception as exc:
            logger.warning("Presence capture failed for worker %s: %s", worker_id, exc)
            return MonitoringEvent(timestamp=self._timers.now(), outcome=MonitoringOutcome.CAPTURE_FAILED, note=str(exc))

        if not result.success:
            return MonitoringEvent(
                timestamp=self._timers.now(),
                outcome=MonitoringOutcome.CAPTURE_FAILED,
                evidence_ref=result.evidence_ref,
                note="capture unsuccessful",
            )
        outcome = MonitoringOutcome.PRESENT if result.present else MonitoringOutcome.ABSENT
        return MonitoringEvent(timestamp=self._timers.now(), outcome=outcome, evidence_ref=result.evidence_ref)

    # -- cancellation -----------------------------------------------------

    def cancel_worker(self, worker_id: int, work_date: Optional[date] = None) -> int:
        """Cancel a worker's outstanding captures. Idempotent.

        Returns how many timers were actually cancelled.
        """
        work_date = work_date or self._timers.now().date()
        cancelled = self._drop_timers(int(worker_id))

        with self._locks.hold((int(worker_id), work_date)):
            plan = self._plans.get(int(worker_id), work_date)
            if plan is not None and not plan.cancelled:
                self._plans.save(plan.cancel())

        if cancelled:
            logger.info("Cancelled %s pending captures for worker %s", cancelled, worker_id)
        return cancelled

    def shutdown(self) -> None:
        with self._registry_lock:
            handles = [h for hs in self._registry.values() for h in hs]
            self._registry.clear()
        for h in handles:
            h.cancel()
