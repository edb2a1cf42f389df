from __future__ import annotations

from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Optional

import pytest
from apscheduler.schedulers.background import BackgroundScheduler

from shiftwatch.attendance.model import AttendanceRecord, ProgressReport
from shiftwatch.container import EngineSettings, build_container
from shiftwatch.core.enums import MonitoringOutcome
from shiftwatch.monitoring.model import CaptureResult, MonitoringEvent, MonitoringPlan
from shiftwatch.monitoring.timers import TimerHandle, TimerState
from shiftwatch.payments.transfer import TransferInitiation
from shiftwatch.schedules.model import BreakInterval, WorkSchedule
from shiftwatch.workers.model import Payer, Worker

# 2026-03-02 is a Monday.
MONDAY = date(2026, 3, 2)


class ManualTimerService:
    """Deterministic TimerService: nothing fires until advance_to()."""

    def __init__(self, start: datetime):
        self._now = start
        self._handles: list[TimerHandle] = []

    def now(self) -> datetime:
        return self._now

    def set_now(self, when: datetime) -> None:
        self._now = when

    def schedule(self, at, callback, *, name=""):
        handle = TimerHandle(at, callback, name=name)
        self._handles.append(handle)
        return handle

    def pending(self) -> list[TimerHandle]:
        return sorted((h for h in self._handles if h.state == TimerState.SCHEDULED), key=lambda h: h.at)

    def advance_to(self, when: datetime) -> int:
        fired = 0
        while True:
            due = [h for h in self.pending() if h.at <= when]
            if not due:
                break
            handle = due[0]
            self._now = max(self._now, handle.at)
            handle.fire()
            fired += 1
        self._now = when
        return fired


class FakeCapture:
    def __init__(self, *, present: bool = True, fail: bool = False):
        self.present = present
        self.fail = fail
        self.calls: list[int] = []

    def capture_presence(self, worker_id: int) -> CaptureResult:
        self.calls.append(worker_id)
        if self.fail:
            raise RuntimeError("camera offline")
        return CaptureResult(success=True, present=self.present, evidence_ref=f"img-{worker_id}-{len(self.calls)}")


class FakeTransfers:
    def __init__(self, *, accept: bool = True, raise_error: bool = False):
        self.accept = accept
        self.raise_error = raise_error
        self.calls: list[tuple[str, Decimal, str]] = []

    def initiate_transfer(self, recipient_ref, amount, reference):
        self.calls.append((recipient_ref, amount, reference))
        if self.raise_error:
            raise ConnectionError("network down")
        if not self.accept:
            return TransferInitiation(accepted=False, error="recipient account closed")
        return TransferInitiation(accepted=True, transfer_ref=f"tr-{reference}")


class RecordingNotifier:
    def __init__(self, *, fail: bool = False):
        self.fail = fail
        self.sent: list[tuple[str, str, dict]] = []

    def notify(self, recipient_ref, kind, payload):
        if self.fail:
            raise RuntimeError("mail server down")
        self.sent.append((recipient_ref, kind.value, payload))

    def kinds(self) -> list[str]:
        return [k for _, k, _ in self.sent]


def office_schedule() -> WorkSchedule:
    # Mon-Fri 09:00-17:00, lunch 12:00-13:00
    return WorkSchedule(
        working_days=(0, 1, 2, 3, 4),
        start_minute=9 * 60,
        end_minute=17 * 60,
        breaks=(BreakInterval(12 * 60, 13 * 60),),
    )


def make_worker(worker_id: int = 1, *, payer_id: int = 1, salary: str = "100000", recipient: Optional[str] = "acct-1") -> Worker:
    return Worker(
        worker_id=worker_id,
        full_name=f"Worker {worker_id}",
        payer_id=payer_id,
        monthly_salary=Decimal(salary),
        schedule=office_schedule(),
        recipient_ref=recipient,
    )


def seed_day(
    container,
    worker_id: int,
    day: date,
    *,
    present: int,
    planned: int = 10,
    report: bool = True,
    complete: bool = True,
) -> None:
    """Store a finished day directly: a plan of `planned` captures, `present` of them present."""
    instants = tuple(datetime.combine(day, datetime.min.time()) + timedelta(hours=9, minutes=7 * i) for i in range(planned))
    container.plans_repo.save(
        MonitoringPlan(
            plan_id=f"plan-{worker_id}-{day.isoformat()}",
            worker_id=worker_id,
            work_date=day,
            instants=instants,
            created_at=datetime.combine(day, datetime.min.time()),
            fired=frozenset(instants),
        )
    )
    events = tuple(
        MonitoringEvent(
            timestamp=instant,
            outcome=MonitoringOutcome.PRESENT if i < present else MonitoringOutcome.ABSENT,
        )
        for i, instant in enumerate(instants)
    )
    reports = ()
    if report:
        reports = (ProgressReport(worker_id, day, "closed three tickets", datetime.combine(day, datetime.min.time()) + timedelta(hours=16)),)
    container.attendance_repo.save(
        AttendanceRecord(
            worker_id=worker_id,
            work_date=day,
            clock_in_time=datetime.combine(day, datetime.min.time()) + timedelta(hours=9),
            clock_out_time=(datetime.combine(day, datetime.min.time()) + timedelta(hours=17)) if complete else None,
            events=events,
            progress_reports=reports,
            working_minutes=7 * 60 if complete else 0,
        )
    )


@pytest.fixture
def timers():
    return ManualTimerService(datetime(2026, 3, 2, 8, 0))


@pytest.fixture
def capture():
    return FakeCapture()


@pytest.fixture
def transfers():
    return FakeTransfers()


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def settings():
    return EngineSettings(lock_timeout_seconds=2.0)


@pytest.fixture
def jobs():
    # Started paused: recurring jobs register and compute run times but never fire.
    scheduler = BackgroundScheduler()
    scheduler.start(paused=True)
    yield scheduler
    if scheduler.running:
        scheduler.shutdown(wait=False)


@pytest.fixture
def container(settings, timers, jobs, capture, transfers, notifier):
    c = build_container(
        settings=settings, capture=capture, transfers=transfers, notifier=notifier, timers=timers, jobs=jobs
    )
    c.payers_repo.save(Payer(payer_id=1, full_name="Acme Ltd", balance=Decimal("20000.00"), contact_ref="payer-1@acme.test"))
    c.workers_repo.save(make_worker(1))
    return c
