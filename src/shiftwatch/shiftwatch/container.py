from __future__ import annotations

from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any, Optional

from apscheduler.schedulers.base import BaseScheduler

from .attendance.mysql_attendance_repository import MySQLAttendanceRepository
from .attendance.repository import AttendanceRepository
from .attendance.service import AttendanceService
from .common.locks import KeyedLocks
from .core.constants import (
    DEFAULT_APPROVAL_WINDOW_MINUTES,
    DEFAULT_AUTO_APPROVE_THRESHOLD,
    DEFAULT_CAPTURE_TARGET_COUNT,
    DEFAULT_CURRENCY,
    DEFAULT_LOCK_TIMEOUT_SECONDS,
    DEFAULT_RETENTION_DAYS,
    DEFAULT_SWEEP_INTERVAL_MINUTES,
)
from .core.enums import AutoApproveMode, ReconciliationPolicy
from .database.connection import DBConfig, DatabaseConnection
from .database.memory_store import (
    MemoryAttendanceRepository,
    MemoryMonitoringPlanRepository,
    MemoryPayerRepository,
    MemoryPaymentRepository,
    MemoryWorkerRepository,
)
from .efficiency.service import EfficiencyService
from .monitoring.capture import PresenceCapture, UnconfiguredPresenceCapture
from .monitoring.mysql_plan_repository import MySQLMonitoringPlanRepository
from .monitoring.repository import MonitoringPlanRepository
from .monitoring.scheduler import DailyMonitoringScheduler
from .monitoring.timers import BackgroundTimerService, TimerService, new_background_scheduler
from .notifications.notifier import LoggingNotifier, Notifier
from .notifications.outbox import Outbox, OutboxDrainer
from .orchestrator import DailyOrchestrator, OrchestratorSettings
from .payments.escalation import EscalationSweeper
from .payments.mysql_payment_repository import MySQLPaymentRepository
from .payments.repository import PaymentRepository
from .payments.service import PaymentPolicy, PaymentService
from .payments.transfer import TransferGateway, UnconfiguredTransferGateway
from .payroll.factory import calculator_for
from .workers.mysql_worker_repository import MySQLPayerRepository, MySQLWorkerRepository
from .workers.repository import PayerRepository, WorkerRepository
from .workers.service import PayerService, WorkerService


@dataclass(frozen=True)
class EngineSettings:
    store: str = "memory"
    capture_target_count: int = DEFAULT_CAPTURE_TARGET_COUNT
    approval_window_minutes: int = DEFAULT_APPROVAL_WINDOW_MINUTES
    auto_approve_threshold: int = DEFAULT_AUTO_APPROVE_THRESHOLD
    auto_approve_mode: AutoApproveMode = AutoApproveMode.ON_DEADLINE
    pay_calculator: str = "standard"
    currency: str = DEFAULT_CURRENCY
    day_start_minute: int = 0
    end_of_day_minute: int = 18 * 60
    sweep_interval_minutes: int = DEFAULT_SWEEP_INTERVAL_MINUTES
    retention_days: int = DEFAULT_RETENTION_DAYS
    reconciliation: ReconciliationPolicy = ReconciliationPolicy.MANUAL
    lock_timeout_seconds: float = DEFAULT_LOCK_TIMEOUT_SECONDS


@dataclass(frozen=True)
class Container:
    settings: EngineSettings

    workers_repo: WorkerRepository
    payers_repo: PayerRepository
    attendance_repo: AttendanceRepository
    plans_repo: MonitoringPlanRepository
    payments_repo: PaymentRepository

    timers: TimerService
    jobs: BaseScheduler
    payment_locks: KeyedLocks
    outbox: Outbox
    drainer: OutboxDrainer

    attendance_service: AttendanceService
    efficiency_service: EfficiencyService
    scheduler: DailyMonitoringScheduler
    worker_service: WorkerService
    payer_service: PayerService
    payment_service: PaymentService
    sweeper: EscalationSweeper
    orchestrator: DailyOrchestrator

    conn: Optional[DatabaseConnection] = field(default=None)


def _repositories(settings: EngineSettings, db_config: Optional[dict]) -> tuple[Any, ...]:
    if settings.store == "mysql":
        if not db_config:
            raise ValueError("STORE=mysql needs DB_CONFIG")
        conn = DatabaseConnection.get_instance(DBConfig.from_dict(db_config))
        return (
            conn,
            MySQLWorkerRepository(conn),
            MySQLPayerRepository(conn),
            MySQLAttendanceRepository(conn),
            MySQLMonitoringPlanRepository(conn),
            MySQLPaymentRepository(conn),
        )
    if settings.store == "memory":
        payers = MemoryPayerRepository()
        return (
            None,
            MemoryWorkerRepository(),
            payers,
            MemoryAttendanceRepository(),
            MemoryMonitoringPlanRepository(),
            MemoryPaymentRepository(payers),
        )
    raise ValueError(f"Unknown STORE: {settings.store}")


def build_container(
    *,
    settings: Optional[EngineSettings] = None,
    db_config: Optional[dict] = None,
    capture: Optional[PresenceCapture] = None,
    transfers: Optional[TransferGateway] = None,
    notifier: Optional[Notifier] = None,
    timers: Optional[TimerService] = None,
    jobs: Optional[BaseScheduler] = None,
) -> Container:
    settings = settings or EngineSettings()
    conn, workers_repo, payers_repo, attendance_repo, plans_repo, payments_repo = _repositories(settings, db_config)

    if timers is None:
        timers = BackgroundTimerService()
    if jobs is None:
        # Recurring triggers share the timer service's scheduler when there is one.
        jobs = timers.scheduler if isinstance(timers, BackgroundTimerService) else new_background_scheduler()
    calculator = calculator_for(settings.pay_calculator)

    # Attendance and monitoring share the (worker_id, work_date) locks.
    record_locks = KeyedLocks(timeout=settings.lock_timeout_seconds, name="attendance record")
    payment_locks = KeyedLocks(timeout=settings.lock_timeout_seconds, name="payment")

    outbox = Outbox(clock=timers.now)
    drainer = OutboxDrainer(outbox, notifier or LoggingNotifier())

    attendance_service = AttendanceService(attendance_repo, workers_repo, record_locks, calculator=calculator)
    efficiency_service = EfficiencyService(attendance_repo, plans_repo, workers_repo)
    scheduler = DailyMonitoringScheduler(
        workers_repo,
        plans_repo,
        attendance_service,
        capture or UnconfiguredPresenceCapture(),
        timers,
        record_locks,
        target_count=settings.capture_target_count,
    )
    worker_service = WorkerService(workers_repo, scheduler)
    payer_service = PayerService(payers_repo)
    payment_service = PaymentService(
        payments_repo,
        payers_repo,
        workers_repo,
        attendance_repo,
        efficiency_service,
        transfers or UnconfiguredTransferGateway(),
        outbox,
        payment_locks,
        policy=PaymentPolicy(
            approval_window=timedelta(minutes=settings.approval_window_minutes),
            auto_approve_threshold=settings.auto_approve_threshold,
            auto_approve_mode=settings.auto_approve_mode,
            reconciliation=settings.reconciliation,
            currency=settings.currency,
        ),
        calculator=calculator,
        clock=timers.now,
    )
    sweeper = EscalationSweeper(payments_repo, payment_service, outbox, clock=timers.now)
    orchestrator = DailyOrchestrator(
        workers=workers_repo,
        payers=payers_repo,
        attendance_repo=attendance_repo,
        attendance=attendance_service,
        scheduler=scheduler,
        efficiency=efficiency_service,
        payments=payment_service,
        sweeper=sweeper,
        outbox=outbox,
        drainer=drainer,
        timers=timers,
        jobs=jobs,
        settings=OrchestratorSettings(
            day_start_minute=settings.day_start_minute,
            end_of_day_minute=settings.end_of_day_minute,
            sweep_interval=timedelta(minutes=settings.sweep_interval_minutes),
            retention_days=settings.retention_days,
        ),
    )

    return Container(
        settings=settings,
        workers_repo=workers_repo,
        payers_repo=payers_repo,
        attendance_repo=attendance_repo,
        plans_repo=plans_repo,
        payments_repo=payments_repo,
        timers=timers,
        jobs=jobs,
        payment_locks=payment_locks,
        outbox=outbox,
        drainer=drainer,
        attendance_service=attendance_service,
        efficiency_service=efficiency_service,
        scheduler=scheduler,
        worker_service=worker_service,
        payer_service=payer_service,
        payment_service=payment_service,
        sweeper=sweeper,
        orchestrator=orchestrator,
        conn=conn,
    )
