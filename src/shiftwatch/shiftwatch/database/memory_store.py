"""In-process record store.

Used for tests and for STORE=memory deployments. Every repository guards
its map with its own lock so create-if-absent and conditional debits are
atomic.
"""

from __future__ import annotations

import threading
from dataclasses import replace
from datetime import date, datetime
from decimal import Decimal
from typing import Iterable, Optional, Sequence

from ..attendance.model import AttendanceRecord
from ..core.enums import DebitResult, PaymentStatus
from ..monitoring.model import MonitoringPlan
from ..payments.model import NewPayment, Payment
from ..workers.model import Payer, Worker


class MemoryWorkerRepository:
    def __init__(self, workers: Iterable[Worker] = ()):
        self._lock = threading.Lock()
        self._by_id: dict[int, Worker] = {w.worker_id: w for w in workers}

    def get_by_id(self, worker_id: int) -> Optional[Worker]:
        with self._lock:
            return self._by_id.get(int(worker_id))

    def list_active(self) -> Sequence[Worker]:
        with self._lock:
            return [w for w in self._by_id.values() if w.is_active]

    def set_active(self, worker_id: int, *, is_active: bool) -> bool:
        with self._lock:
            worker = self._by_id.get(int(worker_id))
            if not worker:
                return False
            self._by_id[worker.worker_id] = replace(worker, is_active=bool(is_active))
            return True

    def save(self, worker: Worker) -> None:
        with self._lock:
            self._by_id[worker.worker_id] = worker


class MemoryPayerRepository:
    def __init__(self, payers: Iterable[Payer] = ()):
        self._lock = threading.Lock()
        self._by_id: dict[int, Payer] = {p.payer_id: p for p in payers}
        self.debit_count = 0

    def get_by_id(self, payer_id: int) -> Optional[Payer]:
        with self._lock:
            return self._by_id.get(int(payer_id))

    def save(self, payer: Payer) -> None:
        with self._lock:
            self._by_id[payer.payer_id] = payer

    def try_debit(self, payer_id: int, amount: Decimal) -> bool:
        with self._lock:
            payer = self._by_id.get(int(payer_id))
            if not payer or payer.balance < amount:
                return False
            self._by_id[payer.payer_id] = replace(payer, balance=payer.balance - amount)
            self.debit_count += 1
            return True

    def credit(self, payer_id: int, amount: Decimal) -> None:
        with self._lock:
            payer = self._by_id[int(payer_id)]
            self._by_id[payer.payer_id] = replace(payer, balance=payer.balance + amount)


class MemoryAttendanceRepository:
    def __init__(self):
        self._lock = threading.Lock()
        self._by_key: dict[tuple[int, date], AttendanceRecord] = {}

    def get_for_worker_and_date(self, worker_id: int, work_date: date) -> Optional[AttendanceRecord]:
        with self._lock:
            return self._by_key.get((int(worker_id), work_date))

    def save(self, record: AttendanceRecord) -> None:
        with self._lock:
            self._by_key[(record.worker_id, record.work_date)] = record

    def list_for_date(self, work_date: date) -> Sequence[AttendanceRecord]:
        with self._lock:
            return [r for (_, d), r in self._by_key.items() if d == work_date]

    def list_with_events_before(self, cutoff: date) -> Sequence[AttendanceRecord]:
        with self._lock:
            return [r for (_, d), r in self._by_key.items() if d < cutoff and r.events]


class MemoryMonitoringPlanRepository:
    def __init__(self):
        self._lock = threading.Lock()
        self._by_key: dict[tuple[int, date], MonitoringPlan] = {}

    def get(self, worker_id: int, work_date: date) -> Optional[MonitoringPlan]:
        with self._lock:
            return self._by_key.get((int(worker_id), work_date))

    def save(self, plan: MonitoringPlan) -> None:
        with self._lock:
            self._by_key[(plan.worker_id, plan.work_date)] = plan


class MemoryPaymentRepository:
    def __init__(self, payers: MemoryPayerRepository):
        self._payers = payers
        self._lock = threading.Lock()
        self._debit_lock = threading.Lock()
        self._by_id: dict[int, Payment] = {}
        self._by_key: dict[tuple[int, date], int] = {}
        self._next_id = 1

    def get_by_id(self, payment_id: int) -> Optional[Payment]:
        with self._lock:
            return self._by_id.get(int(payment_id))

    def get_for_worker_and_date(self, worker_id: int, work_date: date) -> Optional[Payment]:
        with self._lock:
            pid = self._by_key.get((int(worker_id), work_date))
            return self._by_id.get(pid) if pid else None

    def create_if_absent(self, new: NewPayment) -> tuple[Payment, bool]:
        with self._lock:
            key = (new.worker_id, new.work_date)
            if key in self._by_key:
                return self._by_id[self._by_key[key]], False
            payment = Payment(
                payment_id=self._next_id,
                worker_id=new.worker_id,
                payer_id=new.payer_id,
                work_date=new.work_date,
                amount=new.amount,
                currency=new.currency,
                efficiency_score=new.efficiency_score,
                created_at=new.created_at,
                deadline=new.deadline,
            )
            self._next_id += 1
            self._by_id[payment.payment_id] = payment
            self._by_key[key] = payment.payment_id
            return payment, True

    def save(self, payment: Payment, *, expected_status: PaymentStatus) -> bool:
        with self._lock:
            current = self._by_id.get(payment.payment_id)
            if not current or current.status != expected_status:
                return False
            self._by_id[payment.payment_id] = payment
            return True

    def save_debited(self, payment: Payment, *, expected_status: PaymentStatus) -> DebitResult:
        # The debit is undone if the status write does not land.
        with self._debit_lock:
            current = self.get_by_id(payment.payment_id)
            if not current or current.status != expected_status:
                return DebitResult.CONFLICT
            if not self._payers.try_debit(payment.payer_id, payment.amount):
                return DebitResult.INSUFFICIENT_FUNDS
            try:
                saved = self.save(payment, expected_status=expected_status)
            except Exception:
                self._payers.credit(payment.payer_id, payment.amount)
                raise
            if not saved:
                self._payers.credit(payment.payer_id, payment.amount)
                return DebitResult.CONFLICT
            return DebitResult.DEBITED

    def find_by_transfer_ref(self, transfer_ref: str) -> Optional[Payment]:
        with self._lock:
            return next((p for p in self._by_id.values() if p.transfer_ref == transfer_ref), None)

    def list_by_status(self, status: PaymentStatus) -> Sequence[Payment]:
        with self._lock:
            return sorted((p for p in self._by_id.values() if p.status == status), key=lambda p: p.payment_id)

    def list_overdue_pending(self, now: datetime) -> Sequence[Payment]:
        with self._lock:
            return sorted(
                (p for p in self._by_id.values() if p.status == PaymentStatus.PENDING and p.deadline <= now),
                key=lambda p: p.deadline,
            )
