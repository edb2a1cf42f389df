from __future__ import annotations

from decimal import Decimal
from typing import Any, Dict, Optional, Sequence

from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchall, fetchone, from_json, to_json
from ..schedules.model import BreakInterval, WorkSchedule
from .model import Payer, Worker
from .repository import PayerRepository, WorkerRepository

_WORKER_COLUMNS = (
    "worker_id, full_name, payer_id, monthly_salary, working_days, start_minute, end_minute, "
    "breaks, recipient_ref, is_active"
)


def _row_to_worker(r: Dict[str, Any]) -> Worker:
    schedule = WorkSchedule(
        working_days=tuple(int(d) for d in from_json(r["working_days"], [])),
        start_minute=int(r["start_minute"]),
        end_minute=int(r["end_minute"]),
        breaks=tuple(BreakInterval(int(s), int(e)) for s, e in from_json(r["breaks"], [])),
    )
    return Worker(
        worker_id=int(r["worker_id"]),
        full_name=str(r["full_name"]),
        payer_id=int(r["payer_id"]),
        monthly_salary=Decimal(str(r["monthly_salary"])),
        schedule=schedule,
        recipient_ref=r.get("recipient_ref"),
        is_active=bool(r.get("is_active", 1)),
    )


class MySQLWorkerRepository(WorkerRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def get_by_id(self, worker_id: int) -> Optional[Worker]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"SELECT {_WORKER_COLUMNS} FROM workers WHERE worker_id=%s", (int(worker_id),))
            r = fetchone(cur)
            return _row_to_worker(r) if r else None

    def list_active(self) -> Sequence[Worker]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"SELECT {_WORKER_COLUMNS} FROM workers WHERE is_active=1 ORDER BY worker_id")
            return [_row_to_worker(r) for r in fetchall(cur)]

    def set_active(self, worker_id: int, *, is_active: bool) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute("UPDATE workers SET is_active=%s WHERE worker_id=%s", (1 if is_active else 0, int(worker_id)))
            return cur.rowcount > 0

    def save(self, worker: Worker) -> None:
        schedule = worker.schedule
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                INSERT INTO workers({_WORKER_COLUMNS})
                VALUES(%s,%s,%s,%s,%s,%s,%s,%s,%s,%s)
                ON DUPLICATE KEY UPDATE
                    full_name=VALUES(full_name), payer_id=VALUES(payer_id),
                    monthly_salary=VALUES(monthly_salary), working_days=VALUES(working_days),
                    start_minute=VALUES(start_minute), end_minute=VALUES(end_minute),
                    breaks=VALUES(breaks), recipient_ref=VALUES(recipient_ref), is_active=VALUES(is_active)
                """,
                (
                    worker.worker_id,
                    worker.full_name,
                    worker.payer_id,
                    worker.monthly_salary,
                    to_json(list(schedule.working_days)),
                    schedule.start_minute,
                    schedule.end_minute,
                    to_json([[b.start_minute, b.end_minute] for b in schedule.breaks]),
                    worker.recipient_ref,
                    1 if worker.is_active else 0,
                ),
            )


class MySQLPayerRepository(PayerRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def get_by_id(self, payer_id: int) -> Optional[Payer]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                "SELECT payer_id, full_name, balance, contact_ref FROM payers WHERE payer_id=%s",
                (int(payer_id),),
            )
            r = fetchone(cur)
            if not r:
                return None
            return Payer(
                payer_id=int(r["payer_id"]),
                full_name=str(r["full_name"]),
                balance=Decimal(str(r["balance"])),
                contact_ref=r.get("contact_ref"),
            )

    def credit(self, payer_id: int, amount: Decimal) -> None:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute("UPDATE payers SET balance = balance + %s WHERE payer_id=%s", (amount, int(payer_id)))
