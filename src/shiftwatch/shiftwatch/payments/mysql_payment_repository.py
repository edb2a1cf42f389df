from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, Optional, Sequence

import mysql.connector

from ..core.enums import DebitResult, PaymentStatus
from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchall, fetchone, from_json, parse_stored_datetime, to_json
from .model import NewPayment, Payment, PaymentTransition
from .repository import PaymentRepository

# Columns written on every save; identity and creation fields never change.
_MUTABLE_COLUMNS = (
    "status",
    "approved_by",
    "approved_at",
    "declined_by",
    "declined_at",
    "decline_reason",
    "admin_reviewed_by",
    "admin_reviewed_at",
    "admin_review_note",
    "debited_at",
    "transfer_ref",
    "transfer_initiated_at",
    "settled_at",
    "failure_reason",
    "reversed_by",
    "reversed_at",
    "history",
)

_SELECT = (
    "SELECT payment_id, worker_id, payer_id, work_date, amount, currency, efficiency_score, created_at, deadline, "
    + ", ".join(_MUTABLE_COLUMNS)
    + " FROM payments"
)


def _row_to_payment(r: Dict[str, Any]) -> Payment:
    history = tuple(
        PaymentTransition(
            from_status=PaymentStatus(h["from_status"]),
            to_status=PaymentStatus(h["to_status"]),
            actor=h["actor"],
            at=parse_stored_datetime(h["at"]),
            note=h.get("note"),
        )
        for h in from_json(r["history"], [])
    )
    return Payment(
        payment_id=int(r["payment_id"]),
        worker_id=int(r["worker_id"]),
        payer_id=int(r["payer_id"]),
        work_date=r["work_date"],
        amount=Decimal(str(r["amount"])),
        currency=str(r["currency"]),
        efficiency_score=int(r["efficiency_score"]),
        created_at=r["created_at"],
        deadline=r["deadline"],
        status=PaymentStatus(r["status"]),
        approved_by=r.get("approved_by"),
        approved_at=r.get("approved_at"),
        declined_by=r.get("declined_by"),
        declined_at=r.get("declined_at"),
        decline_reason=r.get("decline_reason"),
        admin_reviewed_by=r.get("admin_reviewed_by"),
        admin_reviewed_at=r.get("admin_reviewed_at"),
        admin_review_note=r.get("admin_review_note"),
        debited_at=r.get("debited_at"),
        transfer_ref=r.get("transfer_ref"),
        transfer_initiated_at=r.get("transfer_initiated_at"),
        settled_at=r.get("settled_at"),
        failure_reason=r.get("failure_reason"),
        reversed_by=r.get("reversed_by"),
        reversed_at=r.get("reversed_at"),
        history=history,
    )


def _mutable_values(payment: Payment) -> list[object]:
    history = [
        {"from_status": h.from_status, "to_status": h.to_status, "actor": h.actor, "at": h.at, "note": h.note}
        for h in payment.history
    ]
    values: list[object] = [payment.status.value]
    values.extend(getattr(payment, col) for col in _MUTABLE_COLUMNS[1:-1])
    values.append(to_json(history))
    return values


class MySQLPaymentRepository(PaymentRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def get_by_id(self, payment_id: int) -> Optional[Payment]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"{_SELECT} WHERE payment_id=%s", (int(payment_id),))
            r = fetchone(cur)
            return _row_to_payment(r) if r else None

    def get_for_worker_and_date(self, worker_id: int, work_date: date) -> Optional[Payment]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"{_SELECT} WHERE worker_id=%s AND work_date=%s", (int(worker_id), work_date))
            r = fetchone(cur)
            return _row_to_payment(r) if r else None

    def create_if_absent(self, new: NewPayment) -> tuple[Payment, bool]:
        try:
            with db_cursor(self._conn_factory) as (_, cur):
                cur.execute(
                    """
                    INSERT INTO payments(worker_id, payer_id, work_date, amount, currency, efficiency_score,
                                         created_at, deadline, status, history)
                    VALUES(%s,%s,%s,%s,%s,%s,%s,%s,%s,%s)
                    """,
                    (
                        new.worker_id,
                        new.payer_id,
                        new.work_date,
                        new.amount,
                        new.currency,
                        new.efficiency_score,
                        new.created_at,
                        new.deadline,
                        PaymentStatus.PENDING.value,
                        to_json([]),
                    ),
                )
                payment_id = int(cur.lastrowid)
        except mysql.connector.IntegrityError:
            # UNIQUE(worker_id, work_date): someone else created it first.
            existing = self.get_for_worker_and_date(new.worker_id, new.work_date)
            if existing is None:
                raise
            return existing, False
        return self.get_by_id(payment_id), True

    def save(self, payment: Payment, *, expected_status: PaymentStatus) -> bool:
        assignments = ", ".join(f"{col}=%s" for col in _MUTABLE_COLUMNS)
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"UPDATE payments SET {assignments} WHERE payment_id=%s AND status=%s",
                (*_mutable_values(payment), payment.payment_id, expected_status.value),
            )
            return cur.rowcount > 0

    def save_debited(self, payment: Payment, *, expected_status: PaymentStatus) -> DebitResult:
        assignments = ", ".join(f"{col}=%s" for col in _MUTABLE_COLUMNS)
        with db_cursor(self._conn_factory) as (conn, cur):
            # Same transaction: the balance check and debit, then the status compare-and-set.
            cur.execute(
                "UPDATE payers SET balance = balance - %s WHERE payer_id=%s AND balance >= %s",
                (payment.amount, payment.payer_id, payment.amount),
            )
            if cur.rowcount == 0:
                return DebitResult.INSUFFICIENT_FUNDS
            cur.execute(
                f"UPDATE payments SET {assignments} WHERE payment_id=%s AND status=%s",
                (*_mutable_values(payment), payment.payment_id, expected_status.value),
            )
            if cur.rowcount == 0:
                conn.rollback()
                return DebitResult.CONFLICT
        return DebitResult.DEBITED

    def find_by_transfer_ref(self, transfer_ref: str) -> Optional[Payment]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"{_SELECT} WHERE transfer_ref=%s LIMIT 1", (transfer_ref,))
            r = fetchone(cur)
            return _row_to_payment(r) if r else None

    def list_by_status(self, status: PaymentStatus) -> Sequence[Payment]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"{_SELECT} WHERE status=%s ORDER BY payment_id", (status.value,))
            return [_row_to_payment(r) for r in fetchall(cur)]

    def list_overdue_pending(self, now: datetime) -> Sequence[Payment]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"{_SELECT} WHERE status=%s AND deadline <= %s ORDER BY deadline",
                (PaymentStatus.PENDING.value, now),
            )
            return [_row_to_payment(r) for r in fetchall(cur)]
