from __future__ import annotations

from datetime import date, datetime
from typing import Optional, Protocol, Sequence

from ..core.enums import DebitResult, PaymentStatus
from .model import NewPayment, Payment


class PaymentRepository(Protocol):
    def get_by_id(self, payment_id: int) -> Optional[Payment]:
        raise NotImplementedError

    def get_for_worker_and_date(self, worker_id: int, work_date: date) -> Optional[Payment]:
        raise NotImplementedError

    def create_if_absent(self, new: NewPayment) -> tuple[Payment, bool]:
        """Atomically create the (worker_id, work_date) payment.

        Returns (payment, created). When one already exists it is returned
        unchanged with created=False.
        """

        raise NotImplementedError

    def save(self, payment: Payment, *, expected_status: PaymentStatus) -> bool:
        """Persist payment only if the stored status still equals expected_status."""

        raise NotImplementedError

    def save_debited(self, payment: Payment, *, expected_status: PaymentStatus) -> DebitResult:
        """Debit the payer by payment.amount and persist payment as one unit of work.

        Either both land or neither does: CONFLICT when the stored status no
        longer equals expected_status, INSUFFICIENT_FUNDS when the balance
        does not cover the amount.
        """

        raise NotImplementedError

    def find_by_transfer_ref(self, transfer_ref: str) -> Optional[Payment]:
        raise NotImplementedError

    def list_by_status(self, status: PaymentStatus) -> Sequence[Payment]:
        raise NotImplementedError

    def list_overdue_pending(self, now: datetime) -> Sequence[Payment]:
        """Pending payments whose persisted deadline is at or before now."""

        raise NotImplementedError
