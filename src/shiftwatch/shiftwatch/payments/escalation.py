from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Callable

from ..common.datetime_utils import now_local
from ..core.enums import NotificationKind, PaymentStatus
from ..core.exceptions import DomainError
from ..notifications.model import ADMINS
from ..notifications.outbox import Outbox
from .repository import PaymentRepository
from .service import PaymentService

logger = logging.getLogger(__name__)


@dataclass
class SweepReport:
    auto_settled: list[int] = field(default_factory=list)
    escalated: list[int] = field(default_factory=list)
    resumed: list[int] = field(default_factory=list)
    skipped: list[int] = field(default_factory=list)


class EscalationSweeper:
    """Moves every overdue pending payment out of pending.

    Overdue payments are read from persisted deadlines on every sweep, so a
    restart loses nothing. It also re-drives debited payments whose transfer
    was never started (e.g. the process died between debit and transfer).
    """

    def __init__(
        self,
        payments: PaymentRepository,
        service: PaymentService,
        outbox: Outbox,
        *,
        stalled_after: timedelta = timedelta(minutes=5),
        clock: Callable[[], datetime] = now_local,
    ):
        self._payments = payments
        self._service = service
        self._outbox = outbox
        self._stalled_after = stalled_after
        self._clock = clock

    def sweep(self, now: datetime | None = None) -> SweepReport:
        now = now or self._clock()
        report = SweepReport()

        for payment in self._payments.list_overdue_pending(now):
            try:
                updated = self._service.escalate_overdue(payment.payment_id, now=now)
            except DomainError as exc:
                # Lost a race with the payer or a lock timeout; the next sweep retries.
                logger.info("Sweep skipped payment %s: %s", payment.payment_id, exc)
                report.skipped.append(payment.payment_id)
                continue
            except Exception:
                logger.exception("Sweep could not escalate payment %s", payment.payment_id)
                report.skipped.append(payment.payment_id)
                continue
            if updated.status == PaymentStatus.ADMIN_REVIEW:
                report.escalated.append(updated.payment_id)
            else:
                report.auto_settled.append(updated.payment_id)

        for payment in self._payments.list_by_status(PaymentStatus.SETTLING):
            if payment.transfer_initiated_at is not None or payment.debited_at is None:
                continue
            if now - payment.debited_at < self._stalled_after:
                continue
            try:
                self._service.resume_transfer(payment.payment_id, now=now)
                report.resumed.append(payment.payment_id)
            except DomainError as exc:
                logger.info("Could not resume transfer for payment %s: %s", payment.payment_id, exc)
                report.skipped.append(payment.payment_id)
            except Exception:
                logger.exception("Resuming transfer for payment %s failed", payment.payment_id)
                report.skipped.append(payment.payment_id)

        if report.escalated:
            self._outbox.append(
                ADMINS,
                NotificationKind.PAYMENTS_NEED_REVIEW,
                {"payment_count": len(report.escalated), "payment_ids": list(report.escalated), "date": now.date().isoformat()},
            )

        logger.info(
            "Sweep at %s: %s auto-settled, %s escalated, %s resumed, %s skipped",
            now.isoformat(), len(report.auto_settled), len(report.escalated), len(report.resumed), len(report.skipped),
        )
        return report
