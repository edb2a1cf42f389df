from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Any, Callable, Optional

from ..attendance.repository import AttendanceRepository
from ..common.datetime_utils import now_local
from ..common.locks import KeyedLocks
from ..common.validators import require_non_empty
from ..core.constants import (
    DEADLINE_ESCALATION_REASON,
    DEFAULT_APPROVAL_WINDOW_MINUTES,
    DEFAULT_AUTO_APPROVE_THRESHOLD,
    DEFAULT_CURRENCY,
)
from ..core.enums import AutoApproveMode, DebitResult, NotificationKind, PaymentAction, PaymentStatus, ReconciliationPolicy, Role
from ..core.exceptions import (
    AuthorizationError,
    ConcurrencyConflict,
    IllegalTransitionError,
    InsufficientFundsError,
    NotFoundError,
    ValidationError,
)
from ..efficiency.service import EfficiencyService
from ..notifications.model import ADMINS
from ..notifications.outbox import Outbox
from ..payroll.calculator.base import PayrollCalculator
from ..payroll.calculator.standard_calculator import StandardPayrollCalculator
from ..workers.repository import PayerRepository, WorkerRepository
from .model import SYSTEM, Actor, NewPayment, Payment
from .repository import PaymentRepository
from .state_machine import require_status, transition
from .transfer import TransferGateway, TransferOutcome

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PaymentPolicy:
    approval_window: timedelta = timedelta(minutes=DEFAULT_APPROVAL_WINDOW_MINUTES)
    auto_approve_threshold: int = DEFAULT_AUTO_APPROVE_THRESHOLD
    auto_approve_mode: AutoApproveMode = AutoApproveMode.ON_DEADLINE
    reconciliation: ReconciliationPolicy = ReconciliationPolicy.MANUAL
    currency: str = DEFAULT_CURRENCY


class PaymentService:
    """Payment lifecycle: create, approve/decline, admin review, settle.

    Each transition runs under the payment's lock and is persisted with a
    compare-and-set on the previous status. The transfer call happens
    outside the lock; its result comes back through settle().
    """

    def __init__(
        self,
        payments: PaymentRepository,
        payers: PayerRepository,
        workers: WorkerRepository,
        attendance: AttendanceRepository,
        efficiency: EfficiencyService,
        transfers: TransferGateway,
        outbox: Outbox,
        locks: KeyedLocks,
        *,
        policy: Optional[PaymentPolicy] = None,
        calculator: Optional[PayrollCalculator] = None,
        clock: Callable[[], datetime] = now_local,
    ):
        self._payments = payments
        self._payers = payers
        self._workers = workers
        self._attendance = attendance
        self._efficiency = efficiency
        self._transfers = transfers
        self._outbox = outbox
        self._locks = locks
        self._policy = policy or PaymentPolicy()
        self._calculator = calculator or StandardPayrollCalculator()
        self._clock = clock

    @property
    def policy(self) -> PaymentPolicy:
        return self._policy

    # -- helpers ----------------------------------------------------------

    def get(self, payment_id: int) -> Payment:
        payment = self._payments.get_by_id(int(payment_id))
        if not payment:
            raise NotFoundError(f"Payment {payment_id} does not exist")
        return payment

    def _store(self, payment: Payment, *, previous: PaymentStatus) -> Payment:
        if not self._payments.save(payment, expected_status=previous):
            raise ConcurrencyConflict(f"Payment {payment.payment_id} changed underneath this transition")
        return payment

    @staticmethod
    def _require_payer(payment: Payment, actor: Actor) -> None:
        if actor.role != Role.PAYER or actor.actor_id != payment.payer_id:
            raise AuthorizationError("Only the payer of record can act on this payment")

    @staticmethod
    def _require_admin(actor: Actor) -> None:
        if actor.role != Role.ADMIN:
            raise AuthorizationError("Only an admin can review payments")

    def _notify(self, recipient: Any, kind: NotificationKind, payment: Payment, **extra) -> None:
        payload = {
            "payment_id": payment.payment_id,
            "worker_id": payment.worker_id,
            "work_date": payment.work_date.isoformat(),
            "amount": str(payment.amount),
            "currency": payment.currency,
            "status": payment.status.value,
        }
        payload.update(extra)
        self._outbox.append(str(recipient), kind, payload)

    def _payer_recipient(self, payment: Payment) -> str:
        payer = self._payers.get_by_id(payment.payer_id)
        return (payer.contact_ref if payer and payer.contact_ref else f"payer:{payment.payer_id}")

    # -- create -----------------------------------------------------------

    def create(self, worker_id: int, work_date: date, *, payer_id: Optional[int] = None, now: datetime | None = None) -> Payment:
        """Create the day's payment for a worker, or return the existing one."""
        now = now or self._clock()

        existing = self._payments.get_for_worker_and_date(int(worker_id), work_date)
        if existing:
            return existing

        worker = self._workers.get_by_id(int(worker_id))
        if not worker:
            raise NotFoundError(f"Worker {worker_id} does not exist")
        if payer_id is not None and int(payer_id) != worker.payer_id:
            raise ValidationError("Payer is not the worker's payer of record")
        if not self._payers.get_by_id(worker.payer_id):
            raise NotFoundError(f"Payer {worker.payer_id} does not exist")

        record = self._attendance.get_for_worker_and_date(worker.worker_id, work_date)
        if not record or not record.is_complete:
            raise ValidationError("Attendance for the day needs both clock-in and clock-out")

        score = self._efficiency.get_efficiency_score(worker.worker_id, work_date)
        amount = self._calculator.daily_amount(worker, score)
        if amount <= Decimal("0"):
            raise ValidationError(f"Worker {worker.worker_id} has no pay rate")

        payment, created = self._payments.create_if_absent(
            NewPayment(
                worker_id=worker.worker_id,
                payer_id=worker.payer_id,
                work_date=work_date,
                amount=amount,
                currency=self._policy.currency,
                efficiency_score=score,
                created_at=now,
                deadline=now + self._policy.approval_window,
            )
        )
        if not created:
            return payment

        logger.info(
            "Payment %s created for worker %s on %s: %s %s (score %s)",
            payment.payment_id, worker.worker_id, work_date, amount, payment.currency, score,
        )
        self._notify(
            self._payer_recipient(payment),
            NotificationKind.PAYMENT_PENDING,
            payment,
            efficiency=score,
            deadline=payment.deadline.isoformat(),
        )

        if self._policy.auto_approve_mode == AutoApproveMode.IMMEDIATE and score >= self._policy.auto_approve_threshold:
            try:
                return self._debit_and_settle(
                    payment.payment_id, SYSTEM, via=PaymentStatus.APPROVED, expected=PaymentStatus.PENDING, now=now,
                    note=f"auto-approved at creation (score {score})",
                )
            except InsufficientFundsError:
                logger.warning("Payment %s not auto-approved: payer balance too low", payment.payment_id)
                return self.get(payment.payment_id)
        return payment

    # -- approve / decline / admin review --------------------------------

    def approve(self, payment_id: int, actor: Actor, *, now: datetime | None = None) -> Payment:
        self._require_payer(self.get(payment_id), actor)
        return self._debit_and_settle(payment_id, actor, via=PaymentStatus.APPROVED, expected=PaymentStatus.PENDING, now=now)

    def decline(self, payment_id: int, actor: Actor, reason: str, *, now: datetime | None = None) -> Payment:
        """Payer declines; the payment always goes on to admin review."""
        self._require_payer(self.get(payment_id), actor)
        reason = require_non_empty(reason, "Decline reason")
        payment = self._escalate(payment_id, actor, reason, now=now)
        self._notify(f"worker:{payment.worker_id}", NotificationKind.PAYMENT_DECLINED, payment, reason=reason)
        self._notify(ADMINS, NotificationKind.PAYMENT_DECLINED, payment, reason=reason)
        return payment

    def _escalate(self, payment_id: int, actor: Actor, reason: str, *, now: datetime | None = None) -> Payment:
        now = now or self._clock()
        with self._locks.hold(int(payment_id)):
            payment = self.get(payment_id)
            require_status(payment, PaymentStatus.PENDING)
            declined = transition(
                payment, PaymentStatus.DECLINED, actor=actor.label, at=now, note=reason,
                declined_by=actor.label, declined_at=now, decline_reason=reason,
            )
            updated = transition(declined, PaymentStatus.ADMIN_REVIEW, actor=actor.label, at=now)
            self._store(updated, previous=payment.status)

        logger.info("Payment %s sent to admin review by %s: %s", payment_id, actor.label, reason)
        return updated

    def admin_review(
        self,
        payment_id: int,
        admin: Actor,
        *,
        approve: bool,
        note: str = "",
        now: datetime | None = None,
    ) -> Payment:
        self._require_admin(admin)
        if note is not None and not isinstance(note, str):
            raise ValidationError("Review note must be text")
        note = (note or "").strip() or ("Approved by admin" if approve else "Rejected by admin")
        now = now or self._clock()

        if approve:
            payment = self._debit_and_settle(
                payment_id, admin, via=PaymentStatus.ADMIN_APPROVED, expected=PaymentStatus.ADMIN_REVIEW, now=now, note=note,
            )
        else:
            with self._locks.hold(int(payment_id)):
                current = self.get(payment_id)
                require_status(current, PaymentStatus.ADMIN_REVIEW)
                payment = transition(
                    current, PaymentStatus.ADMIN_REJECTED, actor=admin.label, at=now, note=note,
                    admin_reviewed_by=admin.label, admin_reviewed_at=now, admin_review_note=note,
                )
                self._store(payment, previous=current.status)
            logger.info("Payment %s rejected by %s", payment_id, admin.label)

        for recipient in (f"worker:{payment.worker_id}", self._payer_recipient(payment)):
            self._notify(recipient, NotificationKind.PAYMENT_ADMIN_DECISION, payment, approved=approve, note=note)
        return payment

    def _debit_and_settle(
        self,
        payment_id: int,
        actor: Actor,
        *,
        via: PaymentStatus,
        expected: PaymentStatus,
        now: datetime | None = None,
        note: Optional[str] = None,
    ) -> Payment:
        """Balance check, single debit and move to settling; then start the transfer."""
        now = now or self._clock()
        with self._locks.hold(int(payment_id)):
            current = self.get(payment_id)
            require_status(current, expected)

            if via == PaymentStatus.ADMIN_APPROVED:
                decided = {"admin_reviewed_by": actor.label, "admin_reviewed_at": now, "admin_review_note": note}
            else:
                decided = {"approved_by": actor.label, "approved_at": now}
            approved = transition(current, via, actor=actor.label, at=now, note=note, **decided)
            payment = transition(approved, PaymentStatus.SETTLING, actor=actor.label, at=now, debited_at=now)

            result = self._payments.save_debited(payment, expected_status=current.status)
            if result == DebitResult.INSUFFICIENT_FUNDS:
                raise InsufficientFundsError(
                    f"Payer {current.payer_id} balance does not cover {current.amount} {current.currency}",
                    current_status=current.status,
                )
            if result == DebitResult.CONFLICT:
                raise ConcurrencyConflict(f"Payment {payment_id} changed underneath this transition")

        logger.info("Payment %s approved by %s, %s debited from payer %s", payment_id, actor.label, payment.amount, payment.payer_id)
        return self._initiate_transfer(payment, now=now)

    # -- settlement -------------------------------------------------------

    def _initiate_transfer(self, payment: Payment, *, now: datetime | None = None) -> Payment:
        worker = self._workers.get_by_id(payment.worker_id)
        if not worker or not worker.recipient_ref:
            return self.settle(payment.payment_id, TransferOutcome(success=False, error="worker has no transfer recipient"))

        try:
            initiation = self._transfers.initiate_transfer(worker.recipient_ref, payment.amount, payment.reference)
        except Exception as exc:
            logger.warning("Transfer initiation for payment %s failed: %s", payment.payment_id, exc)
            return self.settle(payment.payment_id, TransferOutcome(success=False, error=str(exc) or "transfer initiation failed"))

        if not initiation.accepted:
            return self.settle(
                payment.payment_id,
                TransferOutcome(success=False, error=initiation.error or "transfer rejected"),
            )

        now = now or self._clock()
        with self._locks.hold(payment.payment_id):
            current = self.get(payment.payment_id)
            if current.status != PaymentStatus.SETTLING:
                return current
            updated = replace(
                current,
                transfer_ref=initiation.transfer_ref or current.transfer_ref,
                transfer_initiated_at=current.transfer_initiated_at or now,
            )
            self._store(updated, previous=current.status)
        logger.info("Transfer %s accepted for payment %s", updated.transfer_ref or updated.reference, payment.payment_id)
        return updated

    def settle(self, payment_id: int, outcome: TransferOutcome, *, now: datetime | None = None) -> Payment:
        """Apply the transfer network's final answer.

        A failure leaves the payer debit in place; what happens next is the
        configured reconciliation policy.
        """
        now = now or self._clock()
        with self._locks.hold(int(payment_id)):
            current = self.get(payment_id)
            require_status(current, PaymentStatus.SETTLING)
            if outcome.success:
                payment = transition(
                    current, PaymentStatus.COMPLETED, actor="transfer", at=now,
                    transfer_ref=outcome.transfer_ref or current.transfer_ref, settled_at=now,
                )
            else:
                payment = transition(
                    current, PaymentStatus.FAILED, actor="transfer", at=now, note=outcome.error,
                    transfer_ref=outcome.transfer_ref or current.transfer_ref,
                    settled_at=now, failure_reason=outcome.error or "transfer failed",
                )
            self._store(payment, previous=current.status)

        if payment.status == PaymentStatus.COMPLETED:
            logger.info("Payment %s completed (%s)", payment.payment_id, payment.transfer_ref)
            self._notify(f"worker:{payment.worker_id}", NotificationKind.PAYMENT_COMPLETED, payment, reference=payment.transfer_ref)
            return payment

        logger.warning("Payment %s failed: %s", payment.payment_id, payment.failure_reason)
        self._notify(ADMINS, NotificationKind.PAYMENT_FAILED, payment, error=payment.failure_reason)
        if self._policy.reconciliation == ReconciliationPolicy.AUTO_CREDIT_BACK:
            payment = self._reverse(payment.payment_id, SYSTEM, now=now)
        return payment

    def on_transfer_result(
        self,
        reference: str,
        *,
        success: bool,
        transfer_ref: Optional[str] = None,
        error: Optional[str] = None,
        now: datetime | None = None,
    ) -> Payment:
        """Out-of-band callback from the transfer network.

        reference may be our payment reference ("pay-<id>") or the network's
        transfer ref. A repeated callback for an already settled payment is
        returned unchanged.
        """
        payment = self._find_by_reference(reference)
        if payment.status in {PaymentStatus.COMPLETED, PaymentStatus.FAILED}:
            return payment
        return self.settle(
            payment.payment_id,
            TransferOutcome(success=success, transfer_ref=transfer_ref, error=error),
            now=now,
        )

    def _find_by_reference(self, reference: str) -> Payment:
        reference = require_non_empty(reference, "Transfer reference")
        if reference.startswith("pay-") and reference[4:].isdigit():
            found = self._payments.get_by_id(int(reference[4:]))
            if found:
                return found
        found = self._payments.find_by_transfer_ref(reference)
        if not found:
            raise NotFoundError(f"No payment for transfer reference {reference}")
        return found

    # -- reconciliation ---------------------------------------------------

    def reverse_debit(self, payment_id: int, admin: Actor, *, now: datetime | None = None) -> Payment:
        """Explicit remediation: credit the payer back for a failed transfer."""
        self._require_admin(admin)
        return self._reverse(payment_id, admin, now=now)

    def _reverse(self, payment_id: int, actor: Actor, *, now: datetime | None = None) -> Payment:
        now = now or self._clock()
        with self._locks.hold(int(payment_id)):
            current = self.get(payment_id)
            require_status(current, PaymentStatus.FAILED)
            if not current.debited or current.reversed_at is not None:
                raise IllegalTransitionError(
                    f"Payment {payment_id} has no outstanding debit to reverse", current_status=current.status
                )
            payment = replace(current, reversed_by=actor.label, reversed_at=now)
            self._store(payment, previous=current.status)
            self._payers.credit(current.payer_id, current.amount)

        logger.info("Debit for payment %s reversed by %s", payment_id, actor.label)
        self._notify(self._payer_recipient(payment), NotificationKind.PAYMENT_REVERSED, payment)
        return payment

    # -- escalation -------------------------------------------------------

    def escalate_overdue(self, payment_id: int, *, now: datetime | None = None) -> Payment:
        """Force a stalled pending payment forward once its deadline passed.

        High-scoring days are approved by the system; everything else (and
        any auto-approval the payer cannot fund) goes to admin review.
        """
        now = now or self._clock()
        payment = self.get(payment_id)
        require_status(payment, PaymentStatus.PENDING)
        if now < payment.deadline:
            raise IllegalTransitionError(f"Payment {payment_id} is still inside its approval window", current_status=payment.status)

        if payment.efficiency_score >= self._policy.auto_approve_threshold:
            try:
                return self._debit_and_settle(
                    payment_id, SYSTEM, via=PaymentStatus.APPROVED, expected=PaymentStatus.PENDING, now=now,
                    note=f"auto-approved after deadline (score {payment.efficiency_score})",
                )
            except InsufficientFundsError:
                return self._escalate(payment_id, SYSTEM, "insufficient payer balance for automatic settlement", now=now)
        return self._escalate(payment_id, SYSTEM, DEADLINE_ESCALATION_REASON, now=now)

    def resume_transfer(self, payment_id: int, *, now: datetime | None = None) -> Payment:
        """Re-run the transfer call for a debited payment that never reached it."""
        payment = self.get(payment_id)
        require_status(payment, PaymentStatus.SETTLING)
        if payment.transfer_initiated_at is not None:
            return payment
        return self._initiate_transfer(payment, now=now)

    # -- dispatcher -------------------------------------------------------

    def transition_payment(self, payment_id: int, action: PaymentAction | str, actor: Actor, data: Optional[dict] = None) -> Payment:
        data = data or {}
        try:
            action = PaymentAction(action)
        except ValueError:
            raise ValidationError(f"Unknown payment action: {action}")

        if action == PaymentAction.APPROVE:
            return self.approve(payment_id, actor)
        if action == PaymentAction.DECLINE:
            return self.decline(payment_id, actor, data.get("reason") or "")
        if action == PaymentAction.ADMIN_REVIEW:
            if "approve" not in data:
                raise ValidationError("Admin review needs an approve decision")
            return self.admin_review(payment_id, actor, approve=_as_bool(data["approve"]), note=data.get("note") or "")
        return self.reverse_debit(payment_id, actor)


def _as_bool(value) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip().lower() in {"true", "1", "yes"}:
        return True
    if isinstance(value, str) and value.strip().lower() in {"false", "0", "no"}:
        return False
    if isinstance(value, int):
        return bool(value)
    raise ValidationError("approve must be true or false")
