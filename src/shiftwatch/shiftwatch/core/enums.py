from __future__ import annotations

from enum import Enum


class Role(str, Enum):
    """Who is acting on a payment."""

    ADMIN = "admin"
    PAYER = "payer"
    WORKER = "worker"
    SYSTEM = "system"


class MonitoringOutcome(str, Enum):
    PRESENT = "present"
    ABSENT = "absent"
    CAPTURE_FAILED = "capture_failed"


class PaymentStatus(str, Enum):
    """Closed set of payment lifecycle states."""

    PENDING = "pending"
    APPROVED = "approved"
    DECLINED = "declined"
    ADMIN_REVIEW = "admin_review"
    ADMIN_APPROVED = "admin_approved"
    ADMIN_REJECTED = "admin_rejected"
    SETTLING = "settling"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in {PaymentStatus.COMPLETED, PaymentStatus.FAILED, PaymentStatus.ADMIN_REJECTED}


class PaymentAction(str, Enum):
    APPROVE = "approve"
    DECLINE = "decline"
    ADMIN_REVIEW = "admin_review"
    REVERSE_DEBIT = "reverse_debit"


class AutoApproveMode(str, Enum):
    """When a high-scoring day is approved without the payer.

    ON_DEADLINE: the payer keeps the approval window; the sweeper approves
    on the payer's behalf once the deadline passes.
    IMMEDIATE: approved by the system as soon as the payment is created.
    """

    ON_DEADLINE = "on_deadline"
    IMMEDIATE = "immediate"


class ReconciliationPolicy(str, Enum):
    """What happens to the payer debit when a transfer fails."""

    MANUAL = "manual"
    AUTO_CREDIT_BACK = "auto_credit_back"


class NotificationKind(str, Enum):
    PAYMENT_PENDING = "payment_pending"
    PAYMENT_DECLINED = "payment_declined"
    PAYMENT_ADMIN_DECISION = "payment_admin_decision"
    PAYMENT_COMPLETED = "payment_completed"
    PAYMENT_FAILED = "payment_failed"
    PAYMENT_REVERSED = "payment_reversed"
    PAYMENTS_NEED_REVIEW = "payments_need_review"
    EFFICIENCY_REPORT = "efficiency_report"


class DebitResult(str, Enum):
    DEBITED = "debited"
    INSUFFICIENT_FUNDS = "insufficient_funds"
    CONFLICT = "conflict"
