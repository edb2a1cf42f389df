"""Payment state machine: the single transition table.

Transitions are fail-closed: anything not listed is rejected.

    pending        -> approved | declined
    declined       -> admin_review
    admin_review   -> admin_approved | admin_rejected
    approved       -> settling
    admin_approved -> settling
    settling       -> completed | failed
"""

from __future__ import annotations

from dataclasses import replace
from datetime import datetime
from typing import Optional

from ..core.enums import PaymentStatus
from ..core.exceptions import IllegalTransitionError
from .model import Payment, PaymentTransition

_TRANSITIONS: set[tuple[PaymentStatus, PaymentStatus]] = {
    (PaymentStatus.PENDING, PaymentStatus.APPROVED),
    (PaymentStatus.PENDING, PaymentStatus.DECLINED),
    (PaymentStatus.DECLINED, PaymentStatus.ADMIN_REVIEW),
    (PaymentStatus.ADMIN_REVIEW, PaymentStatus.ADMIN_APPROVED),
    (PaymentStatus.ADMIN_REVIEW, PaymentStatus.ADMIN_REJECTED),
    (PaymentStatus.APPROVED, PaymentStatus.SETTLING),
    (PaymentStatus.ADMIN_APPROVED, PaymentStatus.SETTLING),
    (PaymentStatus.SETTLING, PaymentStatus.COMPLETED),
    (PaymentStatus.SETTLING, PaymentStatus.FAILED),
}


def can_transition(current: PaymentStatus, target: PaymentStatus) -> bool:
    return (current, target) in _TRANSITIONS


def allowed_targets(current: PaymentStatus) -> set[PaymentStatus]:
    return {to for (frm, to) in _TRANSITIONS if frm == current}


def require_status(payment: Payment, expected: PaymentStatus) -> None:
    if payment.status != expected:
        raise IllegalTransitionError(
            f"Payment {payment.payment_id} is not in {expected.value} state (currently {payment.status.value})",
            current_status=payment.status,
        )


def transition(
    payment: Payment,
    target: PaymentStatus,
    *,
    actor: str,
    at: datetime,
    note: Optional[str] = None,
    **changes,
) -> Payment:
    """Return a copy of payment moved to target, with the step recorded in history."""
    if not can_transition(payment.status, target):
        raise IllegalTransitionError(
            f"Illegal transition: {payment.status.value} -> {target.value}",
            current_status=payment.status,
        )
    step = PaymentTransition(from_status=payment.status, to_status=target, actor=actor, at=at, note=note)
    return replace(payment, status=target, history=payment.history + (step,), **changes)
