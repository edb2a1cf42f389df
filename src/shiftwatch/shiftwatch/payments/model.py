from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from ..core.constants import SYSTEM_ACTOR_LABEL
from ..core.enums import PaymentStatus, Role


@dataclass(frozen=True)
class Actor:
    """Whoever drives a transition: a payer, an admin or the system."""

    role: Role
    actor_id: Optional[int] = None

    @property
    def label(self) -> str:
        if self.role == Role.SYSTEM:
            return SYSTEM_ACTOR_LABEL
        return f"{self.role.value}:{self.actor_id}"


SYSTEM = Actor(role=Role.SYSTEM)


@dataclass(frozen=True)
class PaymentTransition:
    from_status: PaymentStatus
    to_status: PaymentStatus
    actor: str
    at: datetime
    note: Optional[str] = None


@dataclass(frozen=True)
class NewPayment:
    """Values fixed at creation; the amount is never recomputed."""

    worker_id: int
    payer_id: int
    work_date: date
    amount: Decimal
    currency: str
    efficiency_score: int
    created_at: datetime
    deadline: datetime


@dataclass(frozen=True)
class Payment:
    payment_id: int
    worker_id: int
    payer_id: int
    work_date: date
    amount: Decimal
    currency: str
    efficiency_score: int
    created_at: datetime
    deadline: datetime
    status: PaymentStatus = PaymentStatus.PENDING

    approved_by: Optional[str] = None
    approved_at: Optional[datetime] = None
    declined_by: Optional[str] = None
    declined_at: Optional[datetime] = None
    decline_reason: Optional[str] = None
    admin_reviewed_by: Optional[str] = None
    admin_reviewed_at: Optional[datetime] = None
    admin_review_note: Optional[str] = None

    debited_at: Optional[datetime] = None
    transfer_ref: Optional[str] = None
    transfer_initiated_at: Optional[datetime] = None
    settled_at: Optional[datetime] = None
    failure_reason: Optional[str] = None
    reversed_by: Optional[str] = None
    reversed_at: Optional[datetime] = None

    history: tuple[PaymentTransition, ...] = field(default_factory=tuple)

    @property
    def reference(self) -> str:
        """Idempotency reference handed to the transfer network."""
        return f"pay-{self.payment_id}"

    @property
    def debited(self) -> bool:
        return self.debited_at is not None

    def is_overdue(self, now: datetime) -> bool:
        return self.status == PaymentStatus.PENDING and now >= self.deadline
