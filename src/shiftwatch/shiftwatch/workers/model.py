from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from ..schedules.model import WorkSchedule


@dataclass(frozen=True)
class Worker:
    """Domain entity: a worker paid per completed day.

    Note: Plain data object (no DB access code).
    """

    worker_id: int
    full_name: str
    payer_id: int
    monthly_salary: Decimal
    schedule: WorkSchedule
    recipient_ref: Optional[str] = None
    is_active: bool = True


@dataclass(frozen=True)
class Payer:
    """Domain entity: the employer funding a worker's payments."""

    payer_id: int
    full_name: str
    balance: Decimal
    contact_ref: Optional[str] = None
