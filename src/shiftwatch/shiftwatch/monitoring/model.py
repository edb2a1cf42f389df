from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import date, datetime
from typing import Optional

from ..core.enums import MonitoringOutcome


@dataclass(frozen=True)
class MonitoringEvent:
    """One presence check result. Immutable once appended."""

    timestamp: datetime
    outcome: MonitoringOutcome
    evidence_ref: Optional[str] = None
    note: Optional[str] = None


@dataclass(frozen=True)
class CaptureResult:
    """What the presence capture collaborator reports."""

    success: bool
    present: bool
    evidence_ref: Optional[str] = None


@dataclass(frozen=True)
class MonitoringPlan:
    """Capture instants drawn for one worker on one calendar day."""

    plan_id: str
    worker_id: int
    work_date: date
    instants: tuple[datetime, ...]
    created_at: datetime
    fired: frozenset[datetime] = field(default_factory=frozenset)
    cancelled: bool = False

    @property
    def planned_count(self) -> int:
        return len(self.instants)

    def pending_instants(self) -> tuple[datetime, ...]:
        return tuple(i for i in self.instants if i not in self.fired)

    def mark_fired(self, instant: datetime) -> "MonitoringPlan":
        return replace(self, fired=self.fired | {instant})

    def cancel(self) -> "MonitoringPlan":
        return replace(self, cancelled=True)
