from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional

from ..core.enums import MonitoringOutcome
from ..monitoring.model import MonitoringEvent


@dataclass(frozen=True)
class ProgressReport:
    worker_id: int
    work_date: date
    summary: str
    submitted_at: datetime
    tasks_completed: int = 0


@dataclass(frozen=True)
class AttendanceRecord:
    """Domain entity: one worker's attendance for one calendar day.

    Monitoring events are append-only. After the retention window the event
    detail is dropped and only the pruned_* counters remain.
    """

    worker_id: int
    work_date: date
    clock_in_time: Optional[datetime] = None
    clock_out_time: Optional[datetime] = None
    events: tuple[MonitoringEvent, ...] = field(default_factory=tuple)
    progress_reports: tuple[ProgressReport, ...] = field(default_factory=tuple)
    working_minutes: int = 0
    pruned_event_count: int = 0
    pruned_present_count: int = 0

    @property
    def is_complete(self) -> bool:
        return self.clock_in_time is not None and self.clock_out_time is not None

    @property
    def present_count(self) -> int:
        return self.pruned_present_count + sum(1 for e in self.events if e.outcome == MonitoringOutcome.PRESENT)

    @property
    def event_count(self) -> int:
        return self.pruned_event_count + len(self.events)

    @property
    def working_hours(self) -> Decimal:
        return (Decimal(self.working_minutes) / Decimal(60)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)

    def with_event(self, event: MonitoringEvent) -> "AttendanceRecord":
        return replace(self, events=self.events + (event,))

    def pruned(self) -> "AttendanceRecord":
        return replace(
            self,
            events=(),
            pruned_event_count=self.event_count,
            pruned_present_count=self.present_count,
        )
