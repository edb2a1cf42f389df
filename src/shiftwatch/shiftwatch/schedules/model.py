from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date

from ..common.datetime_utils import MINUTES_PER_DAY, format_hhmm
from ..core.exceptions import ValidationError


@dataclass(frozen=True)
class BreakInterval:
    """Half-open break [start_minute, end_minute) in minutes of the day."""

    start_minute: int
    end_minute: int

    def covers(self, minute: int) -> bool:
        return self.start_minute <= minute < self.end_minute

    def __str__(self) -> str:
        return f"{format_hhmm(self.start_minute)}-{format_hhmm(self.end_minute)}"


@dataclass(frozen=True)
class WorkSchedule:
    """Domain entity: a worker's declared weekly schedule.

    working_days uses date.weekday() numbering (0 = Monday).
    Breaks are kept sorted, non-overlapping and inside [start, end).
    """

    working_days: tuple[int, ...]
    start_minute: int
    end_minute: int
    breaks: tuple[BreakInterval, ...] = field(default_factory=tuple)

    def __post_init__(self):
        days = tuple(sorted(set(int(d) for d in self.working_days)))
        if any(d < 0 or d > 6 for d in days):
            raise ValidationError("Working days must be weekday numbers 0-6")
        object.__setattr__(self, "working_days", days)

        if not (0 <= self.start_minute < MINUTES_PER_DAY and 0 < self.end_minute <= MINUTES_PER_DAY):
            raise ValidationError("Work window must lie within a single day")
        if self.end_minute <= self.start_minute:
            raise ValidationError("Work end must be after work start")

        ordered = tuple(sorted(self.breaks, key=lambda b: b.start_minute))
        validate_breaks(self.start_minute, self.end_minute, ordered)
        object.__setattr__(self, "breaks", ordered)

    def works_on(self, day: date) -> bool:
        return day.weekday() in self.working_days

    def is_working_minute(self, minute: int) -> bool:
        if not (self.start_minute <= minute < self.end_minute):
            return False
        return not any(b.covers(minute) for b in self.breaks)

    def break_minutes_between(self, start_minute: int, end_minute: int) -> int:
        """Minutes of break that overlap [start_minute, end_minute)."""
        total = 0
        for b in self.breaks:
            overlap = min(b.end_minute, end_minute) - max(b.start_minute, start_minute)
            if overlap > 0:
                total += overlap
        return total


def validate_breaks(work_start: int, work_end: int, breaks) -> None:
    previous_end = None
    for b in sorted(breaks, key=lambda x: x.start_minute):
        if b.end_minute <= b.start_minute:
            raise ValidationError(f"Break {b} must end after it starts")
        if b.start_minute < work_start or b.end_minute > work_end:
            raise ValidationError(f"Break {b} lies outside the work window")
        if previous_end is not None and b.start_minute < previous_end:
            raise ValidationError(f"Break {b} overlaps another break")
        previous_end = b.end_minute
