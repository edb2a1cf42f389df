from __future__ import annotations

import random
from datetime import date, datetime
from typing import Iterable, Optional, Sequence

from ..common.datetime_utils import at_minute
from ..core.exceptions import ValidationError
from ..schedules.model import BreakInterval, WorkSchedule, validate_breaks


class MonitoringWindowPlanner:
    """Draws random capture minutes inside a worker's working window.

    Draws come straight from the precomputed eligible minutes, so there is
    no retry loop near break boundaries.
    """

    def __init__(self, rng: Optional[random.Random] = None):
        self._rng = rng or random.SystemRandom()

    @staticmethod
    def eligible_minutes(work_start: int, work_end: int, breaks: Iterable[BreakInterval]) -> list[int]:
        if work_end <= work_start:
            raise ValidationError("Work end must be after work start")
        breaks = list(breaks)
        validate_breaks(work_start, work_end, breaks)
        return [m for m in range(work_start, work_end) if not any(b.covers(m) for b in breaks)]

    def plan(self, work_start: int, work_end: int, breaks: Sequence[BreakInterval], target_count: int) -> list[int]:
        """Return sorted distinct minutes-of-day to capture at.

        When there are fewer eligible minutes than target_count every
        eligible minute is returned.
        """
        if int(target_count) < 0:
            raise ValidationError("Capture target count cannot be negative")

        eligible = self.eligible_minutes(work_start, work_end, breaks)
        if len(eligible) <= target_count:
            return eligible
        return sorted(self._rng.sample(eligible, int(target_count)))

    def plan_day(self, schedule: WorkSchedule, work_date: date, target_count: int) -> list[datetime]:
        minutes = self.plan(schedule.start_minute, schedule.end_minute, schedule.breaks, target_count)
        return [at_minute(work_date, m) for m in minutes]
