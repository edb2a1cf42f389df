from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal
from typing import Optional

from ..attendance.model import AttendanceRecord
from ..core.constants import (
    ATTENDANCE_COMPLETE_POINTS,
    ATTENDANCE_PARTIAL_POINTS,
    PRESENCE_MAX_POINTS,
    REPORTING_POINTS,
)


def attendance_points(record: Optional[AttendanceRecord]) -> int:
    if record is None:
        return 0
    stamps = (record.clock_in_time is not None) + (record.clock_out_time is not None)
    if stamps == 2:
        return ATTENDANCE_COMPLETE_POINTS
    if stamps == 1:
        return ATTENDANCE_PARTIAL_POINTS
    return 0


def presence_points(record: Optional[AttendanceRecord], planned_capture_count: int) -> int:
    if record is None or planned_capture_count <= 0:
        return 0
    present = min(record.present_count, planned_capture_count)
    ratio = Decimal(PRESENCE_MAX_POINTS * present) / Decimal(planned_capture_count)
    return int(ratio.quantize(Decimal(1), rounding=ROUND_HALF_UP))


def reporting_points(record: Optional[AttendanceRecord]) -> int:
    return REPORTING_POINTS if record is not None and record.progress_reports else 0


def score(record: Optional[AttendanceRecord], planned_capture_count: int) -> int:
    """Composite 0..100 day score.

    30/15/0 for clock-in and clock-out, up to 50 for presence during random
    captures, 20 for a submitted progress report. Pure: same inputs, same score.
    """
    return (
        attendance_points(record)
        + presence_points(record, int(planned_capture_count))
        + reporting_points(record)
    )
