from __future__ import annotations

from datetime import datetime

import pytest

from shiftwatch.attendance.model import AttendanceRecord, ProgressReport
from shiftwatch.core.enums import MonitoringOutcome
from shiftwatch.efficiency.scorer import score
from shiftwatch.monitoring.model import MonitoringEvent

from conftest import MONDAY, seed_day


def _record(*, present: int, total: int = 10, clock_in=True, clock_out=True, report=True) -> AttendanceRecord:
    events = tuple(
        MonitoringEvent(
            timestamp=datetime(2026, 3, 2, 9, i),
            outcome=MonitoringOutcome.PRESENT if i < present else MonitoringOutcome.ABSENT,
        )
        for i in range(total)
    )
    return AttendanceRecord(
        worker_id=1,
        work_date=MONDAY,
        clock_in_time=datetime(2026, 3, 2, 9, 0) if clock_in else None,
        clock_out_time=datetime(2026, 3, 2, 17, 0) if clock_out else None,
        events=events,
        progress_reports=(ProgressReport(1, MONDAY, "done", datetime(2026, 3, 2, 16, 0)),) if report else (),
    )


def test_full_day_with_eight_of_ten_present_scores_ninety():
    assert score(_record(present=8), 10) == 90


def test_no_record_scores_zero():
    assert score(None, 10) == 0


def test_clock_in_only_earns_partial_attendance():
    assert score(_record(present=0, clock_out=False, report=False), 10) == 15


def test_presence_rounds_half_up():
    # 50 * 1 / 4 = 12.5 -> 13
    assert score(_record(present=1, total=4, report=False), 4) == 30 + 13


def test_present_count_is_capped_at_planned():
    assert score(_record(present=12, total=12), 10) == 100


def test_no_planned_captures_means_no_presence_points():
    assert score(_record(present=0, total=0), 0) == 50


@pytest.mark.parametrize("present", range(0, 11))
def test_score_is_deterministic_and_bounded(present):
    record = _record(present=present)

    first = score(record, 10)

    assert first == score(record, 10)
    assert 0 <= first <= 100


def test_pruned_counters_keep_the_score():
    record = _record(present=8)

    assert score(record.pruned(), 10) == score(record, 10)


def test_service_reads_planned_count_from_stored_plan(container):
    seed_day(container, 1, MONDAY, present=7)

    assert container.efficiency_service.get_efficiency_score(1, MONDAY) == 85
