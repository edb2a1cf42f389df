from __future__ import annotations

from datetime import datetime, timedelta
from decimal import Decimal

import pytest

from shiftwatch.core.enums import MonitoringOutcome
from shiftwatch.core.exceptions import NotFoundError, ValidationError
from shiftwatch.monitoring.model import MonitoringEvent

from conftest import MONDAY, seed_day


def _at(hour: int, minute: int = 0) -> datetime:
    return datetime(2026, 3, 2, hour, minute)


def test_clock_in_and_out_records_working_hours(container):
    service = container.attendance_service

    service.clock_in(1, now=_at(9))
    record = service.clock_out(1, now=_at(17, 30))

    assert record.is_complete
    assert record.working_minutes == 7 * 60 + 30
    assert record.working_hours == Decimal("7.50")


def test_double_clock_in_is_rejected(container):
    container.attendance_service.clock_in(1, now=_at(9))

    with pytest.raises(ValidationError):
        container.attendance_service.clock_in(1, now=_at(9, 5))


def test_clock_out_without_clock_in_is_rejected(container):
    with pytest.raises(ValidationError):
        container.attendance_service.clock_out(1, now=_at(17))


def test_unknown_worker_is_not_found(container):
    with pytest.raises(NotFoundError):
        container.attendance_service.clock_in(42, now=_at(9))


def test_inactive_worker_cannot_clock_in(container):
    container.workers_repo.set_active(1, is_active=False)

    with pytest.raises(ValidationError):
        container.attendance_service.clock_in(1, now=_at(9))


def test_progress_report_is_attached_to_the_day(container):
    report = container.attendance_service.submit_progress_report(1, "  shipped the invoice export ", tasks_completed=3, now=_at(16))

    record = container.attendance_service.get_record(1, MONDAY)
    assert report.summary == "shipped the invoice export"
    assert record.progress_reports == (report,)


def test_empty_progress_report_is_rejected(container):
    with pytest.raises(ValidationError):
        container.attendance_service.submit_progress_report(1, "", now=_at(16))


def test_events_are_appended_not_replaced(container):
    service = container.attendance_service
    service.append_event(1, MONDAY, MonitoringEvent(_at(10), MonitoringOutcome.PRESENT))
    service.append_event(1, MONDAY, MonitoringEvent(_at(11), MonitoringOutcome.ABSENT))

    record = service.get_record(1, MONDAY)
    assert [e.outcome for e in record.events] == [MonitoringOutcome.PRESENT, MonitoringOutcome.ABSENT]


def test_retention_prunes_old_detail_but_keeps_counts(container):
    old_day = MONDAY - timedelta(days=100)
    seed_day(container, 1, old_day, present=6)
    seed_day(container, 1, MONDAY, present=8)

    pruned = container.attendance_service.prune_event_detail(retention_days=90, today=MONDAY)

    old = container.attendance_repo.get_for_worker_and_date(1, old_day)
    assert pruned == 1
    assert old.events == ()
    assert (old.present_count, old.event_count) == (6, 10)
    assert container.attendance_repo.get_for_worker_and_date(1, MONDAY).event_count == 10
    assert container.attendance_service.prune_event_detail(retention_days=90, today=MONDAY) == 0
