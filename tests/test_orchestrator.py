from __future__ import annotations

from datetime import datetime, timedelta

from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger

from shiftwatch.core.enums import PaymentStatus

from conftest import MONDAY, make_worker, seed_day


def _at(hour: int, minute: int = 0, *, day=MONDAY) -> datetime:
    return datetime.combine(day, datetime.min.time()) + timedelta(hours=hour, minutes=minute)


def test_end_of_day_creates_payments_only_for_complete_days(container, notifier):
    container.workers_repo.save(make_worker(2))
    seed_day(container, 1, MONDAY, present=8)
    seed_day(container, 2, MONDAY, present=8, complete=False)

    report = container.orchestrator.trigger_end_of_day(MONDAY)

    assert len(report.created) == 1
    assert report.skipped == [2]
    assert report.failed == []
    reports = [(r, p) for r, k, p in notifier.sent if k == "efficiency_report"]
    assert len(reports) == 1
    recipient, payload = reports[0]
    assert recipient == "payer-1@acme.test"
    assert [(w["worker_id"], w["efficiency"]) for w in payload["workers"]] == [(1, 90), (2, 75)]


def test_end_of_day_is_safe_to_rerun(container):
    seed_day(container, 1, MONDAY, present=8)

    first = container.orchestrator.trigger_end_of_day(MONDAY)
    second = container.orchestrator.trigger_end_of_day(MONDAY)

    assert first.created == second.created
    assert len(container.payments_repo.list_by_status(PaymentStatus.PENDING)) == 1


def test_one_failing_worker_does_not_stop_end_of_day(container):
    container.workers_repo.save(make_worker(2, payer_id=7))
    seed_day(container, 1, MONDAY, present=8)
    seed_day(container, 2, MONDAY, present=8)

    report = container.orchestrator.trigger_end_of_day(MONDAY)

    assert report.failed == [2]
    assert len(report.created) == 1


def test_start_registers_recurring_jobs(container):
    container.orchestrator.start()

    armed = container.orchestrator.armed()
    assert set(armed) == {"day_start", "end_of_day", "sweep", "cleanup"}
    assert isinstance(armed["day_start"].trigger, CronTrigger)
    assert str(armed["end_of_day"].trigger) == "cron[hour='18', minute='0']"
    assert isinstance(armed["sweep"].trigger, IntervalTrigger)
    assert armed["sweep"].trigger.interval == timedelta(minutes=15)
    assert str(armed["cleanup"].trigger) == "cron[day_of_week='sun', hour='0', minute='0']"
    # Started after day start: today's monitoring is planned immediately.
    assert container.plans_repo.get(1, MONDAY).planned_count == 10

    container.orchestrator.stop()
    assert container.orchestrator.armed() == {}


def test_start_twice_keeps_one_job_per_trigger(container, jobs):
    container.orchestrator.start()
    container.orchestrator.start()

    assert sorted(job.id for job in jobs.get_jobs()) == ["cleanup", "day_start", "end_of_day", "sweep"]
    container.orchestrator.stop()


def test_full_day_runs_from_clock_in_to_auto_settlement(container, timers, transfers):
    container.attendance_service.clock_in(1, now=_at(8, 55))
    container.orchestrator.start()
    armed = container.orchestrator.armed()

    timers.advance_to(_at(16))
    container.attendance_service.submit_progress_report(1, "migrated the ledger", now=timers.now())
    timers.advance_to(_at(17, 5))
    container.attendance_service.clock_out(1, now=timers.now())
    timers.advance_to(_at(18))
    armed["end_of_day"].func()

    payment = container.payments_repo.get_for_worker_and_date(1, MONDAY)
    assert payment.status == PaymentStatus.PENDING
    assert payment.efficiency_score == 100
    assert container.orchestrator.get_efficiency_score(1, MONDAY) == 100

    # Nobody acts; the sweep after the deadline settles it.
    timers.advance_to(_at(19, 15))
    armed["sweep"].func()

    assert container.payment_service.get(payment.payment_id).status == PaymentStatus.SETTLING
    assert len(transfers.calls) == 1
    container.orchestrator.stop()


def test_failing_job_is_logged_not_raised(container, timers, monkeypatch):
    container.orchestrator.start()

    def broken(now):
        raise RuntimeError("store timeout")

    monkeypatch.setattr(container.orchestrator, "trigger_sweep", broken)

    container.orchestrator.armed()["sweep"].func()
    container.orchestrator.stop()


def test_cleanup_trigger_prunes_old_detail(container):
    seed_day(container, 1, MONDAY - timedelta(days=120), present=4)

    assert container.orchestrator.trigger_cleanup(MONDAY) == 1
