from __future__ import annotations

from dataclasses import replace
from datetime import datetime, timedelta
from decimal import Decimal

import pytest

from shiftwatch.core.enums import PaymentStatus, Role
from shiftwatch.core.exceptions import IllegalTransitionError
from shiftwatch.payments.model import Actor

from conftest import MONDAY, make_worker, seed_day

EVENING = datetime(2026, 3, 2, 18, 0)
AFTER_DEADLINE = EVENING + timedelta(minutes=61)


def _pending(container, worker_id: int = 1, *, present: int):
    seed_day(container, worker_id, MONDAY, present=present)
    return container.payment_service.create(worker_id, MONDAY, now=EVENING)


def test_overdue_high_score_is_auto_settled(container, transfers):
    payment = _pending(container, present=7)
    assert payment.efficiency_score == 85

    report = container.sweeper.sweep(AFTER_DEADLINE)

    settled = container.payment_service.get(payment.payment_id)
    assert report.auto_settled == [payment.payment_id]
    assert settled.status == PaymentStatus.SETTLING
    assert settled.approved_by == "system"
    assert len(transfers.calls) == 1

    done = container.payment_service.on_transfer_result(settled.transfer_ref, success=True, now=AFTER_DEADLINE)
    assert done.status == PaymentStatus.COMPLETED


def test_overdue_low_score_goes_to_admin_review(container, notifier):
    payment = _pending(container, present=2)

    report = container.sweeper.sweep(AFTER_DEADLINE)
    container.drainer.drain()

    escalated = container.payment_service.get(payment.payment_id)
    assert report.escalated == [payment.payment_id]
    assert escalated.status == PaymentStatus.ADMIN_REVIEW
    assert escalated.declined_by == "system"
    assert escalated.decline_reason == "no employer action within deadline"
    assert "payments_need_review" in notifier.kinds()


def test_unfundable_auto_approval_is_escalated(container):
    payer = container.payers_repo.get_by_id(1)
    container.payers_repo.save(replace(payer, balance=Decimal("10.00")))
    payment = _pending(container, present=9)

    container.sweeper.sweep(AFTER_DEADLINE)

    escalated = container.payment_service.get(payment.payment_id)
    assert escalated.status == PaymentStatus.ADMIN_REVIEW
    assert escalated.decline_reason == "insufficient payer balance for automatic settlement"
    assert container.payers_repo.debit_count == 0


def test_payment_inside_window_is_left_alone(container):
    payment = _pending(container, present=9)

    report = container.sweeper.sweep(EVENING + timedelta(minutes=30))

    assert report.auto_settled == [] and report.escalated == []
    assert container.payment_service.get(payment.payment_id).status == PaymentStatus.PENDING
    with pytest.raises(IllegalTransitionError):
        container.payment_service.escalate_overdue(payment.payment_id, now=EVENING + timedelta(minutes=30))


def test_no_payment_stays_pending_after_one_sweep_past_deadline(container):
    for worker_id, present in ((1, 9), (2, 3), (3, 7), (4, 0)):
        if worker_id != 1:
            container.workers_repo.save(make_worker(worker_id))
        _pending(container, worker_id, present=present)

    container.sweeper.sweep(AFTER_DEADLINE)

    assert container.payments_repo.list_by_status(PaymentStatus.PENDING) == []
    assert container.payments_repo.list_overdue_pending(AFTER_DEADLINE) == []


def test_payer_action_after_escalation_is_rejected(container):
    payment = _pending(container, present=1)
    container.sweeper.sweep(AFTER_DEADLINE)

    with pytest.raises(IllegalTransitionError) as exc:
        container.payment_service.approve(payment.payment_id, Actor(role=Role.PAYER, actor_id=1), now=AFTER_DEADLINE)
    assert exc.value.current_status == PaymentStatus.ADMIN_REVIEW


def test_debited_payment_without_transfer_is_resumed(container, transfers):
    payment = _pending(container, present=9)
    stalled = replace(payment, status=PaymentStatus.SETTLING, debited_at=EVENING)
    assert container.payments_repo.save(stalled, expected_status=PaymentStatus.PENDING)

    report = container.sweeper.sweep(EVENING + timedelta(minutes=10))

    assert report.resumed == [payment.payment_id]
    assert transfers.calls == [("acct-1", payment.amount, payment.reference)]
    assert container.payment_service.get(payment.payment_id).transfer_initiated_at is not None


def test_one_broken_payment_does_not_stop_the_sweep(container, monkeypatch):
    container.workers_repo.save(make_worker(2))
    first = _pending(container, 1, present=7)
    second = _pending(container, 2, present=7)
    real_escalate = container.payment_service.escalate_overdue

    def escalate(payment_id, *, now=None):
        if payment_id == first.payment_id:
            raise RuntimeError("deadlock detected")
        return real_escalate(payment_id, now=now)

    monkeypatch.setattr(container.payment_service, "escalate_overdue", escalate)

    report = container.sweeper.sweep(AFTER_DEADLINE)

    assert report.skipped == [first.payment_id]
    assert report.auto_settled == [second.payment_id]
    assert container.payment_service.get(first.payment_id).status == PaymentStatus.PENDING
