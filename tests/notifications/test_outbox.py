from __future__ import annotations

from datetime import datetime

from shiftwatch.core.enums import NotificationKind
from shiftwatch.notifications.outbox import Outbox, OutboxDrainer

from conftest import RecordingNotifier


def _outbox() -> Outbox:
    return Outbox(clock=lambda: datetime(2026, 3, 2, 18, 0))


def test_drain_delivers_in_order_and_empties_outbox():
    outbox = _outbox()
    notifier = RecordingNotifier()
    outbox.append("worker:1", NotificationKind.PAYMENT_COMPLETED, {"payment_id": 1})
    outbox.append("admins", NotificationKind.PAYMENT_FAILED, {"payment_id": 2})

    delivered = OutboxDrainer(outbox, notifier).drain()

    assert delivered == 2
    assert [r for r, _, _ in notifier.sent] == ["worker:1", "admins"]
    assert len(outbox) == 0


def test_failed_delivery_is_retried_then_dropped():
    outbox = _outbox()
    notifier = RecordingNotifier(fail=True)
    drainer = OutboxDrainer(outbox, notifier, max_attempts=2)
    outbox.append("payer:1", NotificationKind.PAYMENT_PENDING, {"payment_id": 1})

    assert drainer.drain() == 0
    assert [i.attempts for i in outbox.pending()] == [1]

    assert drainer.drain() == 0
    assert outbox.pending() == []


def test_one_failure_does_not_block_the_batch():
    outbox = _outbox()

    class FlakyNotifier(RecordingNotifier):
        def notify(self, recipient_ref, kind, payload):
            if recipient_ref == "broken":
                raise RuntimeError("bounce")
            super().notify(recipient_ref, kind, payload)

    notifier = FlakyNotifier()
    outbox.append("broken", NotificationKind.PAYMENT_PENDING, {})
    outbox.append("worker:1", NotificationKind.PAYMENT_COMPLETED, {})

    assert OutboxDrainer(outbox, notifier).drain() == 1
    assert notifier.sent[0][0] == "worker:1"
    assert len(outbox) == 1
