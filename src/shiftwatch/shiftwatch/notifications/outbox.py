from __future__ import annotations

import logging
import threading
from collections import deque
from datetime import datetime
from typing import Any, Callable

from ..common.datetime_utils import now_local
from ..core.enums import NotificationKind
from .model import NotificationIntent
from .notifier import Notifier

logger = logging.getLogger(__name__)


class Outbox:
    """Notification intents appended by business transitions.

    Appending never blocks on delivery; OutboxDrainer delivers later.
    """

    def __init__(self, clock: Callable[[], datetime] = now_local):
        self._clock = clock
        self._lock = threading.Lock()
        self._queue: deque[NotificationIntent] = deque()

    def append(self, recipient_ref: str, kind: NotificationKind, payload: dict[str, Any]) -> NotificationIntent:
        intent = NotificationIntent(recipient_ref=str(recipient_ref), kind=kind, payload=dict(payload), created_at=self._clock())
        with self._lock:
            self._queue.append(intent)
        return intent

    def requeue(self, intent: NotificationIntent) -> None:
        with self._lock:
            self._queue.append(intent)

    def take_all(self) -> list[NotificationIntent]:
        with self._lock:
            items = list(self._queue)
            self._queue.clear()
        return items

    def pending(self) -> list[NotificationIntent]:
        with self._lock:
            return list(self._queue)

    def __len__(self) -> int:
        with self._lock:
            return len(self._queue)


class OutboxDrainer:
    """Delivers outbox intents one by one.

    A failed delivery is logged and does not stop the rest of the batch.
    Failed intents are dropped after max_attempts.
    """

    def __init__(self, outbox: Outbox, notifier: Notifier, *, max_attempts: int = 3):
        self._outbox = outbox
        self._notifier = notifier
        self._max_attempts = int(max_attempts)
        self._drain_lock = threading.Lock()

    def drain(self) -> int:
        delivered = 0
        with self._drain_lock:
            retry: list[NotificationIntent] = []
            for intent in self._outbox.take_all():
                try:
                    self._notifier.notify(intent.recipient_ref, intent.kind, intent.payload)
                    delivered += 1
                except Exception:
                    logger.exception("Delivering %s to %s failed", intent.kind.value, intent.recipient_ref)
                    attempts = intent.attempts + 1
                    if attempts < self._max_attempts:
                        retry.append(
                            NotificationIntent(
                                recipient_ref=intent.recipient_ref,
                                kind=intent.kind,
                                payload=intent.payload,
                                created_at=intent.created_at,
                                attempts=attempts,
                            )
                        )
                    else:
                        logger.error("Giving up on %s for %s after %s attempts", intent.kind.value, intent.recipient_ref, attempts)
            for intent in retry:
                self._outbox.requeue(intent)
        return delivered
