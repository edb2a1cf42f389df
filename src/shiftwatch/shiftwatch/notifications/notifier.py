from __future__ import annotations

import logging
from typing import Any, Protocol

from ..core.enums import NotificationKind

logger = logging.getLogger(__name__)


class Notifier(Protocol):
    """Outbound delivery (email, push, ...). Fire-and-forget."""

    def notify(self, recipient_ref: str, kind: NotificationKind, payload: dict[str, Any]) -> None:
        raise NotImplementedError


class LoggingNotifier:
    """Default delivery: write the notification to the application log."""

    def notify(self, recipient_ref: str, kind: NotificationKind, payload: dict[str, Any]) -> None:
        logger.info("notify %s [%s] %s", recipient_ref, kind.value, payload)
