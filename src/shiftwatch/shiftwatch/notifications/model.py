from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from ..core.enums import NotificationKind

ADMINS = "admins"


@dataclass(frozen=True)
class NotificationIntent:
    recipient_ref: str
    kind: NotificationKind
    payload: dict[str, Any]
    created_at: datetime
    attempts: int = field(default=0, compare=False)
