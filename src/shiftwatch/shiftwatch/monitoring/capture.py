from __future__ import annotations

from typing import Protocol

from ..core.exceptions import CollaboratorError
from .model import CaptureResult


class PresenceCapture(Protocol):
    """External collaborator that checks whether a worker is at their post.

    Implementations raise CollaboratorError (or any exception) when the
    device or network fails; a successful check reporting absence returns
    CaptureResult(success=True, present=False).
    """

    def capture_presence(self, worker_id: int) -> CaptureResult:
        raise NotImplementedError


class UnconfiguredPresenceCapture:
    """Used when no capture device is wired in; every capture fails."""

    def capture_presence(self, worker_id: int) -> CaptureResult:
        raise CollaboratorError("No presence capture device configured")
