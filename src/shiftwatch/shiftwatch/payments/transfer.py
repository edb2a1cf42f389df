from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Optional, Protocol

from ..core.exceptions import CollaboratorError


@dataclass(frozen=True)
class TransferInitiation:
    accepted: bool
    transfer_ref: Optional[str] = None
    error: Optional[str] = None


@dataclass(frozen=True)
class TransferOutcome:
    """Final result reported by the transfer network for one reference."""

    success: bool
    transfer_ref: Optional[str] = None
    error: Optional[str] = None


class TransferGateway(Protocol):
    """Funds-transfer network. initiate_transfer is idempotent per reference."""

    def initiate_transfer(self, recipient_ref: str, amount: Decimal, reference: str) -> TransferInitiation:
        raise NotImplementedError


class UnconfiguredTransferGateway:
    """Used when no transfer network is wired in; every initiation fails."""

    def initiate_transfer(self, recipient_ref: str, amount: Decimal, reference: str) -> TransferInitiation:
        raise CollaboratorError("No transfer gateway configured")
