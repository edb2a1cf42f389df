from __future__ import annotations

from decimal import Decimal
from typing import Optional, Protocol, Sequence

from .model import Payer, Worker


class WorkerRepository(Protocol):
    """Repository interface for Worker.

    Note (DIP): services depend on this interface, not on a concrete store.
    """

    def get_by_id(self, worker_id: int) -> Optional[Worker]:
        raise NotImplementedError

    def list_active(self) -> Sequence[Worker]:
        raise NotImplementedError

    def set_active(self, worker_id: int, *, is_active: bool) -> bool:
        raise NotImplementedError

    def save(self, worker: Worker) -> None:
        raise NotImplementedError


class PayerRepository(Protocol):
    def get_by_id(self, payer_id: int) -> Optional[Payer]:
        raise NotImplementedError

    def credit(self, payer_id: int, amount: Decimal) -> None:
        raise NotImplementedError
