from __future__ import annotations

import itertools
import logging
import threading
from datetime import datetime
from enum import Enum
from typing import Callable, Optional, Protocol

from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.schedulers.base import BaseScheduler

from ..common.datetime_utils import now_local

logger = logging.getLogger(__name__)


class TimerState(str, Enum):
    SCHEDULED = "scheduled"
    FIRED = "fired"
    CANCELLED = "cancelled"


class TimerHandle:
    """A single scheduled callback.

    cancel() and the firing path race on the same lock, so a callback runs
    at most once and never after a successful cancel.
    """

    def __init__(
        self,
        at: datetime,
        callback: Callable[[], None],
        *,
        name: str = "",
        job_id: Optional[str] = None,
        on_cancel: Optional[Callable[[], None]] = None,
    ):
        self.at = at
        self.name = name
        self._callback = callback
        self._lock = threading.Lock()
        self._state = TimerState.SCHEDULED
        self.job_id = job_id
        self._on_cancel = on_cancel

    @property
    def state(self) -> TimerState:
        return self._state

    def cancel(self) -> bool:
        """Cancel if still scheduled. Returns False for an already fired/cancelled timer."""
        with self._lock:
            if self._state != TimerState.SCHEDULED:
                return False
            self._state = TimerState.CANCELLED
            on_cancel = self._on_cancel
        if on_cancel is not None:
            on_cancel()
        return True

    def fire(self) -> None:
        with self._lock:
            if self._state != TimerState.SCHEDULED:
                return
            self._state = TimerState.FIRED
        try:
            self._callback()
        except Exception:
            logger.exception("Timer %s failed", self.name or self.at.isoformat())


class TimerService(Protocol):
    def schedule(self, at: datetime, callback: Callable[[], None], *, name: str = "") -> TimerHandle:
        raise NotImplementedError

    def now(self) -> datetime:
        raise NotImplementedError


def new_background_scheduler() -> BackgroundScheduler:
    # coalesce: a backlog of missed runs collapses into one.
    return BackgroundScheduler(job_defaults={"coalesce": True, "misfire_grace_time": 3600})


class BackgroundTimerService:
    """One-shot timers as APScheduler 'date' jobs.

    Cancelling a handle removes its job. Instants already in the past fire
    as soon as the scheduler picks them up.
    """

    def __init__(self, scheduler: Optional[BaseScheduler] = None, clock: Callable[[], datetime] = now_local):
        self._scheduler = scheduler or new_background_scheduler()
        self._clock = clock
        self._ids = itertools.count(1)
        self._start_lock = threading.Lock()

    @property
    def scheduler(self) -> BaseScheduler:
        return self._scheduler

    def now(self) -> datetime:
        return self._clock()

    def start(self) -> None:
        with self._start_lock:
            if not self._scheduler.running:
                self._scheduler.start()

    def schedule(self, at: datetime, callback: Callable[[], None], *, name: str = "") -> TimerHandle:
        job_id = f"{name or 'timer'}#{next(self._ids)}"
        handle = TimerHandle(at, callback, name=name, job_id=job_id, on_cancel=lambda: self._remove(job_id))

        self.start()
        self._scheduler.add_job(
            handle.fire,
            "date",
            run_date=max(at, self._clock()),
            id=job_id,
            name=name or None,
            misfire_grace_time=None,
        )
        return handle

    def _remove(self, job_id: str) -> None:
        try:
            self._scheduler.remove_job(job_id)
        except JobLookupError:
            # Already ran or already removed.
            pass

    def shutdown(self) -> None:
        with self._start_lock:
            if self._scheduler.running:
                self._scheduler.shutdown(wait=False)
