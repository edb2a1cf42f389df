from __future__ import annotations

import threading

import pytest

from shiftwatch.common.locks import KeyedLocks
from shiftwatch.core.exceptions import ConcurrencyConflict


def test_entry_is_dropped_once_released():
    locks = KeyedLocks(timeout=1)

    with locks.hold(7):
        assert locks.active_keys() == 1

    assert locks.active_keys() == 0


def test_many_keys_do_not_accumulate():
    locks = KeyedLocks(timeout=1)

    for key in range(100):
        with locks.hold(("worker", key)):
            pass

    assert locks.active_keys() == 0


def test_busy_key_times_out():
    locks = KeyedLocks(timeout=0.05, name="payment")
    held = threading.Event()
    release = threading.Event()

    def holder():
        with locks.hold(1):
            held.set()
            release.wait(timeout=5)

    t = threading.Thread(target=holder)
    t.start()
    try:
        assert held.wait(timeout=5)
        with pytest.raises(ConcurrencyConflict):
            with locks.hold(1):
                pass
        # Other keys are unaffected.
        with locks.hold(2):
            pass
    finally:
        release.set()
        t.join()

    assert locks.active_keys() == 0
