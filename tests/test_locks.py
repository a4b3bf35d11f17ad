"""
Tests for `services/locks.py`.
"""

from __future__ import annotations

import threading
import time
from concurrent.futures import ThreadPoolExecutor

from services.locks import KeyedLocks


def test_same_key_is_exclusive() -> None:
    locks = KeyedLocks()
    active = 0
    peak = 0
    guard = threading.Lock()

    def work(_):
        nonlocal active, peak
        with locks.hold("lead-1"):
            with guard:
                active += 1
                peak = max(peak, active)
            time.sleep(0.005)
            with guard:
                active -= 1

    with ThreadPoolExecutor(max_workers=4) as pool:
        list(pool.map(work, range(12)))

    assert peak == 1


def test_different_keys_do_not_block() -> None:
    locks = KeyedLocks()
    entered = threading.Event()

    with locks.hold("cart:a"):
        def other():
            with locks.hold("cart:b"):
                entered.set()

        thread = threading.Thread(target=other)
        thread.start()
        assert entered.wait(timeout=2)
        thread.join()


def test_entries_are_released() -> None:
    locks = KeyedLocks()

    with locks.hold("lead-1"):
        assert len(locks) == 1

    assert len(locks) == 0
