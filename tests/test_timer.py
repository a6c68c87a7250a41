from __future__ import annotations

import threading
import time

import pytest

from gbnftp.errors import TimerError
from gbnftp.timer import RetransmissionTimer


def make_timer(interval_ms: int = 20):
    fired = []
    lock = threading.RLock()
    timer = RetransmissionTimer(interval_ms, lambda: fired.append(time.monotonic()), lock)
    return timer, fired, lock


def test_fires_periodically_until_stopped():
    timer, fired, _ = make_timer(20)
    timer.start()
    time.sleep(0.15)
    timer.stop()
    count = len(fired)
    assert count >= 3
    time.sleep(0.08)
    assert len(fired) == count
    assert not timer.running


def test_double_start_is_rejected():
    timer, _, _ = make_timer(1000)
    timer.start()
    try:
        with pytest.raises(TimerError):
            timer.start()
    finally:
        timer.stop()


def test_stop_then_start_again():
    timer, fired, _ = make_timer(30)
    timer.start()
    timer.stop()
    timer.start()
    time.sleep(0.1)
    timer.stop()
    assert fired


def test_firing_that_loses_race_with_stop_is_dropped():
    timer, fired, lock = make_timer(20)
    with lock:
        timer.start()
        # the timer thread blocks on the lock once its interval elapses
        time.sleep(0.06)
        timer.stop()
    time.sleep(0.05)
    assert fired == []


def test_stop_when_idle_is_harmless():
    timer, _, _ = make_timer()
    timer.stop()
    assert not timer.running
