from __future__ import annotations

import threading
from typing import Callable, ContextManager

from .errors import TimerError


class RetransmissionTimer:
    """Periodic timer for the oldest unacknowledged segment.

    Once started it calls `on_expire` every `interval_ms` until stopped. There
    is no backoff. Each firing runs while holding `lock`, and a firing that
    lost the race against `stop()` is dropped.
    """

    def __init__(self, interval_ms: int, on_expire: Callable[[], None], lock: ContextManager):
        self.interval_ms = interval_ms
        self.on_expire = on_expire
        self._lock = lock
        self._cancel: threading.Event | None = None

    @property
    def running(self) -> bool:
        return self._cancel is not None

    def start(self) -> None:
        with self._lock:
            if self._cancel is not None:
                raise TimerError("retransmission timer already running")
            cancel = threading.Event()
            self._cancel = cancel
            threading.Thread(target=self._run, args=(cancel,), name="gbn-rto", daemon=True).start()

    def stop(self) -> None:
        with self._lock:
            if self._cancel is not None:
                self._cancel.set()
                self._cancel = None

    def _run(self, cancel: threading.Event) -> None:
        interval_s = self.interval_ms / 1000.0
        while not cancel.wait(interval_s):
            with self._lock:
                if cancel.is_set():
                    return
                self.on_expire()
