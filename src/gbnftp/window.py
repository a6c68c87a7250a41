from __future__ import annotations

import threading
from collections import deque
from contextlib import contextmanager
from typing import Iterator

from .segment import Segment


class Window:
    """Bounded, ordered set of segments sent but not yet acknowledged.

    All access goes through one re-entrant condition. `guarded()` exposes it so
    callers can make a window change and a timer start/stop a single step; the
    retransmission timer fires under the same lock.
    """

    def __init__(self, size: int):
        if size < 1:
            raise ValueError(f"window size must be positive, got {size}")
        self.size = size
        self._segments: deque[Segment] = deque()
        self._cond = threading.Condition(threading.RLock())
        self._closed = False

    @contextmanager
    def guarded(self) -> Iterator["Window"]:
        with self._cond:
            yield self

    @property
    def lock(self) -> threading.Condition:
        return self._cond

    def __len__(self) -> int:
        with self._cond:
            return len(self._segments)

    def is_empty(self) -> bool:
        with self._cond:
            return not self._segments

    def is_full(self) -> bool:
        with self._cond:
            return len(self._segments) >= self.size

    def try_append(self, segment: Segment) -> bool:
        with self._cond:
            if self._closed or len(self._segments) >= self.size:
                return False
            self._segments.append(segment)
            return True

    def put(self, segment: Segment) -> bool:
        """Append, waiting for a free slot. Returns False once the window is closed."""
        with self._cond:
            self._cond.wait_for(lambda: self._closed or len(self._segments) < self.size)
            if self._closed:
                return False
            self._segments.append(segment)
            return True

    def acknowledge_up_to(self, seq: int) -> int:
        with self._cond:
            removed = 0
            while self._segments and self._segments[0].seq < seq:
                self._segments.popleft()
                removed += 1
            if removed:
                self._cond.notify_all()
            return removed

    def peek_oldest(self) -> Segment | None:
        with self._cond:
            return self._segments[0] if self._segments else None

    def snapshot(self) -> list[Segment]:
        with self._cond:
            return list(self._segments)

    def close(self) -> None:
        with self._cond:
            self._closed = True
            self._cond.notify_all()
