from __future__ import annotations

import queue
import threading
import time

import pytest

from gbnftp.segment import Ack, Segment


class FakeChannel:
    """In-memory channel: records every datagram sent, serves queued inbound ones."""

    def __init__(self):
        self.sent: list[bytes] = []
        self.inbound: "queue.Queue[bytes | BaseException]" = queue.Queue()
        self.send_error: OSError | None = None
        self._lock = threading.Lock()

    def send(self, data: bytes) -> None:
        if self.send_error is not None:
            raise self.send_error
        with self._lock:
            self.sent.append(data)

    def receive(self, timeout_ms: int) -> bytes:
        try:
            item = self.inbound.get(timeout=timeout_ms / 1000.0)
        except queue.Empty:
            raise TimeoutError
        if isinstance(item, BaseException):
            raise item
        return item

    def ack(self, seq: int) -> None:
        self.inbound.put(Ack(seq).to_bytes())

    def sent_seqs(self) -> list[int]:
        with self._lock:
            return [Segment.from_bytes(raw).seq for raw in self.sent]


def wait_until(predicate, timeout: float = 2.0, interval: float = 0.005) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(interval)
    return predicate()


@pytest.fixture
def channel() -> FakeChannel:
    return FakeChannel()


@pytest.fixture
def until():
    return wait_until
