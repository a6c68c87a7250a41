from __future__ import annotations

import logging
import random
import socket
import threading
import time
from dataclasses import dataclass
from typing import Callable, Protocol, Tuple

from .constants import RECV_BUFSIZE

log = logging.getLogger(__name__)


class Channel(Protocol):
    """Datagram channel bound to one remote peer."""

    def send(self, data: bytes) -> None: ...

    def receive(self, timeout_ms: int) -> bytes: ...


@dataclass(frozen=True, slots=True)
class Impairment:
    loss_rate: float = 0.0
    delay_ms: int = 0

    def should_drop(self) -> bool:
        return random.random() < self.loss_rate

    def sleep_if_needed(self) -> None:
        if self.delay_ms > 0:
            time.sleep(self.delay_ms / 1000.0)


class UdpEndpoint:
    def __init__(self, sock: socket.socket, impairment: Impairment | None = None):
        self.sock = sock
        self.impairment = impairment or Impairment()

    @classmethod
    def listening(
        cls,
        host: str,
        port: int,
        timeout_ms: int = 0,
        impairment: Impairment | None = None,
    ) -> "UdpEndpoint":
        sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
        sock.bind((host, port))
        if timeout_ms > 0:
            sock.settimeout(timeout_ms / 1000.0)
        return cls(sock, impairment)

    @classmethod
    def sending(cls, impairment: Impairment | None = None) -> "UdpEndpoint":
        sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
        sock.bind(("0.0.0.0", 0))
        return cls(sock, impairment)

    @property
    def local_port(self) -> int:
        return self.sock.getsockname()[1]

    def connect(self, addr: Tuple[str, int]) -> None:
        self.sock.connect(addr)

    def set_timeout(self, timeout_ms: int) -> None:
        self.sock.settimeout(timeout_ms / 1000.0)

    def send(self, data: bytes) -> None:
        if self.impairment.should_drop():
            return
        if self.impairment.delay_ms > 0:
            self._deliver_later(self.sock.send, data)
        else:
            self.sock.send(data)

    def receive(self, timeout_ms: int) -> bytes:
        """Next datagram from the connected peer; TimeoutError after `timeout_ms`."""
        self.set_timeout(timeout_ms)
        while True:
            data = self.sock.recv(RECV_BUFSIZE)
            if self.impairment.should_drop():
                continue
            self.impairment.sleep_if_needed()
            return data

    def sendto(self, data: bytes, addr: Tuple[str, int]) -> None:
        if self.impairment.should_drop():
            return
        if self.impairment.delay_ms > 0:
            self._deliver_later(self.sock.sendto, data, addr)
        else:
            self.sock.sendto(data, addr)

    def recvfrom(self, bufsize: int = RECV_BUFSIZE) -> Tuple[bytes, Tuple[str, int]]:
        while True:
            data, addr = self.sock.recvfrom(bufsize)
            if self.impairment.should_drop():
                continue
            self.impairment.sleep_if_needed()
            return data, addr

    def close(self) -> None:
        self.sock.close()

    def _deliver_later(self, send: Callable[..., object], *args: object) -> None:
        # outbound delay is propagation delay: the caller never blocks on it
        t = threading.Timer(self.impairment.delay_ms / 1000.0, self._deliver, args=(send, *args))
        t.daemon = True
        t.start()

    @staticmethod
    def _deliver(send: Callable[..., object], *args: object) -> None:
        try:
            send(*args)
        except OSError as exc:
            # the endpoint was closed while the datagram was in flight
            log.debug("delayed datagram lost: %s", exc)
