from __future__ import annotations

import logging
import os
import random
import socket
import time
from dataclasses import dataclass
from typing import BinaryIO, Tuple

from . import handshake
from .constants import MAX_SEQ, SEQ_LEN
from .errors import MalformedSegmentError, SetupError, TransportError
from .handshake import HandshakeReply
from .metrics import Metrics
from .net import Impairment, UdpEndpoint
from .segment import Ack, Segment

log = logging.getLogger(__name__)


@dataclass(slots=True)
class Receiver:
    """In-order receiver: keeps the expected segment, acks everything cumulatively.

    Once `expected_size` bytes are written it lingers for `linger_ms`, re-acking
    retransmissions in case its last ack was lost.
    """

    udp: UdpEndpoint
    out: BinaryIO
    expected_size: int
    initial_seq: int = 0
    linger_ms: int = 1000
    idle_timeout_ms: int | None = None

    def run(self) -> Metrics:
        metrics = Metrics()
        expected = self.initial_seq
        received = 0
        last_rx = time.monotonic()

        while received < self.expected_size:
            try:
                raw, addr = self.udp.recvfrom()
            except TimeoutError:
                idle_ms = (time.monotonic() - last_rx) * 1000
                if self.idle_timeout_ms is not None and idle_ms >= self.idle_timeout_ms:
                    raise TransportError(f"no data for {idle_ms:.0f} ms; received {received} bytes")
                continue
            last_rx = time.monotonic()

            try:
                segment = Segment.from_bytes(raw)
            except MalformedSegmentError:
                continue

            if segment.seq == expected:
                self.out.write(segment.payload)
                expected += 1
                received += len(segment.payload)
                metrics.bytes_sent += len(segment.payload)

            self._ack(expected, addr, metrics)

        self.out.flush()
        self._linger(expected, metrics)
        metrics.end_ts = time.monotonic()
        log.info("receiver done; bytes=%d next_seq=%d", received, expected)
        return metrics

    def _ack(self, expected: int, addr: Tuple[str, int], metrics: Metrics) -> None:
        self.udp.sendto(Ack(expected).to_bytes(), addr)
        metrics.packets_sent += 1

    def _linger(self, expected: int, metrics: Metrics) -> None:
        self.udp.set_timeout(self.linger_ms)
        while True:
            try:
                raw, addr = self.udp.recvfrom()
            except TimeoutError:
                return
            if len(raw) >= SEQ_LEN:
                self._ack(expected, addr, metrics)


def accept_transfer(
    listener: socket.socket,
    out_dir: str,
    *,
    udp_host: str = "0.0.0.0",
    initial_seq: int | None = None,
    impairment: Impairment | None = None,
    poll_ms: int = 500,
    linger_ms: int = 1000,
    idle_timeout_ms: int | None = None,
) -> Tuple[str, Metrics]:
    """Serve one handshake on `listener` and receive the announced file into `out_dir`.

    The output file is opened before the handshake is answered, so a sender
    whose file cannot be stored sees the control connection close unanswered.
    """
    try:
        conn, peer = listener.accept()
    except OSError as exc:
        raise SetupError("accepting the handshake connection failed") from exc
    with conn:
        try:
            req = handshake.read_request(conn)
        except (OSError, ValueError) as exc:
            raise SetupError(f"bad handshake from {peer[0]}:{peer[1]}") from exc

        path = os.path.join(out_dir, os.path.basename(req.file_name))
        try:
            out = open(path, "wb")
        except OSError as exc:
            raise SetupError(f"cannot write {path}") from exc

        with out:
            try:
                udp = UdpEndpoint.listening(udp_host, 0, timeout_ms=poll_ms, impairment=impairment)
            except OSError as exc:
                raise SetupError("cannot open UDP endpoint") from exc

            try:
                if initial_seq is None:
                    initial_seq = random.randint(0, MAX_SEQ // 2)
                try:
                    handshake.write_reply(conn, HandshakeReply(udp.local_port, initial_seq))
                except OSError as exc:
                    raise SetupError(f"handshake reply to {peer[0]}:{peer[1]} failed") from exc
                conn.close()
                log.info(
                    "transfer from %s:%d; file=%s size=%d udp_port=%d initial_seq=%d",
                    peer[0],
                    peer[1],
                    req.file_name,
                    req.file_size,
                    udp.local_port,
                    initial_seq,
                )

                try:
                    metrics = Receiver(
                        udp,
                        out,
                        req.file_size,
                        initial_seq=initial_seq,
                        linger_ms=linger_ms,
                        idle_timeout_ms=idle_timeout_ms,
                    ).run()
                except OSError as exc:
                    raise TransportError(f"receiving {req.file_name} failed") from exc
            finally:
                udp.close()
    return path, metrics
