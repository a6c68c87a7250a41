from __future__ import annotations

import logging
import threading
import time
from typing import BinaryIO, Callable

from .config import TransferConfig
from .errors import MalformedSegmentError, TransferError, TransportError
from .metrics import Metrics
from .net import Channel
from .segment import Ack, Segment
from .timer import RetransmissionTimer
from .window import Window

log = logging.getLogger(__name__)


class GoBackNSender:
    """Go-Back-N sending engine over a connected datagram channel.

    `run()` drives two threads: one reads the source, numbers segments and
    sends them as window slots free up; the other consumes cumulative acks.
    A single retransmission timer covers the oldest unacknowledged segment
    and resends the whole window each time it fires.
    """

    def __init__(
        self,
        channel: Channel,
        source: BinaryIO,
        initial_seq: int = 0,
        config: TransferConfig | None = None,
    ):
        self.channel = channel
        self.source = source
        self.config = config or TransferConfig()
        self.next_seq = initial_seq
        self.window = Window(self.config.window_size)
        self.timer = RetransmissionTimer(self.config.rto_ms, self._on_timeout, self.window.lock)
        self.metrics = Metrics()
        self._producer_done = threading.Event()
        self._stop = threading.Event()
        self._error: BaseException | None = None
        self._stalled = 0

    @property
    def done(self) -> bool:
        with self.window.guarded():
            return self._producer_done.is_set() and self.window.is_empty()

    def run(self) -> Metrics:
        log.info(
            "GBN send start; initial_seq=%d window=%d rto_ms=%d",
            self.next_seq,
            self.config.window_size,
            self.config.rto_ms,
        )
        workers = [
            threading.Thread(target=self._worker, args=(self._send_loop,), name="gbn-send"),
            threading.Thread(target=self._worker, args=(self._ack_loop,), name="gbn-ack"),
        ]
        for t in workers:
            t.start()
        for t in workers:
            t.join()
        self.timer.stop()
        self.metrics.end_ts = time.monotonic()

        if self._error is not None:
            if isinstance(self._error, TransferError):
                raise self._error
            raise TransportError(f"transfer aborted: {self._error!r}") from self._error

        log.info(
            "done; next_seq=%d packets=%d retransmits=%d throughput=%.2f Mbps",
            self.next_seq,
            self.metrics.packets_sent,
            self.metrics.retransmits,
            self.metrics.throughput_mbps,
        )
        return self.metrics

    def abort(self, exc: BaseException) -> None:
        """Stop both loops and the timer; the first error recorded wins."""
        with self.window.guarded():
            if self._error is None:
                self._error = exc
                log.error("aborting transfer: %s", exc)
            self._stop.set()
            self.timer.stop()
            self.window.close()

    def _worker(self, loop: Callable[[], None]) -> None:
        try:
            loop()
        except Exception as exc:
            self.abort(exc)

    def _send_loop(self) -> None:
        while not self._stop.is_set():
            try:
                chunk = self.source.read(self.config.segment_size)
            except OSError as exc:
                raise TransportError("reading the source failed") from exc
            if not chunk:
                break

            segment = Segment(self.next_seq, chunk)
            self.next_seq += 1
            with self.window.guarded():
                if not self.window.put(segment):
                    return
                self._transmit(segment)
                self.metrics.bytes_sent += len(segment.payload)
                log.debug("send seq=%d len=%d", segment.seq, len(segment.payload))
                if self.window.peek_oldest() is segment:
                    self.timer.start()
        self._producer_done.set()

    def _ack_loop(self) -> None:
        while not self._stop.is_set() and not self.done:
            try:
                raw = self.channel.receive(self.config.ack_poll_ms)
            except TimeoutError:
                continue
            except OSError as exc:
                raise TransportError("receiving acks failed") from exc

            try:
                ack = Ack.from_bytes(raw)
            except MalformedSegmentError:
                log.debug("dropping malformed ack of %d bytes", len(raw))
                continue
            self._handle_ack(ack)

    def _handle_ack(self, ack: Ack) -> None:
        with self.window.guarded():
            self.timer.stop()
            removed = self.window.acknowledge_up_to(ack.seq)
            if removed:
                self._stalled = 0
            log.debug("ack %d; removed=%d in_flight=%d", ack.seq, removed, len(self.window))
            if not self.window.is_empty() and not self._stop.is_set():
                self.timer.start()

    def _on_timeout(self) -> None:
        segments = self.window.snapshot()
        if not segments:
            return

        self.metrics.timeouts += 1
        self._stalled += 1
        limit = self.config.max_retries
        if limit is not None and self._stalled > limit:
            self.abort(TransportError(f"no ack progress after {limit} retransmissions; base={segments[0].seq}"))
            return

        log.debug("timeout; retransmit window base=%d count=%d", segments[0].seq, len(segments))
        try:
            for segment in segments:
                self._transmit(segment)
                self.metrics.retransmits += 1
        except Exception as exc:
            self.abort(exc)

    def _transmit(self, segment: Segment) -> None:
        try:
            self.channel.send(segment.to_bytes())
        except OSError as exc:
            raise TransportError(f"sending seq={segment.seq} failed") from exc
        self.metrics.packets_sent += 1
