from __future__ import annotations

import io
import threading
from dataclasses import dataclass

from .config import TransferConfig
from .net import Impairment, UdpEndpoint
from .receiver import Receiver
from .sender import GoBackNSender


@dataclass(frozen=True, slots=True)
class BenchmarkResult:
    bytes_transferred: int
    duration_s: float
    throughput_mbps: float
    packets_sent: int
    retransmits: int
    timeouts: int


def run_benchmark(
    *,
    size_bytes: int,
    config: TransferConfig | None = None,
    loss_rate: float = 0.0,
    delay_ms: int = 0,
    linger_ms: int = 200,
) -> BenchmarkResult:
    """Send `size_bytes` over loopback to an in-process receiver, skipping the handshake."""
    config = config or TransferConfig()
    payload = bytes(i % 251 for i in range(size_bytes))
    impair = Impairment(loss_rate=loss_rate, delay_ms=delay_ms)

    recv_ep = UdpEndpoint.listening("127.0.0.1", 0, timeout_ms=config.ack_poll_ms, impairment=impair)
    recv_addr = recv_ep.sock.getsockname()
    out = io.BytesIO()
    recv = Receiver(recv_ep, out, size_bytes, linger_ms=linger_ms)

    def recv_runner() -> None:
        try:
            recv.run()
        finally:
            recv_ep.close()

    t = threading.Thread(target=recv_runner, name="bench-recv", daemon=True)
    t.start()

    send_ep = UdpEndpoint.sending(impairment=impair)
    try:
        send_ep.connect(recv_addr)
        send_metrics = GoBackNSender(send_ep, io.BytesIO(payload), 0, config).run()
    finally:
        send_ep.close()

    t.join(timeout=10.0)
    assert out.getvalue() == payload

    duration_s = max(0.001, send_metrics.duration_s)
    return BenchmarkResult(
        bytes_transferred=size_bytes,
        duration_s=duration_s,
        throughput_mbps=(size_bytes * 8 / 1_000_000) / duration_s,
        packets_sent=send_metrics.packets_sent,
        retransmits=send_metrics.retransmits,
        timeouts=send_metrics.timeouts,
    )
