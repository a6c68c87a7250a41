from __future__ import annotations

import io
import socket
import threading

import pytest

from gbnftp.errors import TransportError
from gbnftp.net import UdpEndpoint
from gbnftp.receiver import Receiver
from gbnftp.segment import Ack, Segment


@pytest.fixture
def endpoint():
    ep = UdpEndpoint.listening("127.0.0.1", 0, timeout_ms=20)
    yield ep
    ep.close()


@pytest.fixture
def client():
    sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
    sock.settimeout(2.0)
    yield sock
    sock.close()


def exchange(client, addr, segment: Segment) -> int:
    client.sendto(segment.to_bytes(), addr)
    raw, _ = client.recvfrom(64)
    return Ack.from_bytes(raw).seq


def test_in_order_delivery_with_cumulative_acks(endpoint, client):
    out = io.BytesIO()
    recv = Receiver(endpoint, out, expected_size=6, initial_seq=5, linger_ms=50)
    t = threading.Thread(target=recv.run, daemon=True)
    t.start()
    addr = endpoint.sock.getsockname()

    assert exchange(client, addr, Segment(6, b"def")) == 5
    assert exchange(client, addr, Segment(5, b"abc")) == 6
    assert exchange(client, addr, Segment(5, b"abc")) == 6
    assert exchange(client, addr, Segment(6, b"def")) == 7

    t.join(2.0)
    assert not t.is_alive()
    assert out.getvalue() == b"abcdef"


def test_lingers_to_reack_retransmissions(endpoint, client):
    out = io.BytesIO()
    recv = Receiver(endpoint, out, expected_size=1, linger_ms=300)
    t = threading.Thread(target=recv.run, daemon=True)
    t.start()
    addr = endpoint.sock.getsockname()

    assert exchange(client, addr, Segment(0, b"z")) == 1
    # final ack presumed lost; the retransmission is acked again
    assert exchange(client, addr, Segment(0, b"z")) == 1
    t.join(2.0)
    assert out.getvalue() == b"z"


def test_malformed_datagrams_are_ignored(endpoint, client):
    out = io.BytesIO()
    recv = Receiver(endpoint, out, expected_size=2, linger_ms=20)
    t = threading.Thread(target=recv.run, daemon=True)
    t.start()
    addr = endpoint.sock.getsockname()

    client.sendto(b"\x00", addr)
    assert exchange(client, addr, Segment(0, b"ok")) == 1
    t.join(2.0)
    assert out.getvalue() == b"ok"


def test_idle_timeout(endpoint):
    recv = Receiver(endpoint, io.BytesIO(), expected_size=10, idle_timeout_ms=60)
    with pytest.raises(TransportError):
        recv.run()
