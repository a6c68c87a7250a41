from __future__ import annotations

import json
import socket
import threading
import time

from gbnftp import handshake
from gbnftp.cli import EXIT_SETUP, build_parser, main
from gbnftp.handshake import HandshakeRequest


def free_port() -> int:
    s = socket.socket()
    s.bind(("127.0.0.1", 0))
    port = s.getsockname()[1]
    s.close()
    return port


def test_parser_defaults():
    args = build_parser().parse_args(["send", "--dest-host", "h", "--dest-port", "1", "--file", "f"])
    assert args.window_size == 8
    assert args.rto_ms == 250
    assert args.segment_size == 1400
    assert args.max_retries is None


def test_bench_json(capsys):
    rc = main(["bench", "--size-bytes", "10000", "--rto-ms", "30", "--ack-poll-ms", "20", "--json"])
    assert rc == 0
    payload = json.loads(capsys.readouterr().out)
    assert payload["role"] == "bench"
    assert payload["bytes_transferred"] == 10000


def test_send_setup_failure_exit_code(tmp_path):
    src = tmp_path / "f.bin"
    src.write_bytes(b"data")
    rc = main(["send", "--dest-host", "127.0.0.1", "--dest-port", str(free_port()), "--file", str(src)])
    assert rc == EXIT_SETUP


def test_recv_into_missing_directory_exit_code(tmp_path):
    port = free_port()
    rc = {}
    t = threading.Thread(
        target=lambda: rc.setdefault(
            "value",
            main(["recv", "--listen-host", "127.0.0.1", "--listen-port", str(port), "--out-dir", str(tmp_path / "nope")]),
        ),
        daemon=True,
    )
    t.start()

    deadline = time.monotonic() + 2.0
    while True:
        try:
            client = socket.create_connection(("127.0.0.1", port), timeout=2.0)
            break
        except ConnectionRefusedError:
            if time.monotonic() > deadline:
                raise
            time.sleep(0.01)
    with client:
        client.sendall(handshake.encode_request(HandshakeRequest("f.bin", 4, 1)))
        # no reply: the receiver drops the connection instead of answering
        assert client.recv(8) == b""

    t.join(2.0)
    assert rc["value"] == EXIT_SETUP
