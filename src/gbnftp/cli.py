from __future__ import annotations

import argparse
import json
import logging
import socket
from dataclasses import asdict

from .bench import run_benchmark
from .config import TransferConfig
from .constants import DEFAULT_ACK_POLL_MS, DEFAULT_RTO_MS, DEFAULT_SEGMENT_SIZE, DEFAULT_WINDOW_SIZE
from .errors import SetupError, TransportError
from .net import Impairment
from .receiver import accept_transfer
from .session import TransferSession

EXIT_SETUP = 2
EXIT_TRANSPORT = 3

log = logging.getLogger("gbnftp")


def config_from_args(args: argparse.Namespace) -> TransferConfig:
    return TransferConfig(
        window_size=args.window_size,
        rto_ms=args.rto_ms,
        segment_size=args.segment_size,
        ack_poll_ms=args.ack_poll_ms,
        max_retries=args.max_retries,
    )


def emit(payload: dict, as_json: bool) -> None:
    print(json.dumps(payload, indent=2) if as_json else payload)


def cmd_send(args: argparse.Namespace) -> int:
    session = TransferSession(
        config_from_args(args),
        impairment=Impairment(args.loss_rate, args.delay_ms),
    )
    metrics = session.send(args.dest_host, args.dest_port, args.file)
    emit(
        {
            "role": "sender",
            "bytes": metrics.bytes_sent,
            "seconds": metrics.duration_s,
            "mbps": metrics.throughput_mbps,
            "packets": metrics.packets_sent,
            "timeouts": metrics.timeouts,
            "retransmits": metrics.retransmits,
        },
        args.json,
    )
    return 0


def cmd_recv(args: argparse.Namespace) -> int:
    try:
        listener = socket.create_server((args.listen_host, args.listen_port))
    except OSError as exc:
        raise SetupError(f"cannot listen on {args.listen_host}:{args.listen_port}") from exc

    with listener:
        log.info("receiver listening on %s:%d; writing to %s", args.listen_host, args.listen_port, args.out_dir)
        path, metrics = accept_transfer(
            listener,
            args.out_dir,
            initial_seq=args.initial_seq,
            impairment=Impairment(args.loss_rate, args.delay_ms),
            linger_ms=args.linger_ms,
            idle_timeout_ms=args.idle_timeout_ms,
        )

    emit(
        {
            "role": "receiver",
            "file": path,
            "bytes": metrics.bytes_sent,
            "seconds": metrics.duration_s,
            "mbps": metrics.throughput_mbps,
        },
        args.json,
    )
    return 0


def cmd_bench(args: argparse.Namespace) -> int:
    r = run_benchmark(
        size_bytes=args.size_bytes,
        config=config_from_args(args),
        loss_rate=args.loss_rate,
        delay_ms=args.delay_ms,
    )
    emit({"role": "bench", **asdict(r)}, args.json)
    return 0


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="gbnftp", description="Go-Back-N file transfer over UDP.")
    p.add_argument("--log-level", default="INFO", choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"])
    sub = p.add_subparsers(dest="cmd", required=True)

    def add_common(x: argparse.ArgumentParser) -> None:
        x.add_argument("--loss-rate", type=float, default=0.0, help="simulated datagram loss")
        x.add_argument("--delay-ms", type=int, default=0, help="simulated per-datagram delay")
        x.add_argument("--json", action="store_true")

    def add_transfer(x: argparse.ArgumentParser) -> None:
        x.add_argument("--window-size", type=int, default=DEFAULT_WINDOW_SIZE, help="window size in segments")
        x.add_argument("--rto-ms", type=int, default=DEFAULT_RTO_MS, help="retransmission timeout")
        x.add_argument("--segment-size", type=int, default=DEFAULT_SEGMENT_SIZE, help="max payload per segment")
        x.add_argument("--ack-poll-ms", type=int, default=DEFAULT_ACK_POLL_MS)
        x.add_argument("--max-retries", type=int, default=None, help="give up after this many fruitless timeouts")

    send = sub.add_parser("send", help="send a file to a receiver")
    add_common(send)
    add_transfer(send)
    send.add_argument("--dest-host", required=True)
    send.add_argument("--dest-port", type=int, required=True, help="receiver handshake (TCP) port")
    send.add_argument("--file", required=True)
    send.set_defaults(func=cmd_send)

    recv = sub.add_parser("recv", help="receive one file and write it to a directory")
    add_common(recv)
    recv.add_argument("--listen-host", default="0.0.0.0")
    recv.add_argument("--listen-port", type=int, required=True)
    recv.add_argument("--out-dir", default=".")
    recv.add_argument("--initial-seq", type=int, default=None, help="random when omitted")
    recv.add_argument("--linger-ms", type=int, default=1000)
    recv.add_argument("--idle-timeout-ms", type=int, default=None)
    recv.set_defaults(func=cmd_recv)

    bench = sub.add_parser("bench", help="loopback benchmark")
    add_common(bench)
    add_transfer(bench)
    bench.add_argument("--size-bytes", type=int, default=5_000_000)
    bench.set_defaults(func=cmd_bench)

    return p


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(level=getattr(logging, args.log_level), format="%(asctime)s [%(levelname)s] %(message)s")
    try:
        return int(args.func(args))
    except SetupError as exc:
        log.error("setup failed: %s (%r)", exc, exc.__cause__)
        return EXIT_SETUP
    except TransportError as exc:
        log.error("transfer failed: %s (%r)", exc, exc.__cause__)
        return EXIT_TRANSPORT


if __name__ == "__main__":
    raise SystemExit(main())
