from __future__ import annotations

import logging
import os
from typing import BinaryIO

from . import handshake
from .config import TransferConfig
from .errors import SetupError
from .handshake import HandshakeRequest
from .metrics import Metrics
from .net import Channel, Impairment, UdpEndpoint
from .sender import GoBackNSender

log = logging.getLogger(__name__)


class TransferSession:
    """One file transfer: handshake, UDP channel setup, Go-Back-N send, teardown.

    Anything that fails before the first segment goes out is raised as
    `SetupError`; failures once the engine runs surface as `TransportError`.
    """

    def __init__(
        self,
        config: TransferConfig | None = None,
        impairment: Impairment | None = None,
        handshake_timeout_s: float = 10.0,
    ):
        self.config = config or TransferConfig()
        self.impairment = impairment
        self.handshake_timeout_s = handshake_timeout_s

    def send(self, host: str, port: int, path: str) -> Metrics:
        try:
            f = open(path, "rb")
        except OSError as exc:
            raise SetupError(f"cannot read {path}") from exc

        with f:
            file_size = os.fstat(f.fileno()).st_size
            try:
                udp = UdpEndpoint.sending(impairment=self.impairment)
            except OSError as exc:
                raise SetupError("cannot open UDP endpoint") from exc

            try:
                req = HandshakeRequest(os.path.basename(path), file_size, udp.local_port)
                try:
                    reply = handshake.perform(host, port, req, timeout_s=self.handshake_timeout_s)
                    udp.connect((host, reply.udp_port))
                except (OSError, ValueError, OverflowError) as exc:
                    raise SetupError(f"handshake with {host}:{port} failed") from exc

                log.info(
                    "handshake ok; file=%s size=%d udp_port=%d initial_seq=%d",
                    req.file_name,
                    file_size,
                    reply.udp_port,
                    reply.initial_seq,
                )
                return self.transfer(udp, f, reply.initial_seq)
            finally:
                udp.close()

    def transfer(self, channel: Channel, source: BinaryIO, initial_seq: int) -> Metrics:
        return GoBackNSender(channel, source, initial_seq, self.config).run()
