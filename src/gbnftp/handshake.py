"""TCP control-channel handshake that precedes a UDP transfer.

The sender opens a TCP connection to the receiver and writes::

    [name_len: u16][name: utf-8][file_size: i64][sender_udp_port: i32]

The receiver answers with the UDP port segments go to and the first sequence
number to use::

    [receiver_udp_port: i32][initial_seq: u32]

after which both sides close the TCP connection.
"""
from __future__ import annotations

import socket
import struct
from dataclasses import dataclass

NAME_LEN = struct.Struct("!H")
REQUEST_TAIL = struct.Struct("!qi")
REPLY = struct.Struct("!iI")


@dataclass(frozen=True, slots=True)
class HandshakeRequest:
    file_name: str
    file_size: int
    udp_port: int


@dataclass(frozen=True, slots=True)
class HandshakeReply:
    udp_port: int
    initial_seq: int


def _recv_exact(conn: socket.socket, n: int) -> bytes:
    buf = bytearray()
    while len(buf) < n:
        chunk = conn.recv(n - len(buf))
        if not chunk:
            raise ConnectionError(f"handshake peer closed after {len(buf)} of {n} bytes")
        buf += chunk
    return bytes(buf)


def encode_request(req: HandshakeRequest) -> bytes:
    name = req.file_name.encode("utf-8")
    if len(name) > 0xFFFF:
        raise ValueError(f"file name too long for handshake: {len(name)} bytes")
    return NAME_LEN.pack(len(name)) + name + REQUEST_TAIL.pack(req.file_size, req.udp_port)


def read_request(conn: socket.socket) -> HandshakeRequest:
    (name_len,) = NAME_LEN.unpack(_recv_exact(conn, NAME_LEN.size))
    name = _recv_exact(conn, name_len).decode("utf-8")
    file_size, udp_port = REQUEST_TAIL.unpack(_recv_exact(conn, REQUEST_TAIL.size))
    return HandshakeRequest(name, file_size, udp_port)


def write_reply(conn: socket.socket, reply: HandshakeReply) -> None:
    conn.sendall(REPLY.pack(reply.udp_port, reply.initial_seq))


def read_reply(conn: socket.socket) -> HandshakeReply:
    udp_port, initial_seq = REPLY.unpack(_recv_exact(conn, REPLY.size))
    if not 0 < udp_port <= 0xFFFF:
        raise ConnectionError(f"handshake reply carries invalid udp port {udp_port}")
    return HandshakeReply(udp_port, initial_seq)


def perform(host: str, port: int, req: HandshakeRequest, timeout_s: float = 10.0) -> HandshakeReply:
    """Client side: announce the transfer and return the receiver's answer.

    Socket and framing failures propagate as `OSError`, a file name that is
    not valid UTF-8 as `UnicodeEncodeError`; the caller decides how to report
    them.
    """
    raw = encode_request(req)
    with socket.create_connection((host, port), timeout=timeout_s) as conn:
        conn.sendall(raw)
        return read_reply(conn)
