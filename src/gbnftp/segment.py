from __future__ import annotations

import struct
from dataclasses import dataclass

from .constants import ACK_LEN, SEQ_FORMAT, SEQ_LEN
from .errors import MalformedSegmentError


@dataclass(frozen=True, slots=True)
class Segment:
    """One sequence-numbered chunk of the byte stream.

    On the wire a segment is the big-endian sequence number followed by the
    payload; the payload length is whatever is left of the datagram.
    """

    seq: int
    payload: bytes = b""

    def to_bytes(self) -> bytes:
        return struct.pack(SEQ_FORMAT, self.seq) + self.payload

    @staticmethod
    def from_bytes(raw: bytes) -> "Segment":
        if len(raw) < SEQ_LEN:
            raise MalformedSegmentError(f"datagram too small to be a segment: {len(raw)} bytes")
        (seq,) = struct.unpack_from(SEQ_FORMAT, raw)
        return Segment(seq=seq, payload=bytes(raw[SEQ_LEN:]))


@dataclass(frozen=True, slots=True)
class Ack:
    """Cumulative acknowledgment: every seq strictly below `seq` was received."""

    seq: int

    def to_bytes(self) -> bytes:
        return struct.pack(SEQ_FORMAT, self.seq)

    @staticmethod
    def from_bytes(raw: bytes) -> "Ack":
        if len(raw) < ACK_LEN:
            raise MalformedSegmentError(f"datagram too small to be an ack: {len(raw)} bytes")
        (seq,) = struct.unpack_from(SEQ_FORMAT, raw)
        return Ack(seq)
