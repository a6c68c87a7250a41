from __future__ import annotations


class TransferError(Exception):
    """Base class for failures that end a transfer."""


class SetupError(TransferError):
    """Handshake, channel or source failure before any segment was sent."""


class TransportError(TransferError):
    """Channel failure after the send and ack loops started."""


class MalformedSegmentError(ValueError):
    pass


class TimerError(RuntimeError):
    pass
