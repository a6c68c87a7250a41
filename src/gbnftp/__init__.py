"""Go-Back-N file transfer over UDP.

The sending engine keeps a fixed window of unacknowledged segments, consumes
cumulative acks on a second thread, and resends the whole window whenever the
single retransmission timer for the oldest segment fires.
"""

from .config import TransferConfig
from .errors import MalformedSegmentError, SetupError, TransferError, TransportError
from .sender import GoBackNSender
from .session import TransferSession

__all__ = [
    "GoBackNSender",
    "MalformedSegmentError",
    "SetupError",
    "TransferConfig",
    "TransferError",
    "TransferSession",
    "TransportError",
]
