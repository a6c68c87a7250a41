from __future__ import annotations

SEQ_FORMAT = "!I"  # sequence number, big-endian u32
SEQ_LEN = 4
ACK_LEN = 4
MAX_SEQ = 0xFFFFFFFF

DEFAULT_SEGMENT_SIZE = 1400
DEFAULT_WINDOW_SIZE = 8
DEFAULT_RTO_MS = 250
DEFAULT_ACK_POLL_MS = 500

RECV_BUFSIZE = 65535
