from __future__ import annotations

from dataclasses import dataclass

from .constants import DEFAULT_ACK_POLL_MS, DEFAULT_RTO_MS, DEFAULT_SEGMENT_SIZE, DEFAULT_WINDOW_SIZE


@dataclass(frozen=True, slots=True)
class TransferConfig:
    window_size: int = DEFAULT_WINDOW_SIZE
    rto_ms: int = DEFAULT_RTO_MS
    segment_size: int = DEFAULT_SEGMENT_SIZE
    ack_poll_ms: int = DEFAULT_ACK_POLL_MS
    # consecutive timeouts without ack progress before giving up; None retries forever
    max_retries: int | None = None

    def __post_init__(self) -> None:
        for name in ("window_size", "rto_ms", "segment_size", "ack_poll_ms"):
            value = getattr(self, name)
            if value <= 0:
                raise ValueError(f"{name} must be positive, got {value}")
        if self.max_retries is not None and self.max_retries < 0:
            raise ValueError(f"max_retries must be >= 0, got {self.max_retries}")
