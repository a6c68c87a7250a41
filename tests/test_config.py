from __future__ import annotations

import pytest

from gbnftp.config import TransferConfig


def test_defaults():
    c = TransferConfig()
    assert c.window_size == 8
    assert c.rto_ms == 250
    assert c.segment_size == 1400
    assert c.max_retries is None


@pytest.mark.parametrize("field", ["window_size", "rto_ms", "segment_size", "ack_poll_ms"])
def test_non_positive_rejected(field):
    with pytest.raises(ValueError):
        TransferConfig(**{field: 0})


def test_negative_retries_rejected():
    with pytest.raises(ValueError):
        TransferConfig(max_retries=-1)
