import time

import pytest

from volmon.services.pacing import PROVIDER_LIMIT_KEY, CallPacer, build_limiter


class RecordingLimiter:
    def __init__(self, result=True):
        self.result = result
        self.keys = []

    def try_acquire(self, name, weight=1):
        self.keys.append(name)
        return self.result


def test_zero_delay_has_no_limiter():
    pacer = CallPacer(0)

    assert build_limiter(0) is None
    assert pacer.wait() == 0.0
    assert list(pacer.pace(["AAPL", "TSLA"])) == ["AAPL", "TSLA"]


def test_pace_acquires_a_slot_per_item():
    limiter = RecordingLimiter()
    pacer = CallPacer(0.5, limiter=limiter)

    assert list(pacer.pace(["AAPL", "TSLA", "NVDA"])) == ["AAPL", "TSLA", "NVDA"]
    assert limiter.keys == [PROVIDER_LIMIT_KEY] * 3


def test_unacquired_slot_does_not_stop_iteration():
    pacer = CallPacer(0.5, limiter=RecordingLimiter(result=False), key="chains")

    assert list(pacer.pace([1, 2])) == [1, 2]


def test_consecutive_calls_are_spaced():
    pacer = CallPacer(0.05)

    start = time.monotonic()
    list(pacer.pace(range(3)))
    elapsed = time.monotonic() - start

    assert elapsed >= 0.09


def test_first_call_is_not_delayed():
    pacer = CallPacer(2.0)

    assert pacer.wait() < 0.5


def test_negative_delay_rejected():
    with pytest.raises(ValueError):
        CallPacer(-1)
