from __future__ import annotations

import time
from typing import Iterable, Iterator, TypeVar

from loguru import logger
from pyrate_limiter import Duration, Limiter, Rate

T = TypeVar("T")

PROVIDER_LIMIT_KEY = "yahoo_finance"


def build_limiter(delay_seconds: float) -> Limiter | None:
    """One call per ``delay_seconds`` window, waiting instead of failing when full."""
    delay_ms = int(delay_seconds * Duration.SECOND.value)
    if delay_ms <= 0:
        return None
    return Limiter(
        Rate(1, delay_ms),
        raise_when_fail=False,
        max_delay=delay_ms + Duration.SECOND.value,
    )


class CallPacer:
    """Keeps at least ``delay_seconds`` between consecutive provider calls.

    Pass ``limiter`` to share one limiter between pacers or to drive it from tests.
    """

    def __init__(self, delay_seconds: float, *, limiter: Limiter | None = None, key: str = PROVIDER_LIMIT_KEY):
        if delay_seconds < 0:
            raise ValueError("delay_seconds must be >= 0")
        self.delay_seconds = delay_seconds
        self.key = key
        self._limiter = limiter if limiter is not None else build_limiter(delay_seconds)

    def wait(self) -> float:
        """Block until the next call is allowed; returns the time spent waiting."""
        if self._limiter is None:
            return 0.0
        start = time.monotonic()
        acquired = self._limiter.try_acquire(self.key)
        waited = time.monotonic() - start
        if not acquired:
            logger.warning("provider pacing slot not acquired", key=self.key, waited_s=round(waited, 3))
        elif waited > 0.001:
            logger.debug("paced provider call", key=self.key, waited_s=round(waited, 3))
        return waited

    def pace(self, items: Iterable[T]) -> Iterator[T]:
        for item in items:
            self.wait()
            yield item
