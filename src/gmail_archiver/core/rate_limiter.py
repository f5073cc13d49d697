"""Token-bucket limiter pacing every outbound Gmail API call."""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable

logger = logging.getLogger(__name__)


class TokenBucket:
    """Blocking token bucket.

    Holds at most ``capacity`` tokens (default: one second of burst at
    ``rate``, never below one) and refills continuously at ``rate`` tokens per
    second. The bucket starts
    full. ``acquire()`` debits exactly one token, sleeping first when fewer than
    one is available.

    Args:
        rate: Sustained tokens per second.
        capacity: Burst size. Defaults to ``max(rate, 1)``.
        clock: Monotonic time source in seconds.
        sleep: Function used to suspend the caller.
    """

    def __init__(
        self,
        rate: float,
        capacity: float | None = None,
        *,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        if rate <= 0:
            raise ValueError(f"rate must be positive, got {rate}")
        self._rate = float(rate)
        self._capacity = float(capacity if capacity is not None else max(rate, 1))
        if self._capacity < 1:
            raise ValueError(f"capacity must be at least 1, got {self._capacity}")
        self._clock = clock
        self._sleep = sleep
        self._tokens = self._capacity
        self._last_refill = clock()
        self._lock = threading.Lock()

    @property
    def rate(self) -> float:
        return self._rate

    @property
    def capacity(self) -> float:
        return self._capacity

    @property
    def tokens(self) -> float:
        """Tokens available right now (refills as a side effect)."""
        with self._lock:
            self._refill()
            return self._tokens

    def _refill(self) -> None:
        now = self._clock()
        elapsed = max(0.0, now - self._last_refill)
        self._tokens = min(self._capacity, self._tokens + elapsed * self._rate)
        self._last_refill = now

    def acquire(self) -> float:
        """Block until a token is available, then take it.

        Returns:
            Total seconds spent waiting.
        """
        waited = 0.0
        while True:
            with self._lock:
                self._refill()
                if self._tokens >= 1:
                    self._tokens -= 1
                    return waited
                wait = (1 - self._tokens) / self._rate

            # Sleep outside the lock; the deficit is re-measured next pass.
            logger.debug("Rate limiter waiting %.3fs", wait)
            self._sleep(wait)
            waited += wait
