"""Paced execution of idempotent remote calls with backoff on transient failures."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from typing import TypeVar

from gmail_archiver.core.backoff import BackoffPolicy
from gmail_archiver.core.exceptions import TransientApiError
from gmail_archiver.core.rate_limiter import TokenBucket

logger = logging.getLogger(__name__)

T = TypeVar("T")


class Retrier:
    """Takes a limiter token before every attempt and retries transient errors.

    ``max_retries`` counts retries, so an operation runs at most
    ``max_retries + 1`` times. Non-transient errors propagate immediately.
    """

    def __init__(
        self,
        limiter: TokenBucket,
        backoff: BackoffPolicy | None = None,
        *,
        max_retries: int = 5,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._limiter = limiter
        self._backoff = backoff or BackoffPolicy()
        self._max_retries = max_retries
        self._sleep = sleep

    def call(self, operation: Callable[[], T], context: str) -> T:
        """Run ``operation``, backing off between transient failures.

        Raises:
            TransientApiError: When the call still fails after max_retries retries.
        """
        attempt = 0
        while True:
            self._limiter.acquire()
            try:
                return operation()
            except TransientApiError as e:
                if attempt >= self._max_retries:
                    raise TransientApiError(
                        f"{context} failed after {self._max_retries} retries: {e}"
                    ) from e
                attempt += 1
                delay = self._backoff.compute_delay(attempt)
                logger.warning(
                    "Transient error during %s (attempt %d/%d), sleeping %.2fs: %s",
                    context, attempt, self._max_retries, delay, e,
                )
                self._sleep(delay)
