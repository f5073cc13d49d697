"""Exponential backoff with jitter for retried Gmail API calls."""

from __future__ import annotations

import random


class BackoffPolicy:
    """Computes ``2**attempt * base + U[0, jitter)`` seconds.

    No upper bound is applied; callers enforce their own retry ceiling.
    """

    def __init__(
        self,
        base_seconds: float = 1.0,
        jitter_seconds: float = 1.0,
        *,
        rng: random.Random | None = None,
    ) -> None:
        self._base = base_seconds
        self._jitter = jitter_seconds
        self._rng = rng or random.Random()

    def compute_delay(self, attempt: int) -> float:
        """Delay in seconds before retry number ``attempt`` (1-based)."""
        if attempt < 1:
            raise ValueError(f"attempt must be >= 1, got {attempt}")
        return (2**attempt) * self._base + self._rng.random() * self._jitter
