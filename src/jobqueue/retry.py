"""RetryPolicy — quadratic backoff driven by the job's own retry ceiling."""

from __future__ import annotations

import random
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .envelope import Job


class RetryPolicy:
    """Quadratic backoff: attempt *k* waits ``base_delay * k**2`` seconds.

    The retry ceiling lives on each job (``max_retry``); this policy only
    decides how long to wait before the re-publish.
    """

    def __init__(
        self,
        *,
        base_delay: float = 1.0,
        max_delay: float | None = None,
        jitter: bool = False,
    ) -> None:
        """Configure backoff.

        Args:
            base_delay: Multiplier in seconds; 1.0 gives 1s, 4s, 9s, ...
            max_delay: Optional cap on the delay in seconds.
            jitter: If True, multiply delays by a random factor in [0.5, 1.5].
        """
        if base_delay < 0:
            raise ValueError("base_delay must be >= 0")
        if max_delay is not None and max_delay < 0:
            raise ValueError("max_delay must be >= 0")
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.jitter = jitter

    def should_retry(self, job: Job) -> bool:
        """Return True if *job* has attempts left."""
        return job.can_retry()

    def delay_for_attempt(self, attempt: int) -> float:
        """Return delay in seconds for the given 1-based attempt."""
        if attempt < 1:
            return 0.0
        delay = self.base_delay * attempt**2
        if self.max_delay is not None:
            delay = min(delay, self.max_delay)
        if self.jitter:
            delay = delay * (0.5 + random.random())  # noqa: S311
        return float(max(0.0, delay))
