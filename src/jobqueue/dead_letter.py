"""DeadLetterHandler — hand abandoned jobs to an application callback."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Callable, Coroutine

    from .envelope import Job

logger = logging.getLogger("jobqueue.dead_letter")


class DeadLetterHandler:
    """Receives jobs the worker gives up on.

    The worker routes a job here when it is unroutable or has exhausted its
    retries. The callback typically stores the job for inspection or
    publishes it to a parking queue. Callback failures are logged and never
    reach the consumption loop.
    """

    def __init__(
        self,
        on_dead_letter: (
            Callable[[Job, str, BaseException | None], Coroutine[Any, Any, None]]
            | None
        ) = None,
    ) -> None:
        """Configure dead-letter handling.

        Args:
            on_dead_letter: Async callable (job, reason, exception) -> None.
                If None, routing only logs.
        """
        self._on_dead_letter = on_dead_letter

    async def route(
        self,
        job: Job,
        reason: str,
        exception: BaseException | None = None,
    ) -> None:
        """Pass *job* to the callback; never raises."""
        logger.debug(
            "Dead-lettering job",
            extra={"job_id": job.id, "job_type": job.type, "reason": reason},
        )
        if self._on_dead_letter is None:
            return
        try:
            await self._on_dead_letter(job, reason, exception)
        except Exception as e:  # noqa: BLE001
            logger.error(
                "Dead-letter callback failed",
                extra={"job_id": job.id, "job_type": job.type, "error": str(e)},
                exc_info=True,
            )
