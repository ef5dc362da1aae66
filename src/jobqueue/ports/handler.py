from __future__ import annotations

import asyncio
import contextlib
from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol, runtime_checkable

from ..exceptions import JobCancelledError

if TYPE_CHECKING:
    from ..envelope import Job


@dataclass(frozen=True)
class JobContext:
    """Execution context handed to a handler for one delivery.

    ``cancel_event`` is the worker-wide shutdown signal. Handlers doing long
    work should check :attr:`cancelled` (or call :meth:`raise_if_cancelled`)
    at convenient checkpoints; the worker does not kill them on shutdown.
    ``deadline`` is in event-loop time.
    """

    worker_id: int
    deadline: float
    cancel_event: asyncio.Event

    @property
    def cancelled(self) -> bool:
        return self.cancel_event.is_set()

    def time_remaining(self) -> float:
        """Seconds left before the processing deadline."""
        return max(0.0, self.deadline - asyncio.get_running_loop().time())

    def raise_if_cancelled(self) -> None:
        """Raise :class:`JobCancelledError` once the worker is shutting down."""
        if self.cancelled:
            raise JobCancelledError("Worker is shutting down")

    async def sleep(self, seconds: float) -> None:
        """Sleep for *seconds*, waking early (and raising) on shutdown."""
        with contextlib.suppress(asyncio.TimeoutError):
            await asyncio.wait_for(self.cancel_event.wait(), timeout=seconds)
        self.raise_if_cancelled()


@runtime_checkable
class IJobHandler(Protocol):
    """
    Port for the logic that processes one job type.

    Handlers must be safe to run more than once for the same job id:
    delivery is at-least-once and failed jobs are re-published.
    """

    @property
    def job_type(self) -> str:
        """The job type tag this handler processes."""
        ...

    async def handle(self, ctx: JobContext, job: Job) -> None:
        """
        Process *job*. Raise any exception to mark the attempt as failed.

        Args:
            ctx: Worker id, deadline and shutdown signal for this delivery.
            job: The envelope; decode its payload with ``job.unmarshal_payload``.
        """
        ...
