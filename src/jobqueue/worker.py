"""Worker — bounded-concurrency consumer pool with application-level retry."""

from __future__ import annotations

import asyncio
import contextlib
import functools
import logging
import time
from enum import Enum
from typing import TYPE_CHECKING, Any

from .config import WorkerSettings
from .exceptions import (
    DecodingError,
    HandlerError,
    HandlerTimeoutError,
    ShutdownTimeoutError,
    WorkerStateError,
)
from .ports.background_worker import IBackgroundWorker
from .ports.handler import JobContext
from .publisher import JobPublisher
from .registry import HandlerRegistry
from .retry import RetryPolicy
from .serialization import JobSerializer

if TYPE_CHECKING:
    from .dead_letter import DeadLetterHandler
    from .envelope import Job
    from .ports.handler import IJobHandler
    from .ports.transport import IQueueTransport

logger = logging.getLogger("jobqueue.worker")


class WorkerState(str, Enum):
    CREATED = "created"
    RUNNING = "running"
    SHUTTING_DOWN = "shutting_down"
    STOPPED = "stopped"


class Worker(IBackgroundWorker):
    """Consumes jobs from one queue and dispatches them to registered handlers.

    ``start()`` launches ``concurrency`` independent consumption loops that
    share one registry, one transport and one cancellation event. Every
    delivery is acknowledged whatever the outcome; a failed job with
    attempts left is re-published after a quadratic backoff, otherwise it
    is abandoned with a terminal log.

    Lifecycle: ``created -> running -> shutting_down -> stopped``.
    """

    def __init__(
        self,
        transport: IQueueTransport,
        settings: WorkerSettings | None = None,
        *,
        registry: HandlerRegistry | None = None,
        retry_policy: RetryPolicy | None = None,
        serializer: JobSerializer | None = None,
        dead_letter: DeadLetterHandler | None = None,
    ) -> None:
        """Configure worker.

        Args:
            transport: Broker connection shared by all loops and the publisher.
            settings: Queue, exchange, concurrency and timeouts;
                default WorkerSettings() (read from the environment).
            registry: Handler registry; default empty HandlerRegistry().
            retry_policy: Backoff; default uses ``settings.retry_base_delay``.
            serializer: Envelope serializer; default JobSerializer().
            dead_letter: Optional sink for abandoned jobs.
        """
        self._settings = settings or WorkerSettings()
        self._transport = transport
        self._registry = registry or HandlerRegistry()
        self._retry_policy = retry_policy or RetryPolicy(
            base_delay=self._settings.retry_base_delay
        )
        self._serializer = serializer or JobSerializer()
        self._dead_letter = dead_letter
        self._publisher = JobPublisher(
            transport,
            queue_name=self._settings.queue_name,
            exchange=self._settings.exchange,
            serializer=self._serializer,
        )
        self._state = WorkerState.CREATED
        self._stop = asyncio.Event()
        self._loops: list[asyncio.Task[None]] = []
        self._retries: set[asyncio.Task[None]] = set()
        self._in_flight = 0

    # ── Properties ───────────────────────────────────────────────

    @property
    def state(self) -> WorkerState:
        return self._state

    @property
    def queue_name(self) -> str:
        return self._publisher.queue_name

    @property
    def exchange(self) -> str:
        return self._publisher.exchange

    @property
    def concurrency(self) -> int:
        return self._settings.concurrency

    @property
    def publisher(self) -> JobPublisher:
        """Publisher bound to this worker's queue and exchange."""
        return self._publisher

    # ── Setup ────────────────────────────────────────────────────

    def register_handler(self, handler: IJobHandler) -> None:
        """Register *handler* for its job type; only allowed before start()."""
        if self._state is not WorkerState.CREATED:
            raise WorkerStateError(
                f"Cannot register handler for {handler.job_type!r}: "
                f"worker is {self._state.value}"
            )
        self._registry.register(handler)

    # ── Lifecycle ────────────────────────────────────────────────

    async def start(self) -> None:
        """Connect, declare topology (best effort) and launch the loops.

        Raises:
            WorkerStateError: if the worker was already started.
            TransportError: if the broker connection cannot be opened.
        """
        if self._state is not WorkerState.CREATED:
            raise WorkerStateError(f"Cannot start worker in state {self._state.value}")
        logger.info(
            "Starting worker",
            extra={
                "queue": self.queue_name,
                "exchange": self.exchange,
                "concurrency": self.concurrency,
            },
        )
        await self._transport.connect()
        await self._declare_topology()

        self._state = WorkerState.RUNNING
        for worker_id in range(self.concurrency):
            self._loops.append(
                asyncio.create_task(
                    self._consume(worker_id), name=f"jobqueue-worker-{worker_id}"
                )
            )
        logger.info(
            "Worker started",
            extra={"queue": self.queue_name, "handlers": self._registry.job_types()},
        )

    async def _declare_topology(self) -> None:
        try:
            await self._transport.declare_queue(self.queue_name, durable=True)
        except Exception as e:  # noqa: BLE001
            logger.warning(
                "Failed to declare queue (may already exist)",
                extra={"queue": self.queue_name, "error": str(e)},
            )
        if not self.exchange:
            return
        try:
            await self._transport.declare_exchange(self.exchange, "direct", durable=True)
            await self._transport.bind_queue(
                self.queue_name, self.exchange, self.queue_name
            )
        except Exception as e:  # noqa: BLE001
            logger.warning(
                "Failed to declare or bind exchange (may already exist)",
                extra={
                    "queue": self.queue_name,
                    "exchange": self.exchange,
                    "error": str(e),
                },
            )

    async def shutdown(self, timeout: float | None = None) -> None:
        """Signal all loops to stop and wait for them to drain.

        In-flight handlers are not killed; they see the signal through
        ``JobContext.cancelled``. Pending retries are published immediately.
        Calls after the first are no-ops.

        Raises:
            ShutdownTimeoutError: if loops are still running after *timeout*
                seconds (default ``settings.shutdown_timeout``). The worker
                is marked stopped regardless.
        """
        if self._state in (WorkerState.SHUTTING_DOWN, WorkerState.STOPPED):
            logger.debug("Worker shutdown already requested")
            return
        if self._state is WorkerState.CREATED:
            self._state = WorkerState.STOPPED
            logger.info("Worker stopped before start")
            return

        if timeout is None:
            timeout = self._settings.shutdown_timeout
        logger.info(
            "Shutting down worker",
            extra={"timeout": timeout, "in_flight": self._in_flight},
        )
        self._state = WorkerState.SHUTTING_DOWN
        self._stop.set()

        deadline = asyncio.get_running_loop().time() + timeout
        try:
            pending = await self._drain(self._loops, deadline)
            if not pending:
                # Loops may have scheduled retries while draining.
                pending = await self._drain(list(self._retries), deadline)
            if pending:
                logger.warning(
                    "Worker shutdown timed out",
                    extra={"pending": len(pending), "in_flight": self._in_flight},
                )
                raise ShutdownTimeoutError(timeout, len(pending))
            logger.info("Worker shutdown complete")
        finally:
            self._state = WorkerState.STOPPED

    async def stop(self) -> None:
        """Shut down with the configured timeout, logging instead of raising."""
        with contextlib.suppress(ShutdownTimeoutError):
            await self.shutdown()

    @staticmethod
    async def _drain(
        tasks: list[asyncio.Task[None]], deadline: float
    ) -> set[asyncio.Task[None]]:
        if not tasks:
            return set()
        remaining = max(0.0, deadline - asyncio.get_running_loop().time())
        _, pending = await asyncio.wait(tasks, timeout=remaining)
        return pending

    # ── Consumption ──────────────────────────────────────────────

    async def _consume(self, worker_id: int) -> None:
        logger.debug("Consumption loop started", extra={"worker_id": worker_id})
        try:
            await self._transport.consume(
                self.queue_name,
                functools.partial(self._handle_message, worker_id),
                self._stop,
            )
        except Exception as e:  # noqa: BLE001
            logger.error(
                "Consumer error",
                extra={"worker_id": worker_id, "error": str(e)},
                exc_info=True,
            )
        finally:
            logger.debug("Consumption loop stopped", extra={"worker_id": worker_id})

    async def _handle_message(self, worker_id: int, body: bytes) -> None:
        """Process one delivery. Never raises: every outcome is an ack."""
        try:
            job = self._serializer.deserialize(body)
        except DecodingError as e:
            logger.error(
                "Failed to decode job",
                extra={"worker_id": worker_id, "error": str(e)},
            )
            return
        except Exception as e:  # noqa: BLE001
            logger.error(
                "Failed to decode job",
                extra={"worker_id": worker_id, "error": str(e) or type(e).__name__},
                exc_info=True,
            )
            return

        job.increment_attempts()
        context: dict[str, Any] = {
            "job_id": job.id,
            "job_type": job.type,
            "attempt": job.attempts,
            "worker_id": worker_id,
        }
        logger.info("Processing job", extra=context)

        handler = self._registry.get(job.type)
        if handler is None:
            logger.error("No handler registered for job type", extra=context)
            await self._abandon(job, "unroutable", None)
            return

        self._in_flight += 1
        start = time.perf_counter()
        try:
            await self._invoke(handler, job, worker_id)
        except HandlerError as e:
            logger.error(
                "Job failed",
                extra={**context, "duration_ms": _elapsed_ms(start), "error": str(e)},
            )
            await self._on_failure(job, e)
        else:
            logger.info(
                "Job completed successfully",
                extra={**context, "duration_ms": _elapsed_ms(start)},
            )
        finally:
            self._in_flight -= 1

    async def _invoke(self, handler: IJobHandler, job: Job, worker_id: int) -> None:
        """Run the handler under its deadline; normalize failures to HandlerError."""
        timeout = self._settings.handler_timeout
        ctx = JobContext(
            worker_id=worker_id,
            deadline=asyncio.get_running_loop().time() + timeout,
            cancel_event=self._stop,
        )
        # The handler runs in its own task: a CancelledError raised inside it
        # is a job failure, while cancellation of this loop still propagates.
        task = asyncio.ensure_future(handler.handle(ctx, job))
        try:
            done, _ = await asyncio.wait({task}, timeout=timeout)
        except asyncio.CancelledError:
            task.cancel()
            raise

        if not done:
            task.cancel()
            await asyncio.wait({task})
            raise HandlerTimeoutError(
                f"Handler for {job.type!r} exceeded its {timeout}s deadline",
                job_id=job.id,
                job_type=job.type,
                attempt=job.attempts,
            )
        if task.cancelled():
            raise HandlerError(
                "Handler was cancelled",
                job_id=job.id,
                job_type=job.type,
                attempt=job.attempts,
            )
        error = task.exception()
        if error is None:
            return
        if isinstance(error, HandlerError):
            raise error
        raise HandlerError(
            str(error) or type(error).__name__,
            job_id=job.id,
            job_type=job.type,
            attempt=job.attempts,
        ) from error

    # ── Retry / abandonment ──────────────────────────────────────

    async def _on_failure(self, job: Job, error: HandlerError) -> None:
        if self._retry_policy.should_retry(job):
            self._schedule_retry(job)
            return
        logger.error(
            "Job exhausted retries",
            extra={
                "job_id": job.id,
                "job_type": job.type,
                "attempt": job.attempts,
                "max_retry": job.max_retry,
                "error": str(error),
            },
        )
        await self._abandon(job, "retries exhausted", error)

    def _schedule_retry(self, job: Job) -> None:
        delay = self._retry_policy.delay_for_attempt(job.attempts)
        logger.info(
            "Scheduling job retry",
            extra={
                "job_id": job.id,
                "job_type": job.type,
                "attempt": job.attempts,
                "delay_seconds": delay,
            },
        )
        task = asyncio.create_task(
            self._retry_after(job, delay), name=f"jobqueue-retry-{job.id}"
        )
        self._retries.add(task)
        task.add_done_callback(self._retries.discard)

    async def _retry_after(self, job: Job, delay: float) -> None:
        """Re-publish *job* after *delay*, or at once if the worker stops first."""
        if delay > 0:
            with contextlib.suppress(asyncio.TimeoutError):
                await asyncio.wait_for(self._stop.wait(), timeout=delay)
        if self._stop.is_set():
            logger.info(
                "Publishing retry early due to shutdown",
                extra={
                    "job_id": job.id,
                    "job_type": job.type,
                    "attempt": job.attempts,
                    "delay_seconds": delay,
                },
            )
        try:
            await self._publisher.publish_raw(job)
        except Exception as e:  # noqa: BLE001
            logger.error(
                "Failed to retry job",
                extra={
                    "job_id": job.id,
                    "job_type": job.type,
                    "attempt": job.attempts,
                    "error": str(e),
                },
            )

    async def _abandon(
        self, job: Job, reason: str, error: BaseException | None
    ) -> None:
        if self._dead_letter is not None:
            await self._dead_letter.route(job, reason, error)

    # ── Introspection ────────────────────────────────────────────

    def stats(self) -> dict[str, Any]:
        """Return a snapshot of the worker's configuration and activity."""
        return {
            "queue": self.queue_name,
            "exchange": self.exchange,
            "concurrency": self.concurrency,
            "state": self._state.value,
            "handlers": self._registry.job_types(),
            "in_flight": self._in_flight,
            "pending_retries": len(self._retries),
        }

    async def health_check(self) -> bool:
        """Return True if the transport is healthy."""
        return await self._transport.health_check()


def _elapsed_ms(start: float) -> int:
    return int((time.perf_counter() - start) * 1000)
