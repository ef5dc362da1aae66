"""JobPublisher — build job envelopes and hand them to the queue transport."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from .config import DEFAULT_QUEUE_NAME
from .envelope import DEFAULT_MAX_RETRY, Job
from .serialization import JobSerializer

if TYPE_CHECKING:
    from .ports.transport import IQueueTransport

logger = logging.getLogger("jobqueue.publisher")


class JobPublisher:
    """Producer side of the job queue.

    Publishes to ``exchange`` with the queue name as routing key. Nothing is
    retried here; callers decide whether to retry a failed publish.
    """

    def __init__(
        self,
        transport: IQueueTransport,
        *,
        queue_name: str = DEFAULT_QUEUE_NAME,
        exchange: str = "",
        serializer: JobSerializer | None = None,
    ) -> None:
        """Configure publisher.

        Args:
            transport: Shared broker connection.
            queue_name: Routing key; empty falls back to ``"jobs"``.
            exchange: Exchange to publish to; empty routes straight to the queue.
            serializer: Envelope serializer; default JobSerializer().
        """
        self._transport = transport
        self._queue_name = queue_name or DEFAULT_QUEUE_NAME
        self._exchange = exchange
        self._serializer = serializer or JobSerializer()

    @property
    def queue_name(self) -> str:
        return self._queue_name

    @property
    def exchange(self) -> str:
        return self._exchange

    async def publish(self, job_type: str, payload: Any = None) -> Job:
        """Create and publish a job with the default retry ceiling.

        Raises:
            EncodingError: if the payload cannot be serialized.
            TransportError: if the broker rejects the publish.
        """
        return await self.publish_with_retry(job_type, payload, DEFAULT_MAX_RETRY)

    async def publish_with_retry(
        self, job_type: str, payload: Any, max_retry: int
    ) -> Job:
        """Create and publish a job with a caller-supplied retry ceiling."""
        job = Job.create(job_type, payload, max_retry=max_retry)
        await self.publish_raw(job)
        return job

    async def publish_raw(self, job: Job) -> None:
        """Publish a pre-built envelope unchanged."""
        body = self._serializer.serialize(job)
        await self._transport.publish(self._exchange, self._queue_name, body)
        logger.debug(
            "Published job",
            extra={
                "job_id": job.id,
                "job_type": job.type,
                "attempt": job.attempts,
                "queue": self._queue_name,
            },
        )
