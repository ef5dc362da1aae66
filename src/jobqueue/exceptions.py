"""Exception hierarchy for jobqueue."""

from __future__ import annotations


class JobQueueError(Exception):
    """Root exception for the background job subsystem."""


class SerializationError(JobQueueError):
    """Base class for envelope and payload (de)serialization failures."""


class EncodingError(SerializationError):
    """Raised when a job or its payload cannot be serialized."""


class DecodingError(SerializationError):
    """Raised when bytes cannot be decoded into a job or a payload shape."""


class HandlerError(JobQueueError):
    """Raised (or synthesized) when a registered handler fails a job.

    Drives the retry/backoff decision. The original failure is chained as
    ``__cause__``.
    """

    def __init__(
        self,
        message: str,
        *,
        job_id: str | None = None,
        job_type: str | None = None,
        attempt: int | None = None,
    ) -> None:
        self.job_id = job_id
        self.job_type = job_type
        self.attempt = attempt
        super().__init__(message)


class HandlerTimeoutError(HandlerError):
    """Raised when a handler exceeds its processing deadline."""


class JobCancelledError(HandlerError):
    """Raised by a handler that observed worker shutdown mid-job."""


class TransportError(JobQueueError):
    """Raised when connecting to, publishing to or consuming from the broker fails."""


class WorkerStateError(JobQueueError):
    """Raised on an illegal worker lifecycle transition."""


class ShutdownTimeoutError(JobQueueError):
    """Raised when consumption loops did not drain before the shutdown deadline."""

    def __init__(self, timeout: float, pending: int) -> None:
        self.timeout = timeout
        self.pending = pending
        super().__init__(
            f"Worker shutdown timed out after {timeout}s "
            f"with {pending} task(s) still running"
        )


class EmailDeliveryError(JobQueueError):
    """Raised when an email sender cannot deliver a message."""

    def __init__(self, recipient: str, reason: str) -> None:
        self.recipient = recipient
        super().__init__(f"Failed to deliver email to {recipient}: {reason}")
