"""Background job processing over a durable message queue."""

from __future__ import annotations

from .config import WorkerSettings
from .dead_letter import DeadLetterHandler
from .envelope import (
    DEFAULT_MAX_RETRY,
    JOB_TYPE_AUDIT_CLEANUP,
    JOB_TYPE_EMAIL_SEND,
    JOB_TYPE_NOTIFICATION,
    Job,
)
from .exceptions import (
    DecodingError,
    EncodingError,
    HandlerError,
    HandlerTimeoutError,
    JobCancelledError,
    JobQueueError,
    SerializationError,
    ShutdownTimeoutError,
    TransportError,
    WorkerStateError,
)
from .memory import InMemoryQueueTransport, NoOpQueueTransport
from .ports import IJobHandler, IQueueTransport, JobContext
from .publisher import JobPublisher
from .registry import HandlerRegistry
from .retry import RetryPolicy
from .serialization import JobSerializer
from .worker import Worker, WorkerState

__all__ = [
    "DEFAULT_MAX_RETRY",
    "JOB_TYPE_AUDIT_CLEANUP",
    "JOB_TYPE_EMAIL_SEND",
    "JOB_TYPE_NOTIFICATION",
    "DeadLetterHandler",
    "DecodingError",
    "EncodingError",
    "HandlerError",
    "HandlerRegistry",
    "HandlerTimeoutError",
    "IJobHandler",
    "IQueueTransport",
    "InMemoryQueueTransport",
    "Job",
    "JobCancelledError",
    "JobContext",
    "JobPublisher",
    "JobQueueError",
    "JobSerializer",
    "NoOpQueueTransport",
    "RetryPolicy",
    "SerializationError",
    "ShutdownTimeoutError",
    "TransportError",
    "Worker",
    "WorkerSettings",
    "WorkerState",
]
