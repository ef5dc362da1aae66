"""In-memory transport adapters for tests and broker-less deployments."""

from __future__ import annotations

from .noop import NoOpQueueTransport
from .transport import InMemoryQueueTransport

__all__ = [
    "InMemoryQueueTransport",
    "NoOpQueueTransport",
]
