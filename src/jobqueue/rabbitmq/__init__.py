"""RabbitMQ transport adapter (aio-pika)."""

from __future__ import annotations

from .connection import RabbitMQConnectionManager
from .transport import RabbitMQTransport

__all__ = [
    "RabbitMQConnectionManager",
    "RabbitMQTransport",
]
