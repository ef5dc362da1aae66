from __future__ import annotations

from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    import asyncio

MessageCallback = Callable[[bytes], Awaitable[None]]


@runtime_checkable
class IQueueTransport(Protocol):
    """
    Port for the durable message broker connection.

    The transport owns acknowledgement below the application's retry layer:
    a callback that returns normally acknowledges the delivery. Adapters must
    tolerate concurrent ``publish`` and ``consume`` calls from several loops.
    Driver failures surface as :class:`~jobqueue.exceptions.TransportError`.
    """

    async def connect(self) -> None:
        """Open the connection. Idempotent."""
        ...

    async def publish(self, exchange: str, routing_key: str, body: bytes) -> None:
        """
        Publish *body* to *exchange* with *routing_key*.

        An empty *exchange* routes directly to the queue named *routing_key*.
        """
        ...

    async def declare_queue(self, name: str, *, durable: bool = True) -> None:
        """Ensure queue *name* exists."""
        ...

    async def declare_exchange(
        self, name: str, kind: str = "direct", *, durable: bool = True
    ) -> None:
        """Ensure exchange *name* exists."""
        ...

    async def bind_queue(self, queue: str, exchange: str, routing_key: str) -> None:
        """Bind *queue* to *exchange* for *routing_key*."""
        ...

    async def consume(
        self,
        queue_name: str,
        on_message: MessageCallback,
        stop: asyncio.Event,
    ) -> None:
        """
        Deliver each message body of *queue_name* to *on_message*.

        Blocks until *stop* is set, then waits for the in-flight callback and
        returns. Raises ``TransportError`` if consumption cannot continue.
        """
        ...

    async def health_check(self) -> bool:
        """Return True if the connection is usable."""
        ...

    async def close(self) -> None:
        """Close the connection."""
        ...
