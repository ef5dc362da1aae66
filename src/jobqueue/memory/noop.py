"""NoOpQueueTransport — accepts everything, delivers nothing."""

from __future__ import annotations

from typing import TYPE_CHECKING

from ..ports.transport import IQueueTransport

if TYPE_CHECKING:
    import asyncio

    from ..ports.transport import MessageCallback


class NoOpQueueTransport(IQueueTransport):
    """Transport used when the broker is disabled.

    Publishes are discarded; ``consume`` just blocks until stopped.
    """

    async def connect(self) -> None:
        return None

    async def publish(self, exchange: str, routing_key: str, body: bytes) -> None:
        return None

    async def declare_queue(self, name: str, *, durable: bool = True) -> None:
        return None

    async def declare_exchange(
        self, name: str, kind: str = "direct", *, durable: bool = True
    ) -> None:
        return None

    async def bind_queue(self, queue: str, exchange: str, routing_key: str) -> None:
        return None

    async def consume(
        self,
        queue_name: str,  # noqa: ARG002
        on_message: MessageCallback,  # noqa: ARG002
        stop: asyncio.Event,
    ) -> None:
        await stop.wait()

    async def health_check(self) -> bool:
        return True

    async def close(self) -> None:
        return None
