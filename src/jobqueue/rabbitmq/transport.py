"""RabbitMQTransport — IQueueTransport over aio-pika with manual acks."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from datetime import datetime, timezone
from typing import TYPE_CHECKING

import aio_pika
from aio_pika.exceptions import AMQPError

from ..exceptions import TransportError
from ..ports.transport import IQueueTransport

if TYPE_CHECKING:
    from aio_pika.abc import AbstractExchange, AbstractIncomingMessage

    from ..ports.transport import MessageCallback
    from .connection import RabbitMQConnectionManager

logger = logging.getLogger("jobqueue.rabbitmq")

_DRIVER_ERRORS = (AMQPError, ConnectionError, OSError)


class RabbitMQTransport(IQueueTransport):
    """RabbitMQ adapter implementing IQueueTransport.

    Messages are persistent ``application/json``. Each ``consume`` call runs
    on its own channel with ``prefetch_count`` (default 1), so one
    consumption loop holds at most that many unacknowledged deliveries. A
    callback that returns acks the delivery; one that raises rejects it with
    requeue.
    """

    def __init__(
        self,
        connection: RabbitMQConnectionManager,
        *,
        prefetch_count: int = 1,
    ) -> None:
        """Configure transport.

        Args:
            connection: Shared connection manager.
            prefetch_count: QoS prefetch for each consumer channel.
        """
        self._connection = connection
        self._prefetch_count = prefetch_count
        self._exchanges: dict[str, AbstractExchange] = {}

    async def connect(self) -> None:
        await self._connection.connect()

    async def _exchange(self, name: str) -> AbstractExchange:
        channel = self._connection.channel
        if not name:
            return channel.default_exchange
        if name not in self._exchanges:
            self._exchanges[name] = await channel.get_exchange(name, ensure=False)
        return self._exchanges[name]

    async def publish(self, exchange: str, routing_key: str, body: bytes) -> None:
        await self._connection.connect()
        try:
            target = await self._exchange(exchange)
            await target.publish(
                aio_pika.Message(
                    body=body,
                    content_type="application/json",
                    delivery_mode=aio_pika.DeliveryMode.PERSISTENT,
                    timestamp=datetime.now(timezone.utc),
                ),
                routing_key=routing_key,
            )
        except _DRIVER_ERRORS as e:
            raise TransportError(
                f"Failed to publish to {exchange or '<default>'}/{routing_key}: {e}"
            ) from e

    async def declare_queue(self, name: str, *, durable: bool = True) -> None:
        await self._connection.connect()
        try:
            await self._connection.channel.declare_queue(name, durable=durable)
        except _DRIVER_ERRORS as e:
            raise TransportError(f"Failed to declare queue {name!r}: {e}") from e

    async def declare_exchange(
        self, name: str, kind: str = "direct", *, durable: bool = True
    ) -> None:
        await self._connection.connect()
        try:
            self._exchanges[name] = await self._connection.channel.declare_exchange(
                name,
                aio_pika.ExchangeType(kind),
                durable=durable,
            )
        except (*_DRIVER_ERRORS, ValueError) as e:
            raise TransportError(f"Failed to declare exchange {name!r}: {e}") from e

    async def bind_queue(self, queue: str, exchange: str, routing_key: str) -> None:
        await self._connection.connect()
        try:
            declared = await self._connection.channel.get_queue(queue)
            await declared.bind(exchange, routing_key=routing_key)
        except _DRIVER_ERRORS as e:
            raise TransportError(
                f"Failed to bind queue {queue!r} to {exchange!r}: {e}"
            ) from e

    async def consume(
        self,
        queue_name: str,
        on_message: MessageCallback,
        stop: asyncio.Event,
    ) -> None:
        await self._connection.connect()
        channel = await self._connection.open_channel(self._prefetch_count)
        in_flight = asyncio.Lock()

        async def deliver(message: AbstractIncomingMessage) -> None:
            async with in_flight:
                async with message.process(requeue=True, ignore_processed=True):
                    await on_message(message.body)

        try:
            try:
                queue = await channel.get_queue(queue_name)
                consumer_tag = await queue.consume(deliver)
            except _DRIVER_ERRORS as e:
                raise TransportError(
                    f"Failed to register consumer on {queue_name!r}: {e}"
                ) from e
            await stop.wait()
            try:
                await queue.cancel(consumer_tag)
            except _DRIVER_ERRORS:
                logger.warning(
                    "Failed to cancel consumer",
                    extra={"queue": queue_name},
                    exc_info=True,
                )
            # Wait for a delivery that was already running when stop was set.
            async with in_flight:
                pass
        finally:
            with contextlib.suppress(*_DRIVER_ERRORS):
                await channel.close()

    async def health_check(self) -> bool:
        return await self._connection.health_check()

    async def close(self) -> None:
        self._exchanges.clear()
        await self._connection.close()
