"""InMemoryQueueTransport — asyncio queues with AMQP-style routing."""

from __future__ import annotations

import asyncio
import contextlib
from typing import TYPE_CHECKING

from ..envelope import Job
from ..exceptions import DecodingError, TransportError
from ..ports.transport import IQueueTransport

if TYPE_CHECKING:
    from ..ports.transport import MessageCallback


class InMemoryQueueTransport(IQueueTransport):
    """In-process broker for tests and single-process deployments.

    The empty exchange routes to the queue named by the routing key (queues
    are created on first use). Named exchanges must be declared and route
    through bindings; a message with no matching binding is dropped, as a
    non-mandatory AMQP publish would be. Every publish is recorded for
    assertions.
    """

    def __init__(self) -> None:
        self._queues: dict[str, asyncio.Queue[bytes]] = {}
        self._exchanges: dict[str, str] = {}
        self._bindings: dict[str, dict[str, set[str]]] = {}
        self._published: list[tuple[str, str, bytes]] = []
        self._closed = False

    def _queue(self, name: str) -> asyncio.Queue[bytes]:
        return self._queues.setdefault(name, asyncio.Queue())

    def _ensure_open(self) -> None:
        if self._closed:
            raise TransportError("Transport is closed")

    async def connect(self) -> None:
        self._closed = False

    async def publish(self, exchange: str, routing_key: str, body: bytes) -> None:
        """Record the message and route it to the matching queues."""
        self._ensure_open()
        self._published.append((exchange, routing_key, body))
        for name in self._route(exchange, routing_key):
            self._queue(name).put_nowait(body)

    def _route(self, exchange: str, routing_key: str) -> list[str]:
        if not exchange:
            return [routing_key]
        kind = self._exchanges.get(exchange)
        if kind is None:
            raise TransportError(f"Exchange {exchange!r} is not declared")
        bindings = self._bindings.get(exchange, {})
        if kind == "fanout":
            return sorted({q for queues in bindings.values() for q in queues})
        return sorted(bindings.get(routing_key, set()))

    async def declare_queue(self, name: str, *, durable: bool = True) -> None:  # noqa: ARG002
        self._ensure_open()
        self._queue(name)

    async def declare_exchange(
        self,
        name: str,
        kind: str = "direct",
        *,
        durable: bool = True,  # noqa: ARG002
    ) -> None:
        self._ensure_open()
        existing = self._exchanges.get(name)
        if existing is not None and existing != kind:
            raise TransportError(
                f"Exchange {name!r} already declared as {existing!r}, not {kind!r}"
            )
        self._exchanges[name] = kind

    async def bind_queue(self, queue: str, exchange: str, routing_key: str) -> None:
        self._ensure_open()
        if exchange not in self._exchanges:
            raise TransportError(f"Exchange {exchange!r} is not declared")
        self._queue(queue)
        self._bindings.setdefault(exchange, {}).setdefault(routing_key, set()).add(
            queue
        )

    async def consume(
        self,
        queue_name: str,
        on_message: MessageCallback,
        stop: asyncio.Event,
    ) -> None:
        """Pull messages one at a time until *stop* is set.

        Each message is removed from the queue before the callback runs, so a
        returning callback is an acknowledgement. If the callback raises, the
        message is put back at the end of the queue.
        """
        self._ensure_open()
        queue = self._queue(queue_name)
        while not stop.is_set():
            getter = asyncio.ensure_future(queue.get())
            stopper = asyncio.ensure_future(stop.wait())
            done, _ = await asyncio.wait(
                {getter, stopper}, return_when=asyncio.FIRST_COMPLETED
            )
            stopper.cancel()
            if getter not in done:
                getter.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await getter
                break
            body = getter.result()
            try:
                await on_message(body)
            except Exception:
                queue.put_nowait(body)
                raise
            finally:
                queue.task_done()

    async def health_check(self) -> bool:
        return not self._closed

    async def close(self) -> None:
        self._closed = True

    # ── Test helpers ─────────────────────────────────────────────

    def get_published(self) -> list[tuple[str, str, bytes]]:
        """Return all (exchange, routing_key, body) published so far, in order."""
        return list(self._published)

    def published_jobs(self) -> list[Job]:
        """Decode every published body that is a job envelope."""
        jobs = []
        for _, _, body in self._published:
            with contextlib.suppress(DecodingError):
                jobs.append(Job.decode(body))
        return jobs

    def pending(self, queue_name: str) -> int:
        """Number of messages waiting in *queue_name*."""
        queue = self._queues.get(queue_name)
        return queue.qsize() if queue is not None else 0

    def assert_published(self, job_type: str, count: int = 1) -> None:
        """Assert that exactly *count* jobs of *job_type* were published."""
        jobs = self.published_jobs()
        matching = [j for j in jobs if j.type == job_type]
        assert len(matching) == count, (
            f"Expected {count} job(s) of type {job_type!r}, "
            f"got {len(matching)}. Published: {[j.type for j in jobs]}"
        )
